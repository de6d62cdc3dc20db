"""lhcli - A command-line interface for the Longhorn storage system."""

__version__ = "0.1.0"
__build_date__ = ""
