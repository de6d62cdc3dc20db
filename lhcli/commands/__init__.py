"""Click command groups for lhcli."""
