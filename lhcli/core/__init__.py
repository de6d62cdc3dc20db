"""Core client, configuration and rendering for lhcli."""
