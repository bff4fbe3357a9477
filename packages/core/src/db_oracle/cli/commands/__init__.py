"""CLI command modules, registered on the main group in cli/main.py."""
