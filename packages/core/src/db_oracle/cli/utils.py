"""Utility functions for the db-oracle CLI.

Shared helpers: config I/O, paths, version, logging, signal handling.
"""

import logging
import signal
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import yaml
from rich.console import Console

console = Console()

# Config paths
CONFIG_DIR = Path.home() / ".db-oracle"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
CONNECTIONS_DIR = CONFIG_DIR / "connections"


def _get_cli_version() -> str:
    """Get installed package version.

    Falls back to "unknown" when package metadata isn't available
    (e.g. running from a source checkout without installation).
    """
    try:
        return version("db-oracle")
    except PackageNotFoundError:
        return "unknown"


def _handle_sigint(signum, frame):
    """Handle Ctrl-C gracefully."""
    console.print("\n[dim]Cancelled.[/dim]")
    sys.exit(130)


# Register signal handler early to catch Ctrl-C before Click processes it
signal.signal(signal.SIGINT, _handle_sigint)


def _configure_logging(level: str | None = None) -> None:
    """Configure logging for a CLI run.

    Log records go to stderr so they never mix with command output.
    """
    logging.basicConfig(
        level=(level or "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def load_config() -> dict:
    """Load config from file."""
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE) as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict) -> None:
    """Save config to file."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False)
