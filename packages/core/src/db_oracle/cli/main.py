"""Click command group for db-oracle.

Commands stay thin; they live in cli/commands/ and delegate to the
other cli/ modules and the library.
"""

import click

from db_oracle.cli.commands.core import init, list_cmd, status, test_cmd, use
from db_oracle.cli.commands.discover_cmd import discover
from db_oracle.cli.commands.inspect_cmd import describe, query, routines, types
from db_oracle.cli.utils import _configure_logging, _get_cli_version, load_config
from db_oracle.config import get_settings


@click.group()
@click.version_option(version=_get_cli_version())
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: LOG_LEVEL, then config.yaml, then WARNING)",
)
def main(log_level: str | None):
    """db-oracle - Oracle connectivity and schema introspection."""
    _configure_logging(
        log_level or get_settings().log_level or load_config().get("log_level")
    )


for command in (init, list_cmd, use, status, test_cmd, discover, describe, routines, types, query):
    main.add_command(command)
