"""Core commands: init, list, use, status, test."""

import sys

import click
from rich.panel import Panel
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table
from sqlalchemy import make_url

from db_oracle.cli.connection import (
    _get_connection_env_path,
    _prompt_and_save_connection,
    connection_exists,
    get_active_connection,
    get_connection_path,
    list_connections,
    load_connector,
    resolve_connector,
    set_active_connection,
)
from db_oracle.cli.utils import CONFIG_FILE, console, load_config


def _print_connection_result(result: dict) -> None:
    if result.get("connected"):
        console.print("[green]✓ Connected[/green]")
        console.print(f"  User:           {result.get('user')}")
        console.print(f"  Current schema: {result.get('current_schema')}")
        console.print(f"  Server version: {result.get('server_version') or 'unknown'}")
        console.print(f"  Database:       {result.get('url_database') or 'N/A'}")
    else:
        code = f" [{result['code']}]" if result.get("code") else ""
        message = escape(f"{code}: {result.get('error')}")
        console.print(f"[red]✗ Connection failed{message}[/red]")


@click.command()
@click.argument("name", default="default", required=False)
def init(name: str):
    """Interactive setup - configure an Oracle connection.

    NAME is the connection name (default: "default").
    """
    console.print(
        Panel.fit(
            f"[bold blue]db-oracle setup[/bold blue]\nConnection: [cyan]{name}[/cyan]",
            border_style="blue",
        )
    )

    if connection_exists(name) and not Confirm.ask(
        f"Connection '{name}' exists. Overwrite its settings?", default=False
    ):
        console.print("[dim]Nothing changed.[/dim]")
        return

    if not _prompt_and_save_connection(name):
        sys.exit(1)

    if Confirm.ask("Test the connection now?", default=True):
        _print_connection_result(load_connector(name).test_connection())


@click.command("list")
def list_cmd():
    """List all configured connections."""
    connections = list_connections()
    active = get_active_connection()

    if not connections:
        console.print("[dim]No connections configured.[/dim]")
        console.print("[dim]Run 'db-oracle init <name>' to create one.[/dim]")
        return

    table = Table(title="Connections", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Active", justify="center")
    table.add_column("Credentials", justify="center")
    table.add_column("Snapshot", justify="center")
    table.add_column("Description")

    for conn in connections:
        conn_path = get_connection_path(conn)
        has_env = (conn_path / ".env").exists()
        has_snapshot = (conn_path / "schema" / "snapshot.yaml").exists()
        try:
            description = load_connector(conn).config.description
        except ValueError:
            description = "[red]invalid connector.yaml[/red]"
        table.add_row(
            conn,
            "[green]●[/green]" if conn == active else "",
            "✓" if has_env else "[dim]-[/dim]",
            "✓" if has_snapshot else "[dim]-[/dim]",
            description,
        )

    console.print(table)


@click.command()
@click.argument("name")
def use(name: str):
    """Switch to a different connection.

    NAME is the connection name to switch to.
    """
    if not connection_exists(name):
        console.print(f"[red]Connection '{name}' not found.[/red]")
        console.print("[dim]Run 'db-oracle list' to see available connections.[/dim]")
        sys.exit(1)

    set_active_connection(name)
    console.print(f"[green]✓ Switched to connection '{name}'[/green]")


@click.command()
@click.option("-c", "--connection", default=None, help="Show status for specific connection")
def status(connection: str | None):
    """Show current configuration status."""
    console.print(
        Panel.fit(
            "[bold blue]db-oracle Status[/bold blue]",
            border_style="blue",
        )
    )

    console.print("\n[bold]Configuration[/bold]")
    if CONFIG_FILE.exists():
        config = load_config()
        console.print(f"  Config file: [green]{CONFIG_FILE}[/green]")
        console.print(f"  Log level:   {config.get('log_level', 'N/A')}")
    else:
        console.print(f"  [yellow]No config found at {CONFIG_FILE}[/yellow]")
        console.print("  [dim]Run 'db-oracle init' to configure.[/dim]")

    console.print("\n[bold]Connections[/bold]")
    connections = list_connections()
    active = get_active_connection()

    if connection and connection not in connections:
        console.print(f"[red]Connection '{connection}' not found.[/red]")
        sys.exit(1)

    if not connections:
        console.print("  [dim]No connections configured.[/dim]")
        return

    for conn in connections:
        if connection and conn != connection:
            continue
        is_active = conn == active
        marker = "[green]●[/green]" if is_active else "[dim]○[/dim]"
        active_label = " [green](active)[/green]" if is_active else ""
        has_env = _get_connection_env_path(conn).exists()
        status_str = "[dim](credentials)[/dim]" if has_env else ""
        console.print(f"  {marker} [cyan]{conn}[/cyan]{active_label} {status_str}")

        if is_active or conn == connection:
            try:
                url = load_connector(conn).config.resolve_database_url()
            except ValueError as e:
                console.print(f"      [red]Invalid settings: {e}[/red]")
                continue
            if url:
                masked = make_url(url).render_as_string(hide_password=True)
                console.print(f"      [dim]{masked}[/dim]")
            else:
                console.print("      [yellow]No database configured[/yellow]")


@click.command("test")
@click.option("--url", "-u", help="Database connection URL")
@click.option("--connection", "-c", "conn_name", help="Use existing connection by name")
def test_cmd(url: str | None, conn_name: str | None):
    """Test connectivity and show session information."""
    connector = resolve_connector(url, conn_name)
    result = connector.test_connection()
    _print_connection_result(result)
    if not result.get("connected"):
        sys.exit(1)
