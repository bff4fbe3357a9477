"""Inspection commands: describe, routines, types, query."""

import json
import sys
from typing import Any

import click
from rich.markup import escape
from rich.table import Table

from db_oracle.cli.connection import resolve_connector
from db_oracle.cli.utils import console
from db_oracle.db.connection import DatabaseError
from db_oracle.db.types import decode_json_param

connection_options = [
    click.option("--url", "-u", help="Database connection URL"),
    click.option("--connection", "-c", "conn_name", help="Use existing connection by name"),
]


def with_connection(func):
    for option in reversed(connection_options):
        func = option(func)
    return func


def _fail(error: DatabaseError) -> None:
    code = f" [{error.code}]" if error.code else ""
    console.print(f"[red]{escape(f'Error{code}: {error.message}')}[/red]")
    sys.exit(1)


def _print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _print_rows(rows: list[dict[str, Any]], title: str | None = None) -> None:
    if not rows:
        console.print("[dim]No rows.[/dim]")
        return
    table = Table(title=title, show_header=True)
    for column in rows[0]:
        table.add_column(str(column))
    for row in rows:
        table.add_row(*("" if v is None else escape(str(v)) for v in row.values()))
    console.print(table)


@click.command()
@click.argument("table_name")
@click.option("--schema", "-s", default=None, help="Owning schema (default: current schema)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of tables")
@with_connection
def describe(table_name, schema, as_json, url, conn_name):
    """Show columns, constraints and indexes of a table."""
    connector = resolve_connector(url, conn_name)
    try:
        info = connector.describe_table(table_name, schema=schema)
    except DatabaseError as e:
        _fail(e)
        return

    if as_json:
        _print_json(info)
        return

    title = f"{info['full_name']} ({info['type']})"
    if info.get("comment"):
        title += f" - {info['comment']}"

    columns = Table(title=escape(title), show_header=True)
    columns.add_column("#", justify="right")
    columns.add_column("Column", style="cyan")
    columns.add_column("Type")
    columns.add_column("Null", justify="center")
    columns.add_column("Default")
    columns.add_column("Comment")
    for col in info["columns"]:
        name = col["name"] + (" [bold](PK)[/bold]" if col["primary_key"] else "")
        columns.add_row(
            str(col["position"]),
            name,
            escape(col["type"]),
            "Y" if col["nullable"] else "N",
            escape(col["default"] or ""),
            escape(col["comment"] or ""),
        )
    console.print(columns)

    if info["constraints"]:
        console.print("\n[bold]Constraints[/bold]")
        for c in info["constraints"]:
            detail = ", ".join(c["columns"])
            if c["type"] == "foreign_key":
                refs = ", ".join(c["referred_columns"])
                detail += f" -> {c['referred_schema']}.{c['referred_table']}({refs})"
            elif c["type"] == "check":
                detail = c["condition"] or ""
            state = "" if c["enabled"] else " [yellow](disabled)[/yellow]"
            console.print(f"  {c['name']} [dim]{c['type']}[/dim] {escape(detail)}{state}")

    if info["indexes"]:
        console.print("\n[bold]Indexes[/bold]")
        for i in info["indexes"]:
            unique = " unique" if i["unique"] else ""
            columns_str = ", ".join(i["columns"])
            console.print(f"  {i['name']} [dim]{i['index_type']}{unique}[/dim] ({columns_str})")


@click.command()
@click.option("--schema", "-s", default=None, help="Owning schema (default: current schema)")
@click.option("--package", "-p", default=None, help="Only members of this package")
@click.option("--name", "-n", default=None, help="Only routines with this name")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@with_connection
def routines(schema, package, name, as_json, url, conn_name):
    """List procedures and functions with their signatures."""
    from db_oracle_models import RoutineInfo

    connector = resolve_connector(url, conn_name)
    try:
        found = connector.get_routines(schema=schema, package=package, name=name)
    except DatabaseError as e:
        _fail(e)
        return

    if as_json:
        _print_json(found)
        return
    if not found:
        console.print("[dim]No routines found.[/dim]")
        return
    for routine in found:
        info = RoutineInfo.model_validate(routine)
        overload = f" [dim](overload {info.overload})[/dim]" if info.overload else ""
        console.print(f"{escape(info.signature())}{overload}")


@click.command()
@click.option("--schema", "-s", default=None, help="Owning schema (default: current schema)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@with_connection
def types(schema, as_json, url, conn_name):
    """List object, VARRAY and nested table types."""
    connector = resolve_connector(url, conn_name)
    try:
        found = connector.get_types(schema=schema)
    except DatabaseError as e:
        _fail(e)
        return

    if as_json:
        _print_json(found)
        return
    if not found:
        console.print("[dim]No types found.[/dim]")
        return
    for t in found:
        if t["kind"] == "object":
            attrs = ", ".join(f"{a['name']} {a['type']}" for a in t["attributes"])
            console.print(f"[cyan]{t['schema']}.{t['name']}[/cyan] object ({escape(attrs)})")
        else:
            bound = f"({t['max_length']})" if t["max_length"] else ""
            console.print(
                f"[cyan]{t['schema']}.{t['name']}[/cyan] "
                f"{t['kind']}{bound} of {escape(t['element_type'] or '?')}"
            )


def _parse_param(raw: str) -> tuple[str, Any]:
    """``name=value``; the value is read as JSON when it parses, else as text."""
    if "=" not in raw:
        raise click.BadParameter(f"expected name=value, got {raw!r}", param_hint="--param")
    name, value = raw.split("=", 1)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    try:
        return name.strip(), decode_json_param(parsed)
    except DatabaseError as e:
        raise click.BadParameter(e.message, param_hint="--param") from e


@click.command()
@click.argument("sql")
@click.option("--param", "-p", "params", multiple=True, help="Bind value as name=value")
@click.option(
    "--params-json",
    type=click.File("r"),
    default=None,
    help='JSON object (named) or array (positional) of binds; {"$type": ..., "$value": ...} '
    "marks object and collection values.",
)
@click.option("--json", "as_json", is_flag=True, help="Print rows as JSON")
@with_connection
def query(sql, params, params_json, as_json, url, conn_name):
    """Run a SQL statement and print its rows.

    Examples:
        db-oracle query "SELECT * FROM hr.employees WHERE department_id = :d" -p d=50
        db-oracle query "BEGIN hr.add_phones(:id, :phones); END;" --params-json binds.json
    """
    binds: Any = None
    if params and params_json:
        raise click.UsageError("Use either --param or --params-json, not both.")
    if params:
        binds = dict(_parse_param(p) for p in params)
    elif params_json:
        try:
            binds = decode_json_param(json.load(params_json))
        except (json.JSONDecodeError, DatabaseError) as e:
            raise click.BadParameter(str(e), param_hint="--params-json") from e
        if not isinstance(binds, (dict, list)):
            raise click.BadParameter("expected a JSON object or array", param_hint="--params-json")

    connector = resolve_connector(url, conn_name)
    try:
        rows = connector.execute_sql(sql, binds)
    except DatabaseError as e:
        _fail(e)
        return

    if as_json:
        _print_json(rows)
    else:
        _print_rows(rows)
