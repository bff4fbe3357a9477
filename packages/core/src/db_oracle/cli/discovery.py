"""Schema discovery orchestration for the db-oracle CLI.

Runs discover_schema with Rich progress indicators in a background
thread with a configurable timeout.
"""

import threading
import time

from db_oracle_models import SchemaSnapshot
from rich.console import Console

from db_oracle.cli.utils import console
from db_oracle.discovery import discover_schema


def _run_discovery_with_progress(
    connector,
    conn_name: str = "cli-discover",
    timeout_s: int = 300,
    schemas: list[str] | None = None,
    include_routines: bool = True,
) -> SchemaSnapshot | None:
    """Run schema discovery with Rich progress indicators.

    Args:
        connector: Database connector instance
        conn_name: Connection name stored as the snapshot's provider_id
        timeout_s: Abort if discovery takes longer than this many seconds
        schemas: Optional list of schema names to limit discovery
        include_routines: Also collect routines, types and sequences

    Returns:
        SchemaSnapshot, or None on failure
    """
    from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

    err_console = Console(stderr=True)

    # A blocking driver call cannot be interrupted by a signal, so the whole
    # discovery runs in a daemon thread with a hard deadline.
    err_console.print("[dim]Starting discovery...[/dim]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=err_console,
    ) as progress:
        task = progress.add_task("Connecting...", total=None)
        progress.refresh()

        result: list[SchemaSnapshot | None] = [None]
        error: list[Exception | None] = [None]

        def on_table(full_name: str, index: int, total: int) -> None:
            progress.update(
                task, description=f"Scanned {full_name}", completed=index, total=max(total, 1)
            )

        def run() -> None:
            try:
                result[0] = discover_schema(
                    connector,
                    schemas=schemas,
                    provider_id=conn_name,
                    include_routines=include_routines,
                    include_types=include_routines,
                    include_sequences=include_routines,
                    on_table=on_table,
                )
            except Exception as e:
                error[0] = e

        t = threading.Thread(target=run, daemon=True)
        t.start()

        deadline = time.monotonic() + timeout_s if timeout_s and timeout_s > 0 else None

        while True:
            if deadline is not None and time.monotonic() > deadline:
                console.print(f"[red]Discovery timed out after {timeout_s}s[/red]")
                return None

            progress.refresh()
            time.sleep(0.1)

            if not t.is_alive():
                break

        if error[0] is not None:
            console.print(f"[red]Discovery failed: {error[0]}[/red]")
            return None

        if result[0] is None:
            console.print("[red]Discovery failed: unknown error[/red]")
            return None

    snapshot = result[0]
    total_columns = sum(len(t.columns) for t in snapshot.tables)
    err_console.print(
        f"[green]Done![/green] Found [bold]{len(snapshot.tables)}[/bold] tables "
        f"with [bold]{total_columns}[/bold] columns, "
        f"[bold]{len(snapshot.routines)}[/bold] routines."
    )
    if snapshot.errors:
        err_console.print(
            f"[yellow]{len(snapshot.errors)} object(s) could not be read; "
            "see 'errors' in the output.[/yellow]"
        )
    return snapshot
