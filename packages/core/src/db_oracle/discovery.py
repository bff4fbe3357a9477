"""Schema discovery: walk a connection and build a SchemaSnapshot."""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from db_oracle_models import (
    ColumnInfo,
    ConstraintInfo,
    IndexInfo,
    RoutineInfo,
    SchemaSnapshot,
    SequenceInfo,
    TableInfo,
    UserTypeInfo,
)

from db_oracle.db.connection import DatabaseError
from db_oracle.db.queries import normalize_name

logger = logging.getLogger(__name__)

# on_table(full_name, index, total) after each table of a schema is scanned
TableCallback = Callable[[str, int, int], None]


def _table_info(connector: Any, table: dict[str, Any], schema: str) -> TableInfo:
    """Introspect one table through the connector."""
    name = table["name"]
    # Resolved dictionary names are quoted so the connector does not fold them
    exact_name, exact_schema = f'"{name}"', f'"{schema}"'

    if hasattr(connector, "describe_table"):
        described = connector.describe_table(exact_name, schema=exact_schema)
        columns = described["columns"]
        constraints = described["constraints"]
        indexes = described["indexes"]
    else:
        columns = connector.get_columns(exact_name, schema=exact_schema)
        constraints, indexes = [], []

    return TableInfo(
        name=name,
        schema=schema,
        kind=table.get("type") or "table",
        comment=table.get("comment"),
        columns=[ColumnInfo.model_validate(c) for c in columns],
        constraints=[ConstraintInfo.model_validate(c) for c in constraints],
        indexes=[IndexInfo.model_validate(i) for i in indexes],
    )


def _record_error(snapshot: SchemaSnapshot, kind: str, name: str, error: Exception) -> None:
    logger.warning("Skipping %s %s: %s", kind, name, error)
    snapshot.errors.append(
        {
            "object": name,
            "kind": kind,
            "error": str(error),
            "code": getattr(error, "code", None),
        }
    )


def discover_schema(
    connector: Any,
    schemas: list[str] | None = None,
    provider_id: str = "default",
    include_routines: bool = True,
    include_types: bool = True,
    include_sequences: bool = True,
    on_table: TableCallback | None = None,
) -> SchemaSnapshot:
    """Discover tables (and optionally routines, types and sequences).

    A table or schema that cannot be introspected is logged and listed in
    ``snapshot.errors``; discovery carries on with the rest.

    Args:
        connector: Connector for the database
        schemas: Schemas to scan. If None, every non-system schema.
        provider_id: Connection identifier stored in the snapshot
        include_routines: Also collect procedures and functions
        include_types: Also collect object and collection types
        include_sequences: Also collect sequences
        on_table: Progress callback, see TableCallback

    Returns:
        SchemaSnapshot

    Raises:
        DatabaseError: If the database cannot be reached or schemas cannot be listed
    """
    status = connector.test_connection()
    if not status.get("connected"):
        raise DatabaseError(status.get("error") or "Connection failed", status.get("code"))

    if schemas:
        schema_names = [normalize_name(s) for s in schemas]
    else:
        schema_names = [s for s in connector.get_schemas() if s]

    snapshot = SchemaSnapshot(
        provider_id=provider_id,
        dialect=connector.get_dialect(),
        server_version=status.get("server_version"),
        schemas=schema_names,
    )
    logger.info("Discovering %d schema(s) for %s", len(schema_names), provider_id)

    for schema in schema_names:
        try:
            tables = connector.get_tables(schema=f'"{schema}"')
        except Exception as e:
            _record_error(snapshot, "schema", schema, e)
            continue

        for index, table in enumerate(tables, start=1):
            full_name = f"{schema}.{table['name']}"
            try:
                snapshot.tables.append(_table_info(connector, table, schema))
            except Exception as e:
                _record_error(snapshot, "table", full_name, e)
            if on_table is not None:
                on_table(full_name, index, len(tables))

        _collect_extras(
            connector, snapshot, schema, include_routines, include_types, include_sequences
        )

    logger.info(
        "Discovered %d tables, %d routines, %d types, %d sequences (%d errors)",
        len(snapshot.tables),
        len(snapshot.routines),
        len(snapshot.types),
        len(snapshot.sequences),
        len(snapshot.errors),
    )
    return snapshot


def _collect_extras(
    connector: Any,
    snapshot: SchemaSnapshot,
    schema: str,
    include_routines: bool,
    include_types: bool,
    include_sequences: bool,
) -> None:
    """Routines, types and sequences; skipped for connectors without them."""
    exact_schema = f'"{schema}"'
    if include_routines and hasattr(connector, "get_routines"):
        try:
            snapshot.routines.extend(
                RoutineInfo.model_validate(r) for r in connector.get_routines(schema=exact_schema)
            )
        except Exception as e:
            _record_error(snapshot, "routines", schema, e)
    if include_types and hasattr(connector, "get_types"):
        try:
            snapshot.types.extend(
                UserTypeInfo.model_validate(t) for t in connector.get_types(schema=exact_schema)
            )
        except Exception as e:
            _record_error(snapshot, "types", schema, e)
    if include_sequences and hasattr(connector, "get_sequences"):
        try:
            snapshot.sequences.extend(
                SequenceInfo.model_validate(s)
                for s in connector.get_sequences(schema=exact_schema)
            )
        except Exception as e:
            _record_error(snapshot, "sequences", schema, e)


def dump_snapshot(snapshot: SchemaSnapshot, fmt: str = "yaml") -> str:
    """Serialize a snapshot as YAML or JSON text."""
    data = snapshot.model_dump(mode="json", by_alias=True)
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)
    return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def save_snapshot(snapshot: SchemaSnapshot, path: Path) -> Path:
    """Write a snapshot; ``.json`` files get JSON, anything else YAML."""
    path = Path(path)
    fmt = "json" if path.suffix.lower() == ".json" else "yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_snapshot(snapshot, fmt))
    logger.info("Saved schema snapshot to %s", path)
    return path


def load_snapshot(path: Path) -> SchemaSnapshot:
    """Read a snapshot written by save_snapshot.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the file is not a valid snapshot
    """
    path = Path(path)
    with open(path) as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return SchemaSnapshot.model_validate(data)
