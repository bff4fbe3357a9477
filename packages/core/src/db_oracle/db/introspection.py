"""Database schema introspection.

Reads Oracle's data dictionary views and reshapes the rows into plain
dicts (the shapes the connector protocol returns). Every public
function issues its queries inside a single try block and re-raises any
failure as DatabaseError.
"""

import logging
import re
from collections import defaultdict
from typing import Any

from sqlalchemy import Engine, text

from db_oracle.config import get_settings
from db_oracle.db import queries
from db_oracle.db.connection import get_engine, wrap_error
from db_oracle.db.queries import normalize_name, qualified_name, render
from db_oracle.db.types import unmarshal_value

logger = logging.getLogger(__name__)

_CONSTRAINT_TYPES = {
    "P": "primary_key",
    "U": "unique",
    "R": "foreign_key",
    "C": "check",
}

_ARGUMENT_DIRECTIONS = {
    "IN": "in",
    "OUT": "out",
    "IN/OUT": "in_out",
}

# Check constraints Oracle creates for NOT NULL columns, e.g. "ENAME" IS NOT NULL
_NOT_NULL_CHECK = re.compile(r'^\s*"[^"]+"\s+IS\s+NOT\s+NULL\s*$', re.IGNORECASE)


def _engine(engine: Engine | None) -> Engine:
    return engine if engine is not None else get_engine()


def _scope(scope: str | None) -> str:
    return scope or get_settings().dictionary_scope


def _fetch_all(engine: Engine, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
    """Run a dictionary query and return rows keyed by lower-case column name."""
    logger.debug("Dictionary query with %s", params)
    with engine.connect() as conn:
        result = conn.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings().all()]


def _owner(engine: Engine, schema: str | None) -> str:
    if schema:
        return normalize_name(schema)
    return get_current_schema(engine=engine)


def _exact(name: str) -> str:
    """Quote an already-resolved name so it is not case-folded again."""
    return f'"{name}"'


# =============================================================================
# Type formatting
# =============================================================================


def format_data_type(
    data_type: str,
    data_length: int | None = None,
    char_length: int | None = None,
    char_used: str | None = None,
    precision: int | None = None,
    scale: int | None = None,
    type_owner: str | None = None,
) -> str:
    """Render a dictionary type description as Oracle DDL type text.

    Examples: ``VARCHAR2(40 CHAR)``, ``NUMBER(10,2)``, ``NUMBER(*,0)``,
    ``HR.ADDRESS_T``.
    """
    if type_owner:
        return f"{type_owner}.{data_type}"

    if data_type in ("VARCHAR2", "CHAR"):
        if char_used == "C":
            return f"{data_type}({char_length} CHAR)"
        return f"{data_type}({data_length})"
    if data_type in ("NVARCHAR2", "NCHAR"):
        return f"{data_type}({char_length or data_length})"
    if data_type in ("RAW", "UROWID") and data_length:
        return f"{data_type}({data_length})"
    if data_type == "NUMBER":
        if precision is None and scale is None:
            return "NUMBER"
        if precision is None:
            return f"NUMBER(*,{scale})"
        if not scale:
            return f"NUMBER({precision})"
        return f"NUMBER({precision},{scale})"
    if data_type == "FLOAT" and precision is not None:
        return f"FLOAT({precision})"
    return data_type


def classify_data_type(data_type: str, type_owner: str | None = None) -> str:
    """Map an Oracle type onto a portable category."""
    if type_owner:
        return "user_defined"

    dt = data_type.upper()
    if dt in ("CLOB", "NCLOB"):
        return "text"
    if dt in ("BLOB", "BFILE", "LONG RAW") or dt.startswith("RAW"):
        return "binary"
    if dt.startswith(("VARCHAR", "NVARCHAR", "CHAR", "NCHAR")) or dt == "LONG":
        return "string"
    if dt.startswith(("NUMBER", "FLOAT", "BINARY_", "INTEGER")):
        return "number"
    if dt == "DATE" or dt.startswith("TIMESTAMP"):
        return "datetime"
    if dt.startswith("INTERVAL"):
        return "interval"
    if dt in ("ROWID", "UROWID") or dt.startswith("UROWID"):
        return "rowid"
    if dt == "JSON":
        return "json"
    if dt == "BOOLEAN":
        return "boolean"
    return "other"


# =============================================================================
# Catalog level
# =============================================================================


def get_dialect(engine: Engine | None = None) -> str:
    """Get the SQL dialect name of the engine (``oracle``)."""
    try:
        return _engine(engine).dialect.name
    except Exception as e:
        raise wrap_error("get dialect", e) from e


def get_catalogs(engine: Engine | None = None) -> list[str | None]:
    """Oracle has no catalog level above schemas."""
    return [None]


def get_current_schema(engine: Engine | None = None) -> str:
    """Get the session's current schema."""
    try:
        rows = _fetch_all(_engine(engine), queries.CURRENT_SCHEMA_SQL)
        return rows[0]["current_schema"]
    except Exception as e:
        raise wrap_error("get current schema", e) from e


def get_schemas(
    include_system: bool = False,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[str]:
    """Get list of schemas (database users).

    Args:
        include_system: Include Oracle-maintained accounts (SYS, SYSTEM, ...)
        engine: Optional engine. If not provided, uses settings.
        scope: Dictionary scope ('all' or 'dba')

    Returns:
        Sorted schema names
    """
    try:
        template = queries.ALL_SCHEMAS_SQL if include_system else queries.SCHEMAS_SQL
        rows = _fetch_all(_engine(engine), render(template, _scope(scope)))
        return [row["username"] for row in rows]
    except Exception as e:
        raise wrap_error("get schemas", e) from e


# =============================================================================
# Tables
# =============================================================================


def get_tables(
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get tables, views and materialized views in a schema.

    Args:
        schema: Schema name. If None, uses the session's current schema.
        engine: Optional engine. If not provided, uses settings.
        scope: Dictionary scope ('all' or 'dba')

    Returns:
        List of table info dicts with 'name', 'schema', 'catalog', 'type',
        'full_name' and 'comment' keys
    """
    try:
        engine = _engine(engine)
        owner = _owner(engine, schema)
        rows = _fetch_all(engine, render(queries.TABLES_SQL, _scope(scope)), {"owner": owner})
        return [
            {
                "name": row["name"],
                "schema": owner,
                "catalog": None,
                "type": row["kind"],
                "full_name": f"{owner}.{row['name']}",
                "comment": row["comments"],
            }
            for row in rows
        ]
    except Exception as e:
        raise wrap_error(f"get tables for {schema or 'current schema'}", e) from e


def get_columns(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get column information for a table or view.

    Args:
        table_name: Name of the table
        schema: Schema name. If None, uses the session's current schema.
        engine: Optional engine. If not provided, uses settings.
        scope: Dictionary scope ('all' or 'dba')

    Returns:
        List of column info dicts in column order

    Raises:
        DatabaseError: If the table does not exist or is not accessible
    """
    try:
        engine = _engine(engine)
        scope = _scope(scope)
        owner = _owner(engine, schema)
        table = normalize_name(table_name)

        rows = _fetch_all(
            engine, render(queries.COLUMNS_SQL, scope), {"owner": owner, "table_name": table}
        )
        if not rows:
            raise LookupError(f"table {owner}.{table} not found")

        pk_columns = set(
            get_primary_keys(_exact(table), schema=_exact(owner), engine=engine, scope=scope)
        )

        columns = []
        for row in rows:
            default = row["data_default"]
            if default is not None:
                default = str(default).strip() or None
            columns.append(
                {
                    "name": row["column_name"],
                    "type": format_data_type(
                        row["data_type"],
                        data_length=row["data_length"],
                        char_length=row["char_length"],
                        char_used=row["char_used"],
                        precision=row["data_precision"],
                        scale=row["data_scale"],
                        type_owner=row["data_type_owner"],
                    ),
                    "generic_type": classify_data_type(row["data_type"], row["data_type_owner"]),
                    "nullable": row["nullable"] == "Y",
                    "default": default,
                    "position": row["column_id"],
                    "primary_key": row["column_name"] in pk_columns,
                    "identity": row["identity_column"] == "YES",
                    "virtual": row["virtual_column"] == "YES",
                    "type_owner": row["data_type_owner"],
                    "comment": row["comments"],
                }
            )
        return columns
    except Exception as e:
        raise wrap_error(f"get columns for {table_name}", e) from e


# =============================================================================
# Constraints and indexes
# =============================================================================


def get_constraints(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get primary key, unique, foreign key and check constraints of a table.

    NOT NULL checks are omitted; they are reported as column nullability.
    """
    try:
        engine = _engine(engine)
        owner = _owner(engine, schema)
        table = normalize_name(table_name)
        rows = _fetch_all(
            engine,
            render(queries.CONSTRAINTS_SQL, _scope(scope)),
            {"owner": owner, "table_name": table},
        )

        constraints: dict[str, dict[str, Any]] = {}
        for row in rows:
            name = row["constraint_name"]
            constraint = constraints.get(name)
            if constraint is None:
                ctype = _CONSTRAINT_TYPES[row["constraint_type"]]
                constraint = {
                    "name": name,
                    "type": ctype,
                    "columns": [],
                    "referred_schema": row["r_owner"] if ctype == "foreign_key" else None,
                    "referred_table": None,
                    "referred_columns": [],
                    "on_delete": row["delete_rule"] if ctype == "foreign_key" else None,
                    "condition": row["search_condition"] if ctype == "check" else None,
                    "enabled": row["status"] == "ENABLED",
                    "deferrable": row["deferrable"] == "DEFERRABLE",
                }
                constraints[name] = constraint

            if row["column_name"] and row["column_name"] not in constraint["columns"]:
                constraint["columns"].append(row["column_name"])
            if row["r_table_name"]:
                constraint["referred_table"] = row["r_table_name"]
            if row["r_column_name"]:
                constraint["referred_columns"].append(row["r_column_name"])

        return [
            c
            for c in constraints.values()
            if not (c["type"] == "check" and _NOT_NULL_CHECK.match(c["condition"] or ""))
        ]
    except Exception as e:
        raise wrap_error(f"get constraints for {table_name}", e) from e


def get_primary_keys(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[str]:
    """Get primary key columns for a table, in key order."""
    for constraint in get_constraints(table_name, schema=schema, engine=engine, scope=scope):
        if constraint["type"] == "primary_key":
            return constraint["columns"]
    return []


def get_foreign_keys(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get foreign key constraints for a table."""
    return [
        {
            "name": c["name"],
            "columns": c["columns"],
            "referred_schema": c["referred_schema"],
            "referred_table": c["referred_table"],
            "referred_columns": c["referred_columns"],
            "on_delete": c["on_delete"],
        }
        for c in get_constraints(table_name, schema=schema, engine=engine, scope=scope)
        if c["type"] == "foreign_key"
    ]


def get_indexes(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get indexes of a table with their key columns."""
    try:
        engine = _engine(engine)
        owner = _owner(engine, schema)
        rows = _fetch_all(
            engine,
            render(queries.INDEXES_SQL, _scope(scope)),
            {"owner": owner, "table_name": normalize_name(table_name)},
        )

        indexes: dict[str, dict[str, Any]] = {}
        for row in rows:
            index = indexes.setdefault(
                row["index_name"],
                {
                    "name": row["index_name"],
                    "columns": [],
                    "unique": row["uniqueness"] == "UNIQUE",
                    "index_type": row["index_type"],
                },
            )
            index["columns"].append(row["column_name"])
        return list(indexes.values())
    except Exception as e:
        raise wrap_error(f"get indexes for {table_name}", e) from e


# =============================================================================
# Routines
# =============================================================================


def _argument_type_name(row: dict[str, Any]) -> str | None:
    """Qualified name of an object/collection/record argument type."""
    if not row["type_name"]:
        return None
    parts = [row["type_owner"], row["type_name"], row["type_subname"]]
    return ".".join(p for p in parts if p)


def get_routines(
    schema: str | None = None,
    package: str | None = None,
    name: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get procedures and functions with their signatures.

    Covers standalone routines and the public members of packages.
    Overloaded package members appear once per overload.

    Args:
        schema: Schema name. If None, uses the session's current schema.
        package: Only members of this package
        name: Only routines with this name
        engine: Optional engine. If not provided, uses settings.
        scope: Dictionary scope ('all' or 'dba')

    Returns:
        List of routine dicts with ordered 'arguments'
    """
    try:
        engine = _engine(engine)
        scope = _scope(scope)
        owner = _owner(engine, schema)
        package_filter = normalize_name(package) if package else None
        name_filter = normalize_name(name) if name else None

        routines = _fetch_all(engine, render(queries.ROUTINES_SQL, scope), {"owner": owner})
        argument_rows = _fetch_all(engine, render(queries.ARGUMENTS_SQL, scope), {"owner": owner})

        arguments_by_routine: dict[tuple, list[dict]] = defaultdict(list)
        for row in argument_rows:
            key = (row["package_name"], row["object_name"], row["overload"])
            arguments_by_routine[key].append(row)

        result = []
        for routine in routines:
            if routine["object_type"] == "PACKAGE":
                routine_package, routine_name = routine["object_name"], routine["procedure_name"]
            else:
                routine_package, routine_name = None, routine["object_name"]

            if package_filter and routine_package != package_filter:
                continue
            if name_filter and routine_name != name_filter:
                continue

            arguments = []
            return_type = None
            for row in arguments_by_routine.get(
                (routine_package, routine_name, routine["overload"]), []
            ):
                # Routines without parameters have one placeholder row
                if row["data_type"] is None and row["argument_name"] is None:
                    continue
                type_name = _argument_type_name(row)
                if row["position"] == 0:
                    return_type = type_name or row["data_type"]
                    continue
                arguments.append(
                    {
                        "name": row["argument_name"],
                        "position": row["position"],
                        "data_type": row["data_type"],
                        "direction": _ARGUMENT_DIRECTIONS.get(row["in_out"], "in"),
                        "type_name": type_name,
                        "has_default": row["defaulted"] == "Y",
                    }
                )

            is_function = routine["object_type"] == "FUNCTION" or return_type is not None
            result.append(
                {
                    "name": routine_name,
                    "schema": owner,
                    "package": routine_package,
                    "kind": "function" if is_function else "procedure",
                    "overload": routine["overload"],
                    "arguments": arguments,
                    "return_type": return_type,
                }
            )
        return result
    except Exception as e:
        raise wrap_error(f"get routines for {schema or 'current schema'}", e) from e


# =============================================================================
# User-defined types and sequences
# =============================================================================


def get_types(
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get object, VARRAY and nested table types of a schema."""
    try:
        engine = _engine(engine)
        scope = _scope(scope)
        owner = _owner(engine, schema)
        type_rows = _fetch_all(engine, render(queries.TYPES_SQL, scope), {"owner": owner})
        attr_rows = _fetch_all(
            engine, render(queries.TYPE_ATTRIBUTES_SQL, scope), {"owner": owner}
        )

        attributes: dict[str, list[dict]] = defaultdict(list)
        for row in attr_rows:
            attributes[row["type_name"]].append(
                {
                    "name": row["attr_name"],
                    "type": format_data_type(
                        row["attr_type_name"],
                        data_length=row["length"],
                        precision=row["precision"],
                        scale=row["scale"],
                        type_owner=row["attr_type_owner"],
                    ),
                    "position": row["attr_no"],
                    "type_owner": row["attr_type_owner"],
                }
            )

        result = []
        for row in type_rows:
            entry: dict[str, Any] = {
                "name": row["type_name"],
                "schema": owner,
                "kind": "object",
                "attributes": [],
                "element_type": None,
                "max_length": None,
            }
            if row["typecode"] == "COLLECTION":
                is_varray = row["coll_type"] == "VARYING ARRAY"
                entry["kind"] = "varray" if is_varray else "nested_table"
                entry["max_length"] = row["upper_bound"] if is_varray else None
                entry["element_type"] = format_data_type(
                    row["elem_type_name"],
                    data_length=row["elem_length"],
                    precision=row["elem_precision"],
                    scale=row["elem_scale"],
                    type_owner=row["elem_type_owner"],
                )
            else:
                entry["attributes"] = attributes.get(row["type_name"], [])
            result.append(entry)
        return result
    except Exception as e:
        raise wrap_error(f"get types for {schema or 'current schema'}", e) from e


def get_sequences(
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Get sequences of a schema."""
    try:
        engine = _engine(engine)
        owner = _owner(engine, schema)
        rows = _fetch_all(engine, render(queries.SEQUENCES_SQL, _scope(scope)), {"owner": owner})
        return [
            {
                "name": row["sequence_name"],
                "schema": owner,
                "min_value": _as_int(row["min_value"]),
                "max_value": _as_int(row["max_value"]),
                "increment_by": _as_int(row["increment_by"]),
                "cycle": row["cycle_flag"] == "Y",
                "last_number": _as_int(row["last_number"]),
            }
            for row in rows
        ]
    except Exception as e:
        raise wrap_error(f"get sequences for {schema or 'current schema'}", e) from e


def _as_int(value: Any) -> int | None:
    return int(value) if value is not None else None


# =============================================================================
# Data and summaries
# =============================================================================


def get_table_sample(
    table_name: str,
    schema: str | None = None,
    limit: int | None = None,
    engine: Engine | None = None,
) -> list[dict[str, Any]]:
    """Get sample rows from a table.

    Object, collection and LOB values are converted to Python values.

    Args:
        table_name: Name of the table
        schema: Schema name. If None, the table is resolved by the session.
        limit: Maximum number of rows to return. If None, uses settings.
        engine: Optional engine. If not provided, uses settings.

    Returns:
        List of row dicts
    """
    try:
        table = qualified_name(
            normalize_name(schema) if schema else None, normalize_name(table_name)
        )
        if limit is None:
            limit = get_settings().sample_limit
        query = text(queries.TABLE_SAMPLE_SQL.format(table=table))

        with _engine(engine).connect() as conn:
            result = conn.execute(query, {"limit": limit})
            columns = list(result.keys())
            return [
                {col: unmarshal_value(value) for col, value in zip(columns, row)} for row in result
            ]
    except Exception as e:
        raise wrap_error(f"get sample from {table_name}", e) from e


def describe_table(
    table_name: str,
    schema: str | None = None,
    engine: Engine | None = None,
    scope: str | None = None,
) -> dict[str, Any]:
    """Get columns, constraints, indexes and comment of a table in one dict."""
    try:
        engine = _engine(engine)
        scope = _scope(scope)
        owner = _owner(engine, schema)
        table = normalize_name(table_name)

        rows = _fetch_all(
            engine,
            render(queries.TABLE_COMMENT_SQL, scope),
            {"owner": owner, "table_name": table},
        )
        table_type = rows[0]["kind"] if rows else "table"
        comment = rows[0]["comments"] if rows else None

        exact = {"schema": _exact(owner), "engine": engine, "scope": scope}
        return {
            "name": table,
            "schema": owner,
            "full_name": f"{owner}.{table}",
            "type": table_type,
            "comment": comment,
            "columns": get_columns(_exact(table), **exact),
            "constraints": get_constraints(_exact(table), **exact),
            "indexes": get_indexes(_exact(table), **exact),
        }
    except Exception as e:
        raise wrap_error(f"describe {table_name}", e) from e
