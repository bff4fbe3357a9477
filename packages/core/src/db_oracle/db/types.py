"""Oracle object and collection types in bind parameters.

Oracle's VARRAY, nested TABLE and OBJECT types cannot be bound as plain
Python values; python-oracledb needs a ``DbObject`` created from the
type's ``DbObjectType``. Callers describe such values with
``OracleArray``/``OracleObject`` and this module builds the driver
objects on the connection that runs the statement, and turns
``DbObject`` results back into lists and dicts.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import oracledb
from sqlalchemy import Engine, text

from db_oracle.db.connection import DatabaseError, wrap_error
from db_oracle.db.queries import normalize_name

logger = logging.getLogger(__name__)


class ParameterTypeError(DatabaseError):
    """A bind value cannot be converted to the requested Oracle type."""


@dataclass
class OracleArray:
    """A VARRAY or nested table value.

    ``type_name`` is the collection type, e.g. ``"HR.PHONE_LIST_T"``.
    """

    type_name: str
    values: list[Any] = field(default_factory=list)


@dataclass
class OracleObject:
    """An object type value.

    ``attributes`` maps attribute names (case-insensitive unless the
    attribute was created with a quoted name) to values.
    """

    type_name: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class OutParam:
    """An OUT or IN OUT argument of a procedure call.

    Give ``type_name`` for object/collection results, otherwise
    ``py_type`` (str, int, float, ...). ``value`` makes it IN OUT.
    """

    py_type: type | None = None
    type_name: str | None = None
    value: Any = None


def normalize_type_name(type_name: str) -> str:
    """Fold each dotted part of a type name, e.g. ``hr.phone_list_t``."""
    return ".".join(normalize_name(part) for part in type_name.split("."))


class TypeResolver:
    """Look up and cache DbObjectType instances on one connection."""

    def __init__(self, connection: Any):
        self.connection = connection
        self._types: dict[str, Any] = {}

    def resolve(self, type_name: str) -> Any:
        name = normalize_type_name(type_name)
        obj_type = self._types.get(name)
        if obj_type is None:
            try:
                obj_type = self.connection.gettype(name)
            except Exception as e:
                raise ParameterTypeError(f"Unknown type {type_name}: {e}") from e
            self._types[name] = obj_type
        return obj_type


def _label(obj_type: Any) -> str:
    return f"{obj_type.schema}.{obj_type.name}"


def _build(resolver: TypeResolver, obj_type: Any, value: Any) -> Any:
    """Convert ``value`` into an instance of ``obj_type`` where one is needed."""
    if isinstance(value, (OracleArray, OracleObject)):
        return to_db_object(resolver, value)
    if value is None or not isinstance(obj_type, oracledb.DbObjectType):
        return value

    if obj_type.iscollection:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise ParameterTypeError(
                f"{_label(obj_type)} expects a list, got {type(value).__name__}"
            )
        elements = [_build(resolver, obj_type.element_type, v) for v in value]
        return obj_type.newobject(elements)

    if not isinstance(value, Mapping):
        raise ParameterTypeError(
            f"{_label(obj_type)} expects a mapping, got {type(value).__name__}"
        )

    attributes = {attr.name: attr for attr in obj_type.attributes}
    obj = obj_type.newobject()
    for key, attr_value in value.items():
        name = key if key in attributes else normalize_name(key)
        attr = attributes.get(name)
        if attr is None:
            raise ParameterTypeError(f"{_label(obj_type)} has no attribute {key!r}")
        setattr(obj, name, _build(resolver, attr.type, attr_value))
    return obj


def to_db_object(resolver: TypeResolver, value: OracleArray | OracleObject) -> Any:
    """Build the driver-native DbObject for an array or object value."""
    obj_type = resolver.resolve(value.type_name)

    if isinstance(value, OracleArray):
        if not obj_type.iscollection:
            raise ParameterTypeError(f"{value.type_name} is not a collection type")
        payload: Any = value.values
    else:
        if obj_type.iscollection:
            raise ParameterTypeError(f"{value.type_name} is a collection type, not an object type")
        payload = value.attributes

    try:
        return _build(resolver, obj_type, payload)
    except ParameterTypeError:
        raise
    except Exception as e:
        raise ParameterTypeError(f"Cannot convert value to {value.type_name}: {e}") from e


def _marshal(resolver: TypeResolver, value: Any) -> Any:
    if isinstance(value, (OracleArray, OracleObject)):
        return to_db_object(resolver, value)
    return value


def marshal_params(connection: Any, params: Mapping[str, Any] | Sequence[Any] | None) -> Any:
    """Replace OracleArray/OracleObject values with DbObjects.

    Args:
        connection: The python-oracledb connection that will run the statement
        params: Named (mapping) or positional (sequence) bind values

    Returns:
        Parameters of the same shape; other values are passed through
    """
    if not params:
        return params
    resolver = TypeResolver(connection)
    if isinstance(params, Mapping):
        return {name: _marshal(resolver, value) for name, value in params.items()}
    return [_marshal(resolver, value) for value in params]


def unmarshal_value(value: Any) -> Any:
    """Convert driver values to plain Python.

    Collections become lists, objects become dicts keyed by attribute
    name and LOBs are read. Other values are returned unchanged.
    """
    if isinstance(value, oracledb.DbObject):
        obj_type = value.type
        if obj_type.iscollection:
            return [unmarshal_value(v) for v in value.aslist()]
        return {
            attr.name: unmarshal_value(getattr(value, attr.name)) for attr in obj_type.attributes
        }
    if isinstance(value, oracledb.LOB):
        return value.read()
    return value


def decode_json_param(value: Any) -> Any:
    """Turn JSON-style typed values into OracleArray/OracleObject.

    ``{"$type": "HR.PHONE_LIST_T", "$value": ["555-0100"]}`` becomes an
    OracleArray and ``{"$type": "HR.ADDRESS_T", "$value": {"city": "Oslo"}}``
    an OracleObject. Untyped lists and dicts are decoded recursively.
    """
    if isinstance(value, dict) and "$type" in value:
        type_name = value["$type"]
        inner = value.get("$value")
        if isinstance(inner, list):
            return OracleArray(type_name, [decode_json_param(v) for v in inner])
        if isinstance(inner, dict):
            return OracleObject(type_name, {k: decode_json_param(v) for k, v in inner.items()})
        raise ParameterTypeError(f"Typed value for {type_name} needs a list or object in '$value'")
    if isinstance(value, list):
        return [decode_json_param(v) for v in value]
    if isinstance(value, dict):
        return {k: decode_json_param(v) for k, v in value.items()}
    return value


# =============================================================================
# Execution
# =============================================================================


def execute(
    engine: Engine,
    sql: str,
    params: Mapping[str, Any] | Sequence[Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a statement with array/object binds on one pooled connection.

    Args:
        engine: SQLAlchemy engine
        sql: Statement text with ``:name`` (mapping) or ``:1`` (sequence) binds
        params: Bind values; OracleArray/OracleObject values are marshaled

    Returns:
        Rows as dicts with unmarshaled values; ``[]`` for statements that
        return no rows (those are committed)
    """
    try:
        with engine.connect() as conn:
            bound = marshal_params(conn.connection.driver_connection, params)
            if bound is not None and not isinstance(bound, Mapping):
                result = conn.exec_driver_sql(sql, tuple(bound))
            else:
                result = conn.execute(text(sql), bound or {})

            if not result.returns_rows:
                conn.commit()
                return []

            columns = list(result.keys())
            return [
                {col: unmarshal_value(value) for col, value in zip(columns, row)} for row in result
            ]
    except Exception as e:
        raise wrap_error("execute SQL", e) from e


def _bind_argument(cursor: Any, resolver: TypeResolver, value: Any) -> Any:
    if isinstance(value, OutParam):
        var_type = resolver.resolve(value.type_name) if value.type_name else (value.py_type or str)
        var = cursor.var(var_type)
        if value.value is not None:
            var.setvalue(0, _build(resolver, var_type, value.value))
        return var
    return _marshal(resolver, value)


def call_procedure(
    engine: Engine,
    name: str,
    args: Sequence[Any] | None = None,
    commit: bool = True,
) -> list[Any]:
    """Call a stored procedure.

    Args:
        engine: SQLAlchemy engine
        name: Procedure name, optionally qualified (``PKG.PROC``, ``HR.PKG.PROC``)
        args: Positional arguments; use OutParam for OUT/IN OUT arguments
        commit: Commit the call's work

    Returns:
        The argument list with OUT values filled in, unmarshaled
    """
    try:
        with engine.connect() as conn:
            dbapi_conn = conn.connection.driver_connection
            resolver = TypeResolver(dbapi_conn)
            with dbapi_conn.cursor() as cursor:
                bound = [_bind_argument(cursor, resolver, a) for a in args or []]
                logger.debug("Calling procedure %s with %d arguments", name, len(bound))
                result = cursor.callproc(name, bound)
            if commit:
                dbapi_conn.commit()
            return [unmarshal_value(v) for v in result]
    except Exception as e:
        raise wrap_error(f"call procedure {name}", e) from e


def call_function(
    engine: Engine,
    name: str,
    return_type: type | str,
    args: Sequence[Any] | None = None,
    commit: bool = True,
) -> Any:
    """Call a stored function.

    Args:
        engine: SQLAlchemy engine
        name: Function name, optionally qualified
        return_type: Python type (str, int, float, ...) or the name of an
            object/collection type
        args: Positional arguments; use OutParam for OUT/IN OUT arguments
        commit: Commit the call's work

    Returns:
        The function's return value, unmarshaled
    """
    try:
        with engine.connect() as conn:
            dbapi_conn = conn.connection.driver_connection
            resolver = TypeResolver(dbapi_conn)
            if isinstance(return_type, str):
                return_type = resolver.resolve(return_type)
            with dbapi_conn.cursor() as cursor:
                bound = [_bind_argument(cursor, resolver, a) for a in args or []]
                logger.debug("Calling function %s with %d arguments", name, len(bound))
                value = cursor.callfunc(name, return_type, bound)
            if commit:
                dbapi_conn.commit()
            return unmarshal_value(value)
    except Exception as e:
        raise wrap_error(f"call function {name}", e) from e
