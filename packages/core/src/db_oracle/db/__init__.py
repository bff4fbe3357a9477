"""Database connectivity and introspection."""

from db_oracle.db.connection import (
    ConnectionOptions,
    DatabaseError,
    get_engine,
    test_connection,
)
from db_oracle.db.introspection import (
    describe_table,
    get_columns,
    get_constraints,
    get_routines,
    get_schemas,
    get_table_sample,
    get_tables,
    get_types,
)
from db_oracle.db.types import OracleArray, OracleObject, OutParam, ParameterTypeError

__all__ = [
    "ConnectionOptions",
    "DatabaseError",
    "get_engine",
    "test_connection",
    "describe_table",
    "get_columns",
    "get_constraints",
    "get_routines",
    "get_schemas",
    "get_table_sample",
    "get_tables",
    "get_types",
    "OracleArray",
    "OracleObject",
    "OutParam",
    "ParameterTypeError",
]
