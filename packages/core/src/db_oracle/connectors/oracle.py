"""Oracle database connector built on the db/ module."""

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Engine

from db_oracle.db import introspection
from db_oracle.db import types as db_types
from db_oracle.db.connection import (
    ConnectionOptions,
    DatabaseError,
    detect_dialect_from_url,
    failed_connection_status,
    get_engine,
)
from db_oracle.db.connection import (
    test_connection as db_test_connection,
)


@dataclass
class OracleConnectorConfig:
    """Configuration for an Oracle database connector.

    Either ``database_url`` or the connection components are used; an
    explicit URL wins.
    """

    type: str = field(default="oracle", init=False)
    database_url: str = ""
    user: str = ""
    password: str = ""
    host: str = ""
    port: int = 1521
    service_name: str = ""
    sid: str = ""
    dsn: str = ""
    thick_mode: bool = False
    lib_dir: str = ""
    config_dir: str = ""
    call_timeout_ms: int = 0
    dictionary_scope: str = "all"
    description: str = ""
    capabilities: dict[str, Any] = field(default_factory=dict)

    def has_components(self) -> bool:
        return bool(self.host or self.dsn)

    def connection_options(self) -> ConnectionOptions:
        return ConnectionOptions(
            user=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port or 1521,
            service_name=self.service_name or None,
            sid=self.sid or None,
            dsn=self.dsn or None,
            thick_mode=self.thick_mode,
            lib_dir=self.lib_dir or None,
            config_dir=self.config_dir or None,
            call_timeout_ms=self.call_timeout_ms or None,
        )

    def resolve_database_url(self) -> str:
        """The explicit URL, or one built from the components."""
        if self.database_url:
            return self.database_url
        if not self.has_components():
            return ""
        return self.connection_options().to_url().render_as_string(hide_password=False)


class OracleConnector:
    """Connector for Oracle databases via SQLAlchemy and python-oracledb.

    Delegates to db.connection, db.introspection and db.types, passing
    the engine built from config.
    """

    def __init__(self, config: OracleConnectorConfig) -> None:
        self.config = config

    def _connect_args(self) -> dict[str, Any]:
        connect_args = self.config.connection_options().to_connect_args()
        extra = self.config.capabilities.get("connect_args")
        if isinstance(extra, dict):
            connect_args.update(extra)
        return connect_args

    def get_engine(self) -> Engine:
        """Get the SQLAlchemy engine for this connection.

        Not part of the Connector protocol.
        """
        try:
            database_url = self.config.resolve_database_url()
        except ValueError as e:
            raise DatabaseError(f"Invalid connection parameters: {e}") from e
        if not database_url:
            raise DatabaseError("No database URL configured")
        options = self.config.connection_options()
        return get_engine(
            database_url,
            connect_args=self._connect_args(),
            thick_mode=options.thick_mode_arg(),
            call_timeout_ms=options.call_timeout_ms,
        )

    def test_connection(self) -> dict[str, Any]:
        """Test database connectivity."""
        try:
            engine = self.get_engine()
        except DatabaseError as e:
            return failed_connection_status(str(e), e.code)
        return db_test_connection(engine=engine)

    def get_dialect(self) -> str:
        """Return the SQL dialect name."""
        return detect_dialect_from_url(self.config.database_url or "oracle://")

    def get_catalogs(self) -> list[str | None]:
        """Oracle has no catalogs."""
        return introspection.get_catalogs()

    def get_schemas(self, catalog: str | None = None) -> list[str | None]:
        """List schemas. ``catalog`` is ignored."""
        return introspection.get_schemas(
            engine=self.get_engine(), scope=self.config.dictionary_scope
        )

    def get_tables(
        self, schema: str | None = None, catalog: str | None = None
    ) -> list[dict[str, Any]]:
        """List tables, views and materialized views in a schema."""
        return introspection.get_tables(
            schema=schema, engine=self.get_engine(), scope=self.config.dictionary_scope
        )

    def get_columns(
        self, table_name: str, schema: str | None = None, catalog: str | None = None
    ) -> list[dict[str, Any]]:
        """Get column metadata for a table."""
        return introspection.get_columns(
            table_name,
            schema=schema,
            engine=self.get_engine(),
            scope=self.config.dictionary_scope,
        )

    def get_constraints(self, table_name: str, schema: str | None = None) -> list[dict[str, Any]]:
        return introspection.get_constraints(
            table_name,
            schema=schema,
            engine=self.get_engine(),
            scope=self.config.dictionary_scope,
        )

    def get_indexes(self, table_name: str, schema: str | None = None) -> list[dict[str, Any]]:
        return introspection.get_indexes(
            table_name,
            schema=schema,
            engine=self.get_engine(),
            scope=self.config.dictionary_scope,
        )

    def describe_table(self, table_name: str, schema: str | None = None) -> dict[str, Any]:
        """Columns, constraints, indexes and comment of one table."""
        return introspection.describe_table(
            table_name,
            schema=schema,
            engine=self.get_engine(),
            scope=self.config.dictionary_scope,
        )

    def get_routines(
        self, schema: str | None = None, package: str | None = None, name: str | None = None
    ) -> list[dict[str, Any]]:
        """List procedures and functions with their arguments."""
        return introspection.get_routines(
            schema=schema,
            package=package,
            name=name,
            engine=self.get_engine(),
            scope=self.config.dictionary_scope,
        )

    def get_types(self, schema: str | None = None) -> list[dict[str, Any]]:
        """List object, VARRAY and nested table types."""
        return introspection.get_types(
            schema=schema, engine=self.get_engine(), scope=self.config.dictionary_scope
        )

    def get_sequences(self, schema: str | None = None) -> list[dict[str, Any]]:
        return introspection.get_sequences(
            schema=schema, engine=self.get_engine(), scope=self.config.dictionary_scope
        )

    def get_table_sample(
        self,
        table_name: str,
        schema: str | None = None,
        catalog: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Get sample rows from a table."""
        return introspection.get_table_sample(
            table_name, schema=schema, limit=limit, engine=self.get_engine()
        )

    def execute_sql(self, sql: str, params: dict | list | None = None) -> list[dict[str, Any]]:
        """Execute SQL and return rows as dicts.

        OracleArray/OracleObject values in ``params`` are bound as
        collection/object instances.
        """
        return db_types.execute(self.get_engine(), sql, params)

    def call_procedure(self, name: str, args: list | None = None) -> list[Any]:
        """Call a stored procedure; returns arguments with OUT values."""
        return db_types.call_procedure(self.get_engine(), name, args)

    def call_function(self, name: str, return_type: type | str, args: list | None = None) -> Any:
        """Call a stored function; returns its value."""
        return db_types.call_function(self.get_engine(), name, return_type, args)
