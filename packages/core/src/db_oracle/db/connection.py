"""Database connection management."""

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any

from sqlalchemy import URL, Engine, create_engine, event, make_url, text
from sqlalchemy.exc import DBAPIError

from db_oracle.config import get_settings

logger = logging.getLogger(__name__)

DRIVER_NAME = "oracle+oracledb"
DEFAULT_PORT = 1521


class DatabaseError(Exception):
    """Database connection or query error."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


def _driver_error_code(exc: BaseException) -> str | None:
    """Return the ORA-nnnnn code of a driver error, if there is one."""
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    if orig is None or not getattr(orig, "args", None):
        return None
    error_obj = orig.args[0]
    return getattr(error_obj, "full_code", None)


def wrap_error(action: str, exc: BaseException) -> DatabaseError:
    """Wrap any failure of ``action`` as a DatabaseError.

    Args:
        action: What was being attempted, e.g. "get columns for EMP"
        exc: The original exception

    Returns:
        DatabaseError to raise ``from exc``
    """
    if isinstance(exc, DatabaseError):
        return exc
    code = _driver_error_code(exc)
    logger.warning("Failed to %s: %s", action, exc)
    return DatabaseError(f"Failed to {action}: {exc}", code=code)


def detect_dialect_from_url(database_url: str) -> str:
    """Detect SQL dialect from database URL.

    Args:
        database_url: SQLAlchemy-compatible database URL

    Returns:
        'oracle' for any Oracle driver scheme, otherwise the scheme's dialect part
    """
    if not database_url:
        return "unknown"

    parsed = urllib.parse.urlparse(database_url)
    scheme = parsed.scheme.lower()

    # Strip the driver suffix (e.g., oracle+oracledb)
    dialect = scheme.split("+")[0]

    dialect_map = {
        "oracle": "oracle",
        "oracledb": "oracle",
        "cx_oracle": "oracle",
    }

    return dialect_map.get(dialect, dialect)


def normalize_database_url(database_url: str) -> str:
    """Normalize database URL so SQLAlchemy uses the python-oracledb driver.

    Args:
        database_url: Database URL that may need normalization

    Returns:
        Normalized URL
    """
    if not database_url:
        return database_url

    for prefix in ("oracle://", "oracle+cx_oracle://"):
        if database_url.startswith(prefix):
            return f"{DRIVER_NAME}://" + database_url[len(prefix) :]

    return database_url


@dataclass(frozen=True)
class ConnectionOptions:
    """Connection parameters for an Oracle database.

    Either ``dsn`` (TNS alias, Easy Connect string or full connect
    descriptor) or ``host`` with one of ``service_name``/``sid``
    identifies the database.
    """

    user: str | None = None
    password: str | None = None
    host: str | None = None
    port: int = DEFAULT_PORT
    service_name: str | None = None
    sid: str | None = None
    dsn: str | None = None
    thick_mode: bool = False
    lib_dir: str | None = None
    config_dir: str | None = None
    call_timeout_ms: int | None = None
    tcp_connect_timeout: float | None = None
    stmt_cache_size: int | None = None

    def to_url(self) -> URL:
        """Build the SQLAlchemy URL for these options."""
        if self.service_name and self.sid:
            raise ValueError("Specify either service_name or sid, not both")

        if self.dsn:
            return URL.create(
                DRIVER_NAME,
                username=self.user or None,
                password=self.password or None,
                query={"dsn": self.dsn},
            )

        if not self.host:
            raise ValueError("Either host or dsn is required")
        if not (self.service_name or self.sid):
            raise ValueError("A host connection needs service_name or sid")

        if self.service_name:
            return URL.create(
                DRIVER_NAME,
                username=self.user or None,
                password=self.password or None,
                host=self.host,
                port=self.port,
                query={"service_name": self.service_name},
            )
        return URL.create(
            DRIVER_NAME,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.sid,
        )

    def to_connect_args(self) -> dict[str, Any]:
        """Driver keyword arguments for the fields that are set."""
        args: dict[str, Any] = {}
        if self.tcp_connect_timeout is not None:
            args["tcp_connect_timeout"] = self.tcp_connect_timeout
        if self.stmt_cache_size is not None:
            args["stmtcachesize"] = self.stmt_cache_size
        return args

    def thick_mode_arg(self) -> bool | dict[str, str]:
        """Value for the oracledb dialect's ``thick_mode`` engine argument."""
        if not self.thick_mode:
            return False
        params = {}
        if self.lib_dir:
            params["lib_dir"] = self.lib_dir
        if self.config_dir:
            params["config_dir"] = self.config_dir
        return params or True

    @classmethod
    def from_url(cls, database_url: str) -> "ConnectionOptions":
        """Parse options back out of a SQLAlchemy URL."""
        url = make_url(normalize_database_url(database_url))
        query = dict(url.query)
        return cls(
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port or DEFAULT_PORT,
            service_name=query.get("service_name"),
            sid=url.database or None,
            dsn=query.get("dsn"),
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "ConnectionOptions":
        """Build options from the component fields of Settings."""
        return cls(
            user=settings.oracle_user or None,
            password=settings.oracle_password or None,
            host=settings.oracle_host or None,
            port=settings.oracle_port or DEFAULT_PORT,
            service_name=settings.oracle_service_name or None,
            sid=settings.oracle_sid or None,
            dsn=settings.oracle_dsn or None,
            thick_mode=settings.oracle_thick_mode,
            lib_dir=settings.oracle_lib_dir or None,
            config_dir=settings.oracle_config_dir or None,
            call_timeout_ms=settings.call_timeout_ms or None,
        )


def _install_call_timeout(engine: Engine, call_timeout_ms: int) -> None:
    """Apply a round-trip timeout to every new DBAPI connection."""

    @event.listens_for(engine, "connect")
    def _set_call_timeout(dbapi_connection, connection_record):
        dbapi_connection.call_timeout = call_timeout_ms


# Engines keyed by (url, connect args, thick mode, call timeout); connect args
# may hold lists, so they are keyed by repr
_engines: dict[tuple, Engine] = {}


def _create_engine(
    database_url: str,
    connect_args: dict[str, Any],
    thick_mode: bool | dict[str, str],
    call_timeout_ms: int | None,
) -> Engine:
    settings = get_settings()
    engine_kwargs: dict[str, Any] = {
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_pre_ping": settings.pool_pre_ping,
        "pool_recycle": settings.pool_recycle,
    }
    if connect_args:
        engine_kwargs["connect_args"] = connect_args
    if thick_mode:
        engine_kwargs["thick_mode"] = thick_mode

    engine = create_engine(database_url, **engine_kwargs)
    if call_timeout_ms:
        _install_call_timeout(engine, call_timeout_ms)

    logger.info("Created engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine(
    database_url: str | None = None,
    connect_args: dict[str, Any] | None = None,
    thick_mode: bool | dict[str, str] | None = None,
    call_timeout_ms: int | None = None,
) -> Engine:
    """Get or create a SQLAlchemy engine.

    Args:
        database_url: Optional database URL. If not provided, uses settings.
        connect_args: Extra keyword arguments for ``oracledb.connect``
        thick_mode: ``False``, ``True`` or ``init_oracle_client`` arguments.
            If not provided, uses settings.
        call_timeout_ms: Round-trip timeout. If not provided, uses settings.

    Returns:
        SQLAlchemy Engine instance (one per distinct argument set)

    Raises:
        DatabaseError: If no database URL is configured or the engine cannot be created
    """
    settings = get_settings()
    if database_url is None:
        database_url = settings.database_url

    if not database_url:
        raise DatabaseError("No database URL configured")

    if thick_mode is None:
        thick_mode = ConnectionOptions.from_settings(settings).thick_mode_arg()
    if call_timeout_ms is None:
        call_timeout_ms = settings.call_timeout_ms or None

    normalized_url = normalize_database_url(database_url)
    key = (
        normalized_url,
        repr(sorted((connect_args or {}).items())),
        repr(sorted(thick_mode.items())) if isinstance(thick_mode, dict) else thick_mode,
        call_timeout_ms,
    )

    engine = _engines.get(key)
    if engine is None:
        try:
            engine = _create_engine(
                normalized_url, dict(connect_args or {}), thick_mode, call_timeout_ms
            )
        except Exception as e:
            raise DatabaseError(f"Failed to create database engine: {e}") from e
        _engines[key] = engine
    return engine


def dispose_engines() -> None:
    """Dispose every cached engine and forget it."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()


def _describe_target(url: URL) -> str | None:
    query = dict(url.query)
    return query.get("service_name") or url.database or query.get("dsn") or url.host


def failed_connection_status(error: str, code: str | None = None) -> dict:
    """Status dict of test_connection for a failed attempt."""
    return {
        "connected": False,
        "dialect": None,
        "url_host": None,
        "url_database": None,
        "user": None,
        "current_schema": None,
        "server_version": None,
        "error": error,
        "code": code,
    }


def test_connection(database_url: str | None = None, engine: Engine | None = None) -> dict:
    """Test database connection.

    Args:
        database_url: Optional database URL. If not provided, uses settings.
        engine: Optional engine to test instead of building one from the URL

    Returns:
        Dict with connection status and info
    """
    try:
        if engine is None:
            engine = get_engine(database_url)

        with engine.connect() as conn:
            row = conn.execute(
                text("SELECT USER, SYS_CONTEXT('USERENV', 'CURRENT_SCHEMA') FROM DUAL")
            ).fetchone()

        version_info = engine.dialect.server_version_info
        server_version = ".".join(str(part) for part in version_info) if version_info else None

        return {
            "connected": True,
            "dialect": engine.dialect.name,
            "url_host": engine.url.host,
            "url_database": _describe_target(engine.url),
            "user": row[0] if row else None,
            "current_schema": row[1] if row else None,
            "server_version": server_version,
            "error": None,
            "code": None,
        }
    except DatabaseError as e:
        return failed_connection_status(str(e), e.code)
    except Exception as e:
        logger.warning("Connection test failed: %s", e)
        return failed_connection_status(f"Connection failed: {e}", _driver_error_code(e))
