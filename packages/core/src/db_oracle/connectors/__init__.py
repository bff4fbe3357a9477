"""Connectors: the protocol every database backend satisfies.

Reads a connection directory's connector.yaml, merges credentials from
settings and returns a ready OracleConnector.
"""

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from db_oracle.config import Settings, get_settings
from db_oracle.connectors.oracle import OracleConnector, OracleConnectorConfig


class ConnectorConfig:
    """Base connector configuration with factory method."""

    type: str = "oracle"

    @staticmethod
    def from_yaml(path: Path) -> "OracleConnectorConfig":
        """Load connector config from a YAML file.

        Args:
            path: Path to connector.yaml

        Returns:
            Appropriate connector config

        Raises:
            ValueError: If connector type is unknown
        """
        if not path.exists():
            return OracleConnectorConfig()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        connector_type = data.get("type", "oracle")
        loader = _CONFIG_LOADERS.get(connector_type)
        if loader is None:
            raise ValueError(f"Unknown connector type: {connector_type}")
        return loader(data)


@runtime_checkable
class Connector(Protocol):
    """Protocol defining the interface all connectors must implement."""

    def test_connection(self) -> dict[str, Any]:
        """Test connectivity and return status info."""
        ...

    def get_dialect(self) -> str:
        """Return the dialect identifier."""
        ...

    def get_catalogs(self) -> list[str | None]:
        """List available catalogs."""
        ...

    def get_schemas(self, catalog: str | None = None) -> list[str | None]:
        """List schemas, optionally within a catalog."""
        ...

    def get_tables(
        self, schema: str | None = None, catalog: str | None = None
    ) -> list[dict[str, Any]]:
        """List tables and views."""
        ...

    def get_columns(
        self, table_name: str, schema: str | None = None, catalog: str | None = None
    ) -> list[dict[str, Any]]:
        """Get column metadata for a table."""
        ...

    def get_table_sample(
        self,
        table_name: str,
        schema: str | None = None,
        catalog: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Get sample rows from a table."""
        ...

    def execute_sql(self, sql: str, params: dict | None = None) -> list[dict[str, Any]]:
        """Execute a SQL statement and return rows as dicts."""
        ...


def get_connector(connection_path: str | Path | None = None) -> Connector:
    """Factory: create a Connector from the current connection config.

    Reads connector.yaml from the connection directory. Anything the file
    leaves empty (the URL, or the user and password of a component-based
    config) comes from settings: the environment, then the .env of the
    connection directory.

    Args:
        connection_path: Optional path to connection directory.
            If not provided, uses settings.

    Returns:
        A Connector instance
    """
    settings = get_settings()

    if connection_path is None:
        connection_path = settings.get_effective_connection_path()

    conn_path = Path(connection_path)
    yaml_path = conn_path / "connector.yaml"

    config = ConnectorConfig.from_yaml(yaml_path)

    factory = _CONNECTOR_FACTORIES.get(type(config))
    if factory is None:
        raise ValueError(f"Cannot create connector for config type: {config.type}")
    return factory(config, conn_path, settings)


def _load_oracle_config(data: dict[str, Any]) -> OracleConnectorConfig:
    known = set(OracleConnectorConfig.__dataclass_fields__) - {"type", "capabilities"}
    unknown = set(data) - known - {"type", "capabilities"}
    if unknown:
        raise ValueError(f"Unknown connector.yaml keys: {', '.join(sorted(unknown))}")
    return OracleConnectorConfig(
        **{k: v for k, v in data.items() if k in known},
        capabilities=data.get("capabilities", {}) or {},
    )


def _build_oracle_connector(
    config: OracleConnectorConfig, conn_path: Path | None, settings: Any
) -> OracleConnector:
    if conn_path is not None and (conn_path / ".env").exists():
        settings = Settings(_env_file=conn_path / ".env")
    if config.has_components():
        # Secrets usually live in the connection's .env, not connector.yaml
        if not config.user:
            config.user = settings.oracle_user
        if not config.password:
            config.password = settings.oracle_password
    elif not config.database_url:
        config.database_url = settings.database_url
    if not config.thick_mode and settings.oracle_thick_mode:
        config.thick_mode = True
        config.lib_dir = config.lib_dir or settings.oracle_lib_dir
        config.config_dir = config.config_dir or settings.oracle_config_dir
    if not config.call_timeout_ms:
        config.call_timeout_ms = settings.call_timeout_ms
    return OracleConnector(config)


def get_connector_for_url(database_url: str) -> OracleConnector:
    """Connector for a one-off URL; thick mode and call timeout come from settings."""
    return _build_oracle_connector(
        OracleConnectorConfig(database_url=database_url), None, get_settings()
    )


_CONFIG_LOADERS: dict[str, Any] = {
    "oracle": _load_oracle_config,
}

_CONNECTOR_FACTORIES: dict[type, Any] = {
    OracleConnectorConfig: _build_oracle_connector,
}


def get_connector_capabilities(connector: Connector) -> dict[str, Any]:
    """Return normalized capability flags for a connector."""
    defaults: dict[str, Any] = {
        "supports_sql": False,
        "supports_object_binds": False,
        "supports_routines": False,
        "sql_mode": None,
    }

    if isinstance(connector, OracleConnector):
        defaults.update(
            {
                "supports_sql": True,
                "supports_object_binds": True,
                "supports_routines": True,
                "sql_mode": "engine",
            }
        )
        config_caps = connector.config.capabilities
    else:
        config_caps = {}

    if not isinstance(config_caps, dict):
        config_caps = {}

    merged = dict(defaults)
    merged.update({k: v for k, v in config_caps.items() if k != "connect_args"})
    return merged


__all__ = [
    "Connector",
    "ConnectorConfig",
    "OracleConnector",
    "OracleConnectorConfig",
    "get_connector",
    "get_connector_for_url",
    "get_connector_capabilities",
]
