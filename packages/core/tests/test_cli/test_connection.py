"""Tests for db_oracle.cli.connection module.

Connection directories live under a patched CONNECTIONS_DIR in tmp_path,
never under the real ~/.db-oracle.
"""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from db_oracle.cli.connection import (
    _load_connection_env,
    _save_connection_env,
    _save_connector_yaml,
    connection_exists,
    get_active_connection,
    get_connection_path,
    list_connections,
    load_connector,
    resolve_connector,
    set_active_connection,
)


CONNECTION_ENV = [
    "DATABASE_URL",
    "ORACLE_USER",
    "ORACLE_PASSWORD",
    "ORACLE_HOST",
    "ORACLE_DSN",
    "ORACLE_THICK_MODE",
    "CALL_TIMEOUT_MS",
]


@pytest.fixture
def connections_dir(tmp_path):
    conn_dir = tmp_path / "connections"
    conn_dir.mkdir()
    with patch("db_oracle.cli.connection.CONNECTIONS_DIR", conn_dir):
        yield conn_dir


@pytest.fixture
def config_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    with (
        patch("db_oracle.cli.utils.CONFIG_DIR", tmp_path),
        patch("db_oracle.cli.utils.CONFIG_FILE", config_file),
    ):
        yield config_file


class TestGetConnectionPath:
    def test_returns_path_under_connections_dir(self):
        with patch("db_oracle.cli.connection.CONNECTIONS_DIR", Path("/fake/connections")):
            assert get_connection_path("prod") == Path("/fake/connections/prod")


class TestListConnections:
    def test_returns_empty_when_dir_missing(self, tmp_path):
        with patch("db_oracle.cli.connection.CONNECTIONS_DIR", tmp_path / "missing"):
            assert list_connections() == []

    def test_returns_sorted_directory_names(self, connections_dir):
        (connections_dir / "zebra").mkdir()
        (connections_dir / "alpha").mkdir()
        (connections_dir / "notes.txt").write_text("ignored")

        assert list_connections() == ["alpha", "zebra"]

    def test_connection_exists(self, connections_dir):
        (connections_dir / "prod").mkdir()

        assert connection_exists("prod") is True
        assert connection_exists("dev") is False


class TestActiveConnection:
    def test_defaults_to_default(self, config_file):
        assert get_active_connection() == "default"

    def test_set_then_get(self, config_file):
        set_active_connection("prod")

        assert get_active_connection() == "prod"
        assert yaml.safe_load(config_file.read_text())["active_connection"] == "prod"


class TestConnectionEnv:
    def test_save_and_load(self, connections_dir):
        _save_connection_env("prod", {"ORACLE_USER": "scott", "ORACLE_PASSWORD": "tiger"})

        env_file = connections_dir / "prod" / ".env"
        assert env_file.stat().st_mode & 0o777 == 0o600
        assert _load_connection_env("prod") == {
            "ORACLE_USER": "scott",
            "ORACLE_PASSWORD": "tiger",
        }

    def test_load_skips_comments_and_strips_quotes(self, connections_dir):
        (connections_dir / "prod").mkdir()
        (connections_dir / "prod" / ".env").write_text(
            "# comment\n\nDATABASE_URL='oracle+oracledb://u:p@h/?service_name=S'\nBROKEN\n"
        )

        assert _load_connection_env("prod") == {
            "DATABASE_URL": "oracle+oracledb://u:p@h/?service_name=S"
        }

    def test_load_missing_file(self, connections_dir):
        assert _load_connection_env("nothing") == {}


class TestLoadConnector:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in CONNECTION_ENV:
            monkeypatch.delenv(name, raising=False)

    def test_url_from_env(self, connections_dir):
        _save_connector_yaml("prod", {})
        _save_connection_env("prod", {"DATABASE_URL": "oracle+oracledb://u:p@h/?service_name=S"})

        connector = load_connector("prod")

        assert connector.config.database_url == "oracle+oracledb://u:p@h/?service_name=S"

    def test_components_take_credentials_from_env(self, connections_dir):
        _save_connector_yaml("prod", {"host": "db", "port": 1522, "service_name": "ORCL"})
        _save_connection_env("prod", {"ORACLE_USER": "scott", "ORACLE_PASSWORD": "tiger"})

        config = load_connector("prod").config

        assert config.host == "db"
        assert config.user == "scott"
        assert config.password == "tiger"
        assert "scott:tiger@db:1522" in config.resolve_database_url()

    def test_yaml_credentials_win_over_env(self, connections_dir):
        _save_connector_yaml("prod", {"host": "db", "service_name": "ORCL", "user": "app"})
        _save_connection_env("prod", {"ORACLE_USER": "scott"})

        assert load_connector("prod").config.user == "app"

    def test_driver_options_from_env(self, connections_dir):
        _save_connector_yaml("prod", {"dsn": "prod_tns"})
        _save_connection_env(
            "prod",
            {"ORACLE_USER": "scott", "ORACLE_THICK_MODE": "true", "CALL_TIMEOUT_MS": "5000"},
        )

        config = load_connector("prod").config

        assert config.user == "scott"
        assert config.thick_mode is True
        assert config.call_timeout_ms == 5000

    def test_saved_yaml_is_typed(self, connections_dir):
        path = _save_connector_yaml("prod", {"dsn": "prod_tns"})

        assert yaml.safe_load(path.read_text()) == {"type": "oracle", "dsn": "prod_tns"}


class TestResolveConnector:
    def test_url(self):
        connector = resolve_connector("oracle+oracledb://u:p@h/?service_name=S", None)
        assert connector.config.database_url == "oracle+oracledb://u:p@h/?service_name=S"

    def test_url_and_connection_conflict(self):
        with pytest.raises(SystemExit) as exc_info:
            resolve_connector("oracle+oracledb://u:p@h/?service_name=S", "prod")
        assert exc_info.value.code == 1

    def test_missing_named_connection(self, connections_dir):
        with pytest.raises(SystemExit) as exc_info:
            resolve_connector(None, "bogus")
        assert exc_info.value.code == 1

    def test_falls_back_to_active_connection(self, connections_dir, config_file):
        _save_connector_yaml("prod", {"dsn": "prod_tns"})
        set_active_connection("prod")

        assert resolve_connector(None, None).config.dsn == "prod_tns"

    def test_invalid_yaml_exits(self, connections_dir):
        (connections_dir / "prod").mkdir()
        (connections_dir / "prod" / "connector.yaml").write_text("type: oracle\nhostname: x\n")

        with pytest.raises(SystemExit) as exc_info:
            resolve_connector(None, "prod")
        assert exc_info.value.code == 1
