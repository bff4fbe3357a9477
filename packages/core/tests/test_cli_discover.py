"""Tests for the `db-oracle discover` CLI command."""

import json
from unittest.mock import MagicMock, patch

import yaml
from click.testing import CliRunner

from db_oracle.cli import main


def _make_mock_connector():
    """Create a mock connector with realistic discovery responses."""
    connector = MagicMock(
        spec=["test_connection", "get_dialect", "get_schemas", "get_tables", "get_columns"]
    )
    connector.test_connection.return_value = {"connected": True, "server_version": "19.3.0.0.0"}
    connector.get_dialect.return_value = "oracle"
    connector.get_schemas.return_value = ["HR", "SALES"]
    connector.get_tables.side_effect = lambda schema=None: (
        [{"name": "EMPLOYEES", "type": "table"}]
        if schema == '"HR"'
        else [{"name": "ORDERS", "type": "table"}]
    )
    connector.get_columns.side_effect = lambda table, schema=None: [
        {"name": "ID", "type": "NUMBER(10)", "generic_type": "number"},
        {"name": "NAME", "type": "VARCHAR2(40)", "generic_type": "text"},
    ]
    return connector


def _extract_yaml(output: str) -> dict:
    """Extract YAML from CLI output, skipping Rich progress lines."""
    lines = output.split("\n")
    yaml_start = None
    for i, line in enumerate(lines):
        if line.startswith("version:"):
            yaml_start = i
            break
    if yaml_start is None:
        raise ValueError(f"No YAML found in output: {output[:200]}")
    return yaml.safe_load("\n".join(lines[yaml_start:]))


def _extract_json(output: str) -> dict:
    """Extract JSON from CLI output, skipping Rich progress lines."""
    start = output.index("{")
    return json.loads(output[start:])


def _invoke(args, connector):
    runner = CliRunner()
    with patch(
        "db_oracle.cli.commands.discover_cmd.resolve_connector", return_value=connector
    ):
        return runner.invoke(main, ["discover", *args])


class TestDiscoverCommand:
    """Tests for the discover CLI command."""

    def test_named_connection_not_found(self, tmp_path):
        """Should fail when named connection doesn't exist."""
        runner = CliRunner()
        with patch("db_oracle.cli.connection.CONNECTIONS_DIR", tmp_path):
            result = runner.invoke(main, ["discover", "-c", "bogus"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_connection_failed(self):
        """Should fail gracefully on connection error."""
        connector = _make_mock_connector()
        connector.test_connection.return_value = {
            "connected": False,
            "error": "ORA-12541: TNS:no listener",
            "code": "ORA-12541",
        }

        result = _invoke(["--url", "oracle+oracledb://u:p@h/?service_name=S"], connector)

        assert result.exit_code == 1
        assert "Discovery failed" in result.output

    def test_yaml_output(self):
        """Should discover schema and output YAML."""
        url = "oracle+oracledb://u:p@h/?service_name=S"
        result = _invoke(["--url", url], _make_mock_connector())

        assert result.exit_code == 0, result.output
        parsed = _extract_yaml(result.output)
        assert parsed["provider_id"] == "cli-discover"
        assert parsed["server_version"] == "19.3.0.0.0"
        assert [t["name"] for t in parsed["tables"]] == ["EMPLOYEES", "ORDERS"]
        assert parsed["tables"][0]["schema"] == "HR"
        assert parsed["tables"][0]["columns"][1]["type"] == "VARCHAR2(40)"

    def test_json_output(self):
        """Should discover schema and output JSON."""
        result = _invoke(
            ["--url", "oracle+oracledb://u:p@h/?service_name=S", "--format", "json"],
            _make_mock_connector(),
        )

        assert result.exit_code == 0, result.output
        parsed = _extract_json(result.output)
        assert len(parsed["tables"]) == 2

    def test_schema_filter(self):
        """--schema limits discovery and skips schema listing."""
        connector = _make_mock_connector()

        result = _invoke(["-c", "prod", "--schema", "hr"], connector)

        assert result.exit_code == 0, result.output
        parsed = _extract_yaml(result.output)
        assert parsed["provider_id"] == "prod"
        assert parsed["schemas"] == ["HR"]
        connector.get_schemas.assert_not_called()

    def test_output_file(self, tmp_path):
        """Should write to output file."""
        out_file = tmp_path / "out" / "schema.yaml"

        result = _invoke(
            ["--url", "oracle+oracledb://u:p@h/?service_name=S", "-o", str(out_file)],
            _make_mock_connector(),
        )

        assert result.exit_code == 0, result.output
        parsed = yaml.safe_load(out_file.read_text())
        assert len(parsed["tables"]) == 2

    def test_save_into_connection_dir(self, tmp_path):
        """--save stores schema/snapshot.yaml for the named connection."""
        with patch("db_oracle.cli.connection.CONNECTIONS_DIR", tmp_path):
            result = _invoke(["-c", "prod", "--save"], _make_mock_connector())

        assert result.exit_code == 0, result.output
        saved = yaml.safe_load((tmp_path / "prod" / "schema" / "snapshot.yaml").read_text())
        assert saved["provider_id"] == "prod"

    def test_save_rejects_url(self):
        result = _invoke(
            ["--url", "oracle+oracledb://u:p@h/?service_name=S", "--save"],
            _make_mock_connector(),
        )
        assert result.exit_code == 1

    def test_negative_timeout(self):
        result = _invoke(["--timeout", "-1"], _make_mock_connector())
        assert result.exit_code == 1
