"""Tests for dictionary query rendering and identifier handling."""

import pytest

from db_oracle.db import queries
from db_oracle.db.queries import normalize_name, qualified_name, quote_identifier, render


class TestRender:
    def test_all_scope(self):
        sql = render(queries.TABLES_SQL, "all")
        assert "all_tables" in sql
        assert "{scope}" not in sql

    def test_dba_scope_is_case_insensitive(self):
        sql = render(queries.SEQUENCES_SQL, "DBA")
        assert "dba_sequences" in sql

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError, match="Unknown dictionary scope"):
            render(queries.TABLES_SQL, "user")

    def test_names_are_bound_not_interpolated(self):
        sql = render(queries.COLUMNS_SQL)
        assert ":owner" in sql
        assert ":table_name" in sql


class TestNormalizeName:
    def test_unquoted_is_upper_cased(self):
        assert normalize_name("employees") == "EMPLOYEES"

    def test_quoted_keeps_case(self):
        assert normalize_name('"MixedCase"') == "MixedCase"

    def test_whitespace_is_stripped(self):
        assert normalize_name("  hr ") == "HR"


class TestQuoting:
    def test_quote_identifier(self):
        assert quote_identifier("Order Lines") == '"Order Lines"'

    @pytest.mark.parametrize("bad", ["", 'x"y', "a\x00b"])
    def test_invalid_identifiers_rejected(self, bad):
        with pytest.raises(ValueError, match="Invalid identifier"):
            quote_identifier(bad)

    def test_qualified_name(self):
        assert qualified_name("HR", "EMPLOYEES") == '"HR"."EMPLOYEES"'
        assert qualified_name(None, "EMPLOYEES") == '"EMPLOYEES"'
