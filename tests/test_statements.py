"""Tests for per-row update commands."""

import pytest
from sqlalchemy.dialects import sqlite

from table_anon_lib.anonymizer.config import TableConfiguration
from table_anon_lib.anonymizer.random_values import ALPHABET
from table_anon_lib.anonymizer.statements import UpdateBatch, build_batch, build_update


def compile_sqlite(statement):
    return statement.compile(dialect=sqlite.dialect())


@pytest.fixture
def table_config():
    return TableConfiguration(table_name="FakeTable", anonymize_columns=["a"], null_columns=["n"])


class TestBuildUpdate:
    """Test UPDATE construction for a single row."""

    def test_anonymizes_and_nulls(self, table_config):
        """Anonymize column gets a random value of equal length, null column NULL."""
        command = build_update({"pk": 7, "a": "secret", "n": "x"}, table_config, ["pk"])

        assert command is not None
        assert command.key == {"pk": 7}
        assert set(command.assignments) == {"a", "n"}
        assert len(command.assignments["a"]) == 6
        assert all(c in ALPHABET for c in command.assignments["a"])
        assert command.assignments["n"] is None

    def test_statement_binds_values(self, table_config):
        """Values travel as parameters, never in the SQL text."""
        command = build_update({"pk": 7, "a": "secret", "n": "x"}, table_config, ["pk"])
        compiled = compile_sqlite(command.statement)
        sql = str(compiled)

        assert sql.startswith("UPDATE")
        assert "FakeTable" in sql
        assert "NULL" in sql
        assert "WHERE" in sql
        assert command.assignments["a"] not in sql
        assert "secret" not in sql
        params = list(compiled.params.values())
        assert command.assignments["a"] in params
        assert 7 in params

    def test_key_value_is_not_interpolated(self, table_config):
        """A hostile key value stays a bound parameter."""
        hostile = "1; DROP TABLE FakeTable; --"
        command = build_update({"pk": hostile, "a": "secret", "n": None}, table_config, ["pk"])
        compiled = compile_sqlite(command.statement)

        assert "DROP TABLE" not in str(compiled)
        assert hostile in compiled.params.values()

    def test_identifiers_are_quoted(self):
        config = TableConfiguration(table_name="Odd Table", anonymize_columns=["First Name"])
        command = build_update({"id": 1, "First Name": "Jane"}, config, ["id"])
        sql = str(compile_sqlite(command.statement))

        assert '"Odd Table"' in sql
        assert '"First Name"' in sql

    def test_composite_key(self):
        config = TableConfiguration(table_name="T", anonymize_columns=["a"])
        command = build_update({"k1": 1, "k2": "x", "a": "val"}, config, ["k1", "k2"])
        compiled = compile_sqlite(command.statement)

        assert command.key == {"k1": 1, "k2": "x"}
        assert " AND " in str(compiled)

    def test_all_skipped_yields_none(self, table_config):
        """No vacuous update when every column is skipped."""
        assert build_update({"pk": 1, "a": "", "n": None}, table_config, ["pk"]) is None

    def test_partial_skip(self, table_config):
        command = build_update({"pk": 1, "a": None, "n": "x"}, table_config, ["pk"])
        assert command.assignments == {"n": None}

    def test_protected_account_not_anonymized(self):
        config = TableConfiguration(table_name="CMS_User", anonymize_columns=["UserName", "Email"])
        command = build_update(
            {"UserID": 1, "UserName": "administrator", "Email": "admin@example.com"},
            config,
            ["UserID"],
        )
        assert "UserName" not in command.assignments
        assert len(command.assignments["Email"]) == len("admin@example.com")

    def test_numeric_value_length(self):
        """Non-text values are measured by their text form."""
        config = TableConfiguration(table_name="T", anonymize_columns=["code"])
        command = build_update({"id": 1, "code": 12345}, config, ["id"])
        assert len(command.assignments["code"]) == 5

    @pytest.mark.parametrize(
        "value",
        [b"\xc3\xa9t\xc3\xa9", bytearray(b"\xff\xfe\x00\x01"), memoryview(b"\x80abc\x81")],
    )
    def test_binary_value_keeps_byte_width(self, value):
        """Binary values are measured in stored bytes, not decoded characters."""
        config = TableConfiguration(table_name="T", anonymize_columns=["blob"])
        command = build_update({"id": 1, "blob": value}, config, ["id"])
        assert len(command.assignments["blob"]) == len(bytes(value))

    def test_multibyte_text_keeps_character_count(self):
        config = TableConfiguration(table_name="T", anonymize_columns=["name"])
        command = build_update({"id": 1, "name": "été"}, config, ["id"])
        assert len(command.assignments["name"]) == 3

    def test_custom_generator(self, table_config):
        command = build_update(
            {"pk": 1, "a": "abc", "n": None},
            table_config,
            ["pk"],
            generate_fn=lambda length: "Z" * length,
        )
        assert command.assignments == {"a": "ZZZ"}


class TestBuildBatch:
    """Test page batches."""

    def test_one_command_per_row(self, table_config):
        rows = [{"pk": i, "a": f"anon_value_{i}", "n": f"null_value_{i}"} for i in range(5)]
        batch = build_batch(rows, table_config, ["pk"], page_index=0)

        assert isinstance(batch, UpdateBatch)
        assert batch.table_name == "FakeTable"
        assert len(batch.commands) == 5
        assert [c.key["pk"] for c in batch.commands] == [0, 1, 2, 3, 4]

    def test_skipped_rows_left_out(self, table_config):
        rows = [{"pk": 1, "a": "", "n": None}, {"pk": 2, "a": "x", "n": None}]
        batch = build_batch(rows, table_config, ["pk"])

        assert [c.key["pk"] for c in batch.commands] == [2]

    def test_empty_batch(self, table_config):
        batch = build_batch([], table_config, ["pk"], page_index=3)
        assert batch.is_empty
        assert batch.page_index == 3
