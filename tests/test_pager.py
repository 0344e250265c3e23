"""Tests for paged row retrieval."""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.dialects import sqlite

from table_anon_lib.anonymizer.config import TableConfiguration
from table_anon_lib.anonymizer.database import Database
from table_anon_lib.anonymizer.pager import RowPager, build_page_query, fetch_page, select_columns


def literal_sql(statement, dialect):
    return str(statement.compile(dialect=dialect, compile_kwargs={"literal_binds": True}))


@pytest.fixture
def connection():
    """In-memory SQLite table with 7 rows, ids inserted out of order."""
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        conn.execute(text("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT, email TEXT, other TEXT)"))
        conn.execute(
            text("INSERT INTO people (id, name, email, other) VALUES (:id, :name, :email, :other)"),
            [
                {"id": i, "name": f"name{i}", "email": f"user{i}@example.com", "other": "keep"}
                for i in [5, 1, 7, 3, 2, 6, 4]
            ],
        )
        conn.commit()
        yield conn
    engine.dispose()


class TestSelectColumns:
    def test_union_in_order_without_duplicates(self):
        config = TableConfiguration(table_name="t", anonymize_columns=["a", "b"], null_columns=["n"])
        assert select_columns(config, ["pk"]) == ["a", "b", "n", "pk"]

    def test_key_column_already_listed(self):
        config = TableConfiguration(table_name="t", anonymize_columns=["a"], null_columns=[])
        assert select_columns(config, ["a", "pk"]) == ["a", "pk"]


class TestBuildPageQuery:
    """Test the generated SELECT."""

    def test_offset_and_limit(self):
        query = build_page_query("FakeTable", ["a", "n", "pk"], "pk", page_index=2, page_size=500)
        sql = literal_sql(query, sqlite.dialect())

        assert "ORDER BY" in sql
        assert "LIMIT 500 OFFSET 1000" in sql
        assert "other" not in sql

    def test_schema_qualified_table(self):
        query = build_page_query("dbo.CMS_User", ["Email", "UserID"], "UserID", 0)
        sql = literal_sql(query, sqlite.dialect())

        assert 'dbo."CMS_User"' in sql

    def test_composite_key_orders_by_every_key_column(self):
        query = build_page_query("t", ["alias", "g", "m"], ["g", "m"], 0, 5)
        sql = literal_sql(query, sqlite.dialect())

        assert "ORDER BY t.g ASC, t.m ASC" in sql

    @pytest.mark.parametrize("page_index,page_size", [(-1, 10), (0, 0)])
    def test_invalid_paging_rejected(self, page_index, page_size):
        with pytest.raises(ValueError):
            build_page_query("t", ["a"], "a", page_index, page_size)

    def test_order_column_required(self):
        with pytest.raises(ValueError):
            build_page_query("t", ["a"], [], 0, 10)


class TestFetchPage:
    """Test paging against a real SQLite table."""

    def test_pages_in_key_order(self, connection):
        database = Database(connection)
        first = fetch_page(database, "people", ["email", "id"], "id", 0, 3)
        second = fetch_page(database, "people", ["email", "id"], "id", 1, 3)

        assert [r["id"] for r in first] == [1, 2, 3]
        assert [r["id"] for r in second] == [4, 5, 6]

    def test_only_selected_columns(self, connection):
        rows = fetch_page(Database(connection), "people", ["email", "id"], "id", 0, 3)
        assert set(rows[0]) == {"email", "id"}

    def test_empty_past_end(self, connection):
        assert fetch_page(Database(connection), "people", ["email", "id"], "id", 3, 3) == []

    def test_pager_stops_at_empty_page(self, connection):
        pager = RowPager(Database(connection), "people", ["email", "id"], "id", page_size=3)
        pages = list(pager.pages())

        assert [index for index, _ in pages] == [0, 1, 2]
        assert [len(rows) for _, rows in pages] == [3, 3, 1]
