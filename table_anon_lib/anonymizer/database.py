"""Database access over a single SQLAlchemy connection.

Provides:
- Engine creation from connection settings
- Table introspection (existence, primary key, column names)
- Query execution returning plain row dicts
- Batched update execution, one transaction per batch
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import column, create_engine, inspect, table
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.sql.expression import Executable, TableClause

from .config import ConnectionSettings
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .statements import UpdateBatch


# Read-only projection of one fetched record: {column_name: value}
Row = Dict[str, Any]


def create_database_engine(settings: ConnectionSettings, echo: bool = False) -> Engine:
    """Create an engine for the configured database."""
    url = settings.to_url()
    try:
        return create_engine(url, echo=echo)
    except (ArgumentError, ImportError) as e:
        # Unknown dialect or missing DBAPI driver
        raise ConfigurationError(f"Cannot create engine for {url.drivername}: {e}") from e


def split_table_name(name: str) -> Tuple[Optional[str], str]:
    """Split "schema.table" into (schema, table). Plain names have no schema."""
    if "." in name:
        schema, _, table_name = name.rpartition(".")
        return schema or None, table_name
    return None, name


def table_clause(name: str, columns: Sequence[str]) -> TableClause:
    """Lightweight table construct; identifiers are quoted by the dialect."""
    schema, table_name = split_table_name(name)
    return table(table_name, *[column(c) for c in dict.fromkeys(columns)], schema=schema)


class TableManager:
    """Table introspection through SQLAlchemy's inspector.

    Usage:
        with engine.connect() as conn:
            tables = TableManager(conn)
            if tables.table_exists("CMS_User"):
                pk = tables.get_primary_key_columns("CMS_User")  # ["UserID"]
    """

    def __init__(self, connection: Connection):
        self._connection = connection
        self._inspector = inspect(connection)

    def table_exists(self, name: str) -> bool:
        schema, table_name = split_table_name(name)
        return self._inspector.has_table(table_name, schema=schema)

    def get_primary_key_columns(self, name: str) -> List[str]:
        """Primary-key column names in key order. Empty if the table has none."""
        schema, table_name = split_table_name(name)
        constraint = self._inspector.get_pk_constraint(table_name, schema=schema)
        return list(constraint.get("constrained_columns") or [])

    def get_columns(self, name: str) -> List[str]:
        schema, table_name = split_table_name(name)
        return [c["name"] for c in self._inspector.get_columns(table_name, schema=schema)]


class Database:
    """Executes queries and update batches on one connection.

    The connection is owned by the caller. Each update batch is committed
    on success and rolled back on failure; earlier batches stay committed.
    """

    def __init__(self, connection: Connection):
        self._connection = connection

    def execute_query(self, statement: Executable) -> List[Row]:
        result = self._connection.execute(statement)
        return [dict(r._mapping) for r in result]

    def execute_batch(self, batch: "UpdateBatch") -> int:
        """Execute every command of an UpdateBatch in one transaction.

        Returns the number of rows modified.
        """
        rows_modified = 0
        try:
            for command in batch.commands:
                result = self._connection.execute(command.statement)
                rows_modified += result.rowcount
        except SQLAlchemyError:
            self._connection.rollback()
            raise
        self._connection.commit()
        return rows_modified

    def rollback(self):
        """Discard the open transaction so the connection is usable again."""
        self._connection.rollback()
