"""Paged retrieval of candidate rows.

Rows are read in fixed-size pages ordered by the primary key, selecting
only the columns the anonymizer needs. An empty page marks the end of the
table.
"""

from typing import Iterator, List, Sequence, Tuple, Union

from sqlalchemy import select
from sqlalchemy.sql.expression import Select

from .config import TableConfiguration
from .database import Row, table_clause


DEFAULT_PAGE_SIZE = 500


def select_columns(table_config: TableConfiguration, primary_key_columns: Sequence[str]) -> List[str]:
    """Union of anonymize, null and primary-key columns, without duplicates."""
    columns = []
    for col in [*table_config.anonymize_columns, *table_config.null_columns, *primary_key_columns]:
        if col not in columns:
            columns.append(col)
    return columns


def build_page_query(
    table_name: str,
    columns: Sequence[str],
    order_columns: Union[str, Sequence[str]],
    page_index: int,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Select:
    """SELECT one page, ordered ascending by ``order_columns``.

    The first order column leads; the others only break ties, which keeps
    OFFSET pages disjoint for composite keys.
    """
    if isinstance(order_columns, str):
        order_columns = [order_columns]
    if not order_columns:
        raise ValueError("at least one order column is required")
    if page_index < 0:
        raise ValueError(f"page_index must be >= 0, got {page_index}")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")

    tbl = table_clause(table_name, [*columns, *order_columns])
    return (
        select(*[tbl.c[c] for c in columns])
        .order_by(*[tbl.c[c].asc() for c in order_columns])
        .offset(page_index * page_size)
        .limit(page_size)
    )


def fetch_page(
    database,
    table_name: str,
    columns: Sequence[str],
    order_columns: Union[str, Sequence[str]],
    page_index: int,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Row]:
    """Fetch one page of rows. Returns [] once past the end of the table."""
    query = build_page_query(table_name, columns, order_columns, page_index, page_size)
    return database.execute_query(query)


class RowPager:
    """Iterates the pages of one table.

    Usage:
        pager = RowPager(database, "CMS_User", ["Email", "UserID"], ["UserID"])
        for page_index, rows in pager.pages():
            ...  # process rows before the next page is fetched
    """

    def __init__(
        self,
        database,
        table_name: str,
        columns: Sequence[str],
        order_columns: Union[str, Sequence[str]],
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.database = database
        self.table_name = table_name
        self.columns = list(columns)
        self.order_columns = [order_columns] if isinstance(order_columns, str) else list(order_columns)
        self.page_size = page_size

    def fetch_page(self, page_index: int) -> List[Row]:
        return fetch_page(
            self.database,
            self.table_name,
            self.columns,
            self.order_columns,
            page_index,
            self.page_size,
        )

    def pages(self) -> Iterator[Tuple[int, List[Row]]]:
        """Yield (page_index, rows) until a page comes back empty.

        Pages are fetched lazily, so each page is fetched only after the
        previous one has been handled.
        """
        page_index = 0
        while True:
            rows = self.fetch_page(page_index)
            if not rows:
                return
            yield page_index, rows
            page_index += 1
