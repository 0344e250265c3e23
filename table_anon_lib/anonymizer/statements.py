"""Per-row UPDATE commands.

Each fetched row becomes at most one UPDATE: anonymize columns get a fresh
random value of the same length, null columns are set to NULL, and the
WHERE clause matches every primary-key column of the row. Values are bound
parameters; only configured identifiers appear in the statement text.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, null, update
from sqlalchemy.sql.expression import Update

from .config import TableConfiguration
from .database import Row, table_clause
from .random_values import ValueGenerator, generate
from .skip_policy import DEFAULT_POLICY, SkipPolicy, value_to_string


def value_length(value: Any) -> int:
    """Stored width of a value: bytes for binary values, characters otherwise."""
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, memoryview):
        return value.nbytes
    return len(value_to_string(value))


@dataclass(frozen=True)
class UpdateCommand:
    """UPDATE for a single row.

    ``assignments`` maps column -> new value (None for NULL).
    ``key`` maps primary-key column -> value identifying the row.
    """
    table_name: str
    assignments: Dict[str, Optional[str]]
    key: Dict[str, Any]

    @property
    def statement(self) -> Update:
        tbl = table_clause(self.table_name, [*self.assignments, *self.key])
        values = {
            tbl.c[col]: (null() if value is None else value)
            for col, value in self.assignments.items()
        }
        where = and_(*[tbl.c[col] == value for col, value in self.key.items()])
        return update(tbl).where(where).values(values)


@dataclass
class UpdateBatch:
    """All update commands of one page, executed together."""
    table_name: str
    page_index: int
    commands: List[UpdateCommand] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.commands


def build_update(
    row: Row,
    table_config: TableConfiguration,
    primary_key_columns: Sequence[str],
    policy: SkipPolicy = DEFAULT_POLICY,
    generate_fn: ValueGenerator = generate,
) -> Optional[UpdateCommand]:
    """Build the UPDATE for one row, or None if every column is skipped."""
    assignments: Dict[str, Optional[str]] = {}

    for col in table_config.anonymize_columns:
        value = row.get(col)
        if policy.should_skip(value, col):
            continue
        assignments[col] = generate_fn(value_length(value))

    for col in table_config.null_columns:
        if policy.should_skip(row.get(col), col):
            continue
        assignments[col] = None

    if not assignments:
        return None

    key = {col: row[col] for col in primary_key_columns}
    return UpdateCommand(table_config.table_name, assignments, key)


def build_batch(
    rows: Iterable[Row],
    table_config: TableConfiguration,
    primary_key_columns: Sequence[str],
    page_index: int = 0,
    policy: SkipPolicy = DEFAULT_POLICY,
    generate_fn: ValueGenerator = generate,
) -> UpdateBatch:
    """Collect the non-empty update commands of a page."""
    batch = UpdateBatch(table_config.table_name, page_index)
    for row in rows:
        command = build_update(row, table_config, primary_key_columns, policy, generate_fn)
        if command is not None:
            batch.commands.append(command)
    return batch
