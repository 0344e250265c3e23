"""Orchestrates table anonymization.

Each configured table moves through:

    Start -> Validated -> Paging -> Done
      |
      +-> Skipped(reason)    missing table, no columns, no primary key, ...

Tables are processed in configured order and independently: a skipped or
failed table never stops the next one (unless fail_fast is set). Pages of
one table are fetched, turned into one update batch and executed before
the next page is fetched. Nothing is rolled back across pages.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .config import TableConfiguration, TablesConfiguration
from .database import Database, TableManager
from .errors import ErrorCollector, IssueType
from .logger import AnonymizationLogger
from .pager import DEFAULT_PAGE_SIZE, RowPager, select_columns
from .random_values import ValueGenerator, generate
from .skip_policy import SkipPolicy
from .statements import build_batch


SKIP_MISSING_TABLE = "missing table"
SKIP_NO_COLUMNS = "no columns"
SKIP_OVERLAPPING_COLUMNS = "overlapping columns"
SKIP_NO_PRIMARY_KEY = "no primary key"
SKIP_UNKNOWN_COLUMNS = "unknown columns"
SKIP_PRIMARY_KEY_COLUMNS = "primary key columns"

UNNAMED_TABLE = "(unnamed)"


class TableStatus(str, Enum):
    """Final state of one table."""
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EngineConfig:
    """Configuration for the anonymizer."""
    batch_size: int = DEFAULT_PAGE_SIZE

    # Behavior
    dry_run: bool = False
    fail_fast: bool = False  # re-raise data-layer errors after reporting

    skip_policy: SkipPolicy = field(default_factory=SkipPolicy)


@dataclass
class TableResult:
    """Outcome of one table."""
    table_name: str
    status: TableStatus = TableStatus.DONE
    reason: Optional[str] = None
    pages: int = 0
    rows_fetched: int = 0
    rows_modified: int = 0


@dataclass
class RunStats:
    """Statistics from an anonymization run."""
    tables_done: int = 0
    tables_skipped: int = 0
    tables_failed: int = 0
    pages_processed: int = 0
    rows_fetched: int = 0
    rows_modified: int = 0


class AnonymizerService:
    """Anonymizes configured tables over one database connection.

    Usage:
        service = AnonymizerService(ConsoleLogger(), EngineConfig(batch_size=500))
        with engine.connect() as conn:
            results = service.anonymize(conn, load_tables_config("tables.json"))
        service.print_summary()
    """

    def __init__(
        self,
        logger: Optional[AnonymizationLogger] = None,
        config: Optional[EngineConfig] = None,
        errors: Optional[ErrorCollector] = None,
        database_factory: Callable = Database,
        table_manager_factory: Callable = TableManager,
        generate_fn: ValueGenerator = generate,
    ):
        self.logger = logger or AnonymizationLogger()
        self.config = config or EngineConfig()
        self.errors = errors or ErrorCollector()
        self.database_factory = database_factory
        self.table_manager_factory = table_manager_factory
        self.generate_fn = generate_fn
        self.results: List[TableResult] = []
        self.stats = RunStats()

        if self.config.batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {self.config.batch_size}")

    def anonymize(self, connection, tables_config: TablesConfiguration) -> List[TableResult]:
        """Run every configured table, in order. Returns one result per table."""
        self.logger.log_start()
        results: List[TableResult] = []
        try:
            database = self.database_factory(connection)
            table_manager = self.table_manager_factory(connection)
            for table in tables_config.tables:
                results.append(self.anonymize_table(database, table_manager, table))
        finally:
            self.logger.log_end()
        return results

    def anonymize_table(self, database, table_manager, table: TableConfiguration) -> TableResult:
        """Validate and page through a single table.

        The result is recorded in ``results`` and ``stats`` even when a
        data-layer error is re-raised under fail_fast. A table with a blank
        name is reported between markers carrying UNNAMED_TABLE.
        """
        name = (table.table_name or "").strip()
        label = name or UNNAMED_TABLE
        result = TableResult(name)

        self.logger.log_table_start(label)
        try:
            if not name:
                self._skip(result, SKIP_MISSING_TABLE, IssueType.MISSING_TABLE, "Skipped table with no name")
                return result

            validated = self._validate(table_manager, table, result)
            if validated is not None:
                table_config, primary_key = validated
                self._page_table(database, table_config, primary_key, result)
        except SQLAlchemyError as e:
            message = f"Failed table {name} on page {result.pages}: {e}"
            self.logger.log_error(message)
            self.errors.add_issue(
                IssueType.EXECUTION_ERROR,
                name,
                message,
                page=result.pages,
                rows_modified=result.rows_modified,
            )
            result.status = TableStatus.FAILED
            result.reason = str(e)
            # A failed read or introspection can leave the transaction aborted
            database.rollback()
            if self.config.fail_fast:
                raise
        finally:
            self._record(result)
            self.logger.log_table_end(label)
        return result

    def _validate(
        self,
        table_manager,
        table: TableConfiguration,
        result: TableResult,
    ) -> Optional[Tuple[TableConfiguration, List[str]]]:
        """Check preconditions. Returns (resolved config, primary key) or None if skipped."""
        name = result.table_name

        if not table_manager.table_exists(name):
            self._skip(result, SKIP_MISSING_TABLE, IssueType.MISSING_TABLE, f"Skipped nonexistent table {name}")
            return None

        if not table.has_columns():
            self._skip(result, SKIP_NO_COLUMNS, IssueType.NO_COLUMNS, f"Skipped table {name} with no columns")
            return None

        overlap = table.overlapping_columns()
        if overlap:
            self._skip(
                result,
                SKIP_OVERLAPPING_COLUMNS,
                IssueType.OVERLAPPING_COLUMNS,
                f"Skipped table {name}: columns both anonymized and nulled: {', '.join(overlap)}",
                overlap,
            )
            return None

        primary_key = table_manager.get_primary_key_columns(name)
        if not primary_key:
            self._skip(
                result,
                SKIP_NO_PRIMARY_KEY,
                IssueType.NO_PRIMARY_KEY,
                f"Skipped table {name} with no identity columns",
            )
            return None

        resolved, unknown = self._resolve_columns(name, table, table_manager.get_columns(name))
        if unknown:
            self._skip(
                result,
                SKIP_UNKNOWN_COLUMNS,
                IssueType.UNKNOWN_COLUMNS,
                f"Skipped table {name}: unknown columns: {', '.join(unknown)}",
                unknown,
            )
            return None

        key_targets = [
            c for c in [*resolved.anonymize_columns, *resolved.null_columns] if c in primary_key
        ]
        if key_targets:
            self._skip(
                result,
                SKIP_PRIMARY_KEY_COLUMNS,
                IssueType.PRIMARY_KEY_COLUMNS,
                f"Skipped table {name}: primary key columns cannot be modified: {', '.join(key_targets)}",
                key_targets,
            )
            return None

        return resolved, primary_key

    def _resolve_columns(
        self,
        name: str,
        table: TableConfiguration,
        actual_columns: Sequence[str],
    ) -> Tuple[TableConfiguration, List[str]]:
        """Map configured column names onto the table's real column names.

        Exact matches win; otherwise names are matched case-insensitively.
        Returns the resolved configuration and the names that matched nothing.
        """
        exact = set(actual_columns)
        by_lower = {c.lower(): c for c in actual_columns}
        unknown: List[str] = []

        def resolve(columns: List[str]) -> List[str]:
            resolved = []
            for col in columns:
                match = col if col in exact else by_lower.get(col.lower())
                if match is None:
                    unknown.append(col)
                elif match not in resolved:
                    resolved.append(match)
            return resolved

        resolved_config = table.model_copy(
            update={
                "table_name": name,
                "anonymize_columns": resolve(table.anonymize_columns),
                "null_columns": resolve(table.null_columns),
            }
        )
        return resolved_config, unknown

    def _page_table(
        self,
        database,
        table: TableConfiguration,
        primary_key: List[str],
        result: TableResult,
    ):
        """Fetch, build and execute page by page until an empty page."""
        pager = RowPager(
            database,
            table.table_name,
            select_columns(table, primary_key),
            primary_key,
            self.config.batch_size,
        )
        for page_index, rows in pager.pages():
            batch = build_batch(
                rows,
                table,
                primary_key,
                page_index,
                self.config.skip_policy,
                self.generate_fn,
            )
            result.pages += 1
            result.rows_fetched += len(rows)
            if batch.is_empty:
                continue

            if self.config.dry_run:
                rows_modified = len(batch.commands)
            else:
                rows_modified = database.execute_batch(batch)
            result.rows_modified += rows_modified
            self.logger.log_modification(table.table_name, rows_modified)

    def _skip(
        self,
        result: TableResult,
        reason: str,
        issue_type: IssueType,
        message: str,
        columns: Optional[List[str]] = None,
    ):
        self.logger.log_error(message)
        self.errors.add_issue(issue_type, result.table_name, message, columns)
        result.status = TableStatus.SKIPPED
        result.reason = reason

    def _record(self, result: TableResult):
        self.results.append(result)
        if result.status == TableStatus.DONE:
            self.stats.tables_done += 1
        elif result.status == TableStatus.SKIPPED:
            self.stats.tables_skipped += 1
        else:
            self.stats.tables_failed += 1
        self.stats.pages_processed += result.pages
        self.stats.rows_fetched += result.rows_fetched
        self.stats.rows_modified += result.rows_modified

    def write_error_report(self, output_path: Path):
        """Write issue report to file."""
        self.errors.write_report(output_path)

    def print_summary(self):
        """Print run summary."""
        print("\n" + "=" * 50)
        print("Anonymization Dry Run Complete" if self.config.dry_run else "Anonymization Complete")
        print("=" * 50)
        print(f"Tables done:        {self.stats.tables_done}")
        print(f"Tables skipped:     {self.stats.tables_skipped}")
        print(f"Tables failed:      {self.stats.tables_failed}")
        print(f"Pages processed:    {self.stats.pages_processed}")
        print(f"Rows fetched:       {self.stats.rows_fetched}")
        label = "Rows to modify:" if self.config.dry_run else "Rows modified:"
        print(f"{label:<20}{self.stats.rows_modified}")

        if self.errors.issues:
            self.errors.print_summary()


def anonymize(
    connection,
    tables_config: TablesConfiguration,
    logger: Optional[AnonymizationLogger] = None,
    config: Optional[EngineConfig] = None,
) -> List[TableResult]:
    """Anonymize every configured table over ``connection``."""
    return AnonymizerService(logger, config).anonymize(connection, tables_config)
