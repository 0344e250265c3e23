"""Progress reporting for anonymization runs."""

from datetime import datetime
from typing import Optional


class AnonymizationLogger:
    """Receives lifecycle notifications from the anonymizer.

    The base class ignores every event; subclasses override what they need.
    Return values are never used.
    """

    def log_start(self):
        pass

    def log_end(self):
        pass

    def log_table_start(self, table_name: str):
        pass

    def log_table_end(self, table_name: str):
        pass

    def log_modification(self, table_name: str, rows_modified: int):
        pass

    def log_error(self, message: str):
        pass


class ConsoleLogger(AnonymizationLogger):
    """Prints progress to stdout.

    Usage:
        logger = ConsoleLogger()
        AnonymizerService(logger).anonymize(conn, tables_config)
    """

    def __init__(self, dry_run: bool = False, verbose: bool = True):
        self.dry_run = dry_run
        self.verbose = verbose
        self._started_at: Optional[datetime] = None

    def log_start(self):
        self._started_at = datetime.now()
        mode = " (dry run)" if self.dry_run else ""
        print(f"Anonymization started{mode}: {self._started_at.isoformat(timespec='seconds')}")

    def log_end(self):
        finished = datetime.now()
        if self._started_at is not None:
            elapsed = (finished - self._started_at).total_seconds()
            print(f"Anonymization finished: {finished.isoformat(timespec='seconds')} ({elapsed:.1f}s)")
        else:
            print(f"Anonymization finished: {finished.isoformat(timespec='seconds')}")

    def log_table_start(self, table_name: str):
        print(f"\nProcessing table: {table_name}")

    def log_table_end(self, table_name: str):
        if self.verbose:
            print(f"  Finished table: {table_name}")

    def log_modification(self, table_name: str, rows_modified: int):
        if self.dry_run:
            print(f"  [dry-run] {table_name}: would modify {rows_modified} rows")
        else:
            print(f"  {table_name}: modified {rows_modified} rows")

    def log_error(self, message: str):
        print(f"  [ERROR] {message}")
