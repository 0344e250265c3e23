"""Error and issue collection for table anonymization.

Collects:
- Tables skipped because a precondition was not met
- Configuration problems (blank names, overlapping column sets,
  primary-key columns configured for modification)
- Data-layer failures while paging or updating a table

Issues never record column values, only table and column names.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class AnonymizerError(Exception):
    """Base class for anonymizer errors."""


class ConfigurationError(AnonymizerError):
    """Configuration or connection settings could not be used."""


class IssueType(str, Enum):
    """Types of table issues."""
    MISSING_TABLE = "missing_table"
    NO_COLUMNS = "no_columns"
    OVERLAPPING_COLUMNS = "overlapping_columns"
    NO_PRIMARY_KEY = "no_primary_key"
    UNKNOWN_COLUMNS = "unknown_columns"
    PRIMARY_KEY_COLUMNS = "primary_key_columns"
    EXECUTION_ERROR = "execution_error"


@dataclass
class TableIssue:
    """A single issue found while processing a table."""
    issue_type: IssueType
    table_name: str
    message: str
    columns: List[str] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_type": self.issue_type.value,
            "table_name": self.table_name,
            "message": self.message,
            "columns": self.columns,
            "context": self.context,
            "timestamp": self.timestamp,
        }


class ErrorCollector:
    """Collects table issues during a run.

    Usage:
        collector = ErrorCollector()
        collector.add_issue(IssueType.NO_PRIMARY_KEY, "CMS_User", "No primary key")
        collector.write_report("errors.jsonl")
    """

    def __init__(self):
        self._issues: List[TableIssue] = []

    def add_issue(
        self,
        issue_type: IssueType,
        table_name: Optional[str],
        message: str,
        columns: Optional[List[str]] = None,
        **context,
    ):
        """Add a table issue."""
        self._issues.append(
            TableIssue(
                issue_type=issue_type,
                table_name=table_name or "",
                message=message,
                columns=list(columns or []),
                context=context,
            )
        )

    @property
    def issues(self) -> List[TableIssue]:
        return self._issues

    def has_errors(self) -> bool:
        """Check if any errors (not just skipped tables) were collected."""
        return any(i.issue_type == IssueType.EXECUTION_ERROR for i in self._issues)

    def get_summary(self) -> Dict[str, int]:
        """Get count of issues by type."""
        summary: Dict[str, int] = {}
        for issue in self._issues:
            key = issue.issue_type.value
            summary[key] = summary.get(key, 0) + 1
        return summary

    def write_report(self, output_path: Path | str):
        """Write issues to a JSONL file."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            for issue in self._issues:
                f.write(json.dumps(issue.to_dict()) + "\n")

    def print_summary(self):
        """Print a summary of collected issues."""
        summary = self.get_summary()
        if not summary:
            print("No issues found.")
            return

        print(f"\nTable issues summary ({len(self._issues)} total):")
        for issue_type, count in sorted(summary.items()):
            print(f"  {issue_type}: {count}")

        for issue in self._issues[:5]:
            print(f"  - {issue.table_name or '(unnamed)'}: {issue.message}")
        if len(self._issues) > 5:
            print(f"  ... and {len(self._issues) - 5} more")
