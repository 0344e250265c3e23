"""Rules deciding which column values must be left untouched.

A value is skipped when:
- it is NULL or empty (nothing to anonymize)
- it sits in the user-name column and names a built-in system account,
  which would be unusable after anonymization
"""

from typing import Any, Iterable


PROTECTED_USERNAME_COLUMN = "UserName"
PROTECTED_ACCOUNTS = ("administrator", "kentico-system-service", "public")


def value_to_string(value: Any) -> str:
    """Render a fetched column value as text. NULL becomes ""."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class SkipPolicy:
    """Decides per (value, column) whether a row's column is left as-is.

    Usage:
        policy = SkipPolicy()
        policy.should_skip("administrator", "username")  # True
        policy.should_skip("jdoe", "UserName")           # False

        # Protect extra accounts:
        policy = SkipPolicy(protected_accounts=["administrator", "public", "ops"])
    """

    def __init__(
        self,
        username_column: str = PROTECTED_USERNAME_COLUMN,
        protected_accounts: Iterable[str] = PROTECTED_ACCOUNTS,
    ):
        self.username_column = username_column
        self.protected_accounts = frozenset(a.lower() for a in protected_accounts)

    def should_skip(self, value: Any, column: str) -> bool:
        text = value_to_string(value)
        if not text:
            return True

        if column.lower() == self.username_column.lower() and text.lower() in self.protected_accounts:
            return True

        return False


DEFAULT_POLICY = SkipPolicy()


def should_skip(value: Any, column: str) -> bool:
    """Check a value against the default policy."""
    return DEFAULT_POLICY.should_skip(value, column)
