"""Configuration models and loaders.

Tables file format (JSON with camelCase keys;
snake_case keys are accepted too):

    {
      "tables": [
        {
          "tableName": "CMS_User",
          "anonymizeColumns": ["UserName", "Email"],
          "nullColumns": []
        }
      ]
    }
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .errors import ConfigurationError


DATABASE_URL_ENV = "TABLE_ANON_DATABASE_URL"
DEFAULT_TABLES_FILENAME = "tables.json"


class TableConfiguration(BaseModel):
    """Columns to anonymize and to null for one table."""
    table_name: Optional[str] = Field(default=None, alias="tableName")
    anonymize_columns: List[str] = Field(default_factory=list, alias="anonymizeColumns")
    null_columns: List[str] = Field(default_factory=list, alias="nullColumns")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("anonymize_columns", "null_columns", mode="before")
    @classmethod
    def _normalize_columns(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set)):
            # Left for List[str] validation to reject
            return value
        # Strip, drop blanks, de-duplicate preserving order
        seen = set()
        columns = []
        for col in value:
            if not isinstance(col, str):
                columns.append(col)
                continue
            col = col.strip()
            if col and col not in seen:
                seen.add(col)
                columns.append(col)
        return columns

    def has_columns(self) -> bool:
        return bool(self.anonymize_columns or self.null_columns)

    def overlapping_columns(self) -> List[str]:
        """Columns listed in both sets (case-insensitive)."""
        null_lower = {c.lower() for c in self.null_columns}
        return [c for c in self.anonymize_columns if c.lower() in null_lower]


class TablesConfiguration(BaseModel):
    """Ordered list of tables to process."""
    tables: List[TableConfiguration] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


def default_tables_config() -> TablesConfiguration:
    """Built-in configuration covering the personal data of a Kentico database."""
    return TablesConfiguration(
        tables=[
            TableConfiguration(
                table_name="CMS_User",
                anonymize_columns=["UserName", "FirstName", "LastName", "Email", "UserPassword"],
            ),
            TableConfiguration(
                table_name="CMS_Member",
                anonymize_columns=["MemberName", "MemberEmail", "MemberPassword"],
            ),
            TableConfiguration(
                table_name="OM_Contact",
                anonymize_columns=[
                    "ContactFirstName",
                    "ContactMiddleName",
                    "ContactLastName",
                    "ContactJobTitle",
                    "ContactEmail",
                    "ContactAddress1",
                    "ContactCity",
                    "ContactZIP",
                    "ContactMobilePhone",
                    "ContactBusinessPhone",
                    "ContactCompanyName",
                ],
                null_columns=["ContactNotes"],
            ),
        ]
    )


def save_tables_config(config: TablesConfiguration, path: Path | str):
    """Write a tables configuration as JSON with camelCase keys."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(config.model_dump_json(by_alias=True, indent=2) + "\n")


def load_tables_config(path: Path | str, create_default: bool = True) -> TablesConfiguration:
    """Load a tables configuration file.

    A missing file is created with the default configuration when
    ``create_default`` is set, otherwise ConfigurationError is raised.
    """
    path = Path(path)
    if not path.exists():
        if not create_default:
            raise ConfigurationError(f"Tables configuration not found: {path}")
        config = default_tables_config()
        save_tables_config(config, path)
        return config

    try:
        return TablesConfiguration.model_validate_json(path.read_text())
    except ValidationError as e:
        raise ConfigurationError(f"Invalid tables configuration {path}: {e}") from e


class ConnectionSettings(BaseModel):
    """Database connection settings.

    Either a full SQLAlchemy ``url`` or the discrete parts used to build one.
    """
    url: Optional[str] = None
    drivername: str = "mssql+pyodbc"
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    query: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    def to_url(self) -> URL:
        if self.url:
            try:
                return make_url(self.url)
            except ArgumentError as e:
                raise ConfigurationError(f"Invalid database URL: {e}") from e

        if not self.database:
            raise ConfigurationError("Connection settings need either 'url' or 'database'")

        return URL.create(
            self.drivername,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=self.query,
        )


def load_connection_settings(path: Path | str) -> ConnectionSettings:
    """Load connection settings from a JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read connection settings {path}: {e}") from e

    try:
        return ConnectionSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid connection settings {path}: {e}") from e


def resolve_connection_settings(
    url: Optional[str] = None,
    settings_path: Optional[Path] = None,
) -> ConnectionSettings:
    """Pick connection settings: explicit URL, settings file, then environment."""
    if url:
        return ConnectionSettings(url=url)
    if settings_path is not None:
        return load_connection_settings(settings_path)

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        return ConnectionSettings(url=env_url)

    raise ConfigurationError(
        f"No database given: use --url, --connection or set {DATABASE_URL_ENV}"
    )
