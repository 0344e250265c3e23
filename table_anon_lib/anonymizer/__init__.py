"""Database table anonymization package."""

from .config import TableConfiguration, TablesConfiguration, ConnectionSettings, load_tables_config
from .database import Database, TableManager, create_database_engine
from .engine import AnonymizerService, EngineConfig, TableResult, TableStatus, anonymize
from .errors import AnonymizerError, ConfigurationError, ErrorCollector
from .logger import AnonymizationLogger, ConsoleLogger

__all__ = [
    "TableConfiguration",
    "TablesConfiguration",
    "ConnectionSettings",
    "load_tables_config",
    "Database",
    "TableManager",
    "create_database_engine",
    "AnonymizerService",
    "EngineConfig",
    "TableResult",
    "TableStatus",
    "anonymize",
    "AnonymizerError",
    "ConfigurationError",
    "ErrorCollector",
    "AnonymizationLogger",
    "ConsoleLogger",
]
