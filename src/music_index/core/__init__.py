"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Index database (SQLite)
- Logging and console output (Loguru, Rich)

The core layer has no dependencies on the domain layer.
"""

# Configuration
from .config import (
    Config,
    create_default_config,
    ensure_directories,
    get_cache_dir,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_media_art_dir,
    load_config,
)

# Database
from .database import (
    get_database_path,
    get_db_connection,
    init_database,
    open_database,
)

# Errors
from .exceptions import IndexStoreError, SchemaError, StoreOpenError, StoreReadError

# Output
from .output import get_console, log, safe_print, setup_loguru

__all__ = [
    # Configuration
    "Config",
    "create_default_config",
    "ensure_directories",
    "get_cache_dir",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_media_art_dir",
    "load_config",
    # Database
    "get_database_path",
    "get_db_connection",
    "init_database",
    "open_database",
    # Errors
    "IndexStoreError",
    "SchemaError",
    "StoreOpenError",
    "StoreReadError",
    # Output
    "get_console",
    "log",
    "safe_print",
    "setup_loguru",
]
