"""
Core module - Persistence

This module provides:
- database: blob and app-config operations over sqlite
- schema: database initialization
"""

from batchlingo.core.database import (
    DB_FILE,
    get_connection,
    # Blob operations
    put_blob,
    get_blob,
    delete_blob,
    list_blob_keys,
    # App config operations
    get_app_config,
    set_app_config,
    get_all_app_config,
)

from batchlingo.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    initialize_database,
)
