"""
Key-Value Store Module

This module is the persistence boundary for batchlingo. Everything durable is a
string blob addressed by (namespace, key):
- App Config (the JSON configuration document)
- Review artifacts (template + segments + baked translations)
- Translation memory snapshots

For schema management, see core/schema.py
"""

import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict

DB_FILE = Path(os.environ.get("BATCHLINGO_DB", Path(__file__).parent.parent.parent / "batchlingo.db"))


def get_connection():
    """Get a database connection."""
    return sqlite3.connect(DB_FILE)


def _ensure_blob_table(cursor):
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS blobs (
            namespace TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (namespace, key)
        )
    """)


# ============================================================
# Blob Operations
# ============================================================

def put_blob(namespace: str, key: str, value: str):
    """Insert or replace a blob."""
    with get_connection() as conn:
        cursor = conn.cursor()
        _ensure_blob_table(cursor)
        cursor.execute("""
            INSERT OR REPLACE INTO blobs (namespace, key, value, updated_at)
            VALUES (?, ?, ?, ?)
        """, (namespace, key, value, datetime.now()))
        conn.commit()


def get_blob(namespace: str, key: str) -> Optional[str]:
    """Get a blob, or None if it was never stored."""
    with get_connection() as conn:
        cursor = conn.cursor()
        _ensure_blob_table(cursor)
        cursor.execute("SELECT value FROM blobs WHERE namespace = ? AND key = ?", (namespace, key))
        row = cursor.fetchone()
        return row[0] if row else None


def delete_blob(namespace: str, key: str) -> bool:
    """Delete a blob. Returns True if something was removed."""
    with get_connection() as conn:
        cursor = conn.cursor()
        _ensure_blob_table(cursor)
        cursor.execute("DELETE FROM blobs WHERE namespace = ? AND key = ?", (namespace, key))
        conn.commit()
        return cursor.rowcount > 0


def list_blob_keys(namespace: str) -> List[str]:
    """List keys stored under a namespace, oldest first."""
    with get_connection() as conn:
        cursor = conn.cursor()
        _ensure_blob_table(cursor)
        cursor.execute(
            "SELECT key FROM blobs WHERE namespace = ? ORDER BY updated_at, key",
            (namespace,),
        )
        return [row[0] for row in cursor.fetchall()]


# ============================================================
# App Config Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get a configuration value by key."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set a configuration value."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, value, datetime.now()))
        conn.commit()


def get_all_app_config() -> Dict[str, str]:
    """Get all configuration values."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT key, value FROM app_config")
        return {row[0]: row[1] for row in cursor.fetchall()}
