"""
SQLite Database Adapter

Local development and test backend built on the standard library sqlite3
module. Uses a single autocommit connection on the event loop thread.
"""

import logging
import sqlite3
from typing import Optional, List, Dict, Any

from call_relay.db.base import DatabaseAdapter, split_statements
from call_relay.db.models import SCHEMA, SCHEMA_TABLES

logger = logging.getLogger(__name__)


class SQLiteAdapter(DatabaseAdapter):
    """SQLite adapter for local storage."""

    def __init__(self, db_path: str = "call_relay.db"):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    async def connect(self) -> bool:
        """Open the database file."""
        try:
            self._conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            logger.info(f"Connected to SQLite database: {self.db_path}")
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to open SQLite database: {e}")
            self._conn = None
            return False

    async def disconnect(self) -> None:
        """Close the SQLite connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("Disconnected from SQLite database")

    async def initialize_schema(self) -> bool:
        """Create necessary tables if they don't exist."""
        if not self._conn:
            logger.error("Cannot initialize schema: Not connected")
            return False

        try:
            for stmt in split_statements(SCHEMA):
                self._conn.execute(stmt)

            rows = self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
            tables = {row[0] for row in rows}
            missing = [t for t in SCHEMA_TABLES if t not in tables]
            if missing:
                logger.error(f"Schema initialization incomplete, missing tables: {missing}")
                return False

            logger.info("SQLite schema initialized successfully")
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize SQLite schema: {e}")
            return False

    async def execute(self, query: str, params: tuple = ()) -> int:
        """Execute a write query."""
        if not self._conn:
            raise ConnectionError("Not connected to database")

        try:
            cursor = self._conn.execute(query, params)
            return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Query execution failed: {e}\nQuery: {query}")
            raise

    async def fetch_one(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Execute query and return single row as dict."""
        if not self._conn:
            raise ConnectionError("Not connected to database")

        row = self._conn.execute(query, params).fetchone()
        return dict(row) if row else None

    async def fetch_all(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Execute query and return all rows as list of dicts."""
        if not self._conn:
            raise ConnectionError("Not connected to database")

        return [dict(row) for row in self._conn.execute(query, params).fetchall()]

    def is_connected(self) -> bool:
        """Check if database connection is active."""
        return self._conn is not None
