"""
Turso Database Adapter

Implementation of the DatabaseAdapter interface for Turso (libSQL).
Turso is a SQLite-compatible database with edge replicas.
"""

import logging
from typing import Optional, List, Dict, Any

import libsql_client

from call_relay.db.base import DatabaseAdapter, split_statements
from call_relay.db.models import SCHEMA, SCHEMA_TABLES

logger = logging.getLogger(__name__)


class TursoAdapter(DatabaseAdapter):
    """
    Turso (libSQL) database adapter.

    Uses the libsql_client library for async database operations.
    """

    def __init__(self, db_url: Optional[str] = None, auth_token: Optional[str] = None):
        self.db_url = db_url
        self.auth_token = auth_token
        self._client = None
        self._connected = False

    async def connect(self) -> bool:
        """Establish connection to Turso database."""
        if not self.db_url or not self.auth_token:
            logger.error("Cannot connect: Missing TURSO_DB_URL or TURSO_DB_AUTH_TOKEN")
            return False

        try:
            self._client = libsql_client.create_client(self.db_url, auth_token=self.auth_token)
            self._connected = True
            logger.info(f"Connected to Turso database: {self.db_url}")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Turso: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """Close the Turso connection."""
        if self._client:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning(f"Error closing Turso connection: {e}")
            finally:
                self._client = None
                self._connected = False
                logger.info("Disconnected from Turso database")

    async def initialize_schema(self) -> bool:
        """Create necessary tables if they don't exist."""
        if not self.is_connected():
            logger.error("Cannot initialize schema: Not connected")
            return False

        errors = []
        for stmt in split_statements(SCHEMA):
            try:
                await self._client.execute(stmt)
            except Exception as e:
                logger.error(f"Error executing schema statement: {e}")
                errors.append(str(e))

        try:
            result = await self._client.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )
            tables = {row[0] for row in result.rows}
            missing = [t for t in SCHEMA_TABLES if t not in tables]
            if missing:
                logger.error(f"Schema initialization incomplete, missing tables: {missing}")
                return False
            logger.info("Turso schema initialized successfully")
            return True
        except Exception as e:
            logger.error(f"Could not verify schema: {e}")
            return not errors

    async def execute(self, query: str, params: tuple = ()) -> int:
        """Execute a write query."""
        if not self.is_connected():
            raise ConnectionError("Not connected to database")

        try:
            result = await self._client.execute(query, list(params))
            return result.rows_affected
        except Exception as e:
            logger.error(f"Query execution failed: {e}\nQuery: {query}")
            raise

    async def fetch_one(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Execute query and return single row as dict."""
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def fetch_all(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Execute query and return all rows as list of dicts."""
        if not self.is_connected():
            raise ConnectionError("Not connected to database")

        try:
            result = await self._client.execute(query, list(params))
            columns = list(result.columns or [])
            return [dict(zip(columns, row)) for row in result.rows]
        except Exception as e:
            logger.error(f"Query execution failed: {e}\nQuery: {query}")
            raise

    def is_connected(self) -> bool:
        """Check if database connection is active."""
        return self._connected and self._client is not None
