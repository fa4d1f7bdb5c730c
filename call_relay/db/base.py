"""
Database Adapter Base Class

This module defines the abstract interface that all database adapters
must implement. Queries are written once with `?` placeholders; adapters
translate them where the driver needs another style.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    All database implementations (SQLite, Turso, PostgreSQL)
    must implement this interface.
    """

    @abstractmethod
    async def connect(self) -> bool:
        """
        Establish connection to the database.
        Returns True if successful, False otherwise.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the database connection."""
        pass

    @abstractmethod
    async def initialize_schema(self) -> bool:
        """
        Create necessary tables if they don't exist.
        Returns True if successful, False otherwise.
        """
        pass

    @abstractmethod
    async def execute(self, query: str, params: tuple = ()) -> int:
        """Execute a write query and return the number of affected rows."""
        pass

    @abstractmethod
    async def fetch_one(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Execute query and return single row as dict."""
        pass

    @abstractmethod
    async def fetch_all(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Execute query and return all rows as list of dicts."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if database connection is active."""
        pass


def split_statements(schema: str) -> List[str]:
    """Strip `--` comments and split a schema script into statements."""
    schema = re.sub(r"--.*$", "", schema, flags=re.MULTILINE)
    return [stmt.strip() for stmt in schema.split(";") if stmt.strip()]
