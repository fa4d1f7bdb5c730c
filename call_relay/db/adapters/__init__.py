"""
Database Adapters

This module contains concrete implementations of the DatabaseAdapter
interface for different database backends.
"""

from call_relay.db.adapters.sqlite import SQLiteAdapter
from call_relay.db.adapters.turso import TursoAdapter
from call_relay.db.adapters.postgres import PostgresAdapter

__all__ = ["SQLiteAdapter", "TursoAdapter", "PostgresAdapter"]
