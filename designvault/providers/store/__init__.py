"""Relational store adapters.

The SQLite stores share one database file and open a short-lived
``aiosqlite`` connection per operation.  The PostgreSQL stores share one
SQLAlchemy ``AsyncEngine``.  ``main.py`` picks the family once from
``Settings.database_backend``.
"""

from designvault.providers.store.postgres_asset_store import PostgresAssetStore
from designvault.providers.store.postgres_base import create_postgres_engine
from designvault.providers.store.postgres_directory_store import PostgresDirectoryStore
from designvault.providers.store.postgres_search_log_store import PostgresSearchLogStore
from designvault.providers.store.sqlite_asset_store import SQLiteAssetStore
from designvault.providers.store.sqlite_directory_store import SQLiteDirectoryStore
from designvault.providers.store.sqlite_search_log_store import SQLiteSearchLogStore

__all__ = [
    "PostgresAssetStore",
    "PostgresDirectoryStore",
    "PostgresSearchLogStore",
    "SQLiteAssetStore",
    "SQLiteDirectoryStore",
    "SQLiteSearchLogStore",
    "create_postgres_engine",
]
