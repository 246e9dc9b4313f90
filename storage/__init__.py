"""
Storage Package

Durable cache of last-known-good market data, read when every provider fails.

Backends (each also implements UserDataStore for watchlists and alerts):
- InMemoryDurableStore: dict-backed, process lifetime only (tests, ephemeral runs)
- DuckDBDurableStore: local DuckDB file, survives restarts

Select the backend with the DURABLE_BACKEND setting.
"""

from core.config import Settings
from storage.base import DurableStore, UserDataStore
from storage.duckdb_store import DuckDBDurableStore
from storage.memory import InMemoryDurableStore


def create_durable_store(settings: Settings) -> DurableStore:
    """Build the durable store configured by settings.durable_backend."""
    if settings.use_duckdb:
        return DuckDBDurableStore(settings.duckdb_path)
    return InMemoryDurableStore()


__all__ = ["DurableStore", "UserDataStore", "DuckDBDurableStore", "InMemoryDurableStore", "create_durable_store"]
