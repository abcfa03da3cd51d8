"""Data access layer."""

from exchange_app.repositories.store import JsonStore, StoreCorruptedError, json_store

__all__ = ["JsonStore", "StoreCorruptedError", "json_store"]
