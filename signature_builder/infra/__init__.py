"""Infra layer utilities (storage)."""

from .storage import HashStore, SQLiteManager

__all__ = ["HashStore", "SQLiteManager"]
