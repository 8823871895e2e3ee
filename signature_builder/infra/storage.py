"""SQLite-backed hash store."""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable

import structlog

from ..errors import StoreError, StoreOpenError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteManager:
    """Manage SQLite connections keyed by database path."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                try:
                    conn = sqlite3.connect(path, check_same_thread=False)
                except sqlite3.Error as exc:
                    raise StoreOpenError(f"Cannot open database {path}: {exc}") from exc
                self._connections[path] = conn
            return self._connections[path]

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def reset(self, path: Path) -> bool:
        """Close and delete the database file. Returns ``True`` if a file was removed."""
        self.close(path)
        if path.exists():
            path.unlink()
            return True
        return False

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class HashStore:
    """One named collection of unique hashes ordered by insertion id."""

    def __init__(
        self,
        manager: SQLiteManager,
        db_path: Path,
        table: str = "hashes",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not _IDENTIFIER.match(table):
            raise StoreOpenError(f"Invalid table name: {table!r}")
        self.manager = manager
        self.db_path = db_path
        self.table = table
        self.logger = logger or structlog.get_logger("signature_builder.store")
        self._conn = self.manager.connect(db_path)
        self.ensure_table()

    def ensure_table(self) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {self.table} "
                    "(id INTEGER PRIMARY KEY, hash TEXT NOT NULL UNIQUE)"
                )
        except sqlite3.Error as exc:
            raise StoreOpenError(
                f"Cannot create table {self.table} in {self.db_path}: {exc}"
            ) from exc

    def insert_hashes(self, hashes: Iterable[str]) -> int:
        """Insert *hashes* in one transaction, ignoring ones already present.

        Returns the number of rows actually added.
        """
        before = self._conn.total_changes
        try:
            with self._conn:
                self._conn.executemany(
                    f"INSERT OR IGNORE INTO {self.table} (hash) VALUES (?)",
                    ((value,) for value in hashes),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Insert into {self.table} failed: {exc}") from exc
        return self._conn.total_changes - before

    def remove_hashes(self, hashes: Iterable[str]) -> int:
        """Delete *hashes* in one transaction. Returns the number of rows removed."""
        before = self._conn.total_changes
        try:
            with self._conn:
                self._conn.executemany(
                    f"DELETE FROM {self.table} WHERE hash = ?",
                    ((value,) for value in hashes),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Delete from {self.table} failed: {exc}") from exc
        return self._conn.total_changes - before

    def read_page(self, after_id: int, limit: int) -> list[tuple[int, str]]:
        """Return up to *limit* ``(id, hash)`` rows with ``id > after_id`` in ascending id order."""
        if limit < 1:
            return []
        try:
            cur = self._conn.execute(
                f"SELECT id, hash FROM {self.table} WHERE id > ? ORDER BY id LIMIT ?",
                (after_id, limit),
            )
            return [(int(row[0]), row[1]) for row in cur.fetchall()]
        except sqlite3.Error as exc:
            raise StoreError(f"Page read from {self.table} failed: {exc}") from exc

    def count(self) -> int:
        try:
            cur = self._conn.execute(f"SELECT COUNT(*) FROM {self.table}")
            return int(cur.fetchone()[0])
        except sqlite3.Error as exc:
            raise StoreError(f"Count on {self.table} failed: {exc}") from exc

    def contains(self, value: str) -> bool:
        try:
            cur = self._conn.execute(
                f"SELECT 1 FROM {self.table} WHERE hash = ?", (value,)
            )
            return cur.fetchone() is not None
        except sqlite3.Error as exc:
            raise StoreError(f"Lookup in {self.table} failed: {exc}") from exc

    def drop(self) -> None:
        try:
            with self._conn:
                self._conn.execute(f"DROP TABLE IF EXISTS {self.table}")
        except sqlite3.Error as exc:
            raise StoreError(f"Dropping {self.table} failed: {exc}") from exc

    def close(self) -> None:
        self.manager.close(self.db_path)


__all__ = ["HashStore", "SQLiteManager"]
