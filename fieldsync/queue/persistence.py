"""Durable key-value backends for the queue store.

The queue store only needs whole-value reads and writes under a fixed
namespace, so the backends expose exactly that.
"""

from __future__ import annotations

import contextlib
import sqlite3
import threading
import time
from pathlib import Path
from typing import Protocol

from fieldsync.exceptions import PersistenceError
from fieldsync.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Namespaced string key-value storage."""

    def get(self, namespace: str, key: str) -> str | None: ...

    def put(self, namespace: str, key: str, value: str) -> None: ...

    def delete(self, namespace: str, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local backend. Survives store re-creation, not process exit."""

    def __init__(self) -> None:
        self._values: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> str | None:
        with self._lock:
            return self._values.get((namespace, key))

    def put(self, namespace: str, key: str, value: str) -> None:
        with self._lock:
            self._values[(namespace, key)] = value

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._values.pop((namespace, key), None)


class SqliteKeyValueStore:
    """
    SQLite key-value backend.

    - creates its table if missing
    - opens one connection per call, so it is safe to use from worker threads
    - WAL journal so a reader never blocks the writer persisting a mutation
    """

    def __init__(self, database_path: str | Path) -> None:
        self._database_path = Path(database_path)
        self._database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("Key-value store ready at %s", self._database_path)

    def _connect(self) -> sqlite3.Connection:
        try:
            connection = sqlite3.connect(str(self._database_path), timeout=30.0)
        except sqlite3.Error as error:
            raise PersistenceError(
                f"Cannot open key-value store: {error}",
                context={"path": str(self._database_path)},
            ) from error
        with contextlib.suppress(sqlite3.Error):
            connection.execute("PRAGMA journal_mode=WAL")
        return connection

    def _ensure_schema(self) -> None:
        connection = self._connect()
        try:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            connection.commit()
        except sqlite3.Error as error:
            raise PersistenceError(
                f"Cannot create key-value table: {error}",
                context={"path": str(self._database_path)},
            ) from error
        finally:
            connection.close()

    def get(self, namespace: str, key: str) -> str | None:
        connection = self._connect()
        try:
            row = connection.execute(
                "SELECT value FROM kv_entries WHERE namespace = ? AND key = ?",
                (namespace, key),
            ).fetchone()
        except sqlite3.Error as error:
            raise PersistenceError(
                f"Failed to read {namespace}/{key}: {error}",
                context={"namespace": namespace, "key": key},
            ) from error
        finally:
            connection.close()
        return str(row[0]) if row else None

    def put(self, namespace: str, key: str, value: str) -> None:
        connection = self._connect()
        try:
            connection.execute(
                """
                INSERT INTO kv_entries(namespace, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key)
                DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (namespace, key, value, time.time()),
            )
            connection.commit()
        except sqlite3.Error as error:
            raise PersistenceError(
                f"Failed to write {namespace}/{key}: {error}",
                context={"namespace": namespace, "key": key},
            ) from error
        finally:
            connection.close()

    def delete(self, namespace: str, key: str) -> None:
        connection = self._connect()
        try:
            connection.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND key = ?",
                (namespace, key),
            )
            connection.commit()
        except sqlite3.Error as error:
            raise PersistenceError(
                f"Failed to delete {namespace}/{key}: {error}",
                context={"namespace": namespace, "key": key},
            ) from error
        finally:
            connection.close()
