"""
Keyed record storage used by the entity mapping adapter.

``Repository`` is the small contract the mapping layer depends on:
look a record up by its unique key and create-or-update it.
``SqliteRepository`` implements it on top of the ``entities`` table
created by :func:`restmap.core.db.init_db`; the field set of each
record is stored as JSON text.

Create one repository per entity type and process and pass it to the
components that need it.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from restmap.core.db import get_connection, get_cursor, get_database_path, init_db


logger = logging.getLogger(__name__)


class Repository(ABC):
    """Minimal contract for a store of records keyed by a unique value."""

    @abstractmethod
    def find_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the fields stored under ``key`` or ``None``."""

    @abstractmethod
    def upsert(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Store ``fields`` under ``key``, replacing any previous fields."""

    @abstractmethod
    def all(self) -> List[Dict[str, Any]]:
        """Return every stored record in insertion order."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the record stored under ``key``; return whether one existed."""


class SqliteRepository(Repository):
    """Repository for one entity type backed by SQLite.

    A single connection is kept open for the lifetime of the repository
    and guarded by a lock, since completions that persist records run on
    transport worker threads.  ``":memory:"`` is accepted as a path.
    """

    def __init__(self, entity: str, database_path: Optional[str] = None) -> None:
        self.entity = entity
        self.database_path = get_database_path(database_path)
        self._conn = get_connection(self.database_path)
        self._lock = threading.Lock()
        with self._lock:
            init_db(self._conn)

    def find_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._conn.execute(
                "SELECT fields FROM entities WHERE entity = ? AND unique_key = ?",
                (self.entity, key),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["fields"])

    def upsert(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        serialized = json.dumps(fields)
        with self._lock, get_cursor(self._conn) as cursor:
            cursor.execute(
                "INSERT INTO entities (entity, unique_key, fields) VALUES (?, ?, ?)"
                " ON CONFLICT(entity, unique_key) DO UPDATE SET fields = excluded.fields,"
                " updated_at = CURRENT_TIMESTAMP",
                (self.entity, key, serialized),
            )
        logger.info("Stored %s %s", self.entity, key)
        return dict(fields)

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT fields FROM entities WHERE entity = ? ORDER BY id ASC",
                (self.entity,),
            ).fetchall()
        return [json.loads(row["fields"]) for row in rows]

    def delete(self, key: str) -> bool:
        with self._lock, get_cursor(self._conn) as cursor:
            cursor.execute(
                "DELETE FROM entities WHERE entity = ? AND unique_key = ?",
                (self.entity, key),
            )
            affected = cursor.rowcount
        if affected:
            logger.info("Deleted %s %s", self.entity, key)
        return affected > 0

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS total FROM entities WHERE entity = ?",
                (self.entity,),
            ).fetchone()
        return row["total"]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
