"""
Connections for EntDoc models.

This module provides:
- EntityFactory: protocol for building nested documents and collections
- MemoryConnection: in-memory document store for tests and local development
- A named connection registry used by Model.connection()

Entities only ever receive a connection's factory, never the connection
itself, so nested documents hold no reference to a live store.

Invariants:
    - All data is lost on process exit
    - save() of an existing record applies exported increments to the stored
      value, not to the value the entity last saw
    - Thread-safe for concurrent access

How to change safely:
    - Keep item() signature compatible with EntityFactory
    - Persistence must end with entity.sync() so deltas are cleared
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from .config import Settings
from .document import Document, DocumentFactory
from .errors import EntDocError, NotFoundError

logger = logging.getLogger(__name__)

# Global registry
_connections: Dict[str, "MemoryConnection"] = {}
_connections_lock = threading.Lock()


@runtime_checkable
class EntityFactory(Protocol):
    """Builds nested entities (``"entity"``) and ordered collections (``"array"``)."""

    def item(
        self,
        model: Any,
        data: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        ...


class MemoryConnection:
    """In-memory document store.

    Records are stored as plain dicts, one table per model name.

    Attributes:
        factory: EntityFactory handed to every entity built by this connection

    Example:
        >>> conn = MemoryConnection()
        >>> doc = conn.create(Post, {"title": "Hello"})
        >>> conn.save(doc)
        >>> conn.read(Post, doc.get("_id")).title
        'Hello'
    """

    def __init__(
        self,
        factory: Optional[EntityFactory] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.factory: EntityFactory = factory or DocumentFactory(settings)
        self._tables: Dict[str, Dict[Any, Dict[str, Any]]] = defaultdict(dict)
        self._lock = threading.Lock()

    def item(
        self,
        model: Any,
        data: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Build an entity or collection through the factory."""
        return self.factory.item(model, data, options)

    def create(self, model: Any, data: Optional[Mapping[str, Any]] = None) -> Document:
        """Build a new, not yet persisted document."""
        return self.item(model, dict(data or {}), {"class": "entity", "exists": False})

    def read(self, model: Any, id: Any) -> Optional[Document]:
        """Load a stored record as a document, or None if missing."""
        with self._lock:
            record = self._tables[model.__name__].get(id)
            if record is None:
                return None
            record = copy.deepcopy(record)
        return self.item(model, record, {"class": "entity", "exists": True})

    def count(self, model: Any) -> int:
        with self._lock:
            return len(self._tables[model.__name__])

    def save(self, entity: Document) -> bool:
        """Insert or update a document, then sync it.

        Raises:
            EntDocError: If the entity has no model
            NotFoundError: If an existing entity's record is gone
        """
        model = entity.model
        if model is None:
            raise EntDocError("Cannot save an entity without a model")

        exported = entity.export()
        record = entity.to("dict")
        key = model.key

        with self._lock:
            table = self._tables[model.__name__]
            if not exported["exists"]:
                id = record.get(key) or uuid.uuid4().hex
                record[key] = id
                table[id] = record
                logger.debug(f"Inserted {model.__name__} {id}")
            else:
                id = record.get(key)
                stored = table.get(id)
                if stored is None:
                    raise NotFoundError(
                        f"{model.__name__} {id} does not exist",
                        resource_type=model.__name__,
                        resource_id=id,
                    )
                stored = copy.deepcopy(stored)
                for name, delta in exported["increment"].items():
                    stored[name] = stored.get(name, 0) + delta
                for name, value in record.items():
                    if name not in exported["increment"]:
                        stored[name] = value
                for name in exported["remove"]:
                    stored.pop(name, None)
                table[id] = stored
                logger.debug(
                    f"Updated {model.__name__} {id} "
                    f"(increments={sorted(exported['increment'])}, removed={exported['remove']})"
                )

        entity.sync(id)
        return True

    def delete(self, entity: Document) -> bool:
        """Delete a document's record and mark it as no longer existing."""
        model = entity.model
        if model is None:
            raise EntDocError("Cannot delete an entity without a model")

        id = entity.get(model.key)
        with self._lock:
            deleted = self._tables[model.__name__].pop(id, None) is not None
        entity.sync(None, {}, materialize=False, dematerialize=True)
        return deleted

    def clear(self) -> None:
        """Drop all stored records (for testing)."""
        with self._lock:
            self._tables.clear()


def get_connection(name: str = "default") -> MemoryConnection:
    """Get a named connection, creating an in-memory one on first use."""
    with _connections_lock:
        if name not in _connections:
            _connections[name] = MemoryConnection()
            logger.debug(f"Created in-memory connection '{name}'")
        return _connections[name]


def register_connection(name: str, connection: MemoryConnection) -> None:
    """Register a connection under a name, replacing any previous one."""
    with _connections_lock:
        _connections[name] = connection


def reset_connections() -> None:
    """Reset the connection registry (for testing only)."""
    with _connections_lock:
        _connections.clear()
