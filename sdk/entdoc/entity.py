"""
Base entity for EntDoc.

An Entity is a single structured record with named fields. It keeps two
mappings:
- _data: the synced baseline (what the backing store last confirmed)
- _updated: pending and current values, shadowing _data on reads

sync() reconciles the two; export() hands both to a persistence layer.

Invariants:
    - _updated always takes precedence over _data for reads until sync()
    - After sync(), _data and _updated are equal but distinct mappings
    - Names in _internal_attrs are instance state, never fields
    - Attribute and subscript access funnel into get/set/has/remove

How to change safely:
    - New instance state must be added to _internal_attrs
    - Keep field access going through get()/set() so subclasses can hook it
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from .errors import EntDocError

logger = logging.getLogger(__name__)

SEPARATOR = "."

PLAIN_FORMATS = ("dict", "array")

_MISSING = object()


def join_path(path_key: Optional[str], name: Any) -> str:
    """Append a field name to a dotted path key."""
    return f"{path_key}{SEPARATOR}{name}" if path_key else str(name)


def to_plain(
    value: Any,
    handlers: Dict[str, Callable[[Any], Any]],
    internal: bool = False,
) -> Any:
    """Recursively unwrap entities and collections into dicts and lists.

    Args:
        value: Value to convert
        handlers: Converters keyed by type name, applied before anything else
        internal: Keep nested entities as objects instead of unwrapping them

    Returns:
        Plain nested structure
    """
    handler = handlers.get(type(value).__name__)
    if handler is not None:
        return handler(value)

    if isinstance(value, Mapping):
        return {k: to_plain(v, handlers, internal) for k, v in value.items()}

    # Entity, DocumentArray
    if callable(getattr(type(value), "to", None)):
        if internal:
            return value
        return value.to("dict", handlers=handlers, internal=internal)

    if isinstance(value, (list, tuple)):
        return [to_plain(v, handlers, internal) for v in value]

    return value


class Entity:
    """A record of named fields with a pending-write buffer.

    Fields are reachable as attributes (``entity.title``) and as subscripts
    (``entity["title"]``); both delegate to get()/set()/has()/remove(). A field
    whose name collides with a method must be reached by subscript.

    Attributes:
        exists: Whether the entity corresponds to a persisted record
        model: Model class the entity belongs to, if any
    """

    _internal_attrs = frozenset(
        {
            "_data",
            "_updated",
            "_increment",
            "_removed",
            "_exists",
            "_model",
            "_schema",
            "_relationships",
            "_embedded",
        }
    )

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        *,
        model: Any = None,
        schema: Any = None,
        exists: bool = False,
    ) -> None:
        self._data = dict(data or {})
        self._updated = dict(self._data)
        self._increment: Dict[str, Any] = {}
        self._removed: set = set()
        self._exists = exists
        self._model = model
        self._schema = schema if schema is not None else getattr(model, "schema", None)
        self._relationships: Dict[str, Any] = {}
        self._embedded = tuple(getattr(model, "embedded", ()) or ())
        self._init()

    def _init(self) -> None:
        """Hook for subclasses to finish construction."""

    @property
    def exists(self) -> bool:
        """Whether the entity corresponds to a persisted record."""
        return self._exists

    @exists.setter
    def exists(self, value: bool) -> None:
        self._exists = bool(value)

    @property
    def model(self) -> Any:
        """Model class the entity belongs to."""
        return self._model

    def schema(self, field: Optional[str] = None) -> Any:
        """Get the attached schema, or the metadata of one field."""
        if field is None or self._schema is None:
            return self._schema
        return self._schema.field_meta(field)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def get(self, name: str) -> Any:
        """Get a field value, preferring materialized relationships."""
        if name in self._relationships:
            return self._relationships[name]
        return self._updated.get(name)

    def set(self, data: Mapping[str, Any], *, init: bool = False) -> None:
        """Assign several fields at once."""
        self._updated.update(data)

    def has(self, name: str) -> bool:
        """Whether a field is present in the pending values."""
        return name in self._updated

    def remove(self, name: str) -> None:
        """Remove a field from the pending values."""
        self._updated.pop(name, None)

    def bind_relation(self, name: str, value: Any) -> None:
        """Materialize a relationship under a field name."""
        self._relationships[name] = value

    def modified(self) -> Dict[str, bool]:
        """Report which fields changed since the last sync.

        Nested entities report whether any of their own fields changed.
        """
        result: Dict[str, bool] = {}
        for name in dict.fromkeys([*self._data, *self._updated]):
            if name not in self._updated:
                result[name] = True
                continue
            value = self._updated[name]
            original = self._data.get(name, _MISSING)
            if original is value and callable(getattr(type(value), "modified", None)):
                changes = value.modified()
                result[name] = any(changes.values()) if isinstance(changes, dict) else bool(changes)
            else:
                result[name] = original is _MISSING or original != value
        return result

    # ------------------------------------------------------------------
    # Persistence lifecycle
    # ------------------------------------------------------------------

    def sync(
        self,
        id: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        *,
        materialize: bool = True,
        dematerialize: bool = False,
        **options: Any,
    ) -> None:
        """Reconcile pending values into the baseline.

        Args:
            id: Key value assigned by the store, written to the model's key field
            data: Values confirmed by the store; they win over pending values
            materialize: Mark the entity as existing
            dematerialize: Mark the entity as no longer existing
        """
        if materialize:
            self._exists = True
        if dematerialize:
            self._exists = False

        merged: Dict[str, Any] = {}
        if id is not None and self._model is not None:
            merged[self._model.key] = id
        for source in (data or {}, self._updated):
            for key, value in source.items():
                merged.setdefault(key, value)

        self._increment = {}
        self._removed = set()
        self._data = merged
        self._updated = dict(merged)

    def export(self, **options: Any) -> Dict[str, Any]:
        """Export internal state for a persistence layer.

        Fields present in the baseline but no longer pending are recorded
        as removed, which also masks them during iteration.
        """
        self._removed.update(k for k in self._data if k not in self._updated)
        return {
            "exists": self._exists,
            "data": dict(self._data),
            "update": dict(self._updated),
            "increment": dict(self._increment),
            "remove": [k for k in self._data if k in self._removed],
        }

    def to(
        self,
        format: str,
        *,
        handlers: Optional[Dict[str, Callable[[Any], Any]]] = None,
        internal: bool = False,
        **options: Any,
    ) -> Any:
        """Convert the entity to another format.

        Only plain nested dicts are supported (``"dict"``, alias ``"array"``);
        any other format returns the entity itself.
        """
        if format not in PLAIN_FORMATS:
            return self
        data = dict(self._updated)
        data.update(self._relationships)
        return {k: to_plain(v, handlers or {}, internal) for k, v in data.items()}

    def data(self, name: Optional[str] = None) -> Any:
        """Get all fields as a plain dict, or one field by name."""
        if name is None:
            return self.to("dict")
        return self.get(name)

    def save(self) -> Any:
        """Persist the entity through its model."""
        if self._model is None:
            raise EntDocError("Entity is not bound to a model and cannot be saved")
        return self._model.save(self)

    # ------------------------------------------------------------------
    # Attribute and subscript surfaces
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in self._internal_attrs:
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        attr = getattr(type(self), name, None)
        if isinstance(attr, property) and attr.fset is None:
            raise AttributeError(
                f"'{name}' is a read-only property of {type(self).__name__}; "
                f"use set({{'{name}': ...}}) to write a field with that name"
            )
        if name in self._internal_attrs or isinstance(attr, property):
            object.__setattr__(self, name, value)
        else:
            self.set({name: value})

    def __delattr__(self, name: str) -> None:
        if name in self._internal_attrs:
            object.__delattr__(self, name)
        else:
            self.remove(name)

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set({name: value})

    def __delitem__(self, name: str) -> None:
        self.remove(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __len__(self) -> int:
        return len(self._updated)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(fields={list(self._updated)!r}, exists={self._exists})"
