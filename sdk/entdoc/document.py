"""
Document entities for EntDoc.

A Document is an Entity optimized for document-oriented stores. Its fields may
hold scalars, nested Documents or DocumentArrays, and dotted names address
fields inside nested documents. Given:

    {
        "_id": 12345,
        "name": "Acme, Inc.",
        "employees": {
            "Larry": {"email": "larry@acme.com"},
            "Curly": {"email": "curly@acme.com"},
        },
    }

``doc.name`` is ``"Acme, Inc."``, ``doc.employees`` is a nested Document and
``doc.get("employees.Larry.email")`` is ``"larry@acme.com"``.

Nested documents and collections are built through an injected EntityFactory,
so a document never holds a reference to a live connection. Children know
their position only through a string path key.

Invariants:
    - A name containing "." always means traversal, never a literal field
    - Every nested Document in _updated has path_key == parent path + "." + name
    - Missing segments during nested reads return None and never raise
    - The iteration cursor walks the field names of _data captured by rewind()
      and sync(); reads through next() go through get()

How to change safely:
    - Keep get()/set() as the only implementations behind both access surfaces
    - Changes to set() ordering affect increment bookkeeping and casting
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from .collection import DocumentArray
from .config import Settings, get_settings
from .entity import SEPARATOR, Entity, join_path
from .errors import EntDocError, InvalidIncrementError, PathError, UnimplementedAccessError
from .schema import DocumentSchema

logger = logging.getLogger(__name__)

_EMPTY_SCHEMA = DocumentSchema()


def _epoch(value: datetime) -> int:
    """Seconds since the epoch; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


DEFAULT_HANDLERS: Dict[str, Callable[[Any], Any]] = {
    "ObjectId": str,
    "UUID": str,
    "datetime": _epoch,
}


def _numeric(value: Any) -> Optional[Any]:
    """Return value as a number if it is numeric, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _child(container: Any, key: str) -> Tuple[bool, Any]:
    """Look up one path segment; a None value counts as missing."""
    if isinstance(container, Entity):
        if not container.has(key):
            return False, None
        value = container.get(key)
    elif isinstance(container, DocumentArray):
        if not container.has(key):
            return False, None
        value = container[key]
    elif isinstance(container, Mapping):
        value = container.get(key)
    elif isinstance(container, (list, tuple)):
        if not key.isdigit() or int(key) >= len(container):
            return False, None
        value = container[int(key)]
    else:
        return False, None
    return value is not None, value


def _traversable(value: Any) -> bool:
    return isinstance(value, (Entity, DocumentArray, Mapping, list, tuple))


class Document(Entity):
    """Hierarchical record of named fields.

    Args:
        data: Raw field values
        model: Model class the document belongs to
        schema: Schema used to cast writes (defaults to the model's)
        path_key: Dotted position inside an ancestor document
        exists: Whether the document comes from a store
        factory: EntityFactory used to build nested documents and arrays
        settings: Behaviour settings (defaults to the factory's)

    Example:
        >>> doc = Document({"title": "Lorem"})
        >>> doc.title
        'Lorem'
        >>> doc["author.name"] = "Ipsum"
        >>> doc.author.name
        'Ipsum'
    """

    _internal_attrs = Entity._internal_attrs | frozenset(
        {"_path_key", "_factory", "_settings", "_cursor", "_valid", "_keys"}
    )

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        *,
        model: Any = None,
        schema: Optional[DocumentSchema] = None,
        path_key: Optional[str] = None,
        exists: bool = False,
        factory: Any = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._path_key = path_key
        self._factory = factory
        self._settings = settings
        self._cursor = 0
        self._valid = False
        self._keys: Tuple[Any, ...] = ()
        super().__init__(data, model=model, schema=schema, exists=exists)

    def _init(self) -> None:
        data = self._data
        self._data = {}
        self._updated = {}
        self.set(data, init=True)
        self.sync(None, {}, materialize=False)

    @property
    def path_key(self) -> Optional[str]:
        """Dotted position inside the ancestor document."""
        return self._path_key

    @path_key.setter
    def path_key(self, value: Optional[str]) -> None:
        self._path_key = value

    @property
    def factory(self) -> Any:
        """EntityFactory for nested documents and arrays."""
        if self._factory is None:
            self._factory = DocumentFactory(self._settings)
        return self._factory

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = getattr(self._factory, "settings", None) or get_settings()
        return self._settings

    def schema(self, field: Optional[str] = None) -> Any:
        schema = self._schema if self._schema is not None else _EMPTY_SCHEMA
        if field is None:
            return schema
        return schema.field_meta(field)

    def _child_path(self, name: str) -> str:
        return join_path(self._path_key, name)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def get(self, name: str) -> Any:
        """Get a field value.

        Dotted names read nested fields. Missing fields fall back to the
        schema default, or to an empty DocumentArray for array fields.

        Raises:
            UnimplementedAccessError: If the field is an embedded relationship
                that has not been bound
        """
        if isinstance(name, str) and SEPARATOR in name:
            return self._get_nested(name)

        if name in self._embedded and name not in self._relationships:
            raise UnimplementedAccessError(name)

        result = super().get(name)
        if result is not None or name in self._updated:
            return result

        path = self._child_path(name)
        meta = self.schema().field_meta(path)
        if meta is None:
            return None

        if meta.default is not None:
            self.set({name: copy.deepcopy(meta.default)})
            return self._updated[name]

        if meta.array:
            logger.debug(f"Materializing empty array at '{path}'")
            self._updated[name] = self.factory.item(
                self._model,
                [],
                {
                    "class": "array",
                    "schema": self.schema(),
                    "path_key": path,
                    "model": self._model,
                },
            )
            return self._updated[name]
        return None

    def _get_nested(self, name: str) -> Any:
        current: Any = self
        path = name.split(SEPARATOR)
        last = len(path) - 1

        for i, key in enumerate(path):
            found, current = _child(current, key)
            if not found:
                return None
            if i < last and not _traversable(current):
                return None
        return current

    def set(self, data: Mapping[str, Any], *, init: bool = False) -> None:
        """Assign several fields at once.

        Dotted keys are assigned inside nested documents, creating them as
        needed. Numeric segments address existing array elements. Every
        written key drops its pending increment. The rest of
        the batch is cast through the schema and merged over the pending
        values.

        Args:
            data: Field values keyed by name
            init: The values come from the store the document was loaded from
        """
        data = dict(data)

        for key in list(data):
            if isinstance(key, str) and SEPARATOR in key:
                self._set_nested(key, data.pop(key))
            self._increment.pop(key, None)

        if data:
            data = self.schema().cast(
                self,
                data,
                {
                    "path_key": self._path_key,
                    "model": self._model,
                    "exists": init and self._exists,
                },
            )

        for key, value in data.items():
            if isinstance(value, Document):
                value._exists = init and self._exists
                value._path_key = self._child_path(key)
                value._model = value._model or self._model
                if value._schema is None:
                    value._schema = self._schema
        self._updated.update(data)

    def _set_nested(self, name: str, value: Any) -> None:
        current: Any = self
        path = name.split(SEPARATOR)
        reached = None

        for key in path[:-1]:
            if isinstance(current, DocumentArray):
                # Array elements are never created implicitly.
                if not current.has(key):
                    current = None
                    break
                current = current[key]
            elif isinstance(current, Document):
                next_value = current.get(key) if current.has(key) else None
                if next_value is None:
                    current.set(
                        {key: self.factory.item(self._model, {}, {"class": "entity", "model": self._model})}
                    )
                    next_value = current.get(key)
                current = next_value
            else:
                break
            reached = key

        last = path[-1]
        if isinstance(current, Document):
            current.set({last: value})
            return
        if isinstance(current, DocumentArray) and (current.has(last) or last == str(len(current))):
            current[last] = value
            return

        if self.settings.strict_paths:
            raise PathError(name, reached)
        logger.debug(f"Dropped assignment to '{name}': '{reached}' does not hold a document")

    def has(self, name: str) -> bool:
        return name in self._updated

    def remove(self, name: str) -> None:
        self._updated.pop(name, None)

    # ------------------------------------------------------------------
    # Persistence lifecycle
    # ------------------------------------------------------------------

    def sync(
        self,
        id: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        *,
        recursive: bool = True,
        **options: Any,
    ) -> None:
        """Sync the document, and by default every nested entity first.

        Args:
            id: Key value assigned by the store
            data: Values confirmed by the store; nested mappings go to the
                matching nested entities
            recursive: Sync nested entities as well
            **options: ``materialize`` / ``dematerialize`` flags
        """
        data = dict(data or {})
        if recursive:
            for key, value in self._updated.items():
                if callable(getattr(type(value), "sync", None)):
                    nested = data.get(key)
                    if isinstance(nested, (Mapping, list, tuple)):
                        data.pop(key)
                    value.sync(None, nested or {}, recursive=recursive, **options)
        super().sync(id, data, **options)
        self._keys = tuple(self._data)

    def export(self, **options: Any) -> Dict[str, Any]:
        """Export state for a persistence layer, with this document's path key."""
        for key, value in self._updated.items():
            if isinstance(value, Document):
                value._path_key = self._child_path(key)
        result = super().export(**options)
        result["key"] = self._path_key
        return result

    def to(
        self,
        format: str,
        *,
        handlers: Optional[Dict[str, Callable[[Any], Any]]] = None,
        **options: Any,
    ) -> Any:
        """Convert to plain nested dicts and lists.

        Args:
            format: ``"dict"`` (or ``"array"``); other formats return self
            handlers: Converters keyed by type name, merged over the defaults
                for ``ObjectId``, ``UUID`` and ``datetime``. Passing handlers
                does not replace the whole default set; a default is only
                dropped by supplying another converter for its type name.
        """
        options["internal"] = False
        return super().to(format, handlers={**DEFAULT_HANDLERS, **(handlers or {})}, **options)

    # ------------------------------------------------------------------
    # Iteration protocol
    # ------------------------------------------------------------------

    def _data_key(self) -> Any:
        return self._keys[self._cursor] if self._cursor < len(self._keys) else None

    def rewind(self) -> Any:
        """Reset the cursor to the first field and snapshot the field names."""
        self._cursor = 0
        self._keys = tuple(self._data)
        self._valid = len(self._updated) > 0
        return next(iter(self._updated.values()), None)

    def valid(self) -> bool:
        return self._valid

    def current(self) -> Any:
        key = self._data_key()
        if key is None or key in self._removed:
            return None
        return self._data[key]

    def key(self) -> Any:
        key = self._data_key()
        return None if key in self._removed else key

    def next(self) -> Any:
        """Advance the cursor, skipping removed fields.

        Validity follows the key under the cursor, so a field holding a
        falsy value does not end the iteration.

        Returns:
            The resolved value of the next field, or None at the end
        """
        self._cursor += 1
        cur = self._data_key()
        self._valid = cur is not None

        if cur in self._removed:
            return self.next()
        return self.get(cur) if self._valid else None

    def __iter__(self) -> Iterator[str]:
        self.rewind()
        while self.valid():
            key = self.key()
            if key is not None:
                yield key
            self.next()

    def items(self) -> Iterator[Tuple[str, Any]]:
        """Iterate over (name, baseline value) pairs."""
        self.rewind()
        while self.valid():
            key = self.key()
            if key is not None:
                yield key, self.current()
            self.next()

    # ------------------------------------------------------------------
    # Increments
    # ------------------------------------------------------------------

    def increment(self, field: str, value: Any = 1) -> Any:
        """Increment a numeric field by an arbitrary value.

        The delta is recorded separately so a store can apply it atomically.

        Returns:
            The field value after the increment

        Raises:
            InvalidIncrementError: If the field's current value is not numeric
        """
        current = _numeric(self._updated.get(field))

        if not self.settings.validate_increments:
            self._increment[field] = self._increment.get(field, 0) + value

        if current is None:
            logger.warning(f"Rejected increment of non-numeric field '{field}'")
            raise InvalidIncrementError(field, self._updated.get(field))

        if self.settings.validate_increments:
            self._increment[field] = self._increment.get(field, 0) + value

        self._updated[field] = current + value
        return self._updated[field]


class DocumentFactory:
    """Default EntityFactory: builds documents and arrays.

    Everything it builds receives the factory itself and its settings, never
    a connection.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def item(
        self,
        model: Any,
        data: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Build a nested entity or collection.

        Args:
            model: Model class of the item
            data: Initial data (mapping for entities, sequence for arrays)
            options: ``class`` ("entity" or "array"), ``schema``, ``path_key``,
                ``model``, ``exists``

        Raises:
            EntDocError: If ``class`` is unknown
        """
        options = dict(options or {})
        item_class = options.get("class", "entity")
        model = options.get("model", model)
        schema = options.get("schema")
        if schema is None:
            schema = getattr(model, "schema", None)

        if item_class == "entity":
            return Document(
                data or {},
                model=model,
                schema=schema,
                path_key=options.get("path_key"),
                exists=options.get("exists", False),
                factory=self,
                settings=self.settings,
            )
        if item_class == "array":
            return DocumentArray(
                data or [],
                model=model,
                schema=schema,
                path_key=options.get("path_key"),
                exists=options.get("exists", False),
                factory=self,
            )
        raise EntDocError(f"Unknown item class '{item_class}'", code="UNKNOWN_ITEM_CLASS")
