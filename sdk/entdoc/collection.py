"""
Ordered sub-collections for EntDoc documents.

A DocumentArray holds the values of a repeated field: nested documents or
scalars, in order. It shares the path key of the field that owns it, so every
element is cast against the same schema path.

Invariants:
    - Elements written after construction go through the schema like the
      initial ones
    - Element documents carry the array's path key, not an indexed one
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .entity import PLAIN_FORMATS, to_plain

logger = logging.getLogger(__name__)


class DocumentArray:
    """Ordered collection of document values.

    Attributes:
        path_key: Dotted path of the owning field
        exists: Whether the collection was loaded from a store
        factory: Entity factory used by the schema to wrap mappings

    Example:
        >>> tags = DocumentArray(["a", "b"])
        >>> tags.append("c")
        >>> tags.to("dict")
        ['a', 'b', 'c']
    """

    def __init__(
        self,
        data: Optional[Iterable[Any]] = None,
        *,
        model: Any = None,
        schema: Any = None,
        path_key: Optional[str] = None,
        exists: bool = False,
        factory: Any = None,
    ) -> None:
        self._model = model
        self._schema = schema
        self._path_key = path_key
        self._exists = exists
        self.factory = factory
        self._data: List[Any] = [self._cast(value) for value in data or ()]
        self._original: List[Any] = list(self._data)

    @property
    def path_key(self) -> Optional[str]:
        return self._path_key

    @path_key.setter
    def path_key(self, value: Optional[str]) -> None:
        self._path_key = value

    @property
    def exists(self) -> bool:
        return self._exists

    @property
    def model(self) -> Any:
        return self._model

    def _cast(self, value: Any) -> Any:
        if self._schema is None:
            return value
        return self._schema.cast_value(
            self,
            self._path_key or "",
            value,
            model=self._model,
            element=True,
            exists=self._exists,
        )

    @staticmethod
    def _index(index: Any) -> int:
        if isinstance(index, str) and index.isdigit():
            return int(index)
        if isinstance(index, int) and not isinstance(index, bool):
            return index
        raise KeyError(index)

    def has(self, index: Any) -> bool:
        """Whether a non-negative index (int or digit string) is in range."""
        try:
            idx = self._index(index)
        except KeyError:
            return False
        return 0 <= idx < len(self._data)

    def append(self, value: Any) -> None:
        self._data.append(self._cast(value))

    def __getitem__(self, index: Any) -> Any:
        return self._data[self._index(index)]

    def __setitem__(self, index: Any, value: Any) -> None:
        idx = self._index(index)
        if idx == len(self._data):
            self._data.append(self._cast(value))
        else:
            self._data[idx] = self._cast(value)

    def __delitem__(self, index: Any) -> None:
        del self._data[self._index(index)]

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __contains__(self, value: object) -> bool:
        return value in self._data

    def __bool__(self) -> bool:
        return True

    def modified(self) -> bool:
        """Whether elements were added, removed, replaced or changed inside."""
        if len(self._data) != len(self._original):
            return True
        for current, original in zip(self._data, self._original):
            if current is not original:
                if current != original:
                    return True
                continue
            if callable(getattr(type(current), "modified", None)):
                changes = current.modified()
                if isinstance(changes, dict):
                    changes = any(changes.values())
                if changes:
                    return True
        return False

    def sync(
        self,
        id: Any = None,
        data: Any = None,
        *,
        materialize: bool = True,
        dematerialize: bool = False,
        **options: Any,
    ) -> None:
        """Sync nested elements, then take the current elements as baseline."""
        nested_data = data if isinstance(data, (list, tuple)) else []
        for i, value in enumerate(self._data):
            if callable(getattr(type(value), "sync", None)):
                nested = nested_data[i] if i < len(nested_data) and nested_data[i] is not None else {}
                value.sync(
                    None,
                    nested,
                    materialize=materialize,
                    dematerialize=dematerialize,
                    **options,
                )
        if materialize:
            self._exists = True
        if dematerialize:
            self._exists = False
        self._original = list(self._data)

    def export(self, **options: Any) -> Dict[str, Any]:
        return {
            "exists": self._exists,
            "key": self._path_key,
            "data": list(self._original),
            "update": list(self._data),
        }

    def to(
        self,
        format: str,
        *,
        handlers: Optional[Dict[str, Callable[[Any], Any]]] = None,
        internal: bool = False,
        **options: Any,
    ) -> Any:
        """Convert to a plain list; other formats return the collection."""
        if format not in PLAIN_FORMATS:
            return self
        return [to_plain(value, handlers or {}, internal) for value in self._data]

    def __repr__(self) -> str:
        return f"DocumentArray(path_key={self._path_key!r}, size={len(self._data)})"
