"""
Schema types for EntDoc.

This module provides the type metadata that drives field casting:
- FieldKind: Supported value kinds
- FieldDef: Individual field definition
- DocumentSchema: Field definitions keyed by full dotted path

Fields are addressed by their full path inside the root document, so the
email of every element of an ``employees`` array is declared once as
``employees.email``.

Invariants:
    - Field paths are unique within a schema
    - cast() never re-wraps an entity or collection it is given
    - Mappings always become nested documents; lists always become arrays

Example:
    >>> Company = DocumentSchema(
    ...     (
    ...         field("name", "str", required=True),
    ...         field("founded", "int"),
    ...         field("tags", "str", array=True),
    ...         field("employees", "object"),
    ...     ),
    ... )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from difflib import get_close_matches
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .collection import DocumentArray
from .entity import Entity, join_path
from .errors import EntDocError, UnknownFieldError, ValidationError

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """Supported field types."""

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"
    JSON = "json"
    OBJECT = "object"
    ID = "id"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


def _cast_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"unrecognized boolean string {value!r}")
    return bool(value)


def _cast_timestamp(value: Any) -> datetime:
    """Cast to an aware datetime; naive values are taken as UTC."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise TypeError(f"unsupported timestamp value {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _identity(value: Any) -> Any:
    return value


_CASTERS: Dict[FieldKind, Callable[[Any], Any]] = {
    FieldKind.STRING: str,
    FieldKind.INTEGER: int,
    FieldKind.FLOAT: float,
    FieldKind.BOOLEAN: _cast_bool,
    FieldKind.TIMESTAMP: _cast_timestamp,
    FieldKind.JSON: _identity,
    FieldKind.OBJECT: _identity,
    FieldKind.ID: str,
}


@dataclass(frozen=True)
class FieldDef:
    """Field definition within a document schema.

    Attributes:
        name: Full dotted path of the field
        kind: Value kind
        default: Default value, materialized on first read
        array: Whether the field holds an ordered collection of values
        required: Whether the field is required
        description: Documentation
    """

    name: str
    kind: FieldKind = FieldKind.JSON
    default: Any = None
    array: bool = False
    required: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if any(not segment for segment in self.name.split(".")):
            raise ValueError(f"Field path '{self.name}' has an empty segment")

    def cast(self, value: Any) -> Any:
        """Cast a scalar value to this field's kind.

        Raises:
            ValidationError: If the value cannot be converted
        """
        if value is None:
            return None
        try:
            return _CASTERS[self.kind](value)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Field '{self.name}' cannot cast {value!r} to {self.kind.value}",
                field_name=self.name,
                errors=[str(e)],
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
        }
        if self.default is not None:
            result["default"] = self.default
        if self.array:
            result["array"] = True
        if self.required:
            result["required"] = True
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldDef:
        """Create from dictionary."""
        return field(
            data["name"],
            data.get("kind", "json"),
            default=data.get("default"),
            array=data.get("array", False),
            required=data.get("required", False),
            description=data.get("description", ""),
        )


def field(
    name: str,
    kind: Union[str, FieldKind] = FieldKind.JSON,
    *,
    default: Any = None,
    array: bool = False,
    required: bool = False,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> title = field("title", "str", required=True)
        >>> tags = field("tags", "str", array=True)
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        default=default,
        array=array,
        required=required,
        description=description,
    )


def _factory_of(owner: Any) -> Any:
    factory = getattr(owner, "factory", None)
    if factory is None:
        raise EntDocError(
            f"{type(owner).__name__} has no entity factory to wrap nested values",
            code="NO_FACTORY",
        )
    return factory


class DocumentSchema:
    """Field definitions for a document type, keyed by dotted path.

    Accepts FieldDef instances, or a mapping of path to kind string or to a
    FieldDef-style dict.

    Args:
        fields: Field definitions
        locked: Reject writes to undeclared paths
    """

    def __init__(
        self,
        fields: Union[Iterable[FieldDef], Mapping[str, Any]] = (),
        *,
        locked: bool = False,
    ) -> None:
        self.locked = locked
        self._fields: Dict[str, FieldDef] = {}

        if isinstance(fields, Mapping):
            defs: List[FieldDef] = []
            for name, definition in fields.items():
                if isinstance(definition, FieldDef):
                    defs.append(definition)
                elif isinstance(definition, Mapping):
                    defs.append(FieldDef.from_dict({"name": name, **definition}))
                else:
                    defs.append(field(name, definition))
        else:
            defs = list(fields)

        for f in defs:
            if f.name in self._fields:
                raise ValueError(f"Duplicate field '{f.name}' in schema")
            self._fields[f.name] = f

    @property
    def fields(self) -> Dict[str, FieldDef]:
        """Field definitions by path."""
        return dict(self._fields)

    def field_meta(self, name: str) -> Optional[FieldDef]:
        """Get the definition of a field by its full path."""
        return self._fields.get(name)

    def names(self) -> List[str]:
        """Get the declared field paths."""
        return list(self._fields)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "locked": self.locked,
            "fields": [f.to_dict() for f in self._fields.values()],
        }

    def cast(
        self,
        owner: Any,
        data: Mapping[str, Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Cast a batch of raw field values written to ``owner``.

        Args:
            owner: Entity receiving the values; supplies the entity factory
            data: Raw values keyed by field name (relative to the owner)
            context: ``path_key`` and ``model`` of the owner, optionally ``exists``

        Returns:
            Typed values keyed by field name
        """
        context = context or {}
        path_key = context.get("path_key")
        model = context.get("model")
        exists = context.get("exists", False)
        return {
            key: self.cast_value(owner, join_path(path_key, key), value, model=model, exists=exists)
            for key, value in data.items()
        }

    def cast_value(
        self,
        owner: Any,
        path: str,
        value: Any,
        *,
        model: Any = None,
        element: bool = False,
        exists: bool = False,
    ) -> Any:
        """Cast one value at a full path.

        Args:
            owner: Entity or collection receiving the value
            path: Full dotted path of the field
            value: Raw value
            model: Model class for nested items
            element: The value is one element of an array field
            exists: Whether nested items come from a store

        Raises:
            UnknownFieldError: If the schema is locked and the path undeclared
            ValidationError: If a scalar cannot be cast
        """
        if isinstance(value, (Entity, DocumentArray)):
            return value

        meta = self._fields.get(path)
        if meta is None and not element and self._is_locked(model):
            suggestions = get_close_matches(path, list(self._fields), n=3)
            raise UnknownFieldError(path, suggestions)

        if not element and (
            (meta is not None and meta.array) or isinstance(value, (list, tuple))
        ):
            if value is None:
                items: List[Any] = []
            elif isinstance(value, (list, tuple)):
                items = list(value)
            else:
                items = [value]
            logger.debug(f"Wrapping {len(items)} values at '{path}' into an array")
            return _factory_of(owner).item(
                model,
                items,
                {
                    "class": "array",
                    "schema": self,
                    "path_key": path,
                    "model": model,
                    "exists": exists,
                },
            )

        if isinstance(value, Mapping):
            return _factory_of(owner).item(
                model,
                dict(value),
                {
                    "class": "entity",
                    "schema": self,
                    "path_key": path,
                    "model": model,
                    "exists": exists,
                },
            )

        if meta is None or value is None:
            return value
        return meta.cast(value)

    def _is_locked(self, model: Any) -> bool:
        return self.locked or bool(getattr(model, "locked", False))

    def __repr__(self) -> str:
        return f"DocumentSchema(fields={self.names()!r}, locked={self.locked})"
