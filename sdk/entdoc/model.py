"""
Model base class for EntDoc.

A Model subclass is static per-document-type configuration: the key field,
the schema, locking, embedded relationships and which named connection
persists it. Models are never instantiated; documents carry a reference to
their model class.

Example:
    >>> class Company(Model):
    ...     schema = DocumentSchema((field("name", "str"), field("founded", "int")))
    ...
    >>> acme = Company.create({"name": "Acme, Inc.", "founded": "1949"})
    >>> acme.founded
    1949
    >>> Company.save(acme)
    True
    >>> Company.find(acme.get("_id")).name
    'Acme, Inc.'
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from .connection import MemoryConnection, get_connection
from .document import Document
from .schema import DocumentSchema


class Model:
    """Per-type document configuration.

    Attributes:
        key: Name of the key field
        locked: Reject writes to fields the schema does not declare
        schema: Field definitions used to cast writes
        embedded: Names of embedded relationships, readable only once bound
        connection_name: Registry name of the connection that stores the model
    """

    key: ClassVar[str] = "_id"
    locked: ClassVar[bool] = False
    schema: ClassVar[Optional[DocumentSchema]] = None
    embedded: ClassVar[Tuple[str, ...]] = ()
    connection_name: ClassVar[str] = "default"

    @classmethod
    def meta(cls) -> Dict[str, Any]:
        """Get the model configuration as a dict."""
        return {
            "name": cls.__name__,
            "key": cls.key,
            "locked": cls.locked,
            "embedded": list(cls.embedded),
            "connection": cls.connection_name,
        }

    @classmethod
    def connection(cls) -> MemoryConnection:
        return get_connection(cls.connection_name)

    @classmethod
    def create(cls, data: Optional[Mapping[str, Any]] = None) -> Document:
        """Build a new document of this model."""
        return cls.connection().create(cls, data)

    @classmethod
    def find(cls, id: Any) -> Optional[Document]:
        """Load a document by key, or None if it does not exist."""
        return cls.connection().read(cls, id)

    @classmethod
    def save(cls, entity: Document, data: Optional[Mapping[str, Any]] = None) -> bool:
        """Optionally assign fields, then persist the document."""
        if data:
            entity.set(data)
        return cls.connection().save(entity)

    @classmethod
    def delete(cls, entity: Document) -> bool:
        return cls.connection().delete(entity)

    @classmethod
    def key_value(cls, values: Any) -> Any:
        """Get the key value from a document or mapping."""
        if isinstance(values, Document):
            return values.get(cls.key)
        if isinstance(values, Mapping):
            return values.get(cls.key)
        return None
