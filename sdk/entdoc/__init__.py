"""
EntDoc - Document entities for document-oriented data stores.

This package provides a schema-cast, nested-path-addressable record model:
- Document: mutable hierarchical record (attribute and subscript access)
- DocumentArray: ordered collection of nested values
- DocumentSchema / field(): type metadata and defaults keyed by dotted path
- Model: static per-type configuration
- MemoryConnection: in-memory store driving export()/sync()

Example:
    >>> from entdoc import Document
    >>>
    >>> acme = Document({
    ...     "name": "Acme, Inc.",
    ...     "employees": {"Larry": {"email": "larry@acme.com"}},
    ... })
    >>> acme.get("employees.Larry.email")
    'larry@acme.com'
    >>> acme["employees.Moe.email"] = "moe@acme.com"
    >>> acme.employees.Moe.path_key
    'employees.Moe'

Invariants:
    - Dotted names always mean traversal into nested documents
    - Pending writes shadow the synced baseline until sync()
    - Nested documents hold their position as a string, never a parent object

Version: 1.0.0
"""

__version__ = "1.0.0"

from .collection import DocumentArray
from .config import Settings, get_settings
from .connection import (
    EntityFactory,
    MemoryConnection,
    get_connection,
    register_connection,
    reset_connections,
)
from .document import DEFAULT_HANDLERS, Document, DocumentFactory
from .entity import SEPARATOR, Entity
from .errors import (
    EntDocError,
    InvalidIncrementError,
    NotFoundError,
    PathError,
    UnimplementedAccessError,
    UnknownFieldError,
    ValidationError,
)
from .log import setup_logging
from .model import Model
from .schema import DocumentSchema, FieldDef, FieldKind, field

__all__ = [
    # Version
    "__version__",
    # Entities
    "Entity",
    "Document",
    "DocumentArray",
    "DocumentFactory",
    "DEFAULT_HANDLERS",
    "SEPARATOR",
    # Schema
    "DocumentSchema",
    "FieldDef",
    "FieldKind",
    "field",
    # Models and connections
    "Model",
    "EntityFactory",
    "MemoryConnection",
    "get_connection",
    "register_connection",
    "reset_connections",
    # Configuration
    "Settings",
    "get_settings",
    "setup_logging",
    # Errors
    "EntDocError",
    "UnimplementedAccessError",
    "InvalidIncrementError",
    "PathError",
    "ValidationError",
    "UnknownFieldError",
    "NotFoundError",
]
