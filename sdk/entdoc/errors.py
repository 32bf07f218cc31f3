"""
Error types for EntDoc.

This module defines all exception types raised by the entity model:
- EntDocError: Base exception
- UnimplementedAccessError: Embedded relationship read before materialization
- InvalidIncrementError: Increment of a non-numeric field
- PathError: Nested assignment blocked by a scalar (strict mode only)
- ValidationError: Value cannot be cast to its declared kind
- UnknownFieldError: Undeclared field written to a locked schema
- NotFoundError: Record missing from a connection

Invariants:
    - All errors inherit from EntDocError
    - Errors include context for debugging
    - Soft path failures return None and never raise one of these
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class EntDocError(Exception):
    """Base exception for all EntDoc errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ENTDOC_ERROR"
        self.details = details or {}


class UnimplementedAccessError(EntDocError):
    """Embedded relationship read through plain field access.

    Embedded relationships must be materialized with
    ``Entity.bind_relation()`` before they can be read by name.
    """

    def __init__(self, field_name: str) -> None:
        super().__init__(
            f"Access to embedded relationship '{field_name}' is not implemented; "
            "bind the relationship before reading it",
            code="UNIMPLEMENTED_ACCESS",
            details={"field_name": field_name},
        )
        self.field_name = field_name


class InvalidIncrementError(EntDocError):
    """Field cannot be incremented.

    Raised when the current value of the field is not numeric.
    """

    def __init__(self, field_name: str, value: Any = None) -> None:
        super().__init__(
            f"Field '{field_name}' cannot be incremented",
            code="INVALID_INCREMENT",
            details={"field_name": field_name, "value": repr(value)},
        )
        self.field_name = field_name
        self.value = value


class PathError(EntDocError):
    """Nested assignment could not reach its target.

    Only raised when ``Settings.strict_paths`` is enabled; otherwise the
    assignment is dropped.
    """

    def __init__(self, path: str, segment: Optional[str] = None) -> None:
        msg = f"Cannot assign '{path}'"
        if segment:
            msg += f": segment '{segment}' does not hold a document"
        super().__init__(
            msg,
            code="PATH_BLOCKED",
            details={"path": path, "segment": segment},
        )
        self.path = path
        self.segment = segment


class ValidationError(EntDocError):
    """Value validation failed.

    Raised when:
    - A value cannot be cast to the declared field kind
    - A field definition is inconsistent
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class UnknownFieldError(EntDocError):
    """Unknown field written to a locked schema.

    Includes suggestions for similar field names.

    Attributes:
        field_name: The unknown field path
        suggestions: Similar declared field paths
    """

    def __init__(
        self,
        field_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' in locked schema"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_FIELD",
            details={"field_name": field_name, "suggestions": suggestions},
        )
        self.field_name = field_name
        self.suggestions = suggestions


class NotFoundError(EntDocError):
    """Record not found in a connection."""

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Any,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
