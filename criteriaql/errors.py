from __future__ import annotations
from typing import Any


class CriteriaQLError(Exception):
    """Base class for all CriteriaQL errors."""


class BuilderStateError(CriteriaQLError, RuntimeError):
    """A single-assignment builder property was set twice."""


class UnknownFieldError(CriteriaQLError, ValueError):
    """A field path does not resolve against the mapped entity."""

    def __init__(self, entity: Any, field: str):
        self.entity = entity
        self.field = field
        name = getattr(entity, '__name__', None) or str(entity)
        super().__init__(f"Unknown field: {field!r} on {name}")


class UnsupportedOperationError(CriteriaQLError, NotImplementedError):
    """The active backend cannot execute the requested combination.

    Carries the backend name and the limitation so callers can surface it verbatim.
    """

    def __init__(self, backend: str, limitation: str):
        self.backend = backend
        self.limitation = limitation
        super().__init__(f"Backend '{backend}' does not support {limitation}")


class UnsupportedCriteriaError(CriteriaQLError, TypeError):
    """A criterion value has no mapping to a typed criterion for its field."""

    def __init__(self, value: Any, python_type: Any, field: str | None = None):
        self.value = value
        self.python_type = python_type
        self.field = field
        where = f" for field {field!r}" if field else ''
        super().__init__(
            f"Unsupported criteria{where}: {value!r} ({type(value).__name__}) against type {python_type!r}"
        )


class IllegalMappingError(CriteriaQLError, ValueError):
    """A result type differs from the entity but no field mapping was given."""
