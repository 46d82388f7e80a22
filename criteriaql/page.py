"""Immutable page description and its builder.

A ``Page`` describes offset, limit, ordering and two groups of criteria:
required criteria (all must match) and optional criteria (at least one must
match). Instances double as cache keys, so equality and the canonical
``str()`` form are stable across equal inputs.
"""
from __future__ import annotations

import sys
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import BuilderStateError

UNLIMITED = sys.maxsize
DEFAULT_ORDERING: Dict[str, bool] = {'id': False}


def _validate_range(offset: int, limit: int) -> None:
    if offset < 0:
        raise ValueError(f"Offset must be at least 0: {offset}")
    if limit < 1:
        raise ValueError(f"Limit must be at least 1: {limit}")


def _render(mapping: Mapping[str, Any], sort: bool) -> str:
    items = sorted(mapping.items(), key=lambda kv: kv[0]) if sort else mapping.items()
    return '{' + ', '.join(f"{k!r}: {v!r}" for k, v in items) + '}'


class Page:
    __slots__ = ('_offset', '_limit', '_ordering', '_required', '_optional')

    ALL: 'Page'
    ONE: 'Page'

    def __init__(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        ordering: Optional[Mapping[str, bool]] = None,
        required_criteria: Optional[Mapping[str, Any]] = None,
        optional_criteria: Optional[Mapping[str, Any]] = None,
    ):
        offset = 0 if offset is None else offset
        limit = UNLIMITED if limit is None else limit
        _validate_range(offset, limit)
        self._offset = offset
        self._limit = limit
        self._ordering = MappingProxyType({str(k): bool(v) for k, v in (ordering or DEFAULT_ORDERING).items()})
        self._required = MappingProxyType(dict(required_criteria or {}))
        self._optional = MappingProxyType(dict(optional_criteria or {}))

    @classmethod
    def of(cls, offset: int, limit: int) -> 'Page':
        return cls(offset, limit)

    @staticmethod
    def with_() -> 'PageBuilder':
        return PageBuilder()

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def ordering(self) -> Mapping[str, bool]:
        return self._ordering

    @property
    def required_criteria(self) -> Mapping[str, Any]:
        return self._required

    @property
    def optional_criteria(self) -> Mapping[str, Any]:
        return self._optional

    @property
    def has_criteria(self) -> bool:
        return bool(self._required) or bool(self._optional)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Page):
            return NotImplemented
        # Interchangeable for caching iff the canonical forms match
        return str(self) == str(other)

    def __hash__(self) -> int:
        # Criteria values may be unhashable (lists); the canonical form is not.
        return hash(str(self))

    def __str__(self) -> str:
        return (
            f"Page[{self._offset},{self._limit},{_render(self._ordering, False)},"
            f"{_render(self._required, True)},{_render(self._optional, True)}]"
        )

    __repr__ = __str__


class PageBuilder:
    """Fluent builder; ``range``, ``all_match`` and ``any_match`` may each be called once."""

    def __init__(self):
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None
        self._ordering: Dict[str, bool] = {}
        self._required: Optional[Dict[str, Any]] = None
        self._optional: Optional[Dict[str, Any]] = None

    def range(self, offset: int, limit: int) -> 'PageBuilder':
        if self._offset is not None:
            raise BuilderStateError("Range has already been set")
        _validate_range(offset, limit)
        self._offset = offset
        self._limit = limit
        return self

    def order_by(self, field: str, ascending: bool = True) -> 'PageBuilder':
        self._ordering[field] = ascending
        return self

    def all_match(self, criteria: Mapping[str, Any]) -> 'PageBuilder':
        if self._required is not None:
            raise BuilderStateError("Required criteria have already been set")
        self._required = dict(criteria)
        return self

    def any_match(self, criteria: Mapping[str, Any]) -> 'PageBuilder':
        if self._optional is not None:
            raise BuilderStateError("Optional criteria have already been set")
        self._optional = dict(criteria)
        return self

    def build(self) -> Page:
        return Page(self._offset, self._limit, self._ordering or None, self._required, self._optional)


Page.ALL = Page(0, UNLIMITED)
Page.ONE = Page(0, 1)
