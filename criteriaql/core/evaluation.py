"""In-memory evaluation of page criteria.

Mirrors the SQL semantics of the predicate compiler on plain objects or
mappings: required criteria must all match, at least one optional criterion
must match, lists along a path behave like to-many relations, and values that
cannot be parsed for the field's type drop that criterion.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

from ..errors import UnknownFieldError
from .criteria import Criteria, Equal, Not, to_criteria
from .utils import identity_of, is_collection, is_mapped_instance

_MISSING = object()


def matches(page_or_criteria: Any, obj: Any) -> bool:
    """True when ``obj`` satisfies a ``Page`` (or a plain required-criteria mapping)."""
    if isinstance(page_or_criteria, Mapping):
        required, optional = page_or_criteria, {}
    else:
        required, optional = page_or_criteria.required_criteria, page_or_criteria.optional_criteria
    for field, expected in required.items():
        if field_matches(obj, field, expected) is False:
            return False
    outcomes = [field_matches(obj, field, expected) for field, expected in optional.items()]
    outcomes = [o for o in outcomes if o is not None]
    return not outcomes or any(outcomes)


def field_matches(obj: Any, field: str, expected: Any) -> Optional[bool]:
    """Evaluate one criterion; ``None`` when the criterion is unparsable and skipped.

    Negation follows SQL three-valued logic: a negated non-null criterion never
    matches a missing value, and on to-many paths it applies per related row.
    Only the "contains all of" check negates the outcome as a whole.
    """
    values, multi_valued = values_at(obj, field)
    negated, value = Not.peel(expected)
    try:
        if multi_valued and is_collection(value):
            result = all(any(value_matches(item, v) for v in values) for item in value)
            return not result if negated else result
        if multi_valued:
            return any(value_matches(expected, v) for v in values)
        return value_matches(expected, values[0])
    except ValueError:
        return None


def value_matches(expected: Any, actual: Any) -> bool:
    negated, value = Not.peel(expected)
    if negated and actual is None and not _is_null(value):
        return False
    if _is_null(value):
        result = actual is None
    elif isinstance(value, Criteria):
        result = value.applies(actual)
    elif is_collection(value):
        result = any(value_matches(item, actual) for item in value)
    elif actual is None:
        result = False
    elif is_mapped_instance(value):
        actual_id = identity_of(actual) if is_mapped_instance(actual) else actual
        result = identity_of(value) == actual_id
    elif isinstance(value, Enum):
        result = Equal(value).applies(actual)
    else:
        result = to_criteria(value, type(actual)).applies(actual)
    return not result if negated else result


def values_at(obj: Any, path: str) -> Tuple[List[Any], bool]:
    """Leaf values at a dotted ``path`` and whether a list was crossed on the way.

    An empty to-many relation yields ``[None]``, as a LEFT OUTER JOIN would.
    """
    current: List[Any] = [obj]
    multi_valued = False
    for segment in path.split('.'):
        nxt: List[Any] = []
        for item in current:
            value = _get(item, segment)
            if is_collection(value):
                multi_valued = True
                nxt.extend(value)
            else:
                nxt.append(value)
        current = nxt
    return (current or [None]), multi_valued


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        value = obj.get(name, _MISSING)
    else:
        value = getattr(obj, name, _MISSING)
    if value is _MISSING:
        raise UnknownFieldError(type(obj), name)
    return value


def _is_null(value: Any) -> bool:
    return value is None or (isinstance(value, Criteria) and value.value is None)
