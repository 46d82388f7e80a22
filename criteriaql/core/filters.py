from __future__ import annotations
from typing import Any, Callable, Dict
from sqlalchemy import func

# Global operator registry used by criteria rendering (extensible)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col == v,
    'ne': lambda col, v: col != v,
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'ilike_eq': lambda col, v: func.lower(col) == v,
    'in': lambda col, v: col.in_(v if isinstance(v, (list, tuple, set)) else [v]),
    'between': lambda col, v: col.between(v[0], v[1]),
    'is_null': lambda col, _v=None: col.is_(None),
    'is_not_null': lambda col, _v=None: col.is_not(None),
}


def get_operator(name: str) -> Callable[[Any, Any], Any]:
    try:
        return OPERATOR_REGISTRY[name]
    except KeyError:
        raise ValueError(f"Unknown operator: {name}") from None
