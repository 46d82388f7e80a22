from __future__ import annotations
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from sqlalchemy import and_ as _and, or_ as _or, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.sql.elements import Label
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.sql.sqltypes import Integer, Numeric

from .enum_utils import enum_class_of_type

_AGGREGATE_FUNCTIONS = frozenset({'count', 'sum', 'avg', 'min', 'max'})
TRUE_STRINGS = ('true', 't', '1', 'yes', 'y')
FALSE_STRINGS = ('false', 'f', '0', 'no', 'n')


def sql_type_of(expr: Any) -> Any:
    sa_type = getattr(expr, 'type', None)
    if sa_type is None and hasattr(expr, '__clause_element__'):
        sa_type = getattr(expr.__clause_element__(), 'type', None)
    return sa_type


def python_type_of(expr: Any) -> Optional[type]:
    """Best-effort Python type of a SQL expression; ``None`` when the type does not declare one."""
    sa_type = sql_type_of(expr)
    if sa_type is None:
        return None
    enum_cls = enum_class_of_type(sa_type)
    if enum_cls is not None:
        return enum_cls
    try:
        return sa_type.python_type
    except NotImplementedError:
        return None


def is_numeric_type(sa_type: Any) -> bool:
    # Float derives from Numeric
    return isinstance(sa_type, (Integer, Numeric))


def is_numeric_python_type(python_type: Any) -> bool:
    return isinstance(python_type, type) and issubclass(python_type, (int, float, Decimal)) and python_type is not bool


def is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def coerce_temporal(python_type: type, val: Any) -> Any:
    """Parse ISO-8601 text into ``python_type`` (datetime, date or time).

    Non-string values are returned as-is. Raises ``ValueError`` for malformed text.
    """
    if not isinstance(val, str):
        return val
    s = val.strip()
    if issubclass(python_type, datetime):
        s = s.replace('Z', '+00:00') if s.endswith('Z') else s
        return datetime.fromisoformat(s)
    if issubclass(python_type, date):
        return date.fromisoformat(s)
    if issubclass(python_type, time):
        return time.fromisoformat(s)
    return val


def parse_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    if isinstance(val, int) and val in (0, 1):
        return bool(val)
    if isinstance(val, str):
        lv = val.strip().lower()
        if lv in TRUE_STRINGS:
            return True
        if lv in FALSE_STRINGS:
            return False
    raise ValueError(f"Cannot parse {val!r} as boolean")


def and_all(predicates: Iterable[Any]) -> Any:
    preds = [p for p in predicates if p is not None]
    if not preds:
        return None
    return preds[0] if len(preds) == 1 else _and(*preds)


def or_all(predicates: Iterable[Any]) -> Any:
    preds = [p for p in predicates if p is not None]
    if not preds:
        return None
    return preds[0] if len(preds) == 1 else _or(*preds)


def conjunct(nullable: Any, predicate: Any) -> Any:
    if nullable is None:
        return predicate
    if predicate is None:
        return nullable
    return _and(nullable, predicate)


def is_aggregate(expr: Any) -> bool:
    while isinstance(expr, Label):
        expr = expr.element
    return isinstance(expr, FunctionElement) and str(getattr(expr, 'name', '')).lower() in _AGGREGATE_FUNCTIONS


def primary_key_columns(entity: Any) -> List[Any]:
    """Primary key attributes of a mapped class or an ``aliased()`` of it."""
    mapper = inspect(entity).mapper
    return [getattr(entity, mapper.get_property_by_column(col).key) for col in mapper.primary_key]


def primary_key_of(entity: Any) -> Any:
    cols = primary_key_columns(entity)
    if len(cols) != 1:
        raise ValueError(f"Composite primary key is not supported here: {entity!r}")
    return cols[0]


def is_mapped_instance(value: Any) -> bool:
    if value is None or isinstance(value, type):
        return False
    try:
        state = inspect(value)
    except NoInspectionAvailable:
        return False
    return hasattr(state, 'identity') and hasattr(state, 'mapper')


def identity_of(instance: Any) -> Any:
    """Scalar (or tuple, for composite keys) primary key value of a mapped instance."""
    state = inspect(instance)
    mapper = state.mapper
    values = [getattr(instance, mapper.get_property_by_column(col).key) for col in mapper.primary_key]
    return values[0] if len(values) == 1 else tuple(values)


def root_columns(entity: Any) -> List[Any]:
    """All column attributes of a mapped class or alias, in mapper order."""
    mapper = inspect(entity).mapper
    return [getattr(entity, prop.key) for prop in mapper.column_attrs]
