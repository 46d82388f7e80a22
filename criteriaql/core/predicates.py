"""Compilation of required/optional criteria maps into SQL restrictions.

Required criteria are AND-ed, optional criteria are OR-ed, and the two groups
are AND-ed together. A field whose value cannot be parsed for the field's
type is skipped with a warning; unsupported backend combinations raise.

Collections match "any of" their items on single-valued fields. On to-many
and element-collection fields a collection means "contains all of". When
every item is a plain equality this is one correlated subquery counting the
distinct matching related values of each root row::

    (SELECT count(DISTINCT x) FROM root r2 JOIN ... WHERE r2.id = root.id AND (x = :a OR x = :b)) = 2

Otherwise each item gets its own correlated ``EXISTS``, AND-ed together.

Backends with ``grouped_element_collection_in`` render required element
collection filters of plain values as an ``IN`` on the main join instead
(lower-cased for text), moving the cardinality check to
``GROUP BY root HAVING count(DISTINCT x) = n``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import String, bindparam, distinct, func, not_, select
from sqlalchemy.orm import aliased

from ..errors import UnsupportedOperationError
from .criteria import Bool, Criteria, Enumerated, Equal, IgnoreCase, Not, Numeric, Order, to_criteria
from .filters import get_operator
from .paths import PathResolver
from .utils import (
    and_all,
    conjunct,
    identity_of,
    is_aggregate,
    is_collection,
    is_mapped_instance,
    or_all,
    primary_key_columns,
    python_type_of,
    sql_type_of,
)

logger = logging.getLogger(__name__)

_PARAM_UNSAFE = re.compile(r'[^0-9a-zA-Z_]')


class ParameterBinder:
    """Creates named bind parameters for one field and records their values.

    Names are ``<field>_<n>`` with dots replaced by underscores and ``n`` the
    running parameter count of the compilation, so identical pages bind
    identical parameter tables.
    """

    def __init__(self, field: str, parameters: Dict[str, Any], adapter: Any):
        self.field = field
        self.parameters = parameters
        self.adapter = adapter
        self._base = _PARAM_UNSAFE.sub('_', field) or 'param'

    def create(self, value: Any, type_: Any = None) -> Any:
        if is_mapped_instance(value):
            value = identity_of(value)
        name = f"{self._base}_{len(self.parameters)}"
        self.parameters[name] = value
        return bindparam(name, value, type_=type_)

    def as_text(self, expr: Any) -> Any:
        return self.adapter.cast_to_text(expr)


@dataclass
class Restriction:
    where: Any = None
    having: Any = None
    group_by_root: bool = False
    distinct: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.where is None and self.having is None


@dataclass
class _Compiled:
    predicate: Any
    having: bool = False
    cardinality: Optional[Tuple[Any, int]] = None


class PredicateCompiler:
    def __init__(self, resolver: PathResolver, adapter: Any):
        self.resolver = resolver
        self.adapter = adapter
        self.metadata = resolver.metadata
        self.entity = resolver.entity
        self.parameters: Dict[str, Any] = {}

    def compile(self, required: Mapping[str, Any], optional: Mapping[str, Any]) -> Restriction:
        required_compiled = self._compile_all(required, required=True)
        optional_compiled = self._compile_all(optional, required=False)

        optional_predicate = or_all(c.predicate for c in optional_compiled)
        optional_having = any(c.having for c in optional_compiled)

        where_parts = [c.predicate for c in required_compiled if not c.having]
        having_parts = [c.predicate for c in required_compiled if c.having]
        for c in required_compiled:
            if c.cardinality is not None:
                expr, count = c.cardinality
                having_parts.append(func.count(distinct(expr)) == count)

        where = and_all(where_parts)
        if optional_having:
            having_parts.append(optional_predicate)
        else:
            where = conjunct(where, optional_predicate)
        having = and_all(having_parts)

        restriction = Restriction(
            where=where,
            having=having,
            group_by_root=having is not None,
            distinct=bool(optional_compiled) or self.resolver.has_fan_out,
            parameters=dict(self.parameters),
        )
        logger.debug(f"Compiled restriction for {getattr(self.entity, '__name__', self.entity)}: parameters={restriction.parameters}")
        return restriction

    def _compile_all(self, criteria: Mapping[str, Any], required: bool) -> List[_Compiled]:
        out: List[_Compiled] = []
        for name, value in (criteria or {}).items():
            compiled = self._compile_field(name, value, required)
            if compiled is not None:
                out.append(compiled)
        return out

    def _compile_field(self, name: str, raw: Any, required: bool) -> Optional[_Compiled]:
        negated, value = Not.peel(raw)
        multi_valued = self.metadata.is_multi_valued(name)
        if multi_valued and not self.adapter.supports_multi_valued_criteria:
            raise UnsupportedOperationError(self.adapter.name, f"criteria on multi-valued field '{name}'")

        all_of = multi_valued and is_collection(value)
        if all_of:
            sub_root = aliased(self.entity)
            sub_resolver = PathResolver(self.entity, self.metadata, root=sub_root)
            path = sub_resolver.get(name)
        else:
            sub_root = sub_resolver = None
            path = self.resolver.get(name)
        python_type = python_type_of(path)

        grouped = None
        if (
            all_of
            and required
            and not negated
            and self.metadata.is_element_collection(name)
            and self.adapter.grouped_element_collection_in
        ):
            grouped = self._grouped_values(name, python_type, value)
            if grouped is not None:
                path = self.resolver.get(name)

        binder = ParameterBinder(name, self.parameters, self.adapter)
        bound_before = set(self.parameters)

        try:
            if grouped is not None:
                return self._element_collection_in(path, grouped, binder)
            if all_of:
                predicate = self._all_of(name, sub_root, sub_resolver, path, python_type, value, binder)
            elif is_collection(value):
                predicate = self._any_of(name, path, python_type, value, binder)
            else:
                predicate = self._single(name, path, python_type, value, binder)
        except ValueError as e:
            for key in set(self.parameters) - bound_before:
                del self.parameters[key]
            logger.warning(
                f"Cannot parse predicate for {name}({_type_name(python_type)}) = {raw!r}({type(raw).__name__}), skipping! {e}"
            )
            return None

        if negated:
            predicate = not_(predicate)
        return _Compiled(predicate, having=is_aggregate(path))

    def _single(self, name: str, path: Any, python_type: Any, value: Any, binder: ParameterBinder) -> Any:
        if value is None or (isinstance(value, Criteria) and value.value is None):
            return get_operator('is_null')(path)
        if isinstance(value, Criteria):
            return value.build(path, binder)
        if is_mapped_instance(value):
            return get_operator('eq')(path, binder.create(value))
        return to_criteria(value, python_type, name).build(path, binder)

    def _item(self, name: str, path: Any, python_type: Any, item: Any, binder: ParameterBinder) -> Any:
        negated, value = Not.peel(item)
        try:
            predicate = self._single(name, path, python_type, value, binder)
        except ValueError as e:
            logger.warning(f"Cannot parse value for {name}({_type_name(python_type)}) = {item!r}, skipping! {e}")
            return None
        return not_(predicate) if negated else predicate

    def _items(self, name: str, path: Any, python_type: Any, value: Any, binder: ParameterBinder) -> List[Tuple[Any, Any]]:
        """``(item, predicate)`` pairs for the distinct usable items of a collection."""
        compiled = [(item, self._item(name, path, python_type, item, binder)) for item in _distinct_items(value)]
        compiled = [(item, predicate) for item, predicate in compiled if predicate is not None]
        if not compiled:
            raise ValueError(f"No usable values in {value!r}")
        return compiled

    def _any_of(self, name, path, python_type, value, binder) -> Any:
        return or_all(predicate for _, predicate in self._items(name, path, python_type, value, binder))

    def _all_of(self, name, sub_root, sub_resolver, path, python_type, value, binder) -> Any:
        """Every item must match some related value of the root row.

        Pure equality items count the distinct matching values in one subquery;
        anything else (ranges, patterns, negated or case-insensitive items) gets
        one correlated EXISTS per item.
        """
        compiled = self._items(name, path, python_type, value, binder)
        correlation = [
            inner == outer
            for inner, outer in zip(primary_key_columns(sub_root), primary_key_columns(self.resolver.root))
        ]
        keys = [_item_key(item, python_type, name) for item, _ in compiled]
        if all(key is not None for key in keys):
            stmt = sub_resolver.apply_joins(select(func.count(distinct(path))).select_from(sub_root))
            stmt = stmt.where(*correlation, or_all(p for _, p in compiled)).correlate(self.resolver.root)
            return stmt.scalar_subquery() == len(set(keys))
        exists = []
        for _, predicate in compiled:
            stmt = sub_resolver.apply_joins(select(*primary_key_columns(sub_root)).select_from(sub_root))
            exists.append(stmt.where(*correlation, predicate).correlate(self.resolver.root).exists())
        return and_all(exists)

    def _grouped_values(self, name: str, python_type: Any, value: Any) -> Optional[Tuple[List[Any], bool]]:
        """Bind values for a grouped ``IN`` and whether they compare lower-cased.

        ``None`` when some item is not a plain value matched by equality; such
        collections go through the correlated subqueries instead.
        """
        values: List[Any] = []
        keys: List[Any] = []
        lowered = None
        for item in value:
            if item is None or isinstance(item, Criteria) or is_collection(item) or is_mapped_instance(item):
                return None
            try:
                criteria = to_criteria(item, python_type, name)
            except ValueError:
                return None
            if isinstance(criteria, IgnoreCase):
                key = bind = criteria.value.lower()
            else:
                key, bind = _equality_key(criteria), criteria.value
            if key is None or lowered not in (None, isinstance(criteria, IgnoreCase)):
                return None
            lowered = isinstance(criteria, IgnoreCase)
            if key not in keys:
                keys.append(key)
                values.append(bind)
        return (values, bool(lowered)) if values else None

    def _element_collection_in(self, path: Any, grouped: Tuple[List[Any], bool], binder: ParameterBinder) -> _Compiled:
        values, lowered = grouped
        operand = func.lower(path) if lowered else path
        predicate = get_operator('in')(operand, [binder.create(v, String() if lowered else sql_type_of(path)) for v in values])
        cardinality = (operand, len(values)) if len(values) > 1 else None
        return _Compiled(predicate, cardinality=cardinality)


def _equality_key(criteria: Any) -> Any:
    """Hashable value a criterion matches by plain equality, or ``None``."""
    if isinstance(criteria, Numeric):
        return Decimal(str(criteria.value)) if criteria.order is Order.EQ else None
    if isinstance(criteria, (Equal, Enumerated, Bool)):
        try:
            hash(criteria.value)
        except TypeError:
            return None
        return criteria.value
    return None


def _item_key(item: Any, python_type: Any, name: str) -> Any:
    negated, value = Not.peel(item)
    if negated or value is None or (isinstance(value, Criteria) and value.value is None):
        return None
    if is_mapped_instance(value):
        return ('identity', identity_of(value))
    try:
        criteria = value if isinstance(value, Criteria) else to_criteria(value, python_type, name)
    except ValueError:
        return None
    return _equality_key(criteria)


def _distinct_items(value: Any) -> List[Any]:
    items: List[Any] = []
    for item in value:
        if not any(_same(item, seen) for seen in items):
            items.append(item)
    return items


def _same(a: Any, b: Any) -> bool:
    if type(a) is not type(b):
        return False
    try:
        return bool(a == b)
    except Exception:
        return a is b


def _type_name(python_type: Any) -> str:
    return getattr(python_type, '__name__', str(python_type))
