"""Typed filter criteria.

Each criterion renders itself against a column expression through a parameter
binder (``build``) and evaluates itself against a plain Python value
(``applies``). The set of variants is closed: ``Not``, ``Between``, ``Like``,
``Numeric``, ``Enumerated``, ``Bool``, ``IgnoreCase`` and ``Equal``.

Raw filter values are turned into criteria by ``to_criteria`` based on the
Python type of the column they are matched against. Parse failures raise
``ValueError`` so that the predicate compiler can skip the offending field.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from sqlalchemy import String, func

from ..errors import UnsupportedCriteriaError
from .enum_utils import parse_enum_member
from .filters import get_operator
from .utils import coerce_temporal, is_numeric_python_type, is_numeric_type, parse_bool, sql_type_of

_RANGE_PATTERN = re.compile(r'^\s*(-?\d+(?:\.\d+)?)\s*(?:\.\.|-)\s*(-?\d+(?:\.\d+)?)\s*$')
_COMPARISON_PATTERN = re.compile(r'^\s*(<=|>=|<|>|=)?\s*(\S.*?)\s*$')


class Criteria:
    """Base of all criteria. Subclasses are frozen dataclasses."""

    value: Any

    def build(self, path: Any, binder: Any) -> Any:
        raise NotImplementedError

    def applies(self, value: Any) -> bool:
        raise NotImplementedError

    @staticmethod
    def unwrap(value: Any) -> Any:
        """Innermost raw value of a (possibly nested) criterion."""
        while isinstance(value, Criteria):
            value = value.value
        return value


@dataclass(frozen=True)
class Not(Criteria):
    value: Any

    def build(self, path, binder):
        inner = self.value
        if inner is None:
            return get_operator('is_not_null')(path)
        if isinstance(inner, Criteria):
            return ~inner.build(path, binder)
        return get_operator('ne')(path, binder.create(inner))

    def applies(self, value):
        inner = self.value
        # NOT over a missing value is unknown in SQL, never a match
        if value is None and Criteria.unwrap(inner) is not None:
            return False
        if isinstance(inner, Criteria):
            return not inner.applies(value)
        return not _equals(inner, value)

    @staticmethod
    def peel(value: Any) -> tuple[bool, Any]:
        """Strip all ``Not`` wrappers; returns (negated, innermost value)."""
        negated = False
        while isinstance(value, Not):
            negated = not negated
            value = value.value
        return negated, value


@dataclass(frozen=True)
class Between(Criteria):
    min: Any
    max: Any

    def __post_init__(self):
        if self.min is None or self.max is None:
            raise ValueError("Between requires both a min and a max")
        try:
            self.min <= self.max
        except TypeError:
            raise ValueError(f"Between bounds are not comparable: {self.min!r}, {self.max!r}") from None

    @classmethod
    def range(cls, min: Any, max: Any) -> 'Between':
        return cls(min, max)

    @property
    def value(self):
        return (self.min, self.max)

    def build(self, path, binder):
        return get_operator('between')(path, (binder.create(self.min), binder.create(self.max)))

    def applies(self, value):
        if value is None:
            return False
        try:
            return self.min <= value <= self.max
        except TypeError:
            return False


@dataclass(frozen=True)
class Like(Criteria):
    kind: str
    value: Any

    STARTS_WITH = 'starts_with'
    ENDS_WITH = 'ends_with'
    CONTAINS = 'contains'

    def __post_init__(self):
        if self.kind not in (self.STARTS_WITH, self.ENDS_WITH, self.CONTAINS):
            raise ValueError(f"Unknown like kind: {self.kind}")

    @classmethod
    def starts_with(cls, value: Any) -> 'Like':
        return cls(cls.STARTS_WITH, value)

    @classmethod
    def ends_with(cls, value: Any) -> 'Like':
        return cls(cls.ENDS_WITH, value)

    @classmethod
    def contains(cls, value: Any) -> 'Like':
        return cls(cls.CONTAINS, value)

    def _pattern(self, text: str) -> str:
        if self.kind == self.STARTS_WITH:
            return f"{text}%"
        if self.kind == self.ENDS_WITH:
            return f"%{text}"
        return f"%{text}%"

    def build(self, path, binder):
        if is_numeric_type(sql_type_of(path)):
            operand = binder.as_text(path)
            text = str(self.value)
        else:
            operand = func.lower(path)
            text = str(self.value).lower()
        return get_operator('like')(operand, binder.create(self._pattern(text), String()))

    def applies(self, value):
        if value is None:
            return False
        haystack = str(value).lower()
        needle = str(self.value).lower()
        if self.kind == self.STARTS_WITH:
            return haystack.startswith(needle)
        if self.kind == self.ENDS_WITH:
            return haystack.endswith(needle)
        return needle in haystack


class Order(Enum):
    EQ = 'eq'
    LT = 'lt'
    LTE = 'lte'
    GT = 'gt'
    GTE = 'gte'

    @classmethod
    def of_prefix(cls, prefix: Optional[str]) -> 'Order':
        return {None: cls.EQ, '=': cls.EQ, '<': cls.LT, '<=': cls.LTE, '>': cls.GT, '>=': cls.GTE}[prefix]

    def test(self, left: Any, right: Any) -> bool:
        if self is Order.EQ:
            return left == right
        if self is Order.LT:
            return left < right
        if self is Order.LTE:
            return left <= right
        if self is Order.GT:
            return left > right
        return left >= right


@dataclass(frozen=True)
class Numeric(Criteria):
    order: Order
    value: Any

    @classmethod
    def value_of(cls, value: Any, order: Order = Order.EQ) -> 'Numeric':
        return cls(order, value)

    @classmethod
    def parse(cls, value: Any, number_type: Optional[type] = None) -> Criteria:
        """Parse loosely typed numeric input.

        Accepts numbers, numeric strings, comparison strings (``">5"``, ``"<=2.5"``)
        and range strings (``"1..10"``, ``"1-10"``), the latter producing ``Between``.
        """
        if isinstance(value, bool):
            raise ValueError(f"Cannot parse {value!r} as number")
        if isinstance(value, (int, float, Decimal)):
            return cls(Order.EQ, _to_number(value, number_type))
        if not isinstance(value, str):
            raise ValueError(f"Cannot parse {value!r} as number")
        m = _RANGE_PATTERN.match(value)
        if m:
            return Between(_to_number(m.group(1), number_type), _to_number(m.group(2), number_type))
        m = _COMPARISON_PATTERN.match(value)
        if not m:
            raise ValueError(f"Cannot parse {value!r} as number")
        return cls(Order.of_prefix(m.group(1)), _to_number(m.group(2), number_type))

    def build(self, path, binder):
        return get_operator(self.order.value)(path, binder.create(self.value))

    def applies(self, value):
        if value is None or isinstance(value, bool):
            return False
        try:
            return self.order.test(Decimal(str(value)), Decimal(str(self.value)))
        except (InvalidOperation, ValueError):
            return False


def _to_number(value: Any, number_type: Optional[type]) -> Any:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (ArithmeticError, TypeError) as e:
        raise ValueError(f"Cannot parse {value!r} as number") from e
    if not number.is_finite():
        raise ValueError(f"Cannot parse {value!r} as number")
    if number_type is None:
        number_type = int if number == number.to_integral_value() and not isinstance(value, float) else float
    if issubclass(number_type, int):
        if number != number.to_integral_value():
            raise ValueError(f"Cannot parse {value!r} as integer")
        return int(number)
    if issubclass(number_type, Decimal):
        return number
    return float(number)


@dataclass(frozen=True)
class Enumerated(Criteria):
    value: Enum

    @classmethod
    def parse(cls, value: Any, enum_cls: type) -> 'Enumerated':
        return cls(parse_enum_member(enum_cls, value))

    def build(self, path, binder):
        return get_operator('eq')(path, binder.create(self.value))

    def applies(self, value):
        if value is None:
            return False
        if isinstance(value, Enum):
            return value == self.value
        return str(value) in (self.value.name, str(self.value.value))


@dataclass(frozen=True)
class Bool(Criteria):
    value: bool

    @classmethod
    def parse(cls, value: Any) -> 'Bool':
        return cls(parse_bool(value))

    def build(self, path, binder):
        return get_operator('eq')(path, binder.create(self.value))

    def applies(self, value):
        if value is None:
            return False
        try:
            return parse_bool(value) == self.value
        except ValueError:
            return False


@dataclass(frozen=True)
class IgnoreCase(Criteria):
    value: str

    @classmethod
    def of(cls, value: Any) -> 'IgnoreCase':
        return cls(str(value))

    def build(self, path, binder):
        return get_operator('ilike_eq')(path, binder.create(self.value.lower(), String()))

    def applies(self, value):
        return value is not None and str(value).lower() == self.value.lower()


@dataclass(frozen=True)
class Equal(Criteria):
    value: Any

    def build(self, path, binder):
        return get_operator('eq')(path, binder.create(self.value))

    def applies(self, value):
        return _equals(self.value, value)


def _equals(expected: Any, actual: Any) -> bool:
    if isinstance(expected, Enum) and not isinstance(actual, Enum) and actual is not None:
        return str(actual) in (expected.name, str(expected.value))
    return expected == actual


def to_criteria(value: Any, python_type: Optional[type], field: Optional[str] = None) -> Criteria:
    """Typed parsing of a raw scalar filter value against a column's Python type.

    Raises ``ValueError`` when the value cannot be parsed for the type and
    ``UnsupportedCriteriaError`` when no criterion applies to the type at all.
    """
    if isinstance(value, Criteria):
        return value
    if isinstance(python_type, type):
        if issubclass(python_type, Enum):
            return Enumerated.parse(value, python_type)
        if python_type is bool:
            return Bool.parse(value)
        if is_numeric_python_type(python_type):
            return Numeric.parse(value, python_type)
        if issubclass(python_type, (date, time)):
            parsed = coerce_temporal(python_type, value)
            if not isinstance(parsed, python_type):
                raise ValueError(f"Cannot parse {value!r} as {python_type.__name__}")
            return Equal(parsed)
        if issubclass(python_type, uuid.UUID):
            return Equal(value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)))
        if issubclass(python_type, str) or isinstance(value, str):
            return IgnoreCase.of(value)
        if isinstance(value, python_type):
            return Equal(value)
        raise UnsupportedCriteriaError(value, python_type, field)
    if isinstance(value, str):
        return IgnoreCase.of(value)
    return Equal(value)
