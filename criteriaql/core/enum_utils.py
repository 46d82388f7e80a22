from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from sqlalchemy.sql.sqltypes import Enum as SAEnumType


def enum_class_of_type(sa_type: Any) -> Optional[type]:
    """Return the Python Enum class behind a SQLAlchemy Enum type, if any."""
    if isinstance(sa_type, SAEnumType):
        return getattr(sa_type, 'enum_class', None)
    return None


def parse_enum_member(enum_cls: type, value: Any) -> Enum:
    """Resolve ``value`` to a member of ``enum_cls``.

    Rules:
    - A member of ``enum_cls`` is returned as-is.
    - An int (or a string of digits) is an ordinal in declaration order.
    - A string is tried as NAME, then case-insensitive NAME, then VALUE.
    - Anything else is tried as VALUE.

    Raises ``ValueError`` when nothing matches.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse {value!r} as {enum_cls.__name__}")
    members = list(enum_cls)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return _by_ordinal(enum_cls, members, int(text))
        try:
            return enum_cls[text]
        except KeyError:
            pass
        for member in members:
            if member.name.lower() == text.lower():
                return member
    elif isinstance(value, int):
        return _by_ordinal(enum_cls, members, value)
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Cannot parse {value!r} as {enum_cls.__name__}") from None


def _by_ordinal(enum_cls: type, members: list, ordinal: int) -> Enum:
    if 0 <= ordinal < len(members):
        return members[ordinal]
    raise ValueError(f"Ordinal {ordinal} out of range for {enum_cls.__name__}")
