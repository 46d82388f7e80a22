"""Per-entity relation metadata.

Answers "is this dotted field path an element collection, a to-one or a
to-many relation?" for a mapped class. The lookup tables are computed once
per entity class from ``sqlalchemy.inspect`` and cached for the lifetime of
the process.

An element collection is a one-to-many relationship to a value table whose
rows are plain values; it is declared with ``info={'element': '<attr>'}``
naming the value column attribute on the target class.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Set

from sqlalchemy import inspect

logger = logging.getLogger(__name__)

ELEMENT_INFO_KEY = 'element'


class RelationKind(Enum):
    NONE = 'none'
    ELEMENT_COLLECTION = 'element_collection'
    TO_ONE = 'to_one'
    TO_MANY = 'to_many'


@dataclass(frozen=True)
class EntityMetadata:
    entity: Any
    element_collections: FrozenSet[str]
    to_ones: FrozenSet[str]
    to_manys: FrozenSet[str]
    element_attributes: Mapping[str, str]

    def is_element_collection(self, field: str) -> bool:
        return field in self.element_collections

    def is_to_one(self, field: str) -> bool:
        return field in self.to_ones

    def is_to_many(self, field: str) -> bool:
        """True for a to-many mapping path itself and for every path below it."""
        for mapping in self.to_manys:
            if field == mapping or field.startswith(mapping + '.'):
                return True
        return False

    def is_multi_valued(self, field: str) -> bool:
        return self.is_element_collection(field) or self.is_to_many(field)

    def relation_kind(self, field: str) -> RelationKind:
        if self.is_element_collection(field):
            return RelationKind.ELEMENT_COLLECTION
        if self.is_to_many(field):
            return RelationKind.TO_MANY
        if self.is_to_one(field):
            return RelationKind.TO_ONE
        return RelationKind.NONE

    def element_attribute(self, field: str) -> Optional[str]:
        return self.element_attributes.get(field)


_METADATA_CACHE: Dict[Any, EntityMetadata] = {}
_METADATA_LOCK = threading.Lock()


def get_entity_metadata(entity: Any) -> EntityMetadata:
    """Return the cached metadata of ``entity``, computing it on first use."""
    cached = _METADATA_CACHE.get(entity)
    if cached is not None:
        return cached
    with _METADATA_LOCK:
        cached = _METADATA_CACHE.get(entity)
        if cached is None:
            cached = _compute_metadata(entity)
            _METADATA_CACHE[entity] = cached
        return cached


def element_info(relationship_prop: Any) -> Optional[str]:
    info = getattr(relationship_prop, 'info', None) or {}
    return info.get(ELEMENT_INFO_KEY)


def _compute_metadata(entity: Any) -> EntityMetadata:
    element_collections: Set[str] = set()
    to_ones: Set[str] = set()
    to_manys: Set[str] = set()
    element_attributes: Dict[str, str] = {}
    _walk(entity, '', {entity}, element_collections, to_ones, to_manys, element_attributes)
    name = getattr(entity, '__name__', entity)
    logger.debug(f"Computed element collection mapping for {name}: {sorted(element_collections)}")
    logger.debug(f"Computed to-one mapping for {name}: {sorted(to_ones)}")
    logger.debug(f"Computed to-many mapping for {name}: {sorted(to_manys)}")
    return EntityMetadata(
        entity=entity,
        element_collections=frozenset(element_collections),
        to_ones=frozenset(to_ones),
        to_manys=frozenset(to_manys),
        element_attributes=MappingProxyType(element_attributes),
    )


def _walk(entity, base_path, nested_types, element_collections, to_ones, to_manys, element_attributes) -> None:
    mapper = inspect(entity).mapper
    for rel in mapper.relationships:
        path = base_path + rel.key
        target = rel.mapper.class_
        element = element_info(rel)
        if element is not None:
            element_collections.add(path)
            element_attributes[path] = element
            continue
        if rel.uselist:
            to_manys.add(path)
        else:
            to_ones.add(path)
        # Types already on the current path are not expanded again.
        if target not in nested_types:
            _walk(target, path + '.', nested_types | {target}, element_collections, to_ones, to_manys, element_attributes)
