"""Resolution of dotted field paths to SQL expressions.

``PathResolver.get('author.name')`` returns the ``name`` column of an
``aliased()`` User joined from the root through the ``author`` relationship.
Joins are LEFT OUTER, created on first use and shared by every later path
with the same prefix, so each compilation owns exactly one join per
relationship path.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import Label

from ..errors import UnknownFieldError
from .metadata import EntityMetadata, element_info, get_entity_metadata
from .utils import primary_key_of


class PathResolver:
    def __init__(self, entity: Any, metadata: Optional[EntityMetadata] = None, root: Any = None):
        self.entity = entity
        self.metadata = metadata or get_entity_metadata(entity)
        self.root = entity if root is None else root
        self._aliases: Dict[str, Any] = {}
        self._joins: List[Any] = []
        self._paths: Dict[str, Any] = {}
        self._fan_out = False

    @property
    def joins(self) -> List[Any]:
        """Relationship join targets in creation order, suitable for ``Select.outerjoin``."""
        return list(self._joins)

    @property
    def has_joins(self) -> bool:
        return bool(self._joins)

    @property
    def has_fan_out(self) -> bool:
        return self._fan_out

    def get(self, field: Optional[str]) -> Any:
        if not field:
            return self.root
        cached = self._paths.get(field)
        if cached is not None:
            return cached
        expr = self._resolve(field)
        self._paths[field] = expr
        return expr

    def apply_joins(self, stmt: Any) -> Any:
        for target in self._joins:
            stmt = stmt.outerjoin(target)
        return stmt

    def _resolve(self, field: str) -> Any:
        segments = field.split('.')
        parent = self.root
        mapper = inspect(self.entity).mapper
        prefix = ''
        for i, segment in enumerate(segments):
            last = i == len(segments) - 1
            rel = mapper.relationships[segment] if segment in mapper.relationships else None
            if rel is None:
                if not last or segment not in mapper.all_orm_descriptors:
                    raise UnknownFieldError(self.entity, field)
                return getattr(parent, segment)
            prefix = f"{prefix}.{segment}" if prefix else segment
            alias = self._join(prefix, parent, rel)
            if last:
                element = element_info(rel)
                if element is not None:
                    return getattr(alias, element)
                return primary_key_of(alias)
            parent = alias
            mapper = rel.mapper
        raise UnknownFieldError(self.entity, field)  # pragma: no cover - loop always returns

    def _join(self, prefix: str, parent: Any, rel: Any) -> Any:
        alias = self._aliases.get(prefix)
        if alias is None:
            alias = aliased(rel.mapper.class_)
            self._aliases[prefix] = alias
            self._joins.append(getattr(parent, rel.key).of_type(alias))
            if rel.uselist:
                self._fan_out = True
        return alias


class MappedPathResolver:
    """Resolver for mapped (DTO) results.

    Fields present in ``mapping`` resolve to the mapped expression; anything
    else falls through to the underlying entity resolver.
    """

    def __init__(self, base: PathResolver, mapping: Mapping[str, Any]):
        self.base = base
        self.mapping = dict(mapping)

    def __getattr__(self, name: str) -> Any:
        # entity, metadata, root, joins, has_joins, has_fan_out, apply_joins
        return getattr(self.base, name)

    def get(self, field: Optional[str]) -> Any:
        if field and field in self.mapping:
            expr = self.mapping[field]
            return expr.element if isinstance(expr, Label) else expr
        return self.base.get(field)
