"""Page query compilation and execution.

``PageQuery`` turns a ``Page`` into a ``CompiledPage`` holding the entity
query plan and, when requested, the count plan. ``EntityPageService`` runs
both on an ``AsyncSession`` and returns a ``PartialResultList``.

Mapped (DTO) results pass ``result_type`` and a ``mapping`` callable that
receives the path resolver and returns an ordered ``{field: expression}``
dict; rows are then built as ``result_type(**row)``::

    await service.get_page(
        session, page,
        result_type=PostSummary,
        mapping=lambda p: {
            'id': p.get('id'),
            'title': p.get('title'),
            'comment_count': func.count(distinct(p.get('comments'))),
        },
    )
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import selectinload

from .adapters import BaseAdapter, get_adapter
from .core.metadata import EntityMetadata, get_entity_metadata
from .core.ordering import OrderCompiler
from .core.paths import MappedPathResolver, PathResolver
from .core.predicates import PredicateCompiler
from .errors import IllegalMappingError, UnknownFieldError
from .execution import AsyncSessionExecutor
from .page import Page
from .results import PartialResultList
from .sql.builders import PageSQLBuilders, QueryPlan

logger = logging.getLogger(__name__)

PAGE_CACHE_KEY_OPTION = 'page_cache_key'

FieldMapping = Callable[[Any], Mapping[str, Any]]


@dataclass
class CompiledPage:
    page: Page
    entity_plan: QueryPlan
    count_plan: Optional[QueryPlan] = None
    result_type: Any = None
    mapped: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)


class PageQuery:
    """Compiles pages for one entity class against one backend adapter."""

    def __init__(self, entity: Any, adapter: Optional[BaseAdapter] = None, metadata: Optional[EntityMetadata] = None):
        self.entity = entity
        self.adapter = adapter or get_adapter(None)
        self.metadata = metadata or get_entity_metadata(entity)
        self.builders = PageSQLBuilders(self.adapter)

    def compile(
        self,
        page: Page,
        count: bool = True,
        result_type: Any = None,
        mapping: Optional[FieldMapping] = None,
        fetch: Iterable[str] = (),
    ) -> CompiledPage:
        result_type = result_type or self.entity
        resolver = PathResolver(self.entity, self.metadata)
        selection = None
        if mapping is not None or result_type is not self.entity:
            fields = dict(mapping(resolver)) if mapping is not None else {}
            if not fields and result_type is not self.entity:
                raise IllegalMappingError(
                    f"You must return a getter-path mapping from the mapping function for result type "
                    f"{getattr(result_type, '__name__', result_type)}"
                )
            if fields:
                selection = [expr.label(name) for name, expr in fields.items()]
                resolver = MappedPathResolver(resolver, fields)

        restriction = PredicateCompiler(resolver, self.adapter).compile(page.required_criteria, page.optional_criteria)
        order_by = OrderCompiler(resolver, self.adapter).compile(page)
        options = self._fetch_options(fetch) if selection is None else []
        entity_plan = self.builders.entity_plan(
            self.entity, resolver, restriction, order_by, page, selection=selection, options=options
        )
        count_plan = self.builders.count_plan(self.entity, resolver, restriction) if count else None
        return CompiledPage(
            page=page,
            entity_plan=entity_plan,
            count_plan=count_plan,
            result_type=result_type,
            mapped=selection is not None,
            parameters=restriction.parameters,
        )

    def _fetch_options(self, fetch: Iterable[str]) -> list:
        options = []
        for path in fetch or ():
            owner = self.entity
            loader = None
            for segment in path.split('.'):
                mapper = inspect(owner).mapper
                if segment not in mapper.relationships:
                    raise UnknownFieldError(self.entity, path)
                attr = getattr(owner, segment)
                loader = selectinload(attr) if loader is None else loader.selectinload(attr)
                owner = mapper.relationships[segment].mapper.class_
            if loader is not None:
                options.append(loader)
        return options


class EntityPageService:
    """Runs pages of one entity class on an ``AsyncSession``.

    The adapter is resolved from the session's dialect on first use unless
    given explicitly. ``before_page``, ``on_page`` and ``after_page`` are
    hooks for subclasses.
    """

    def __init__(self, entity: Any, adapter: Optional[BaseAdapter] = None):
        self.entity = entity
        self._adapter = adapter

    def adapter_for(self, session: Any) -> BaseAdapter:
        if self._adapter is None:
            self._adapter = get_adapter(session.get_bind().dialect.name)
        return self._adapter

    async def before_page(self, session: Any) -> None:
        return None

    def on_page(self, page: Page, cacheable: bool) -> Dict[str, Any]:
        """Execution options for the page queries; carries the page cache key when cacheable."""
        if cacheable and self._adapter is not None and self._adapter.supports_cache_hints:
            return {PAGE_CACHE_KEY_OPTION: str(page)}
        return {}

    async def after_page(self, session: Any) -> None:
        return None

    async def get_page(
        self,
        session: Any,
        page: Page,
        count: bool = True,
        *,
        cacheable: bool = False,
        result_type: Any = None,
        mapping: Optional[FieldMapping] = None,
        fetch: Iterable[str] = (),
    ) -> PartialResultList:
        logger.debug(
            f"get_page: entity={getattr(self.entity, '__name__', self.entity)}, page={page}, count={count}, "
            f"cacheable={cacheable}, result_type={getattr(result_type, '__name__', result_type)}"
        )
        adapter = self.adapter_for(session)
        compiled = PageQuery(self.entity, adapter).compile(
            page, count=count, result_type=result_type, mapping=mapping, fetch=fetch
        )
        logger.debug(f"get_page parameters: {compiled.parameters}")
        await self.before_page(session)
        try:
            executor = AsyncSessionExecutor(session)
            options = self.on_page(page, cacheable)
            row_factory = compiled.result_type if compiled.mapped else None
            items = await executor.fetch(compiled.entity_plan, row_factory=row_factory, execution_options=options)
            total = await executor.count(compiled.count_plan, execution_options=options) if compiled.count_plan is not None else -1
        finally:
            await self.after_page(session)
        result = PartialResultList(items, page.offset, total)
        logger.debug(f"get_page result: {len(result)} item(s), estimated total {total}")
        return result
