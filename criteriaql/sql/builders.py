from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy import distinct, func, select
from sqlalchemy.orm import aliased

from ..adapters.base import CountStrategy
from ..core.utils import and_all, is_aggregate, primary_key_columns, root_columns
from ..page import UNLIMITED

# Centralized SQL builders for page and count queries.


@dataclass
class QueryPlan:
    """Backend-neutral description of one SELECT; ``to_select()`` renders it."""
    selection: List[Any]
    select_from: Any = None
    joins: List[Any] = field(default_factory=list)
    where: Any = None
    group_by: List[Any] = field(default_factory=list)
    having: Any = None
    order_by: List[Any] = field(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    distinct: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)
    options: List[Any] = field(default_factory=list)
    execution_options: Dict[str, Any] = field(default_factory=dict)

    def to_select(self):
        stmt = select(*self.selection)
        if self.select_from is not None:
            stmt = stmt.select_from(self.select_from)
        for target in self.joins:
            stmt = stmt.outerjoin(target)
        if self.where is not None:
            stmt = stmt.where(self.where)
        if self.group_by:
            stmt = stmt.group_by(*self.group_by)
        if self.having is not None:
            stmt = stmt.having(self.having)
        if self.order_by:
            stmt = stmt.order_by(*self.order_by)
        if self.offset is not None:
            stmt = stmt.offset(self.offset)
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        if self.distinct:
            stmt = stmt.distinct()
        if self.options:
            stmt = stmt.options(*self.options)
        if self.execution_options:
            stmt = stmt.execution_options(**self.execution_options)
        return stmt


class PageSQLBuilders:
    def __init__(self, adapter):
        self.adapter = adapter

    # --- helpers -------------------------------------------------------------
    def _group_by(self, root, restriction, selection=None) -> List[Any]:
        """Root columns plus non-aggregate selected expressions when grouping is required."""
        aggregated = any(is_aggregate(expr) for expr in (selection or []))
        if not restriction.group_by_root and not aggregated:
            return []
        cols = list(root_columns(root))
        for expr in selection or []:
            inner = getattr(expr, 'element', expr)
            if not is_aggregate(expr) and not any(inner is c for c in cols):
                cols.append(inner)
        return cols

    def apply_range(self, plan: QueryPlan, page, has_joins: bool) -> QueryPlan:
        """OFFSET/LIMIT only when non-default or when joins are present."""
        if page.offset != 0 or has_joins:
            plan.offset = page.offset
        if page.limit != UNLIMITED or has_joins:
            plan.limit = page.limit
        return plan

    # --- page query ----------------------------------------------------------
    def entity_plan(self, root, resolver, restriction, order_by, page, selection=None, options=None) -> QueryPlan:
        mapped = selection is not None
        plan = QueryPlan(
            selection=list(selection) if mapped else [root],
            select_from=root if mapped else None,
            joins=resolver.joins,
            where=restriction.where,
            group_by=self._group_by(root, restriction, selection if mapped else None),
            having=restriction.having,
            order_by=list(order_by or []),
            distinct=restriction.distinct or resolver.has_fan_out,
            parameters=dict(restriction.parameters),
            options=list(options or []),
        )
        return self.apply_range(plan, page, resolver.has_joins)

    # --- count query ---------------------------------------------------------
    def count_plan(self, root, resolver, restriction) -> QueryPlan:
        """Count of distinct root rows matching ``restriction``.

        Unfiltered pages count the root table directly. Otherwise the adapter's
        strategy decides between ``pk IN (subquery)``, a correlated ``EXISTS``
        and ``count(DISTINCT pk)``.
        """
        if restriction.is_empty:
            return QueryPlan(selection=[func.count()], select_from=root)
        pks = primary_key_columns(root)
        strategy = self.adapter.count_strategy
        if strategy is CountStrategy.DISTINCT and restriction.having is not None:
            strategy = CountStrategy.IN
        if strategy is CountStrategy.IN and len(pks) > 1:
            strategy = CountStrategy.EXISTS
        group_by = self._group_by(root, restriction)

        if strategy is CountStrategy.DISTINCT:
            return QueryPlan(
                selection=[func.count(distinct(pks[0]))],
                select_from=root,
                joins=resolver.joins,
                where=restriction.where,
                parameters=dict(restriction.parameters),
            )

        inner = QueryPlan(
            selection=list(pks),
            select_from=root,
            joins=resolver.joins,
            where=restriction.where,
            group_by=group_by,
            having=restriction.having,
        )
        if strategy is CountStrategy.IN:
            # The inner query keeps its own FROM root; no correlation with the outer root.
            subquery = inner.to_select().correlate(None)
            return QueryPlan(
                selection=[func.count()],
                select_from=root,
                where=pks[0].in_(subquery),
                parameters=dict(restriction.parameters),
            )

        outer = aliased(root)
        inner.where = and_all([inner.where] + [i == o for i, o in zip(pks, primary_key_columns(outer))])
        return QueryPlan(
            selection=[func.count()],
            select_from=outer,
            where=inner.to_select().correlate(outer).exists(),
            parameters=dict(restriction.parameters),
        )
