from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .sql.builders import QueryPlan


class AsyncSessionExecutor:
    """Executes compiled query plans on an ``AsyncSession``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch(
        self,
        plan: QueryPlan,
        row_factory: Optional[Callable[..., Any]] = None,
        execution_options: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        """Rows of ``plan``: ORM entities, or ``row_factory(**row)`` for mapped selections."""
        stmt = plan.to_select()
        result = await self.session.execute(stmt, execution_options=execution_options or {})
        if row_factory is None:
            return list(result.scalars().all())
        return [row_factory(**dict(row._mapping)) for row in result]

    async def count(self, plan: QueryPlan, execution_options: Optional[Dict[str, Any]] = None) -> int:
        result = await self.session.execute(plan.to_select(), execution_options=execution_options or {})
        return int(result.scalar_one())
