from __future__ import annotations
from typing import Any, List

from ..errors import UnsupportedOperationError


class OrderCompiler:
    """Turns a page's ordering into ORDER BY directives in insertion order."""

    def __init__(self, resolver: Any, adapter: Any):
        self.resolver = resolver
        self.adapter = adapter
        self.metadata = resolver.metadata

    def compile(self, page: Any) -> List[Any]:
        ordering = page.ordering
        # At most one row is requested; ordering is moot.
        if not ordering or page.limit - page.offset == 1:
            return []
        directives: List[Any] = []
        for field, ascending in ordering.items():
            if self.metadata.is_multi_valued(field) and not self.adapter.supports_multi_valued_order_by:
                raise UnsupportedOperationError(self.adapter.name, f"ordering by multi-valued field '{field}'")
            path = self.resolver.get(field)
            directives.append(path.asc() if ascending else path.desc())
        return directives
