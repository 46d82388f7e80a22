from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from sqlalchemy import String, cast, func, literal


class CountStrategy(Enum):
    """How a filtered count avoids double counting rows multiplied by joins."""
    IN = 'in'
    EXISTS = 'exists'
    DISTINCT = 'distinct'


@dataclass(frozen=True)
class BaseAdapter:
    """Capability flags of a backend, consulted by the compilers.

    Adapters never branch on backend identity elsewhere; everything a compiler
    needs to know about a dialect lives in these flags.
    """
    name: str = 'base'
    supports_multi_valued_order_by: bool = True
    supports_multi_valued_criteria: bool = True
    count_strategy: CountStrategy = CountStrategy.IN
    grouped_element_collection_in: bool = False
    numeric_text_function: Optional[str] = None
    numeric_text_format: Optional[str] = None
    numeric_text_cast: bool = True
    supports_cache_hints: bool = True

    def cast_to_text(self, expr: Any) -> Any:
        """Render a numeric expression as text for LIKE comparisons."""
        if self.numeric_text_function:
            fn = getattr(func, self.numeric_text_function)
            if self.numeric_text_format:
                return fn(expr, literal(self.numeric_text_format))
            return fn(expr)
        if self.numeric_text_cast:
            return cast(expr, String)
        return expr


@dataclass(frozen=True)
class GenericAdapter(BaseAdapter):
    """Conservative fallback for dialects without a dedicated adapter."""
    name: str = 'generic'
    supports_multi_valued_order_by: bool = False
    supports_multi_valued_criteria: bool = False
    supports_cache_hints: bool = False
