from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from .base import BaseAdapter, CountStrategy


@dataclass(frozen=True)
class PostgresAdapter(BaseAdapter):
    name: str = 'postgres'
    # SELECT DISTINCT requires ORDER BY expressions to appear in the select list
    supports_multi_valued_order_by: bool = False
    count_strategy: CountStrategy = CountStrategy.IN
    grouped_element_collection_in: bool = False
    numeric_text_function: Optional[str] = 'to_char'
    numeric_text_format: Optional[str] = 'FM999999999999999999'
