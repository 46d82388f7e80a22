from __future__ import annotations
from dataclasses import dataclass
from .base import BaseAdapter, CountStrategy


@dataclass(frozen=True)
class MSSQLAdapter(BaseAdapter):
    name: str = 'mssql'
    # ORDER BY items must appear in the select list if SELECT DISTINCT is specified
    supports_multi_valued_order_by: bool = False
    count_strategy: CountStrategy = CountStrategy.EXISTS
    grouped_element_collection_in: bool = False
