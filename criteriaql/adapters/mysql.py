from __future__ import annotations
from dataclasses import dataclass
from .base import BaseAdapter, CountStrategy


@dataclass(frozen=True)
class MySQLAdapter(BaseAdapter):
    name: str = 'mysql'
    count_strategy: CountStrategy = CountStrategy.DISTINCT
    grouped_element_collection_in: bool = True
    # LIKE on numeric columns converts implicitly
    numeric_text_cast: bool = False
