from __future__ import annotations
from dataclasses import dataclass
from .base import BaseAdapter, CountStrategy


@dataclass(frozen=True)
class SQLiteAdapter(BaseAdapter):
    name: str = 'sqlite'
    count_strategy: CountStrategy = CountStrategy.IN
    # SQLite accepts bare columns next to aggregates, so GROUP BY root + HAVING is safe
    grouped_element_collection_in: bool = True
