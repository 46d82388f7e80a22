from __future__ import annotations
from typing import Any, Iterable


class PartialResultList(list):
    """A page of results plus its offset and the estimated total match count.

    ``estimated_total_number_of_results`` is -1 when counting was not requested.
    """

    def __init__(self, items: Iterable[Any] = (), offset: int = 0, estimated_total_number_of_results: int = -1):
        super().__init__(items)
        self.offset = offset
        self.estimated_total_number_of_results = estimated_total_number_of_results

    @property
    def counted(self) -> bool:
        return self.estimated_total_number_of_results >= 0

    def __repr__(self) -> str:
        return (
            f"PartialResultList(offset={self.offset}, "
            f"estimated_total_number_of_results={self.estimated_total_number_of_results}, "
            f"items={list.__repr__(self)})"
        )
