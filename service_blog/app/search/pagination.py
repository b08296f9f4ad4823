"""
Page arithmetic for listings.
"""

import math
from typing import Any, Dict, List

from ..persistence.query_builder import coerce_int


class Pagination:
    """Offset/limit math for ``total_records`` split into pages."""

    def __init__(self, total_records: Any, records_per_page: Any = 10, current_page: Any = 1):
        self.total_records = max(0, coerce_int(total_records))
        self.records_per_page = max(1, coerce_int(records_per_page))
        self.total_pages = math.ceil(self.total_records / self.records_per_page)

        page = max(1, coerce_int(current_page))
        if self.total_pages > 0 and page > self.total_pages:
            page = self.total_pages
        self.current_page = page

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.records_per_page

    @property
    def limit(self) -> int:
        return self.records_per_page

    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    def has_previous(self) -> bool:
        return self.current_page > 1

    def next_page(self) -> int:
        return self.current_page + 1 if self.has_next() else self.current_page

    def previous_page(self) -> int:
        return self.current_page - 1 if self.has_previous() else self.current_page

    def page_range(self, window: int = 2) -> List[int]:
        """Page numbers within ``window`` of the current page."""
        if self.total_pages == 0:
            return []
        start = max(1, self.current_page - window)
        end = min(self.total_pages, self.current_page + window)
        return list(range(start, end + 1))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_page": self.current_page,
            "per_page": self.records_per_page,
            "total_pages": self.total_pages,
            "total_records": self.total_records,
            "has_next": self.has_next(),
            "has_previous": self.has_previous(),
        }
