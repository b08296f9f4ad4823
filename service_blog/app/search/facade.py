"""
Filtered, paginated lookups composed from validation and the store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from shared.logging import get_logger
from shared.errors import StoreError
from ..persistence.query_builder import QueryBuilder, coerce_int
from ..persistence.repositories import PostRepository, UserRepository, SearchLogRepository, POST_STATUSES
from ..validation.engine import RuleEngine
from ..validation.rules import parse_rules
from ..validation.sanitizer import sanitize_string
from .pagination import Pagination

_DATE = r"regex:/^\d{4}-\d{2}-\d{2}([T ][0-9:.+Z-]*)?$/"

POST_FILTER_RULES = parse_rules({
    "category": "alpha_dash|max:50",
    "user_id": "integer",
    "status": "in:" + ",".join(POST_STATUSES),
    "date_from": _DATE,
    "date_to": _DATE,
})


@dataclass
class SearchPage:
    """One page of search results."""
    results: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    pagination: Optional[Pagination] = None
    query: str = ""
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": self.results,
            "total": self.total,
            "pagination": self.pagination.to_dict() if self.pagination else None,
            "query": self.query,
            "filters": self.filters,
        }


class SearchFacade:
    """Post and user search over one store connection.

    Search terms shorter than ``min_query_length`` produce an empty page.
    Filters are validated before use; store failures are logged and
    answered with an empty page rather than raised.
    """

    def __init__(self, builder: QueryBuilder, rule_engine: Optional[RuleEngine] = None,
                 min_query_length: int = 2, max_per_page: int = 100):
        self.posts = PostRepository(builder)
        self.users = UserRepository(builder)
        self.search_logs = SearchLogRepository(builder)
        self.rule_engine = rule_engine or RuleEngine(builder)
        self.min_query_length = min_query_length
        self.max_per_page = max_per_page
        self.logger = get_logger("blog.search.facade")

    def _per_page(self, per_page: Any) -> int:
        return min(self.max_per_page, max(1, coerce_int(per_page)))

    def _term(self, query: Optional[str]) -> str:
        return (query or "").strip()

    def search_posts(self, query: Optional[str], filters: Optional[Mapping[str, Any]] = None,
                     page: Any = 1, per_page: Any = 10) -> SearchPage:
        """Posts whose title, content or author matches ``query``."""
        term = self._term(query)
        if len(term) < self.min_query_length:
            return SearchPage()

        clean_filters = {k: v for k, v in (filters or {}).items()
                         if k in POST_FILTER_RULES.field_names() and v not in (None, "")}
        self.rule_engine.validate_or_raise(clean_filters, POST_FILTER_RULES)

        try:
            total = self.posts.count_search(term, clean_filters)
            pagination = Pagination(total, self._per_page(per_page), page)
            results = self.posts.search(term, clean_filters, pagination.limit, pagination.offset)
        except StoreError as e:
            self.logger.error("Search error", error=str(e))
            return SearchPage()

        return SearchPage(results, total, pagination, sanitize_string(term), clean_filters)

    def search_users(self, query: Optional[str], page: Any = 1, per_page: Any = 10) -> SearchPage:
        """Users whose username or email matches ``query``."""
        term = self._term(query)
        if len(term) < self.min_query_length:
            return SearchPage()

        try:
            total = self.users.count_search(term)
            pagination = Pagination(total, self._per_page(per_page), page)
            results = self.users.search(term, pagination.limit, pagination.offset)
        except StoreError as e:
            self.logger.error("User search error", error=str(e))
            return SearchPage()

        return SearchPage(results, total, pagination, sanitize_string(term))

    def get_search_suggestions(self, query: Optional[str], limit: int = 5) -> List[str]:
        term = self._term(query)
        if len(term) < self.min_query_length:
            return []
        try:
            return self.posts.title_suggestions(term, max(1, coerce_int(limit)))
        except StoreError as e:
            self.logger.error("Search suggestions error", error=str(e))
            return []

    def get_popular_searches(self, limit: int = 10, days: int = 30) -> List[Dict[str, Any]]:
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat(timespec="seconds")
        try:
            return self.search_logs.popular(since, max(1, coerce_int(limit)))
        except StoreError as e:
            self.logger.error("Popular searches error", error=str(e))
            return []

    def log_search(self, query: str, user_id: Optional[Any] = None, results_count: int = 0):
        try:
            self.search_logs.log(self._term(query), user_id, results_count)
        except StoreError as e:
            self.logger.error("Search logging error", error=str(e))

    def get_categories(self) -> List[str]:
        try:
            return self.posts.categories()
        except StoreError as e:
            self.logger.error("Category lookup error", error=str(e))
            return []
