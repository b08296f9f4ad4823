"""
Search package: page arithmetic and the search facade used by listings.
"""

from .pagination import Pagination
from .facade import SearchFacade, SearchPage

__all__ = ["Pagination", "SearchFacade", "SearchPage"]
