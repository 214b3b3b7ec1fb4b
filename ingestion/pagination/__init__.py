"""
Pagination strategies and the iterator flattening all pages of a source
"""

from ingestion.pagination.factory import create_pagination_iterator, create_pagination_strategy
from ingestion.pagination.iterator import HttpPaginationIterator, IteratorStatus
from ingestion.pagination.state import (
    IndexPaginationIteratorState,
    UrlPaginationIteratorState,
    state_from_json,
    state_to_json,
)

__all__ = [
    "HttpPaginationIterator",
    "IteratorStatus",
    "IndexPaginationIteratorState",
    "UrlPaginationIteratorState",
    "create_pagination_iterator",
    "create_pagination_strategy",
    "state_from_json",
    "state_to_json",
]
