from typing import Optional

from core.exceptions import ConfigurationError
from ingestion.error_handling import ErrorClassifier
from ingestion.pagination.iterator import HttpPaginationIterator
from ingestion.pagination.state import PaginationIteratorState
from ingestion.pagination.strategies import (
    CustomPaginationStrategy,
    IncrementIndexStrategy,
    LinkInResponseBodyStrategy,
    LinkInResponseHeaderStrategy,
    NextPageUrlFunction,
    NonePaginationStrategy,
    PaginationStrategy,
    TokenInResponseBodyStrategy,
)
from ingestion.retry import RetryScheduler
from ingestion.transport import HttpxTransport
from models.base import PaginationType


def create_pagination_strategy(
    config,
    is_multi_query: bool = False,
    custom_next_page_url: Optional[NextPageUrlFunction] = None
) -> PaginationStrategy:
    pagination_type = config.pagination_type

    if pagination_type == PaginationType.NONE:
        return NonePaginationStrategy(config, is_multi_query=is_multi_query)
    if pagination_type == PaginationType.LINK_IN_RESPONSE_HEADER:
        return LinkInResponseHeaderStrategy(config)
    if pagination_type == PaginationType.LINK_IN_RESPONSE_BODY:
        return LinkInResponseBodyStrategy(config)
    if pagination_type == PaginationType.TOKEN_IN_RESPONSE_BODY:
        return TokenInResponseBodyStrategy(config)
    if pagination_type == PaginationType.INCREMENT_AN_INDEX:
        return IncrementIndexStrategy(config)
    if pagination_type == PaginationType.CUSTOM:
        return CustomPaginationStrategy(config, custom_next_page_url)

    raise ConfigurationError(
        f"Unsupported pagination type: '{pagination_type}'",
        property_name="pagination_type"
    )


def create_pagination_iterator(
    config,
    transport=None,
    state: Optional[PaginationIteratorState] = None,
    is_multi_query: bool = False,
    custom_next_page_url: Optional[NextPageUrlFunction] = None,
    scheduler: Optional[RetryScheduler] = None
) -> HttpPaginationIterator:
    """
    Build the iterator for a source configuration.

    Args:
        config: HttpSourceConfig
        transport: Anything with ``execute(url)`` and ``close()``. Defaults to
            an HttpxTransport built from the configuration.
        state: Checkpoint state to resume from
        is_multi_query: The source is one of many single page queries, so
            single page pagination may skip failed pages
        custom_next_page_url: Next url function for custom pagination
        scheduler: Retry scheduler, injectable for tests
    """
    strategy = create_pagination_strategy(config, is_multi_query, custom_next_page_url)
    classifier = ErrorClassifier(config.http_errors_handling)
    if transport is None:
        transport = HttpxTransport.from_config(config)

    return HttpPaginationIterator(
        config,
        transport,
        strategy,
        classifier=classifier,
        scheduler=scheduler,
        state=state
    )
