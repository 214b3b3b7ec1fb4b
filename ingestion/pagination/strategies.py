"""
Pagination strategies.

A strategy knows the url of the first page and computes the url of the next
page from the response and the parsed page. ``None`` means there are no more
pages. Strategies also describe their position as a checkpoint state and can
be repositioned from one.
"""

import re
from typing import Callable, Dict, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from core.exceptions import CheckpointError, ConfigurationError
from ingestion.pages.base import BasePage
from ingestion.pagination.state import (
    IndexPaginationIteratorState,
    PaginationIteratorState,
    UrlPaginationIteratorState,
)
from ingestion.transport import HttpResponse
from models.base import PaginationType
import logging

logger = logging.getLogger(__name__)

NEXT_LINK_PATTERN = re.compile(r'<(.+)>\s*;\s*rel="?next"?', re.IGNORECASE)

# (url of the page just read, response body, response headers) -> next url or None
NextPageUrlFunction = Callable[[str, str, Dict[str, str]], Optional[str]]


class PaginationStrategy:
    """
    Base class for url driven pagination.

    ``last_url`` is the most recently produced url: the url of the page
    being fetched until ``next_url`` is called for it.
    """

    pagination_type: PaginationType = None

    def __init__(self, config):
        self.config = config
        self.last_url: Optional[str] = None

    def initial_url(self) -> Optional[str]:
        self.last_url = self.config.url
        return self.last_url

    def next_url(self, response: HttpResponse, page: BasePage) -> Optional[str]:
        self.last_url = self._compute_next_url(response, page)
        return self.last_url

    def _compute_next_url(self, response: HttpResponse, page: BasePage) -> Optional[str]:
        raise NotImplementedError

    def supports_skipping(self) -> bool:
        """Whether a page may be dropped without losing the way to the next one"""
        return True

    def current_state(self) -> PaginationIteratorState:
        """Checkpoint state pointing at ``last_url``"""
        return UrlPaginationIteratorState(page_url=self.last_url)

    def load_from_state(self, state: PaginationIteratorState) -> Optional[str]:
        """Reposition on a checkpoint state and return the url to fetch, None if exhausted"""
        if not isinstance(state, UrlPaginationIteratorState):
            raise CheckpointError(
                f"Pagination type '{self.pagination_type.value}' cannot resume from {type(state).__name__}",
                context={"operation": "load"}
            )
        self.last_url = state.page_url
        return self.last_url

    def close(self):
        pass


class NonePaginationStrategy(PaginationStrategy):
    """A single page"""

    pagination_type = PaginationType.NONE

    def __init__(self, config, is_multi_query: bool = False):
        super().__init__(config)
        self.is_multi_query = is_multi_query

    def _compute_next_url(self, response, page):
        return None

    def supports_skipping(self) -> bool:
        return self.is_multi_query


class LinkInResponseHeaderStrategy(PaginationStrategy):
    """Next url from the ``rel=next`` element of the ``Link`` header"""

    pagination_type = PaginationType.LINK_IN_RESPONSE_HEADER

    def _compute_next_url(self, response, page):
        for header in response.headers.get_list("Link"):
            for element in header.split(","):
                match = NEXT_LINK_PATTERN.fullmatch(element.strip())
                if match:
                    return urljoin(self.last_url or self.config.url, match.group(1).strip())
        return None


class LinkInResponseBodyStrategy(PaginationStrategy):
    """
    Next url from a field of the page body.

    Relative links are resolved against the scheme and host of the
    configured url.
    """

    pagination_type = PaginationType.LINK_IN_RESPONSE_BODY

    def _compute_next_url(self, response, page):
        link = page.get_primitive_by_path(self.config.next_page_field_path)
        if not link:
            return None
        if urlsplit(link).scheme:
            return link

        parts = urlsplit(self.config.url)
        return urljoin(f"{parts.scheme}://{parts.netloc}", link)

    def supports_skipping(self) -> bool:
        return False


class TokenInResponseBodyStrategy(PaginationStrategy):
    """Next url is the configured url plus the token from the page body as a query parameter"""

    pagination_type = PaginationType.TOKEN_IN_RESPONSE_BODY

    def _compute_next_url(self, response, page):
        token = page.get_primitive_by_path(self.config.next_page_token_path)
        if not token:
            return None
        url = httpx.URL(self.config.url).copy_add_param(self.config.next_page_url_parameter, token)
        return str(url)

    def supports_skipping(self) -> bool:
        return False


class IncrementIndexStrategy(PaginationStrategy):
    """
    Substitute an index into the url template.

    The index starts at ``start_index`` and moves by ``index_increment``.
    Pagination ends past ``max_index`` or, without one, after the first
    page with no entries.
    """

    pagination_type = PaginationType.INCREMENT_AN_INDEX

    def __init__(self, config):
        super().__init__(config)
        self.index_increment = config.index_increment
        self.max_index = config.max_index
        self.index: Optional[int] = None
        self.exhausted = False

    def _url_for_current_index(self) -> Optional[str]:
        if self.max_index is not None and self.index > self.max_index:
            return None
        return self.config.url_for_index(self.index)

    def initial_url(self) -> Optional[str]:
        self.index = self.config.start_index
        self.last_url = self._url_for_current_index()
        self.exhausted = self.last_url is None
        return self.last_url

    def _compute_next_url(self, response, page):
        if self.max_index is None and not page.has_next():
            self.exhausted = True
            return None
        self.index += self.index_increment
        url = self._url_for_current_index()
        self.exhausted = url is None
        return url

    def current_state(self) -> PaginationIteratorState:
        return IndexPaginationIteratorState(index=self.index, exhausted=self.exhausted)

    def load_from_state(self, state: PaginationIteratorState) -> Optional[str]:
        if not isinstance(state, IndexPaginationIteratorState):
            raise CheckpointError(
                f"Pagination type '{self.pagination_type.value}' cannot resume from {type(state).__name__}",
                context={"operation": "load"}
            )
        self.index = state.index
        self.exhausted = state.exhausted
        self.last_url = None if state.exhausted else self._url_for_current_index()
        return self.last_url


class CustomPaginationStrategy(PaginationStrategy):
    """Next url computed by a caller supplied function"""

    pagination_type = PaginationType.CUSTOM

    def __init__(self, config, next_page_url: NextPageUrlFunction):
        super().__init__(config)
        if next_page_url is None:
            raise ConfigurationError(
                f"A next page url function is required, since pagination type is '{self.pagination_type.value}'",
                property_name="pagination_type"
            )
        self.next_page_url = next_page_url

    def _compute_next_url(self, response, page):
        return self.next_page_url(self.last_url, response.body, response.header_dict()) or None
