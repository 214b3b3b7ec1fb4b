"""
Pagination iterator.

Flattens the entries of all pages of a source into one forward-only stream.
For every page it:

1. Fetches the page url, retrying while the status code says so
2. Decides what the final status code means (success, fail, skip, send to error)
3. Builds the page parser for the response
4. Asks the pagination strategy for the next url

Iteration ends when the strategy has no next url, or when the very first page
of the run has no entries.
"""

import enum
from typing import Optional

import httpx

from core.exceptions import HttpFetchError, PaginationConflictError, TransportError
from ingestion.error_handling import (
    PROPERTY_HTTP_ERRORS_HANDLING,
    TRANSPORT_ERROR_CODE,
    ErrorClassifier,
)
from ingestion.pages.base import BasePage, PageEntry
from ingestion.pages.factory import create_page
from ingestion.pagination.state import PaginationIteratorState
from ingestion.pagination.strategies import PaginationStrategy
from ingestion.retry import RetryScheduler
from ingestion.transport import ErrorHttpResponse, HttpResponse
from models.base import AfterRetryAction
import logging

logger = logging.getLogger(__name__)


class IteratorStatus(str, enum.Enum):
    """Lifecycle of a pagination iterator"""
    IDLE = "idle"
    FETCHING_PAGE = "fetching_page"
    HAS_CURRENT_PAGE = "has_current_page"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class HttpPaginationIterator:
    """
    Iterator over the page entries of a paginated HTTP source.

    Features:
    - Retries per page according to the error handling rules and retry policy
    - Transport failures are classified as status code -1
    - Skipped pages become a single invalid entry
    - Checkpoint state for resuming a later run

    Usage:
        with create_pagination_iterator(config) as iterator:
            for entry in iterator:
                ...
    """

    def __init__(
        self,
        config,
        transport,
        strategy: PaginationStrategy,
        classifier: Optional[ErrorClassifier] = None,
        scheduler: Optional[RetryScheduler] = None,
        state: Optional[PaginationIteratorState] = None
    ):
        self.config = config
        self.transport = transport
        self.strategy = strategy
        self.classifier = classifier or ErrorClassifier(config.http_errors_handling)
        self.scheduler = scheduler or RetryScheduler()
        self.retry_policy = config.build_retry_policy()

        if state is not None:
            self._next_url = strategy.load_from_state(state)
            logger.info(f"Resuming {strategy.pagination_type.value} pagination at '{self._next_url}'")
        else:
            self._next_url = strategy.initial_url()

        self._next_state = strategy.current_state()
        self._page_state = self._next_state

        self.status = IteratorStatus.IDLE
        self.current_page_url: Optional[str] = None
        self.pages_fetched = 0

        self._page: Optional[BasePage] = None
        self._response: Optional[HttpResponse] = None
        self._status_code: Optional[int] = None

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def __iter__(self):
        return self

    def __next__(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        return self._page.next()

    def has_next(self) -> bool:
        """True while some page still has entries. Fetches pages as needed."""
        if self.status in (IteratorStatus.EXHAUSTED, IteratorStatus.FAILED):
            return False

        while self._page is None or not self._page.has_next():
            page = self._get_next_page()
            if page is None:
                return False

            if not page.has_next() and self.pages_fetched == 1:
                logger.info(f"First page '{self.current_page_url}' has no entries, stopping pagination")
                self.status = IteratorStatus.EXHAUSTED
                return False

        return True

    def get_current_state(self) -> PaginationIteratorState:
        """
        Resume point for a later run.

        While the current page still has entries this points at that page,
        which is read again from its start on resume. Once the page is
        drained it points at the next page.
        """
        if self._page is not None and self._page.has_next():
            return self._page_state
        return self._next_state

    # ------------------------------------------------------------------
    # Page fetching
    # ------------------------------------------------------------------

    def _visit_page(self, url: str) -> bool:
        """One fetch attempt. True when the status code needs no retry."""
        if self._response is not None:
            self._response.close()
            self._response = None

        response = None
        try:
            response = self.transport.execute(url)
            response.read()
        except (TransportError, httpx.HTTPError, OSError) as e:
            logger.warning(f"Fetching '{url}' failed: {e}")
            if response is not None:
                response.close()
            response = ErrorHttpResponse(TRANSPORT_ERROR_CODE, e)

        self._response = response
        self._status_code = response.status_code
        return not self.classifier.should_retry(self._status_code)

    def _get_next_page(self) -> Optional[BasePage]:
        if self._next_url is None:
            self.status = IteratorStatus.EXHAUSTED
            return None

        self._close_page()
        self.status = IteratorStatus.FETCHING_PAGE
        url = self._next_url
        # page to page throttle, never before the first page of a run
        delay = self.config.wait_time_between_pages / 1000.0 if self.pages_fetched else 0.0

        logger.debug(f"Fetching '{url}'")
        try:
            self.scheduler.await_until(lambda: self._visit_page(url), self.retry_policy, initial_delay=delay)
            page = self._create_page(url)
            self._page_state = self._next_state
            self._next_url = self.strategy.next_url(self._response, page)
            self._next_state = self.strategy.current_state()
        except Exception:
            self.status = IteratorStatus.FAILED
            raise

        self._page = page
        self.current_page_url = url
        self.pages_fetched += 1
        self.status = IteratorStatus.HAS_CURRENT_PAGE
        logger.debug(f"Next page url is '{self._next_url}'")
        return page

    def _create_page(self, url: str) -> BasePage:
        status_code = self._status_code
        action = self.classifier.after_retry_action(status_code)

        if action == AfterRetryAction.FAIL:
            body = self._response.body
            raise HttpFetchError(
                f"Fetching from url '{url}' returned status code '{status_code}' and body '{body}'",
                context={"url": url, "status_code": status_code, "response_body": body[:1000]}
            )

        if action in (AfterRetryAction.SKIP, AfterRetryAction.SEND_TO_ERROR):
            if not self.strategy.supports_skipping():
                raise PaginationConflictError(
                    f"Pagination type '{self.strategy.pagination_type.value}', does not support "
                    f"'skip' and 'send to error' error handling.",
                    property_name=PROPERTY_HTTP_ERRORS_HANDLING,
                    context={
                        "pagination_type": self.strategy.pagination_type.value,
                        "status_code": status_code,
                    }
                )
            logger.warning(
                f"Fetching from url '{url}' returned status code '{status_code}', "
                f"page handled as '{action.value}'"
            )

        return create_page(self.config, self._response, self.classifier, is_error=action != AfterRetryAction.SUCCESS)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def _close_page(self):
        page, response = self._page, self._response
        self._page = None
        self._response = None
        try:
            if page is not None:
                page.close()
        finally:
            if response is not None:
                response.close()

    def close(self):
        """Release the current page and response, then the transport"""
        errors = []
        for release in (self._close_page, self.strategy.close, self.transport.close):
            try:
                release()
            except Exception as e:
                logger.error(f"Failed to release pagination resource: {e}")
                errors.append(e)

        if self.status not in (IteratorStatus.FAILED, IteratorStatus.EXHAUSTED):
            self.status = IteratorStatus.EXHAUSTED
        if errors:
            raise errors[-1]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
