"""
Integration tests for the pagination iterator over a fake transport
"""

import pytest
from core.exceptions import HttpFetchError, PaginationConflictError, TransportError
from ingestion.pagination.factory import create_pagination_iterator
from ingestion.pagination.iterator import IteratorStatus
from ingestion.pagination.state import IndexPaginationIteratorState, UrlPaginationIteratorState
from ingestion.transport import HttpResponse
from models.base import ErrorHandling
from tests.helpers import BASE_URL, FakeTransport, make_response, user

PAGE_2 = f"{BASE_URL}?page=2"
PAGE_3 = f"{BASE_URL}?page=3"
INDEX_URL = "https://api.example.com/users?offset={pagination.index}"


def link(url):
    return {"Link": f'<{url}>; rel="next"'}


def ids(entries):
    return [entry.record["_id"] for entry in entries]


def drain(iterator):
    with iterator:
        return list(iterator)


@pytest.fixture
def header_pages():
    """Three pages chained by Link headers"""
    return FakeTransport({
        BASE_URL: make_response(body=[user(1), user(2)], headers=link(PAGE_2)),
        PAGE_2: make_response(body=[user(3)], headers=link(PAGE_3)),
        PAGE_3: make_response(body=[user(4), user(5)]),
    })


class TestPaginationTypes:
    """Test every pagination type end to end"""

    def test_link_in_response_header(self, make_config, header_pages, scheduler):
        config = make_config(pagination_type="Link in response header")
        iterator = create_pagination_iterator(config, transport=header_pages, scheduler=scheduler)

        entries = drain(iterator)

        assert ids(entries) == ["u1", "u2", "u3", "u4", "u5"]
        assert header_pages.requested == [BASE_URL, PAGE_2, PAGE_3]
        assert iterator.pages_fetched == 3
        assert iterator.status == IteratorStatus.EXHAUSTED
        assert header_pages.closed

    def test_link_in_response_body(self, make_config, scheduler):
        transport = FakeTransport({
            BASE_URL: make_response(body={"data": [user(1)], "next": "/users?page=2"}),
            PAGE_2: make_response(body={"data": [user(2)], "next": None}),
        })
        config = make_config(
            pagination_type="Link in response body",
            next_page_field_path="/next",
            result_path="/data",
        )

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1", "u2"]
        assert transport.requested == [BASE_URL, PAGE_2]

    def test_token_in_response_body(self, make_config, scheduler):
        transport = FakeTransport({
            BASE_URL: make_response(body={"data": [user(1)], "meta": {"cursor": "c2"}}),
            f"{BASE_URL}?cursor=c2": make_response(body={"data": [user(2)], "meta": {"cursor": "c3"}}),
            f"{BASE_URL}?cursor=c3": make_response(body={"data": [user(3)], "meta": {}}),
        })
        config = make_config(
            pagination_type="Token in response body",
            next_page_token_path="/meta/cursor",
            next_page_url_parameter="cursor",
            result_path="/data",
        )

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1", "u2", "u3"]
        assert transport.requested == [BASE_URL, f"{BASE_URL}?cursor=c2", f"{BASE_URL}?cursor=c3"]

    def test_increment_index_with_max(self, make_config, scheduler):
        transport = FakeTransport({
            f"https://api.example.com/users?offset={n}": make_response(body=[user(n)]) for n in range(0, 10, 2)
        })
        config = make_config(
            url=INDEX_URL,
            pagination_type="Increment an index",
            start_index=0,
            index_increment=2,
            max_index=6,
        )

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert transport.requested == [
            "https://api.example.com/users?offset=0",
            "https://api.example.com/users?offset=2",
            "https://api.example.com/users?offset=4",
            "https://api.example.com/users?offset=6",
        ]
        assert ids(entries) == ["u0", "u2", "u4", "u6"]

    def test_increment_index_until_empty_page(self, make_config, scheduler):
        transport = FakeTransport({
            "https://api.example.com/users?offset=1": make_response(body=[user(1)]),
            "https://api.example.com/users?offset=2": make_response(body=[user(2)]),
            "https://api.example.com/users?offset=3": make_response(body=[]),
        })
        config = make_config(url=INDEX_URL, pagination_type="Increment an index", start_index=1, index_increment=1)

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1", "u2"]
        assert len(transport.requested) == 3

    def test_increment_index_exhausted_state_fetches_nothing(self, make_config, scheduler):
        pages = {
            "https://api.example.com/users?offset=1": make_response(body=[user(1)]),
            "https://api.example.com/users?offset=2": make_response(body=[]),
        }
        config = make_config(url=INDEX_URL, pagination_type="Increment an index", start_index=1, index_increment=1)
        first_run = create_pagination_iterator(config, transport=FakeTransport(pages), scheduler=scheduler)
        drain(first_run)

        transport = FakeTransport(pages)
        resumed = create_pagination_iterator(
            config, transport=transport, state=first_run.get_current_state(), scheduler=scheduler
        )

        assert drain(resumed) == []
        assert transport.requested == []

    def test_custom(self, make_config, scheduler):
        transport = FakeTransport({
            BASE_URL: make_response(body=[user(1)], headers={"X-Next-Page": "2"}),
            PAGE_2: make_response(body=[user(2)]),
        })

        def next_page_url(url, body, headers):
            page = {k.lower(): v for k, v in headers.items()}.get("x-next-page")
            return f"{BASE_URL}?page={page}" if page else None

        iterator = create_pagination_iterator(
            make_config(pagination_type="Custom"),
            transport=transport,
            custom_next_page_url=next_page_url,
            scheduler=scheduler
        )

        assert ids(drain(iterator)) == ["u1", "u2"]

    def test_none(self, make_config, scheduler):
        transport = FakeTransport({BASE_URL: make_response(body=[user(1)], headers=link(PAGE_2))})

        entries = drain(create_pagination_iterator(make_config(), transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1"]
        assert transport.requested == [BASE_URL]


class TestEmptyPages:

    def test_empty_first_page_stops_pagination(self, make_config, scheduler):
        transport = FakeTransport({
            BASE_URL: make_response(body=[], headers=link(PAGE_2)),
            PAGE_2: make_response(body=[user(2)]),
        })
        iterator = create_pagination_iterator(
            make_config(pagination_type="Link in response header"), transport=transport, scheduler=scheduler
        )

        assert drain(iterator) == []
        assert transport.requested == [BASE_URL]
        assert iterator.status == IteratorStatus.EXHAUSTED

    def test_later_empty_pages_are_passed_over(self, make_config, scheduler):
        transport = FakeTransport({
            BASE_URL: make_response(body=[user(1)], headers=link(PAGE_2)),
            PAGE_2: make_response(body=[], headers=link(PAGE_3)),
            PAGE_3: make_response(body=[user(3)]),
        })
        iterator = create_pagination_iterator(
            make_config(pagination_type="Link in response header"), transport=transport, scheduler=scheduler
        )

        assert ids(drain(iterator)) == ["u1", "u3"]
        assert iterator.pages_fetched == 3


class TestErrorHandling:
    """Test status code handling per page"""

    def _index_config(self, make_config, rules, **overrides):
        return make_config(
            url=INDEX_URL,
            pagination_type="Increment an index",
            start_index=1,
            index_increment=1,
            max_index=3,
            http_errors_handling=rules,
            max_retry_duration=5,
            **overrides
        )

    def _index_transport(self, page_two):
        return FakeTransport({
            "https://api.example.com/users?offset=1": make_response(body=[user(1)]),
            "https://api.example.com/users?offset=2": page_two,
            "https://api.example.com/users?offset=3": make_response(body=[user(3)]),
        })

    def test_fail_raises(self, make_config, scheduler):
        transport = self._index_transport(make_response(404, "no such page"))
        iterator = create_pagination_iterator(
            self._index_config(make_config, None), transport=transport, scheduler=scheduler
        )

        with pytest.raises(HttpFetchError) as exc_info:
            drain(iterator)

        assert exc_info.value.message == (
            "Fetching from url 'https://api.example.com/users?offset=2' "
            "returned status code '404' and body 'no such page'"
        )
        assert exc_info.value.context["status_code"] == 404
        assert iterator.status == IteratorStatus.FAILED
        assert transport.closed

    def test_retry_until_success(self, make_config, scheduler, fake_clock):
        transport = self._index_transport([
            make_response(503, "busy"),
            make_response(503, "busy"),
            make_response(body=[user(2)]),
        ])
        config = self._index_config(make_config, "2..:Success,5..:Retry and fail,.*:Fail")

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1", "u2", "u3"]
        assert transport.requested.count("https://api.example.com/users?offset=2") == 3
        assert fake_clock.sleeps == pytest.approx([0.1, 0.2])

    @pytest.mark.parametrize("strategy, handling", [
        ("Retry and skip", ErrorHandling.SKIP),
        ("Retry and send to error", ErrorHandling.SEND_TO_ERROR),
    ])
    def test_retries_exhausted_then_page_is_dropped(self, make_config, scheduler, fake_clock, strategy, handling):
        transport = self._index_transport(make_response(503, "busy"))
        config = self._index_config(make_config, f"2..:Success,503:{strategy},.*:Fail")

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids([entries[0], entries[2]]) == ["u1", "u3"]
        error_entry = entries[1]
        assert error_entry.error.code == 503
        assert error_entry.error_handling == handling
        assert transport.requested.count("https://api.example.com/users?offset=2") > 1
        # 0.1 + 0.2 + 0.4 + 0.8 + 1.6 = 3.1 fits in five seconds, 3.2 more does not
        assert len(fake_clock.sleeps) == 5

    def test_retries_exhausted_then_fail(self, make_config, scheduler):
        transport = self._index_transport(make_response(503, "busy"))
        config = self._index_config(make_config, "2..:Success,503:Retry and fail,.*:Fail")

        with pytest.raises(HttpFetchError, match="returned status code '503'"):
            drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert transport.requested.count("https://api.example.com/users?offset=2") == 6

    def test_skip_without_retry(self, make_config, scheduler, fake_clock):
        transport = self._index_transport(make_response(404, "gone"))
        config = self._index_config(make_config, "2..:Success,404:Skip,.*:Fail")

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert [entry.is_error for entry in entries] == [False, True, False]
        assert entries[1].error.message == "Request failed with '404' http status code. Body is 'gone'"
        assert fake_clock.sleeps == []

    def test_skip_conflicts_with_single_page_pagination(self, make_config, scheduler):
        transport = FakeTransport({BASE_URL: make_response(500, "oops")})
        config = make_config(http_errors_handling="2..:Success,5..:Skip,.*:Fail")

        with pytest.raises(PaginationConflictError, match="does not support 'skip' and 'send to error'"):
            drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

    def test_skip_allowed_for_multi_query(self, make_config, scheduler):
        transport = FakeTransport({BASE_URL: make_response(500, "oops")})
        config = make_config(http_errors_handling="2..:Success,5..:Skip,.*:Fail")

        entries = drain(create_pagination_iterator(
            config, transport=transport, is_multi_query=True, scheduler=scheduler
        ))

        assert [entry.error.code for entry in entries] == [500]

    def test_transport_error_is_classified(self, make_config, scheduler):
        transport = FakeTransport({BASE_URL: [TransportError("connection refused"), make_response(body=[user(1)])]})
        config = make_config(http_errors_handling="-1:Retry and fail,2..:Success,.*:Fail")

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert ids(entries) == ["u1"]
        assert transport.requested == [BASE_URL, BASE_URL]

    def test_transport_error_fails_by_default(self, make_config, scheduler):
        transport = FakeTransport({BASE_URL: TransportError("connection refused")})

        with pytest.raises(HttpFetchError) as exc_info:
            drain(create_pagination_iterator(make_config(), transport=transport, scheduler=scheduler))

        assert exc_info.value.context["status_code"] == -1
        assert "connection refused" in exc_info.value.message

    def test_malformed_page_does_not_stop_pagination(self, make_config, scheduler):
        transport = self._index_transport(make_response(body="<html>maintenance</html>"))
        config = self._index_config(make_config, None, error_handling="Skip on error")

        entries = drain(create_pagination_iterator(config, transport=transport, scheduler=scheduler))

        assert [entry.is_error for entry in entries] == [False, True, False]
        assert entries[1].error_handling == ErrorHandling.SKIP


class TestStateAndResume:
    """Test checkpoint state reporting and resuming"""

    def test_state_moves_once_page_is_drained(self, make_config, header_pages, scheduler):
        iterator = create_pagination_iterator(
            make_config(pagination_type="Link in response header"), transport=header_pages, scheduler=scheduler
        )

        assert iterator.get_current_state() == UrlPaginationIteratorState(page_url=BASE_URL)
        next(iterator)
        assert iterator.get_current_state() == UrlPaginationIteratorState(page_url=BASE_URL)
        next(iterator)
        assert iterator.get_current_state() == UrlPaginationIteratorState(page_url=PAGE_2)

    def test_resume_yields_remaining_entries(self, make_config, header_pages, scheduler):
        config = make_config(pagination_type="Link in response header")
        first_run = create_pagination_iterator(config, transport=header_pages, scheduler=scheduler)
        consumed = [next(first_run), next(first_run)]
        state = first_run.get_current_state()
        remaining = list(first_run)
        first_run.close()

        resumed_transport = FakeTransport({
            PAGE_2: make_response(body=[user(3)], headers=link(PAGE_3)),
            PAGE_3: make_response(body=[user(4), user(5)]),
        })
        resumed = drain(create_pagination_iterator(
            config, transport=resumed_transport, state=state, scheduler=scheduler
        ))

        assert ids(consumed) == ["u1", "u2"]
        assert ids(resumed) == ids(remaining) == ["u3", "u4", "u5"]
        assert resumed_transport.requested == [PAGE_2, PAGE_3]

    def test_resume_index_pagination(self, make_config, scheduler):
        transport = FakeTransport({
            "https://api.example.com/users?offset=4": make_response(body=[user(4)]),
            "https://api.example.com/users?offset=6": make_response(body=[user(6)]),
        })
        config = make_config(
            url=INDEX_URL, pagination_type="Increment an index", start_index=0, index_increment=2, max_index=6
        )

        entries = drain(create_pagination_iterator(
            config, transport=transport, state=IndexPaginationIteratorState(index=4), scheduler=scheduler
        ))

        assert ids(entries) == ["u4", "u6"]

    def test_resume_from_exhausted_state(self, make_config, header_pages, scheduler):
        iterator = create_pagination_iterator(
            make_config(pagination_type="Link in response header"),
            transport=header_pages,
            state=UrlPaginationIteratorState(page_url=None),
            scheduler=scheduler
        )

        assert drain(iterator) == []
        assert header_pages.requested == []


def test_wait_between_pages(make_config, header_pages, scheduler, fake_clock):
    config = make_config(pagination_type="Link in response header", wait_time_between_pages=250)

    drain(create_pagination_iterator(config, transport=header_pages, scheduler=scheduler))

    assert fake_clock.sleeps == [0.25, 0.25]


class TestResourceRelease:
    """Test closing the iterator"""

    def test_close_raises_last_error_after_releasing_response(self, make_config, scheduler):
        released = []

        class UnclosableResponse(HttpResponse):
            def close(self):
                if self.closed:
                    return
                self.closed = True
                released.append("response")
                raise OSError("response stream already broken")

        class UnclosableTransport(FakeTransport):
            def execute(self, url):
                response = super().execute(url)
                return UnclosableResponse(response.status_code, response.headers.multi_items(), content=response.content)

            def close(self):
                released.append("transport")
                raise TransportError("client close failed")

        transport = UnclosableTransport({BASE_URL: make_response(body=[user(1), user(2)])})
        iterator = create_pagination_iterator(make_config(), transport=transport, scheduler=scheduler)
        assert next(iterator).record["_id"] == "u1"

        with pytest.raises(TransportError, match="client close failed"):
            iterator.close()

        assert released == ["response", "transport"]
        assert iterator.status == IteratorStatus.EXHAUSTED

    def test_close_reraises_single_failure(self, make_config, scheduler):
        class UnclosableTransport(FakeTransport):
            def close(self):
                raise TransportError("client close failed")

        iterator = create_pagination_iterator(make_config(), transport=UnclosableTransport(), scheduler=scheduler)

        with pytest.raises(TransportError, match="client close failed"):
            iterator.close()
