"""
Unit tests for checkpoint state serialization
"""

import json

import pytest
from pydantic import ValidationError
from core.exceptions import CheckpointError
from ingestion.pagination.state import (
    IndexPaginationIteratorState,
    UrlPaginationIteratorState,
    state_from_json,
    state_to_json,
)


class TestStateSerialization:

    def test_url_state(self):
        state = UrlPaginationIteratorState(page_url="https://api.example.com/users?page=3")

        text = state_to_json(state)

        assert json.loads(text) == {"type": "url", "page_url": "https://api.example.com/users?page=3"}
        assert state_from_json(text) == state

    def test_index_state(self):
        assert state_from_json('{"type": "index", "index": 40}') == IndexPaginationIteratorState(index=40)

    def test_exhausted_index_state(self):
        state = IndexPaginationIteratorState(index=6, exhausted=True)

        assert json.loads(state_to_json(state)) == {"type": "index", "index": 6, "exhausted": True}
        assert state_from_json(state_to_json(state)) == state

    def test_exhausted_url_state(self):
        assert state_from_json(state_to_json(UrlPaginationIteratorState())).page_url is None

    def test_states_are_immutable(self):
        state = IndexPaginationIteratorState(index=1)

        with pytest.raises(ValidationError):
            state.index = 2

    @pytest.mark.parametrize("text, message", [
        ("not json", "not valid json"),
        ('{"type": "offset", "offset": 3}', "no known type"),
        ('["url"]', "no known type"),
        ('{"type": "index", "index": "many"}', "Invalid IndexPaginationIteratorState"),
    ])
    def test_invalid_state(self, text, message):
        with pytest.raises(CheckpointError, match=message):
            state_from_json(text)
