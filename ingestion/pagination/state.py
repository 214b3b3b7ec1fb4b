"""
Checkpoint states of the pagination iterator.

States are immutable and serialize to a small JSON document tagged with the
state type, so they can be stored in the checkpoint table and restored by a
later run:

    {"type": "url", "page_url": "https://api.example.com/users?page=3"}
    {"type": "index", "index": 40, "exhausted": false}
"""

import json
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from core.exceptions import CheckpointError


class UrlPaginationIteratorState(BaseModel):
    """Resume point of url driven pagination. ``page_url=None`` means exhausted."""

    page_url: Optional[str] = None

    class Config:
        frozen = True


class IndexPaginationIteratorState(BaseModel):
    """Resume point of index pagination. ``exhausted`` means no page is left."""

    index: int
    exhausted: bool = False

    class Config:
        frozen = True


PaginationIteratorState = Union[UrlPaginationIteratorState, IndexPaginationIteratorState]

_STATE_TYPES = {
    "url": UrlPaginationIteratorState,
    "index": IndexPaginationIteratorState,
}


def state_to_json(state: PaginationIteratorState) -> str:
    for type_name, state_class in _STATE_TYPES.items():
        if isinstance(state, state_class):
            return json.dumps({"type": type_name, **state.model_dump()})

    raise CheckpointError(
        f"Unsupported checkpoint state '{type(state).__name__}'",
        context={"operation": "serialize"}
    )


def state_from_json(text: str) -> PaginationIteratorState:
    """
    Restore a state written by ``state_to_json``.

    Raises:
        CheckpointError: If the document is not a valid checkpoint state
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CheckpointError(
            "Checkpoint state is not valid json",
            context={"operation": "deserialize"},
            original_exception=e
        )

    if not isinstance(data, dict) or data.get("type") not in _STATE_TYPES:
        raise CheckpointError(
            "Checkpoint state has no known type",
            context={"operation": "deserialize", "state": text}
        )

    state_class = _STATE_TYPES[data.pop("type")]
    try:
        return state_class(**data)
    except ValidationError as e:
        raise CheckpointError(
            f"Invalid {state_class.__name__}",
            context={"operation": "deserialize", "state": text},
            original_exception=e
        )
