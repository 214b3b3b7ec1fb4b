"""
Slash-separated path lookups in decoded JSON.

A lookup walks ``/bookstore/items/title`` one key at a time and stops at the
first missing key, reporting both the part of the path it resolved and the
part it could not.
"""

import json
from typing import Any, List, Optional, Sequence

from core.exceptions import PageParseError


def split_path(path: Optional[str]) -> List[str]:
    if path is None:
        return []
    return [part for part in path.strip().split("/") if part]


def join_path(parts: Sequence[str]) -> str:
    return "/" + "/".join(parts)


def is_primitive(value: Any) -> bool:
    return not isinstance(value, (dict, list))


def to_json_text(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class JsonQueryResult:
    """Outcome of a path lookup"""

    def __init__(
        self,
        retrieved_parts: List[str],
        unretrieved_parts: List[str],
        optional_fields: Sequence[str],
        result: Any
    ):
        self.retrieved_parts = retrieved_parts
        self.unretrieved_parts = unretrieved_parts
        self.optional_fields = optional_fields
        self.result = result

    @property
    def retrieved_path(self) -> str:
        return join_path(self.retrieved_parts)

    @property
    def unretrieved_path(self) -> str:
        return join_path(self.unretrieved_parts)

    @property
    def found(self) -> bool:
        return not self.unretrieved_parts

    def is_fully_retrieved(self) -> bool:
        """True if the whole path resolved, or only optional fields were missing"""
        return self.found or set(self.unretrieved_parts).issubset(self.optional_fields)

    def value(self) -> Any:
        """The element at the path, None when the path did not resolve"""
        return self.result if self.found else None

    def as_primitive(self) -> Any:
        if not is_primitive(self.result):
            raise PageParseError(
                f"Element retrieved by path '{self.retrieved_path}' expected to be a primitive, "
                f"but found '{type(self.result).__name__}'",
                context={"path": self.retrieved_path, "result": to_json_text(self.result)}
            )
        return self.result

    def __repr__(self):
        return (
            f"JsonQueryResult(retrieved_path={self.retrieved_path!r}, "
            f"unretrieved_path={self.unretrieved_path!r})"
        )


def get_json_element_by_path(
    element: Any,
    path: Optional[str],
    optional_fields: Sequence[str] = ()
) -> JsonQueryResult:
    """
    Resolve ``path`` against ``element``.

    Args:
        element: Decoded JSON
        path: Slash-separated path, e.g. ``/city/schools/students``
        optional_fields: Field names allowed to be missing
    """
    parts = split_path(path)
    current = element

    for i, part in enumerate(parts):
        if not isinstance(current, dict) or current.get(part) is None:
            return JsonQueryResult(parts[:i], parts[i:], optional_fields, current)
        current = current[part]

    return JsonQueryResult(parts, [], optional_fields, current)
