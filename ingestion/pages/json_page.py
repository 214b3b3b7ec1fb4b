"""
JSON page parser.

The result path selects the records inside the document:

    {"data": {"users": [{"id": 1, ...}, {"id": 2, ...}]}}   result_path=/data/users

When the path cannot be resolved completely, the part that resolved selects
the elements and the remainder is looked up inside every element. Each
element is then projected through the fields mapping (schema field -> path
inside the element) and converted against the output schema.
"""

import json
from typing import Any, Dict, Optional

from core.exceptions import PageParseError, RecordConversionError
from ingestion.pages.base import BasePage, InvalidEntry, PageEntry, build_string_error
from ingestion.pages.json_util import (
    get_json_element_by_path,
    is_primitive,
    join_path,
    split_path,
    to_json_text,
)
from models.base import PageFormat
from schemas.record_schema import FieldType, SchemaField
import logging

logger = logging.getLogger(__name__)


class JsonPage(BasePage):
    """
    Page of JSON objects.

    Features:
    - Arrays are iterated, a single object is one element
    - Missing nullable fields leave the field unset
    - Missing required fields produce an InvalidEntry with code 1
    - Type mismatches produce an InvalidEntry with code 0
    """

    page_format = PageFormat.JSON

    def __init__(self, config, response):
        super().__init__(response)
        self.schema = config.output_schema
        self.error_handling = config.error_handling
        self.parse_objects_to_string = config.parse_objects_to_string
        self.optional_fields = self.schema.optional_field_names
        self.fields_mapping = config.full_fields_mapping()

        try:
            self.document = json.loads(response.body)
        except ValueError as e:
            raise PageParseError(
                "Failed to parse json page",
                context={"page_format": self.page_format.value},
                original_exception=e
            )

        element = self.document
        if isinstance(self.document, dict):
            query = get_json_element_by_path(self.document, config.result_path, self.optional_fields)
            self.inside_element_path = query.unretrieved_parts
            element = query.result
        else:
            self.inside_element_path = split_path(config.result_path)

        if isinstance(element, list):
            self._elements = element
        elif isinstance(element, dict):
            self._elements = [element]
        else:
            raise PageParseError(
                f"Element found by '{config.result_path}' json path is expected to be an object "
                f"or an array. Primitive found",
                context={"page_format": self.page_format.value, "result_path": config.result_path}
            )

        self._position = 0

    def has_next(self) -> bool:
        return self._position < len(self._elements)

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        element = self._elements[self._position]
        self._position += 1

        if not isinstance(element, dict):
            error = RecordConversionError(
                f"Expected a json object but found '{type(element).__name__}'",
                context={"field_value": element}
            )
            return PageEntry.of_error(build_string_error(to_json_text(element), error), self.error_handling)

        values = {}
        partially_retrieved = 0
        for field_name, field_path in self.fields_mapping.items():
            path = join_path(self.inside_element_path + split_path(field_path))
            query = get_json_element_by_path(element, path, self.optional_fields)
            if not query.is_fully_retrieved():
                partially_retrieved += 1
            values[field_name] = query.value()

        if self.parse_objects_to_string:
            values = {
                name: _stringify(value, self.schema.get_field(name))
                for name, value in values.items()
            }

        if partially_retrieved:
            return PageEntry.of_error(
                InvalidEntry(
                    code=1,
                    message="Couldn't find all required fields in the record",
                    partial_record=self.schema.best_effort(values),
                ),
                self.error_handling
            )

        try:
            return PageEntry.of_record(self.schema.convert_record(values))
        except RecordConversionError as e:
            return PageEntry.of_error(build_string_error(to_json_text(values), e), self.error_handling)

    def get_primitive_by_path(self, path: str) -> Optional[str]:
        """
        Primitive at ``path`` as a string, None if absent or null.

        Raises:
            PageParseError: If the path points at an object or an array
        """
        if not isinstance(self.document, dict):
            return None

        query = get_json_element_by_path(self.document, path, self.optional_fields)
        if not query.found:
            return None
        return _primitive_to_string(query.as_primitive())


def _primitive_to_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _stringify(value: Any, field: Optional[SchemaField]) -> Any:
    """Turn nested objects and arrays into json text wherever the schema expects a string"""
    if field is None or value is None or is_primitive(value):
        return value

    if field.type == FieldType.STRING:
        return to_json_text(value)

    if isinstance(value, dict) and field.type == FieldType.RECORD:
        stringified: Dict[str, Any] = {}
        for name, nested in value.items():
            nested_field = field.get_field(name)
            if nested_field is not None:
                stringified[name] = _stringify(nested, nested_field)
        return stringified

    if isinstance(value, list) and field.type == FieldType.ARRAY:
        return [_stringify(item, field.items) for item in value]

    return value
