"""
XML page parser built on lxml.

``result_path`` is an XPath selecting the record elements. Every fields
mapping entry is an XPath evaluated relative to one record element; a
leading ``/`` is anchored at the element, not at the document root:

    result_path:    /catalog/book
    fields_mapping: title:/title,author:/info/author,id:/@id
"""

import json
from typing import Any, Dict, Optional

from lxml import etree

from core.exceptions import PageParseError, RecordConversionError
from ingestion.pages.base import BasePage, PageEntry, build_string_error
from models.base import PageFormat
import logging

logger = logging.getLogger(__name__)


def _relative_xpath(path: str) -> str:
    return "." + path if path.startswith("/") else path


def _node_text(node) -> Optional[str]:
    """
    Text of a leaf element, or the serialized element when it has children.

    Empty leaf elements have no value.
    """
    if len(node) == 0:
        return node.text or None
    return etree.tostring(node, encoding="unicode", with_tail=False)


def _xpath_result_to_string(result: Any, leaf_text=_node_text) -> Optional[str]:
    if isinstance(result, list):
        if not result:
            return None
        first = result[0]
        if isinstance(first, etree._Element):
            return leaf_text(first)
        return str(first) or None
    if isinstance(result, bool):
        return "true" if result else "false"
    if isinstance(result, float):
        return str(int(result)) if result.is_integer() else str(result)
    return str(result) or None


class XmlPage(BasePage):
    """
    Page of XML elements.

    Field values are text and are coerced to the schema types; values that
    do not coerce produce an InvalidEntry with code 0.
    """

    page_format = PageFormat.XML

    def __init__(self, config, response):
        super().__init__(response)
        self.schema = config.output_schema
        self.error_handling = config.error_handling
        self.fields_mapping = config.full_fields_mapping()

        parser = etree.XMLParser(remove_comments=True, resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(response.content, parser)
        except etree.XMLSyntaxError as e:
            raise PageParseError(
                "Failed to parse xml document",
                context={"page_format": self.page_format.value},
                original_exception=e
            )
        if root is None:
            raise PageParseError(
                "Xml document is empty",
                context={"page_format": self.page_format.value}
            )
        self.document = root.getroottree()

        try:
            selected = self.document.xpath(config.result_path)
        except etree.XPathError as e:
            raise PageParseError(
                f"Result path '{config.result_path}' is not a valid XPath",
                context={"page_format": self.page_format.value, "result_path": config.result_path},
                original_exception=e
            )

        if not isinstance(selected, list):
            raise PageParseError(
                f"Result path '{config.result_path}' must select xml elements",
                context={"page_format": self.page_format.value, "result_path": config.result_path}
            )
        self._elements = [node for node in selected if isinstance(node, etree._Element)]
        self._position = 0

    def has_next(self) -> bool:
        return self._position < len(self._elements)

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        element = self._elements[self._position]
        self._position += 1

        values: Dict[str, Optional[str]] = {}
        try:
            for field_name, field_path in self.fields_mapping.items():
                values[field_name] = self._field_value(element, field_path)
            return PageEntry.of_record(self.schema.convert_strings(values))
        except RecordConversionError as e:
            return PageEntry.of_error(
                build_string_error(json.dumps(values, ensure_ascii=False), e),
                self.error_handling
            )

    def _field_value(self, element, path: str) -> Optional[str]:
        try:
            result = element.xpath(_relative_xpath(path))
        except etree.XPathError as e:
            raise RecordConversionError(
                f"Field path '{path}' is not a valid XPath",
                context={"field_path": path},
                original_exception=e
            )
        return _xpath_result_to_string(result)

    def get_primitive_by_path(self, path: str) -> Optional[str]:
        """String value of the XPath over the whole document, None if empty or invalid"""
        try:
            result = self.document.xpath(path)
        except etree.XPathError:
            logger.warning(f"Cannot evaluate XPath '{path}' on xml page")
            return None
        return _xpath_result_to_string(result, leaf_text=lambda node: "".join(node.itertext()) or None)
