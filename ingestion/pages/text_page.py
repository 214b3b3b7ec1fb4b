from core.exceptions import RecordConversionError
from ingestion.pages.base import BasePage, PageEntry, build_bytes_error, build_string_error
from models.base import PageFormat


class TextPage(BasePage):
    """One record per line, stored in the single string field of the schema"""

    page_format = PageFormat.TEXT

    def __init__(self, config, response):
        super().__init__(response)
        self.schema = config.output_schema
        self.error_handling = config.error_handling
        self.field_name = self.schema.fields[0].name
        self._lines = None
        self._position = 0

    def _get_lines(self):
        if self._lines is None:
            self._lines = list(self.response.iter_lines())
        return self._lines

    def has_next(self) -> bool:
        return self._position < len(self._get_lines())

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        line = self._lines[self._position]
        self._position += 1
        try:
            return PageEntry.of_record(self.schema.convert_strings({self.field_name: line}))
        except RecordConversionError as e:
            return PageEntry.of_error(build_string_error(line, e), self.error_handling)


class BlobPage(BasePage):
    """The whole body as one record, stored in the single bytes field of the schema"""

    page_format = PageFormat.BLOB

    def __init__(self, config, response):
        super().__init__(response)
        self.schema = config.output_schema
        self.error_handling = config.error_handling
        self.field_name = self.schema.fields[0].name
        self._returned = False

    def has_next(self) -> bool:
        return not self._returned

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        self._returned = True
        content = self.response.content
        try:
            return PageEntry.of_record(self.schema.convert_record({self.field_name: content}))
        except RecordConversionError as e:
            return PageEntry.of_error(build_bytes_error(content, e), self.error_handling)
