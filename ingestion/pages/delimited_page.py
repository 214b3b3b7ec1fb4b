"""
CSV and TSV page parser.

The page body is read with pandas as plain text columns and each row is
coerced against the output schema by position. The frame is always at least
as wide as the schema, so a short line never narrows the rows after it.
Lines with more values than the schema has fields become invalid entries in
their place, without aborting the page.
"""

import csv
import io
from typing import List, Optional

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from core.exceptions import PageParseError, RecordConversionError
from ingestion.pages.base import BasePage, PageEntry, build_string_error
from models.base import PageFormat
import logging

logger = logging.getLogger(__name__)


def max_values_per_line(text: str, delimiter: str) -> int:
    """Upper bound of the values on any single line of ``text``"""
    return max((line.count(delimiter) + 1 for line in text.splitlines()), default=0)


def read_delimited(
    text: str,
    delimiter: str,
    skip_first_row: bool = False,
    quoted_values: bool = False,
    nrows: Optional[int] = None,
    bad_lines: Optional[List[List[str]]] = None,
    columns: Optional[int] = None
) -> pd.DataFrame:
    """
    Read delimited text into a frame of strings (missing values are NaN).

    Args:
        text: Page body
        delimiter: Column separator
        skip_first_row: Drop the first line (a header)
        quoted_values: Honour double quoted values containing the delimiter
        nrows: Read at most this many rows
        bad_lines: Receives the split values of lines with too many columns.
            If None, such lines raise.
        columns: Fixed frame width. Without it the width is taken from the
            first line.

    Raises:
        PageParseError: If the text cannot be tokenized
    """
    options = dict(
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        skiprows=1 if skip_first_row else 0,
        nrows=nrows,
        engine="python",
        quoting=csv.QUOTE_MINIMAL if quoted_values else csv.QUOTE_NONE,
    )
    if columns:
        options["names"] = list(range(columns))
    if bad_lines is not None:
        options["on_bad_lines"] = lambda line: bad_lines.append(line)

    try:
        return pd.read_csv(io.StringIO(text), **options)
    except EmptyDataError:
        return pd.DataFrame()
    except ParserError as e:
        raise PageParseError(
            "Failed to read delimited page",
            context={"delimiter": delimiter},
            original_exception=e
        )


class DelimitedPage(BasePage):
    """
    Page with one delimited row per line.

    Features:
    - Optional header skipping (``csv_skip_first_row``)
    - Optional quoted values (``enable_quoted_values``)
    - Per-row conversion errors become InvalidEntry values, in body order
    """

    def __init__(self, config, response, delimiter: str):
        super().__init__(response)
        self.schema = config.output_schema
        self.error_handling = config.error_handling
        self.delimiter = delimiter
        self.page_format = PageFormat.TSV if delimiter == "\t" else PageFormat.CSV

        body = response.body
        frame = read_delimited(
            body,
            delimiter,
            skip_first_row=config.csv_skip_first_row,
            quoted_values=config.enable_quoted_values,
            columns=max(len(self.schema.fields), max_values_per_line(body, delimiter))
        )

        self._rows: List[List[Optional[str]]] = [
            [None if pd.isna(value) else value for value in row]
            for row in frame.itertuples(index=False, name=None)
        ]
        logger.debug(f"Read {len(self._rows)} rows from {self.page_format.value} page")
        self._position = 0

    def has_next(self) -> bool:
        return self._position < len(self._rows)

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        values = self._rows[self._position]
        self._position += 1

        line = self.delimiter.join(value for value in values if value is not None)
        try:
            return PageEntry.of_record(self._convert(values))
        except RecordConversionError as e:
            return PageEntry.of_error(build_string_error(line, e), self.error_handling)

    def _convert(self, values: List[Optional[str]]) -> dict:
        fields = self.schema.fields
        extra = [value for value in values[len(fields):] if value is not None]
        if extra:
            raise RecordConversionError(
                f"Line has {len(fields) + len(extra)} values, but schema has {len(fields)} fields",
                context={"field_value": self.delimiter.join(v for v in values if v is not None)}
            )
        return self.schema.convert_strings(
            {field.name: value for field, value in zip(fields, values)}
        )
