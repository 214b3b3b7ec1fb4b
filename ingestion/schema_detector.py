"""
Output schema detection for delimited pages.

Samples the first rows of a CSV/TSV body and infers one field per column:

    name,age,isIndian,country          name: string
    raj,29,true,india           ->     age: int
    rahul,30,false,                    isIndian: boolean
                                       country: string (nullable)

Without a header row the columns are named ``body_0``, ``body_1``, ...
"""

from typing import List, Optional, Tuple

import pandas as pd

from core.config import settings
from core.exceptions import PageParseError
from ingestion.pages.delimited_page import read_delimited
from schemas.record_schema import INT_MAX, INT_MIN, FieldType, RecordSchema, SchemaField
import logging

logger = logging.getLogger(__name__)

INTEGER_PATTERN = r"[+-]?\d+"
BOOLEAN_VALUES = ("true", "false")


def _column_names(header: Optional[List[str]], width: int) -> List[str]:
    names = []
    for position in range(width):
        name = header[position].strip() if header and position < len(header) else ""
        names.append(name or f"body_{position}")
    return names


def detect_column_type(values: pd.Series) -> Tuple[FieldType, bool]:
    """
    Infer the type of one column of text values.

    Returns:
        (field type, nullable). A column is nullable when any value is empty.
    """
    values = values.fillna("").astype(str).str.strip()
    present = values[values != ""]
    nullable = len(present) < len(values)

    if present.empty:
        return FieldType.STRING, True

    if present.str.lower().isin(BOOLEAN_VALUES).all():
        return FieldType.BOOLEAN, nullable

    numbers = pd.to_numeric(present, errors="coerce")
    if numbers.notna().all():
        if present.str.fullmatch(INTEGER_PATTERN).all():
            in_int_range = present.map(lambda v: INT_MIN <= int(v) <= INT_MAX).all()
            return (FieldType.INT if in_int_range else FieldType.LONG), nullable
        return FieldType.DOUBLE, nullable

    return FieldType.STRING, nullable


def detect_delimited_schema(
    text: str,
    delimiter: str,
    skip_first_row: bool = False,
    quoted_values: bool = False,
    sample_size: Optional[int] = None
) -> RecordSchema:
    """
    Infer a record schema from a delimited body.

    Args:
        text: Page body
        delimiter: Column separator
        skip_first_row: The first row is a header with column names
        quoted_values: Honour double quoted values
        sample_size: Rows to sample, header included

    Raises:
        PageParseError: If the body has no rows to sample
    """
    sample_size = sample_size or settings.SCHEMA_DETECTION_SAMPLE_SIZE
    frame = read_delimited(
        text,
        delimiter,
        quoted_values=quoted_values,
        nrows=sample_size,
        bad_lines=[]
    )

    header = None
    if skip_first_row and not frame.empty:
        header = ["" if pd.isna(v) else str(v) for v in frame.iloc[0].tolist()]
        frame = frame.iloc[1:]

    if frame.empty:
        raise PageParseError(
            "Error while reading the page to infer the schema. No rows found",
            context={"delimiter": delimiter}
        )

    names = _column_names(header, len(frame.columns))
    fields = []
    for name, column in zip(names, frame.columns):
        field_type, nullable = detect_column_type(frame[column])
        fields.append(SchemaField(name=name, type=field_type, nullable=nullable))

    logger.info(f"Detected schema with {len(fields)} fields from {len(frame)} sampled rows")
    return RecordSchema(name="text", fields=fields)
