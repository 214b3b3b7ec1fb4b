"""
Output record schema and value conversion.

Schemas are written in the Avro-style JSON the source configuration accepts:

    {
        "type": "record",
        "name": "user",
        "fields": [
            {"name": "_id", "type": "string"},
            {"name": "age", "type": ["int", "null"]},
            {"name": "tags", "type": {"type": "array", "items": "string"}}
        ]
    }

A union with "null" marks the field nullable. Nullable fields may be missing
from a page element without the record being reported as invalid.
"""

import base64
import enum
import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from core.exceptions import RecordConversionError

INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1


class FieldType(str, enum.Enum):
    """Supported field types"""
    STRING = "string"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    BYTES = "bytes"
    ARRAY = "array"
    RECORD = "record"


class SchemaField(BaseModel):
    """A single (possibly nested) field of a record schema"""

    name: str
    type: FieldType
    nullable: bool = False
    items: Optional["SchemaField"] = None
    fields: Optional[List["SchemaField"]] = None

    def get_field(self, name: str) -> Optional["SchemaField"]:
        for field in self.fields or []:
            if field.name == name:
                return field
        return None


SchemaField.model_rebuild()


class RecordSchema(BaseModel):
    """
    Schema of the records produced by page parsers.

    Provides:
    - Avro-style JSON parsing
    - Strict conversion of decoded JSON values
    - Text coercion for XML and delimited values
    """

    name: str = "record"
    fields: List[SchemaField]

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]

    @property
    def optional_field_names(self) -> List[str]:
        return [field.name for field in self.fields if field.nullable]

    def get_field(self, name: str) -> Optional[SchemaField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, text: Union[str, Dict[str, Any]]) -> "RecordSchema":
        """
        Parse an Avro-style record schema.

        Raises:
            ValueError: If the schema is not a record schema or uses an unsupported type
        """
        data = json.loads(text) if isinstance(text, str) else text
        if not isinstance(data, dict) or data.get("type") != "record":
            raise ValueError("Output schema must be a record schema")
        fields = [_parse_field(f["name"], f["type"]) for f in data.get("fields") or []]
        if not fields:
            raise ValueError("Output schema must have at least one field")
        return cls(name=data.get("name", "record"), fields=fields)

    def to_json(self) -> str:
        """Serialize back to Avro-style JSON"""
        return json.dumps({
            "type": "record",
            "name": self.name,
            "fields": [{"name": f.name, "type": _field_type_json(f)} for f in self.fields],
        })

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert_record(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert a decoded JSON object into a record.

        Missing or null values are allowed for nullable fields only.

        Raises:
            RecordConversionError: On a missing required field or a type mismatch
        """
        if not isinstance(data, dict):
            raise RecordConversionError(
                f"Expected a json object but found '{type(data).__name__}'",
                context={"field_value": data}
            )
        return {field.name: _convert_json(field, data.get(field.name), field.name) for field in self.fields}

    def convert_strings(self, data: Dict[str, Optional[str]]) -> Dict[str, Any]:
        """
        Convert textual values (XML text nodes, delimited columns) into a record.

        Raises:
            RecordConversionError: On a missing required field or an unparsable value
        """
        return {field.name: _convert_text(field, data.get(field.name), field.name) for field in self.fields}

    def best_effort(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert whatever converts, leaving the rest unset"""
        record = {}
        for field in self.fields:
            try:
                record[field.name] = _convert_json(field, data.get(field.name), field.name)
            except RecordConversionError:
                record[field.name] = None
        return record


# ----------------------------------------------------------------------
# Avro parsing helpers
# ----------------------------------------------------------------------

def _parse_field(name: str, type_spec: Any) -> SchemaField:
    nullable = False
    if isinstance(type_spec, list):
        non_null = [t for t in type_spec if t != "null"]
        nullable = len(non_null) != len(type_spec)
        if len(non_null) != 1:
            raise ValueError(f"Field '{name}' has an unsupported union type: {type_spec}")
        type_spec = non_null[0]

    if isinstance(type_spec, str):
        try:
            return SchemaField(name=name, type=FieldType(type_spec), nullable=nullable)
        except ValueError:
            raise ValueError(f"Field '{name}' has an unsupported type: '{type_spec}'")

    if isinstance(type_spec, dict):
        kind = type_spec.get("type")
        if kind == "array":
            return SchemaField(
                name=name,
                type=FieldType.ARRAY,
                nullable=nullable,
                items=_parse_field("item", type_spec.get("items")),
            )
        if kind == "record":
            return SchemaField(
                name=name,
                type=FieldType.RECORD,
                nullable=nullable,
                fields=[_parse_field(f["name"], f["type"]) for f in type_spec.get("fields") or []],
            )
        if isinstance(kind, str) and kind in FieldType._value2member_map_:
            # {"type": "string", "logicalType": ...}
            return SchemaField(name=name, type=FieldType(kind), nullable=nullable)

    raise ValueError(f"Field '{name}' has an unsupported type: {type_spec}")


def _field_type_json(field: SchemaField) -> Any:
    if field.type == FieldType.ARRAY:
        spec = {"type": "array", "items": _field_type_json(field.items)}
    elif field.type == FieldType.RECORD:
        spec = {
            "type": "record",
            "name": field.name,
            "fields": [{"name": f.name, "type": _field_type_json(f)} for f in field.fields or []],
        }
    else:
        spec = field.type.value
    return [spec, "null"] if field.nullable else spec


# ----------------------------------------------------------------------
# Value conversion helpers
# ----------------------------------------------------------------------

def _mismatch(path: str, expected: str, value: Any) -> RecordConversionError:
    return RecordConversionError(
        f"Field '{path}' expected to be '{expected}', but found '{type(value).__name__}'",
        context={"field_name": path, "field_value": value}
    )


def _convert_json(field: SchemaField, value: Any, path: str) -> Any:
    if value is None:
        if field.nullable:
            return None
        raise RecordConversionError(
            f"Field '{path}' is not nullable, but no value was found",
            context={"field_name": path}
        )

    field_type = field.type

    if field_type == FieldType.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise _mismatch(path, "string", value)

    if field_type in (FieldType.INT, FieldType.LONG):
        if isinstance(value, bool):
            raise _mismatch(path, field_type.value, value)
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                raise _mismatch(path, field_type.value, value)
        if not isinstance(value, int):
            raise _mismatch(path, field_type.value, value)
        if field_type == FieldType.INT and not INT_MIN <= value <= INT_MAX:
            raise RecordConversionError(
                f"Field '{path}' value {value} is out of int range",
                context={"field_name": path, "field_value": value}
            )
        return value

    if field_type in (FieldType.FLOAT, FieldType.DOUBLE):
        if isinstance(value, bool):
            raise _mismatch(path, field_type.value, value)
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise _mismatch(path, field_type.value, value)
        raise _mismatch(path, field_type.value, value)

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise _mismatch(path, "boolean", value)

    if field_type == FieldType.BYTES:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        raise _mismatch(path, "bytes", value)

    if field_type == FieldType.ARRAY:
        if not isinstance(value, list):
            raise _mismatch(path, "array", value)
        return [_convert_json(field.items, item, f"{path}[{i}]") for i, item in enumerate(value)]

    if field_type == FieldType.RECORD:
        if not isinstance(value, dict):
            raise _mismatch(path, "record", value)
        return {
            nested.name: _convert_json(nested, value.get(nested.name), f"{path}.{nested.name}")
            for nested in field.fields or []
        }

    raise _mismatch(path, field_type.value, value)


def _convert_text(field: SchemaField, value: Optional[str], path: str) -> Any:
    if value is None or (value == "" and field.type != FieldType.STRING):
        return _convert_json(field, None, path)

    if field.type == FieldType.STRING:
        return value
    if field.type == FieldType.BYTES:
        return value.encode("utf-8")
    if field.type in (FieldType.ARRAY, FieldType.RECORD):
        try:
            decoded = json.loads(value)
        except ValueError as e:
            raise RecordConversionError(
                f"Field '{path}' is not valid json",
                context={"field_name": path, "field_value": value},
                original_exception=e
            )
        return _convert_json(field, decoded, path)

    # numbers and booleans share the lenient json rules
    return _convert_json(field, value, path)


def encode_bytes(value: bytes) -> str:
    """Base64 text for bytes fields when records are written as json"""
    return base64.b64encode(value).decode("ascii")
