"""
Unit tests for the output record schema
"""

import json

import pytest
from core.exceptions import RecordConversionError
from schemas.record_schema import FieldType, RecordSchema, encode_bytes


ORDER_SCHEMA = {
    "type": "record",
    "name": "order",
    "fields": [
        {"name": "id", "type": "long"},
        {"name": "quantity", "type": ["int", "null"]},
        {"name": "price", "type": "double"},
        {"name": "paid", "type": "boolean"},
        {"name": "tags", "type": {"type": "array", "items": "string"}},
        {"name": "customer", "type": {
            "type": "record",
            "name": "customer",
            "fields": [
                {"name": "name", "type": "string"},
                {"name": "vip", "type": ["boolean", "null"]},
            ]
        }},
    ]
}


class TestSchemaParsing:
    """Test Avro-style schema parsing"""

    def test_parse_fields(self):
        schema = RecordSchema.from_json(json.dumps(ORDER_SCHEMA))

        assert schema.name == "order"
        assert schema.field_names == ["id", "quantity", "price", "paid", "tags", "customer"]
        assert schema.optional_field_names == ["quantity"]
        assert schema.get_field("tags").items.type == FieldType.STRING
        assert schema.get_field("customer").get_field("vip").nullable is True

    def test_reject_non_record_schema(self):
        with pytest.raises(ValueError, match="must be a record schema"):
            RecordSchema.from_json('{"type": "string"}')

    def test_reject_unsupported_type(self):
        with pytest.raises(ValueError, match="unsupported type"):
            RecordSchema.from_json({"type": "record", "fields": [{"name": "a", "type": "uuid-ish"}]})

    def test_reject_multi_type_union(self):
        with pytest.raises(ValueError, match="unsupported union type"):
            RecordSchema.from_json({"type": "record", "fields": [{"name": "a", "type": ["int", "string"]}]})

    def test_to_json_keeps_nullability(self):
        schema = RecordSchema.from_json(ORDER_SCHEMA)

        assert RecordSchema.from_json(schema.to_json()) == schema


class TestConvertRecord:
    """Test conversion of decoded json values"""

    def setup_method(self):
        self.schema = RecordSchema.from_json(ORDER_SCHEMA)
        self.order = {
            "id": 7,
            "quantity": 2,
            "price": 10,
            "paid": True,
            "tags": ["a", "b"],
            "customer": {"name": "Raj", "vip": None},
        }

    def test_valid_record(self):
        record = self.schema.convert_record(self.order)

        assert record == {
            "id": 7,
            "quantity": 2,
            "price": 10.0,
            "paid": True,
            "tags": ["a", "b"],
            "customer": {"name": "Raj", "vip": None},
        }

    def test_missing_nullable_field(self):
        del self.order["quantity"]

        assert self.schema.convert_record(self.order)["quantity"] is None

    def test_missing_required_field(self):
        del self.order["price"]

        with pytest.raises(RecordConversionError, match="Field 'price' is not nullable"):
            self.schema.convert_record(self.order)

    def test_type_mismatch(self):
        self.order["paid"] = "yes"

        with pytest.raises(RecordConversionError, match="expected to be 'boolean'"):
            self.schema.convert_record(self.order)

    def test_nested_mismatch_reports_path(self):
        self.order["tags"] = ["a", {"b": 1}]

        with pytest.raises(RecordConversionError, match=r"Field 'tags\[1\]'"):
            self.schema.convert_record(self.order)

    def test_int_range(self):
        self.order["quantity"] = 2 ** 40

        with pytest.raises(RecordConversionError, match="out of int range"):
            self.schema.convert_record(self.order)

    def test_long_accepts_large_values(self):
        self.order["id"] = 2 ** 40

        assert self.schema.convert_record(self.order)["id"] == 2 ** 40

    def test_bool_is_not_a_number(self):
        self.order["id"] = True

        with pytest.raises(RecordConversionError):
            self.schema.convert_record(self.order)

    def test_best_effort_leaves_bad_fields_unset(self):
        self.order["paid"] = "yes"
        del self.order["price"]

        record = self.schema.best_effort(self.order)

        assert record["id"] == 7
        assert record["paid"] is None
        assert record["price"] is None


class TestConvertStrings:
    """Test conversion of text values"""

    def setup_method(self):
        self.schema = RecordSchema.from_json({
            "type": "record",
            "fields": [
                {"name": "name", "type": "string"},
                {"name": "age", "type": ["int", "null"]},
                {"name": "score", "type": "double"},
                {"name": "active", "type": "boolean"},
                {"name": "raw", "type": ["bytes", "null"]},
            ]
        })

    def test_coerce_text(self):
        record = self.schema.convert_strings(
            {"name": "raj", "age": "29", "score": "1.5", "active": "TRUE", "raw": "x"}
        )

        assert record == {"name": "raj", "age": 29, "score": 1.5, "active": True, "raw": b"x"}

    def test_empty_text_is_null_for_non_strings(self):
        record = self.schema.convert_strings({"name": "", "age": "", "score": "0", "active": "false"})

        assert record["name"] == ""
        assert record["age"] is None
        assert record["raw"] is None

    def test_unparsable_number(self):
        with pytest.raises(RecordConversionError, match="expected to be 'double'"):
            self.schema.convert_strings({"name": "raj", "score": "high", "active": "true"})

    def test_nested_types_from_json_text(self):
        schema = RecordSchema.from_json({
            "type": "record",
            "fields": [{"name": "tags", "type": {"type": "array", "items": "int"}}]
        })

        assert schema.convert_strings({"tags": "[1, 2]"}) == {"tags": [1, 2]}

        with pytest.raises(RecordConversionError, match="not valid json"):
            schema.convert_strings({"tags": "1, 2"})


def test_encode_bytes():
    assert encode_bytes(b"hello") == "aGVsbG8="
