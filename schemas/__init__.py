"""
Pydantic schemas for source configuration and output records.

Schemas:
    source_config: Paginated HTTP source configuration with validation
    record_schema: Output record schema and value conversion

Usage:
    from schemas.source_config import HttpSourceConfig
    from schemas.record_schema import RecordSchema

Example:
    config = HttpSourceConfig(
        url="https://api.example.com/items?page={pagination.index}",
        format="json",
        result_path="/items",
        pagination_type="Increment an index",
        start_index=1,
        index_increment=1,
        schema='{"type": "record", "name": "item", "fields": [{"name": "id", "type": "long"}]}'
    )

Validation:
    Invalid configurations raise core.exceptions.ConfigurationError with the
    offending property name in its context.
"""

__all__ = [
    "source_config",
    "record_schema",
]
