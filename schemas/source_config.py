"""
Pydantic schema for a paginated HTTP source configuration with validation
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.config import settings
from core.exceptions import ConfigurationError
from ingestion.error_handling import (
    PROPERTY_HTTP_ERRORS_HANDLING,
    compile_rules,
    parse_key_value_string,
)
from ingestion.retry import RetryPolicy
from models.base import (
    AfterRetryAction,
    ErrorHandling,
    PageFormat,
    PaginationType,
    RetryPolicyType,
    enum_by_value,
)
from schemas.record_schema import FieldType, RecordSchema

PAGINATION_INDEX_PLACEHOLDER = "{pagination.index}"
PAGINATION_INDEX_PLACEHOLDER_REGEX = re.compile(re.escape(PAGINATION_INDEX_PLACEHOLDER))

# Pagination types that need every page body to compute the next url
NON_SKIPPING_PAGINATION_TYPES = (
    PaginationType.LINK_IN_RESPONSE_BODY,
    PaginationType.TOKEN_IN_RESPONSE_BODY,
)

PAGINATION_PROPERTIES = (
    "start_index",
    "max_index",
    "index_increment",
    "next_page_field_path",
    "next_page_token_path",
    "next_page_url_parameter",
)

REQUIRED_PAGINATION_PROPERTIES = {
    PaginationType.LINK_IN_RESPONSE_BODY: ("next_page_field_path",),
    PaginationType.TOKEN_IN_RESPONSE_BODY: ("next_page_token_path", "next_page_url_parameter"),
    PaginationType.INCREMENT_AN_INDEX: ("start_index", "index_increment"),
}

# Allowed, but not required
OPTIONAL_PAGINATION_PROPERTIES = {
    PaginationType.INCREMENT_AN_INDEX: ("max_index",),
}


def assert_is_set(value: Any, property_name: str, reason: str):
    if value is None:
        raise ConfigurationError(
            f"Property '{property_name}' must be set, since {reason}",
            property_name=property_name
        )


def assert_is_not_set(value: Any, property_name: str, reason: str):
    if value is not None:
        raise ConfigurationError(
            f"Property '{property_name}' must not be set, since {reason}",
            property_name=property_name
        )


ENUM_PROPERTIES = {
    "format": PageFormat,
    "error_handling": ErrorHandling,
    "retry_policy": RetryPolicyType,
    "pagination_type": PaginationType,
}


class HttpSourceConfig(BaseModel):
    """
    Configuration of one paginated HTTP source.

    Validates on construction:
    - The url parses (the index placeholder is substituted first)
    - Pagination type specific properties are set, or not set
    - Format specific properties (result path, fields mapping, schema shape)
    - Error handling rules compile and fit the pagination type
    - Linear retry policy has an interval

    Key/value properties (``headers``, ``fields_mapping``,
    ``http_errors_handling``) accept either a mapping/list or the
    ``"key1:value1,key2:value2"`` string form.
    """

    # Request
    url: str = Field(..., min_length=1)
    http_method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Optional[str] = None

    # Response parsing
    format: PageFormat = PageFormat.JSON
    result_path: Optional[str] = None
    fields_mapping: Optional[Dict[str, str]] = None
    csv_skip_first_row: bool = False
    enable_quoted_values: bool = False
    parse_objects_to_string: bool = False
    output_schema: RecordSchema = Field(..., alias="schema")

    # Error handling
    http_errors_handling: Optional[List[Tuple[str, str]]] = None
    error_handling: ErrorHandling = ErrorHandling.STOP
    retry_policy: RetryPolicyType = RetryPolicyType.EXPONENTIAL
    linear_retry_interval: Optional[float] = Field(None, ge=0)
    max_retry_duration: float = Field(default_factory=lambda: settings.MAX_RETRY_DURATION, ge=0)

    # Transport
    connect_timeout: Optional[float] = Field(None, gt=0)
    read_timeout: Optional[float] = Field(None, gt=0)
    verify_https: bool = True

    # Pagination
    pagination_type: PaginationType = PaginationType.NONE
    start_index: Optional[int] = None
    max_index: Optional[int] = None
    index_increment: Optional[int] = None
    next_page_field_path: Optional[str] = None
    next_page_token_path: Optional[str] = None
    next_page_url_parameter: Optional[str] = None
    wait_time_between_pages: int = Field(0, ge=0, description="Milliseconds between pages")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("format", "error_handling", "retry_policy", "pagination_type", mode="before")
    @classmethod
    def parse_enum(cls, v, info):
        """Accept enum values and member names, case-insensitively"""
        if v is None:
            return v
        member = enum_by_value(ENUM_PROPERTIES[info.field_name], v)
        if member is None:
            raise ConfigurationError(
                f"Unsupported value for '{info.field_name}': '{v}'",
                property_name=info.field_name
            )
        return member

    @field_validator("headers", "fields_mapping", mode="before")
    @classmethod
    def parse_key_value_mapping(cls, v):
        """Accept "k1:v1,k2:v2" for mapping properties"""
        if isinstance(v, str):
            try:
                return dict(parse_key_value_string(v))
            except ValueError as e:
                raise ConfigurationError(str(e), original_exception=e)
        return v

    @field_validator("http_errors_handling", mode="before")
    @classmethod
    def parse_http_errors_handling(cls, v):
        """Keep rule order, accept the string form or a mapping"""
        if v is None:
            return v
        if isinstance(v, str):
            try:
                return parse_key_value_string(v)
            except ValueError as e:
                raise ConfigurationError(str(e), property_name=PROPERTY_HTTP_ERRORS_HANDLING)
        if isinstance(v, dict):
            return list(v.items())
        return [(regex, getattr(strategy, "value", strategy)) for regex, strategy in v]

    @field_validator("output_schema", mode="before")
    @classmethod
    def parse_output_schema(cls, v):
        """Accept Avro-style json text or a decoded dict"""
        if isinstance(v, str) or (isinstance(v, dict) and v.get("type") == "record"):
            try:
                return RecordSchema.from_json(v)
            except ValueError as e:
                raise ConfigurationError(
                    f"Output schema is not valid: {e}",
                    property_name="schema",
                    original_exception=e
                )
        return v

    @field_validator("http_method")
    @classmethod
    def normalize_http_method(cls, v):
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_source(self):
        self._validate_url()
        self._validate_retry_policy()
        self._validate_pagination()
        self._validate_format()
        self._validate_http_errors_handling()
        return self

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_url(self):
        url = PAGINATION_INDEX_PLACEHOLDER_REGEX.sub("0", self.url)
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigurationError(
                f"URL value is not valid: '{self.url}'",
                property_name="url",
                original_exception=e
            )
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ConfigurationError(f"URL value is not valid: '{self.url}'", property_name="url")

    def _validate_retry_policy(self):
        if self.retry_policy == RetryPolicyType.LINEAR:
            assert_is_set(self.linear_retry_interval, "linear_retry_interval", "retry policy is linear")

    def _validate_pagination(self):
        reason = f"pagination type is '{self.pagination_type.value}'"
        required = REQUIRED_PAGINATION_PROPERTIES.get(self.pagination_type, ())
        optional = OPTIONAL_PAGINATION_PROPERTIES.get(self.pagination_type, ())

        for property_name in PAGINATION_PROPERTIES:
            value = getattr(self, property_name)
            if property_name in required:
                assert_is_set(value, property_name, reason)
            elif property_name not in optional:
                assert_is_not_set(value, property_name, reason)

        if self.pagination_type == PaginationType.INCREMENT_AN_INDEX \
                and PAGINATION_INDEX_PLACEHOLDER not in self.url:
            raise ConfigurationError(
                f"Url '{self.url}' must contain '{PAGINATION_INDEX_PLACEHOLDER}' placeholder "
                f"when pagination type is '{self.pagination_type.value}'",
                property_name="url"
            )

    def _validate_format(self):
        reason = f"page format is '{self.format.value}'"

        if self.format in (PageFormat.JSON, PageFormat.XML):
            if self.format == PageFormat.XML:
                assert_is_set(self.result_path, "result_path", reason)
        else:
            assert_is_not_set(self.result_path, "result_path", reason)
            assert_is_not_set(self.fields_mapping, "fields_mapping", reason)

        single_field_types = {PageFormat.TEXT: FieldType.STRING, PageFormat.BLOB: FieldType.BYTES}
        expected_type = single_field_types.get(self.format)
        if expected_type is not None:
            fields = self.output_schema.fields
            if len(fields) != 1 or fields[0].type != expected_type:
                raise ConfigurationError(
                    f"Schema must have a single field of type '{expected_type.value}', since {reason}",
                    property_name="schema"
                )

    def _validate_http_errors_handling(self):
        rules = compile_rules(self.http_errors_handling)
        if self.pagination_type not in NON_SKIPPING_PAGINATION_TYPES:
            return

        for rule in rules:
            if rule.strategy.after_retry_action in (AfterRetryAction.SKIP, AfterRetryAction.SEND_TO_ERROR):
                raise ConfigurationError(
                    f"Error handling strategy '{rule.strategy.value}' is not supported in combination "
                    f"with pagination type '{self.pagination_type.value}'",
                    property_name=PROPERTY_HTTP_ERRORS_HANDLING
                )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def full_fields_mapping(self) -> Dict[str, str]:
        """Every schema field mapped to ``/<field>``, overridden by ``fields_mapping``"""
        mapping = {field.name: f"/{field.name}" for field in self.output_schema.fields}
        mapping.update(self.fields_mapping or {})
        return mapping

    def build_retry_policy(self) -> RetryPolicy:
        if self.retry_policy == RetryPolicyType.LINEAR:
            return RetryPolicy(
                kind=RetryPolicyType.LINEAR,
                linear_interval_seconds=self.linear_retry_interval,
                max_duration_seconds=self.max_retry_duration,
            )
        return RetryPolicy(kind=RetryPolicyType.EXPONENTIAL, max_duration_seconds=self.max_retry_duration)

    def url_for_index(self, index: int) -> str:
        return PAGINATION_INDEX_PLACEHOLDER_REGEX.sub(str(index), self.url)
