"""
Paginated HTTP ingestion.

This package fetches every page of an HTTP source and turns the page bodies
into records:

Modules:
    transport: HTTP transport boundary (httpx by default)
    error_handling: Status code classification rules
    retry: Retry policy and scheduler for a single page fetch
    schema_detector: Output schema detection for delimited pages
    checkpoint_store: Checkpoint persistence
    runner: Orchestrator routing records and saving checkpoints

Subpackages:
    pages: Page parsers (JSON, XML, CSV/TSV, text, blob, error pages)
    pagination: Pagination strategies, iterator and checkpoint states

Architecture:
    For each page the iterator:

    1. Fetches the url, retrying according to the error handling rules
    2. Decides whether the page succeeds, fails, or is skipped
    3. Parses the body into page entries
    4. Asks the pagination strategy for the next url

Usage:
    from schemas.source_config import HttpSourceConfig
    from ingestion.pagination import create_pagination_iterator

Example:
    config = HttpSourceConfig(
        url="https://api.example.com/users",
        pagination_type="Link in response header",
        schema=schema_json
    )

    with create_pagination_iterator(config) as iterator:
        for entry in iterator:
            if not entry.is_error:
                print(entry.record)
"""

__all__ = [
    "transport",
    "error_handling",
    "retry",
    "schema_detector",
    "checkpoint_store",
    "runner",
    "pages",
    "pagination",
]
