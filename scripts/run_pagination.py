"""
Script to drain a paginated HTTP source into a JSON lines file

Usage:
    python scripts/run_pagination.py sources/users.json --output users.jsonl

The source file holds the source name and its configuration:

    {
        "source_name": "users",
        "config": {
            "url": "https://api.example.com/users?page={pagination.index}",
            "format": "json",
            "result_path": "/data",
            "pagination_type": "Increment an index",
            "start_index": 1,
            "index_increment": 1,
            "http_errors_handling": "2..:Success,429:Retry and fail,5..:Retry and skip,.*:Fail",
            "schema": {"type": "record", "name": "user", "fields": [{"name": "id", "type": "long"}]}
        }
    }
"""

import argparse
import json
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import init_db, session_maker
from core.exceptions import PaginationException
from core.logging import setup_logging
from ingestion.checkpoint_store import CheckpointStore
from ingestion.runner import PaginationRunner
from schemas.record_schema import encode_bytes
from schemas.source_config import HttpSourceConfig

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, bytes):
        return encode_bytes(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def run_pagination(source_file: str, output: str, errors_output: str = None, resume: bool = True) -> int:
    """Run one source and write its records, returns the process exit code"""
    with open(source_file) as f:
        source = json.load(f)

    source_name = source["source_name"]
    config = HttpSourceConfig(**source["config"])

    init_db()

    with session_maker() as session, open(output, "w") as records_file:
        error_file = open(errors_output, "w") if errors_output else None

        def write_record(record):
            records_file.write(json.dumps(record, default=_json_default) + "\n")

        def write_error(error):
            error_file.write(json.dumps(error.model_dump(), default=_json_default) + "\n")

        try:
            runner = PaginationRunner(CheckpointStore(session))
            result = runner.run(
                source_name,
                config,
                sink=write_record,
                error_sink=write_error if error_file else None,
                resume=resume
            )
            logger.info(
                f"Run completed for {source_name}: "
                f"Pages={result['pages_fetched']}, Records={result['records_processed']}"
            )
            return 0
        except PaginationException as e:
            logger.error(f"Run failed for {source_name}: {e.message}")
            return 1
        finally:
            if error_file:
                error_file.close()


def main():
    parser = argparse.ArgumentParser(description="Drain a paginated HTTP source")
    parser.add_argument("source_file", help="JSON file with source_name and config")
    parser.add_argument("--output", required=True, help="JSON lines file for records")
    parser.add_argument("--errors-output", help="JSON lines file for entries sent to error")
    parser.add_argument("--no-resume", action="store_true", help="Ignore the stored checkpoint")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (DEBUG, INFO, ...)")
    args = parser.parse_args()

    setup_logging(args.log_level)
    sys.exit(run_pagination(args.source_file, args.output, args.errors_output, resume=not args.no_resume))


if __name__ == "__main__":
    main()
