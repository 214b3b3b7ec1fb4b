# ============================================================================
# File: ingestion/runner.py
# Description: Drains a paginated source into record sinks with checkpointing
# ============================================================================
"""
Pagination Runner - Orchestrates fetching, record routing and checkpoints.

This module provides run orchestration with:
- Record level error handling (skip, send to error sink, stop)
- Checkpoint saves each time the resume point moves to the next page
- Resume from the last checkpoint of a failed run
- Run statistics
"""

from typing import Any, Callable, Dict, List, Optional

from core.exceptions import PaginationException, RecordConversionError
from ingestion.checkpoint_store import CheckpointStore
from ingestion.pages.base import InvalidEntry, PageEntry
from ingestion.pagination.factory import create_pagination_iterator
from ingestion.pagination.strategies import NextPageUrlFunction
from ingestion.retry import RetryScheduler
from models.base import ErrorHandling
import logging

logger = logging.getLogger(__name__)

RecordSink = Callable[[Dict[str, Any]], None]
ErrorSink = Callable[[InvalidEntry], None]

MAX_ERROR_DETAILS = 100


class PaginationRunner:
    """
    Pagination Orchestrator

    Responsibilities:
    - Drain every page of a source
    - Route valid records to the record sink
    - Apply the disposition of invalid entries
    - Control checkpoint advancement
    - Record run statistics
    """

    def __init__(self, checkpoint_store: Optional[CheckpointStore] = None):
        self.checkpoint_store = checkpoint_store

    def run(
        self,
        source_name: str,
        config,
        sink: RecordSink,
        error_sink: Optional[ErrorSink] = None,
        transport=None,
        resume: bool = True,
        custom_next_page_url: Optional[NextPageUrlFunction] = None,
        scheduler: Optional[RetryScheduler] = None
    ) -> Dict[str, Any]:
        """
        Run one source to completion.

        Args:
            source_name: Checkpoint key of the source
            config: HttpSourceConfig
            sink: Receives every valid record
            error_sink: Receives invalid entries whose disposition is "Send to error"
            transport: Transport override (defaults to HttpxTransport)
            resume: Resume from the stored checkpoint, if any
            custom_next_page_url: Next url function for custom pagination
            scheduler: Retry scheduler override

        Returns:
            Dictionary with run statistics:
            - status: "success" or "partial_success"
            - records_processed: Records passed to the sink
            - records_skipped: Invalid entries dropped
            - records_sent_to_error: Invalid entries passed to the error sink
            - pages_fetched: Pages fetched in this run
            - error_details: Invalid entry details (if any)

        Raises:
            RecordConversionError: On an invalid entry whose disposition is "Stop on error"
            PaginationException: On any other failure, after the checkpoint is marked failed
        """
        store = self.checkpoint_store
        stats = {
            "records_processed": 0,
            "records_skipped": 0,
            "records_sent_to_error": 0,
            "pages_fetched": 0,
        }
        error_details: List[Dict[str, Any]] = []

        state = store.load(source_name) if store and resume else None
        if store:
            store.start_run(source_name, config.pagination_type.value)

        logger.info(f"Starting pagination run for {source_name}")

        try:
            iterator = create_pagination_iterator(
                config,
                transport=transport,
                state=state,
                custom_next_page_url=custom_next_page_url,
                scheduler=scheduler
            )
            with iterator:
                saved_state = iterator.get_current_state()
                entries_since_save = 0

                for entry in iterator:
                    if entry.is_error:
                        self._handle_invalid_entry(source_name, entry, error_sink, stats, error_details)
                    else:
                        sink(entry.record)
                        stats["records_processed"] += 1
                    entries_since_save += 1

                    current_state = iterator.get_current_state()
                    if store and current_state != saved_state:
                        store.save(source_name, current_state, entries_since_save, iterator.pages_fetched)
                        saved_state = current_state
                        entries_since_save = 0

                stats["pages_fetched"] = iterator.pages_fetched

        except PaginationException as e:
            logger.error(
                f"Pagination run failed for {source_name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            if store:
                store.mark_failed(source_name, e.message)
            raise

        except Exception as e:
            logger.exception(f"Unexpected error in pagination run for {source_name}")
            if store:
                store.mark_failed(source_name, str(e))
            raise PaginationException(
                "Unexpected error in pagination run",
                context={"source_name": source_name, **stats},
                original_exception=e
            )

        records_failed = stats["records_skipped"] + stats["records_sent_to_error"]
        if store:
            store.mark_success(source_name, partial=records_failed > 0)

        result = {
            "status": "success" if records_failed == 0 else "partial_success",
            **stats,
        }
        if error_details:
            result["error_details"] = error_details

        logger.info(
            f"Pagination run completed for {source_name}: {result['status']} - "
            f"Pages: {stats['pages_fetched']}, Records: {stats['records_processed']}, "
            f"Skipped: {stats['records_skipped']}, Sent to error: {stats['records_sent_to_error']}"
        )
        return result

    def _handle_invalid_entry(
        self,
        source_name: str,
        entry: PageEntry,
        error_sink: Optional[ErrorSink],
        stats: Dict[str, int],
        error_details: List[Dict[str, Any]]
    ):
        error = entry.error

        if entry.error_handling == ErrorHandling.STOP:
            raise RecordConversionError(
                f"Stopping on invalid entry: {error.message}",
                context={"source_name": source_name, "code": error.code}
            )

        if len(error_details) < MAX_ERROR_DETAILS:
            error_details.append({
                "code": error.code,
                "error_message": error.message,
                "error_handling": entry.error_handling.value,
            })

        if entry.error_handling == ErrorHandling.SEND_TO_ERROR and error_sink is not None:
            error_sink(error)
            stats["records_sent_to_error"] += 1
            return

        logger.warning(f"Skipping invalid entry (code {error.code}): {error.message}")
        stats["records_skipped"] += 1
