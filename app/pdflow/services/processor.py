"""
Page-processing driver.

Walks every page of a session in ascending order, skips pages that already
have a completion marker and extracts the rest. A failing page is recorded
and the loop moves on, so one bad page never discards the progress of the
others. Calling ``process`` again after an ``error`` retries only the pages
without a marker; calling it after ``completed`` returns the cached counts.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Protocol

# Handle both package imports and standalone imports
try:
    from ..models import (
        AggregateInfo,
        OutputFormat,
        PageExtraction,
        ProcessResult,
        ProcessStatus,
        ProgressRecord,
        utc_now,
    )
except ImportError:
    from models import (
        AggregateInfo,
        OutputFormat,
        PageExtraction,
        ProcessResult,
        ProcessStatus,
        ProgressRecord,
        utc_now,
    )

from .aggregation import Aggregator, get_aggregator
from .exceptions import (
    AggregationFailure,
    ExtractionFailure,
    NoPagesFoundError,
    NotFoundError,
    ValidationError,
)
from .page_store import PageStore, get_page_store
from .progress import ProgressStore, get_progress_store

logger = logging.getLogger(__name__)

PARTIAL_FAILURE_MESSAGE = "Some pages failed to process"


class PageExtractorProtocol(Protocol):
    async def extract_page(
        self, session_id: str, page: int, output_format: OutputFormat
    ) -> PageExtraction: ...


def _elapsed(record: ProgressRecord) -> str:
    seconds = (utc_now() - record.start_time).total_seconds()
    return f"{seconds:.2f}s"


class PageProcessor:
    """Drives extraction of all pages of a session."""

    def __init__(
        self,
        progress_store: ProgressStore,
        extractor: PageExtractorProtocol,
        aggregator: Aggregator,
        page_store: PageStore,
    ):
        self.progress_store = progress_store
        self.extractor = extractor
        self.aggregator = aggregator
        self.page_store = page_store
        # session ID -> (lock, number of requests holding or waiting for it)
        self._session_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    async def process(
        self,
        session_id: str,
        output_format: OutputFormat | str = OutputFormat.MARKDOWN,
        aggregate: bool = False,
    ) -> ProcessResult:
        """
        Start or resume processing of a session.

        Args:
            session_id: Session identifier from upload.
            output_format: Format every page is extracted to.
            aggregate: Combine all pages once every page is extracted.

        Returns:
            Current status and counters of the session.

        Raises:
            ValidationError: If the session ID or format is invalid.
            NoPagesFoundError: If the session has no page images.
        """
        self.page_store.validate_session_id(session_id)
        try:
            fmt = OutputFormat(output_format)
        except ValueError as e:
            raise ValidationError(f"Unsupported output format: {output_format}") from e

        # Concurrent requests for one session run one after the other; the
        # later one finds the markers written by the earlier one.
        async with self._session_lock(session_id):
            return await self._process_locked(session_id, fmt, aggregate)

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """Hold the lock of a session; the last user removes it."""
        lock, users = self._session_locks.get(session_id, (asyncio.Lock(), 0))
        self._session_locks[session_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._session_locks[session_id]
            if users == 1:
                del self._session_locks[session_id]
            else:
                self._session_locks[session_id] = (lock, users - 1)

    async def _process_locked(
        self, session_id: str, fmt: OutputFormat, aggregate: bool
    ) -> ProcessResult:
        pages = self.page_store.list_pages(session_id)
        if not pages:
            raise NoPagesFoundError(
                f"No pages found for session {session_id}. Please upload a PDF first."
            )

        record = self.progress_store.get_or_init(session_id, len(pages))

        if record.status == ProcessStatus.COMPLETED:
            logger.info("Session %s already completed, returning cached result", session_id)
            return ProcessResult(
                session_id=session_id,
                status=record.status,
                total_pages=record.total_pages,
                processed_pages=record.processed_pages,
                failed_pages=record.failed_pages,
                processing_time=_elapsed(record),
                message="Processing already completed",
                aggregate=self.aggregator.get_aggregate_info(session_id, fmt) if aggregate else None,
            )

        done = [page for page in pages if self.page_store.is_page_extracted(session_id, page)]
        pending = [page for page in pages if page not in done]
        if done:
            logger.debug("Skipping %d already processed page(s) of session %s", len(done), session_id)

        record = self.progress_store.update(
            session_id,
            status=ProcessStatus.PROCESSING,
            error=None,
            failed_pages=[],
            processed_pages=len(done),
        )

        failed: list[int] = []
        for page in pending:
            logger.info("Processing page %d/%d for session %s", page, len(pages), session_id)
            try:
                await self.extractor.extract_page(session_id, page, fmt)
            except ExtractionFailure as e:
                logger.error("Error processing page %d of session %s: %s", page, session_id, e)
                failed.append(page)
                self.progress_store.update(session_id, failed_pages=failed)
                continue

            done.append(page)
            self.progress_store.update(session_id, processed_pages=len(done))
            logger.info("Completed page %d/%d for session %s", page, len(pages), session_id)

        if failed:
            record = self.progress_store.update(
                session_id,
                status=ProcessStatus.ERROR,
                error=PARTIAL_FAILURE_MESSAGE,
                processed_pages=len(done),
                failed_pages=failed,
            )
            message = "Processing completed with errors"
        else:
            record = self.progress_store.update(
                session_id,
                status=ProcessStatus.COMPLETED,
                error=None,
                processed_pages=len(done),
            )
            message = "All pages processed successfully"

        aggregate_info = None
        if aggregate and record.status == ProcessStatus.COMPLETED:
            aggregate_info = self._aggregate(session_id, fmt)

        return ProcessResult(
            session_id=session_id,
            status=record.status,
            total_pages=record.total_pages,
            processed_pages=record.processed_pages,
            failed_pages=record.failed_pages,
            processing_time=_elapsed(record),
            message=message,
            aggregate=aggregate_info,
            error=record.error,
        )

    def _aggregate(self, session_id: str, fmt: OutputFormat) -> AggregateInfo:
        """Aggregate after a completed run; failures are reported, not raised."""
        try:
            output = self.aggregator.aggregate(session_id, fmt)
        except (AggregationFailure, NotFoundError, ValidationError) as e:
            logger.error("Aggregation error for session %s: %s", session_id, e)
            return AggregateInfo(available=False, error="Failed to aggregate pages", details=str(e))

        return AggregateInfo(
            available=True,
            format=output.format,
            total_pages=output.total_pages,
            created_at=output.metadata.created_at,
            total_characters=output.metadata.total_characters,
        )

    def get_progress(self, session_id: str) -> ProcessResult:
        """
        Report progress without extracting anything.

        The processed count is recomputed from the completion markers.

        Raises:
            ValidationError: If the session ID is unsafe.
            NotFoundError: If no processing request was seen for the session.
        """
        self.page_store.validate_session_id(session_id)
        record = self.progress_store.get(session_id)
        if record is None:
            raise NotFoundError(f"Session not found: {session_id}")

        pages = self.page_store.list_pages(session_id)
        processed = sum(1 for page in pages if self.page_store.is_page_extracted(session_id, page))

        return ProcessResult(
            session_id=session_id,
            status=record.status,
            total_pages=record.total_pages,
            processed_pages=processed,
            failed_pages=record.failed_pages,
            processing_time=_elapsed(record),
            error=record.error,
        )


# Singleton instance for convenience
_page_processor: PageProcessor | None = None


def get_page_processor() -> PageProcessor:
    """Get or create the page processor singleton."""
    global _page_processor
    if _page_processor is None:
        from .ai.extraction import get_page_extractor

        _page_processor = PageProcessor(
            get_progress_store(),
            get_page_extractor(),
            get_aggregator(),
            get_page_store(),
        )
    return _page_processor
