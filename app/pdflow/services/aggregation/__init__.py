"""
Aggregation of per-page outputs into one document.

Reads every completion marker of a session in numeric page order, renders
them with the renderer registered for the requested format, and writes
``full.<ext>`` plus ``full.<format>.meta.json``. Rendering finishes before
anything is written, so a failed aggregation leaves earlier output intact.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

# Handle both package imports and standalone imports
try:
    from ...models import (
        AggregatedOutput,
        AggregateInfo,
        AggregationMetadata,
        OutputFormat,
        PageExtraction,
    )
except ImportError:
    from models import (
        AggregatedOutput,
        AggregateInfo,
        AggregationMetadata,
        OutputFormat,
        PageExtraction,
    )

from ..exceptions import AggregationFailure, NoPagesFoundError, ValidationError
from ..page_store import PageStore, get_page_store, write_texts_atomic
from .renderers import RENDERERS, PageRenderer, register_renderer

logger = logging.getLogger(__name__)

__all__ = [
    "Aggregator",
    "PageRenderer",
    "RENDERERS",
    "get_aggregator",
    "register_renderer",
]


class Aggregator:
    """Combines a session's extracted pages into aggregated documents."""

    def __init__(self, page_store: PageStore):
        self.page_store = page_store

    def _renderer_for(self, output_format: OutputFormat | str) -> PageRenderer:
        try:
            return RENDERERS[OutputFormat(output_format)]
        except (ValueError, KeyError) as e:
            raise ValidationError(
                f"Unsupported aggregation format: {output_format}. "
                f"Supported: {', '.join(f.value for f in RENDERERS)}"
            ) from e

    def aggregated_path(self, session_id: str, output_format: OutputFormat) -> Path:
        return self.page_store.session_output_dir(session_id) / f"full.{output_format.extension}"

    def metadata_path(self, session_id: str, output_format: OutputFormat) -> Path:
        return self.page_store.session_output_dir(session_id) / f"full.{output_format.value}.meta.json"

    def load_pages(self, session_id: str) -> list[PageExtraction]:
        """
        Read all completion markers of a session, sorted by page number.

        Raises:
            NoPagesFoundError: If the session has no extracted pages.
            AggregationFailure: If a marker cannot be read or parsed.
        """
        output_dir = self.page_store.session_output_dir(session_id)
        if not output_dir.is_dir():
            raise NoPagesFoundError(f"Output directory not found for session: {session_id}")

        markers = self.page_store.list_extracted_pages(session_id)
        if not markers:
            raise NoPagesFoundError(f"No page files found for aggregation in session {session_id}")

        pages = []
        for page_number, marker in markers:
            try:
                pages.append(PageExtraction.model_validate_json(marker.read_text(encoding="utf-8")))
            except (OSError, PydanticValidationError) as e:
                logger.error("Unreadable page marker %s: %s", marker.name, e)
                raise AggregationFailure(
                    f"Page {page_number} output is missing or malformed: {marker.name}"
                ) from e
        return pages

    def aggregate(
        self,
        session_id: str,
        output_format: OutputFormat | str = OutputFormat.MARKDOWN,
    ) -> AggregatedOutput:
        """
        Aggregate all extracted pages of a session.

        Re-running fully overwrites the previous output for the same format.

        Args:
            session_id: Session identifier.
            output_format: One of the formats with a registered renderer.

        Returns:
            The aggregated document and its metadata.

        Raises:
            ValidationError: If the format cannot be aggregated.
            NoPagesFoundError: If nothing has been extracted yet.
            AggregationFailure: If a page cannot be read or the result cannot be written.
        """
        started = time.monotonic()
        renderer = self._renderer_for(output_format)
        fmt = renderer.format

        pages = self.load_pages(session_id)
        generated_at = datetime.now(timezone.utc)
        content = renderer.render(pages, generated_at)

        result = AggregatedOutput(
            session_id=session_id,
            total_pages=len(pages),
            format=fmt,
            content=content,
            metadata=AggregationMetadata(
                created_at=generated_at.isoformat(),
                total_characters=len(content),
                processing_time=int((time.monotonic() - started) * 1000),
            ),
        )

        try:
            # Metadata goes last so it never describes a document that was not written
            write_texts_atomic(
                [
                    (self.aggregated_path(session_id, fmt), content),
                    (
                        self.metadata_path(session_id, fmt),
                        result.model_dump_json(by_alias=True, exclude={"content"}, indent=2),
                    ),
                ]
            )
        except OSError as e:
            logger.error("Could not write aggregated output for session %s: %s", session_id, e)
            raise AggregationFailure(f"Could not write aggregated output: {e}") from e

        logger.info("Aggregated %d pages to %s for session %s", len(pages), fmt.value, session_id)
        return result

    def get_aggregate_info(self, session_id: str, output_format: OutputFormat | str) -> AggregateInfo:
        """Summarize the stored aggregation of a format, if there is one."""
        path = self.metadata_path(session_id, OutputFormat(output_format))
        if not path.is_file():
            return AggregateInfo(available=False)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return AggregateInfo(
                available=True,
                format=data["format"],
                total_pages=data["totalPages"],
                created_at=data["metadata"]["createdAt"],
                total_characters=data["metadata"]["totalCharacters"],
            )
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Unreadable aggregation metadata %s: %s", path, e)
            return AggregateInfo(available=False, error=str(e))

    def available_formats(self, session_id: str) -> list[str]:
        """List formats that have an aggregated document for the session."""
        output_dir = self.page_store.session_output_dir(session_id)
        if not output_dir.is_dir():
            return []

        formats = []
        for fmt in OutputFormat:
            if self.aggregated_path(session_id, fmt).is_file():
                formats.append(fmt.value)
        return formats

    def get_aggregated_content(self, session_id: str, output_format: OutputFormat | str) -> str | None:
        """Return the aggregated document of a format, or None if absent."""
        path = self.aggregated_path(session_id, OutputFormat(output_format))
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")


# Singleton instance for convenience
_aggregator: Aggregator | None = None


def get_aggregator() -> Aggregator:
    """Get or create the aggregator singleton."""
    global _aggregator
    if _aggregator is None:
        _aggregator = Aggregator(get_page_store())
    return _aggregator
