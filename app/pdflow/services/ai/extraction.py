"""
Per-page extraction: one page image in, one persisted page output out.

The output file and the completion marker are written only after the model
call succeeded. A failed page leaves nothing behind and is retried by the
next processing request.
"""

import asyncio
import logging

# Handle both package imports and standalone imports
try:
    from ...models import OutputFormat, PageExtraction
except ImportError:
    from models import OutputFormat, PageExtraction

from ..exceptions import ExtractionFailure, ValidationError
from ..page_store import PageStore, get_page_store, image_mime_type, write_text_atomic
from . import AIService, get_ai_service
from .exceptions import AIServiceError
from .prompts import build_page_prompt

logger = logging.getLogger(__name__)


def _coerce_format(output_format: OutputFormat | str) -> OutputFormat:
    try:
        return OutputFormat(output_format)
    except ValueError as e:
        raise ValidationError(f"Unsupported output format: {output_format}") from e


class PageExtractor:
    """
    Extraction Unit for a single page.

    Does not retry. Retrying is left to whoever re-runs the session.
    """

    def __init__(
        self,
        page_store: PageStore,
        ai_service: AIService,
        timeout: float | None = None,
    ):
        self.page_store = page_store
        self.ai_service = ai_service
        self.timeout = timeout

    async def extract_page(
        self,
        session_id: str,
        page: int,
        output_format: OutputFormat | str = OutputFormat.MARKDOWN,
    ) -> PageExtraction:
        """
        Extract one page and persist its output and completion marker.

        Args:
            session_id: Session identifier.
            page: 1-based page number.
            output_format: Target format.

        Returns:
            The completion marker that was written.

        Raises:
            ValidationError: If the format is unknown or the session ID is unsafe.
            ExtractionFailure: If the image is missing or the model call fails.
        """
        fmt = _coerce_format(output_format)

        image_path = self.page_store.find_page_image(session_id, page)
        if image_path is None:
            raise ExtractionFailure(
                f"Image file not found for page {page} of session {session_id}",
                page=page,
            )

        try:
            image_bytes = await asyncio.to_thread(image_path.read_bytes)
        except OSError as e:
            raise ExtractionFailure(f"Could not read image {image_path.name}: {e}", page=page) from e

        prompt = build_page_prompt(page, fmt)

        try:
            text = await asyncio.wait_for(
                self.ai_service.generate_page_text(
                    image_bytes,
                    image_mime_type(image_path),
                    prompt,
                    fmt,
                ),
                timeout=self.timeout,
            )
        except AIServiceError as e:
            e.page = page
            raise
        except asyncio.TimeoutError as e:
            raise ExtractionFailure(
                f"Extraction of page {page} timed out after {self.timeout}s",
                page=page,
            ) from e

        extraction = PageExtraction(page=page, text=text, format=fmt)
        try:
            await asyncio.to_thread(self._persist, session_id, extraction)
        except OSError as e:
            raise ExtractionFailure(f"Could not write output of page {page}: {e}", page=page) from e

        logger.info("Extracted page %d for session %s as %s", page, session_id, fmt.value)
        return extraction

    def _persist(self, session_id: str, extraction: PageExtraction) -> None:
        """Write the page output, then its completion marker."""
        output_dir = self.page_store.session_output_dir(session_id)
        output_dir.mkdir(parents=True, exist_ok=True)

        write_text_atomic(
            self.page_store.page_output_path(session_id, extraction.page, extraction.format),
            extraction.text,
        )
        write_text_atomic(
            self.page_store.marker_path(session_id, extraction.page),
            extraction.model_dump_json(indent=2),
        )


# Singleton instance for convenience
_page_extractor: PageExtractor | None = None


def get_page_extractor() -> PageExtractor:
    """Get or create the page extractor singleton."""
    global _page_extractor
    if _page_extractor is None:
        ai_service = get_ai_service()
        _page_extractor = PageExtractor(
            get_page_store(),
            ai_service,
            timeout=ai_service.timeout,
        )
    return _page_extractor
