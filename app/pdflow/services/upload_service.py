"""
Upload handling: validate a PDF, create its session and rasterize it.

A failed upload never leaves a half-initialized session behind: the session
directory is removed before the error propagates.
"""

import logging
import secrets
import shutil
import time

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..models import UploadResult
except ImportError:
    from config import get_settings
    from models import UploadResult

from .exceptions import PDFConversionError, ValidationError
from .page_store import PageStore, get_page_store
from .pdf_service import Rasterizer, get_rasterizer

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
DEFAULT_MAX_UPLOAD_BYTES = 500 * 1024 * 1024


def generate_session_id() -> str:
    """Return an unguessable session ID: ``session_<millis>_<32 hex chars>``."""
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(16)}"


def validate_pdf_bytes(data: bytes, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    """
    Check size and file signature of an uploaded PDF.

    Raises:
        ValidationError: If the data is empty, too large, or not a PDF.
    """
    if not data:
        raise ValidationError("Empty file provided")
    if len(data) > max_bytes:
        raise ValidationError(
            f"File size must be less than {max_bytes // (1024 * 1024)}MB"
        )
    if data[:4] != PDF_MAGIC:
        raise ValidationError("Invalid PDF file. File signature does not match PDF format.")


class UploadService:
    """Creates sessions from uploaded PDFs."""

    def __init__(
        self,
        page_store: PageStore,
        rasterizer: Rasterizer,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.page_store = page_store
        self.rasterizer = rasterizer
        self.max_upload_bytes = max_upload_bytes

    async def create_session(self, filename: str | None, data: bytes) -> UploadResult:
        """
        Store an uploaded PDF under a new session and rasterize its pages.

        Args:
            filename: Client-side filename, used for logging only.
            data: PDF bytes.

        Returns:
            The new session ID and its page count.

        Raises:
            ValidationError: If the upload is not an acceptable PDF.
            PDFConversionError: If rasterization fails or produces no pages.
        """
        validate_pdf_bytes(data, self.max_upload_bytes)

        session_id = generate_session_id()
        upload_dir = self.page_store.session_upload_dir(session_id)
        pages_dir = self.page_store.pages_dir(session_id)

        try:
            pages_dir.mkdir(parents=True, exist_ok=False)
            input_path = upload_dir / "input.pdf"
            input_path.write_bytes(data)
            logger.info(
                "Saved upload %s to %s (%.2f KB)",
                filename or "<unnamed>",
                input_path,
                len(data) / 1024,
            )

            await self.rasterizer.rasterize(input_path, pages_dir, session_id)

            pages = self.page_store.list_pages(session_id)
            if not pages:
                raise PDFConversionError(
                    "Failed to convert PDF to images. No pages were generated."
                )
        except BaseException:
            logger.error("Upload of %s failed, removing session %s", filename or "<unnamed>", session_id)
            shutil.rmtree(upload_dir, ignore_errors=True)
            raise

        logger.info("Converted PDF to %d page(s) for session %s", len(pages), session_id)
        return UploadResult(
            session_id=session_id,
            page_count=len(pages),
            message=f"Successfully uploaded and converted PDF to {len(pages)} pages",
            pages=[
                f"/uploads/{session_id}/pages/{self.page_store.find_page_image(session_id, page).name}"
                for page in pages
            ],
        )


# Singleton instance for convenience
_upload_service: UploadService | None = None


def get_upload_service() -> UploadService:
    """Get or create the upload service singleton."""
    global _upload_service
    if _upload_service is None:
        settings = get_settings()
        _upload_service = UploadService(
            get_page_store(),
            get_rasterizer(),
            max_upload_bytes=settings.max_upload_bytes,
        )
    return _upload_service
