"""
PDF rasterization into per-page WebP images.

Two interchangeable rasterizers:
- PDFService: in-process conversion with pdf2image (poppler)
- ScriptRasterizer: an external conversion script called as
  ``<script> <input.pdf> <session_id>``

Both write ``page-<n>.webp`` files into the session's pages directory.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
except ImportError:
    from config import get_settings

from .exceptions import PDFConversionError

logger = logging.getLogger(__name__)


class Rasterizer(Protocol):
    async def rasterize(self, input_pdf: Path, pages_dir: Path, session_id: str) -> None: ...


class PDFService:
    """
    Rasterizer using pdf2image (backed by poppler).
    """

    def __init__(self, dpi: int = 150, image_format: str = "WEBP", quality: int = 85):
        """
        Initialize the PDF service.

        Args:
            dpi: Resolution for PDF to image conversion. Higher = better quality but slower.
            image_format: Output image format written for each page.
            quality: Quality for lossy formats (1-100).
        """
        self.dpi = dpi
        self.image_format = image_format
        self.quality = quality

    def convert_pdf_to_pages(self, input_pdf: Path, pages_dir: Path) -> int:
        """
        Convert every page of a PDF into an image file.

        Args:
            input_pdf: Path of the PDF.
            pages_dir: Directory receiving ``page-<n>.webp`` files.

        Returns:
            Number of pages written.

        Raises:
            PDFConversionError: If conversion fails for any reason.
        """
        try:
            # Import here to provide clear error if poppler not installed
            from pdf2image import convert_from_path
            from pdf2image.exceptions import (
                PDFInfoNotInstalledError,
                PDFPageCountError,
                PDFSyntaxError,
            )
        except ImportError as e:
            logger.error("pdf2image not installed: %s", e)
            raise PDFConversionError(
                "pdf2image library not installed. Run: pip install pdf2image"
            ) from e

        try:
            logger.info("Converting PDF to images (dpi=%d): %s", self.dpi, input_pdf)
            images = convert_from_path(str(input_pdf), dpi=self.dpi, thread_count=2)
        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise PDFConversionError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e
        except PDFPageCountError as e:
            logger.error("Could not get PDF page count: %s", e)
            raise PDFConversionError(f"Could not determine PDF page count: {e}") from e
        except PDFSyntaxError as e:
            logger.error("PDF syntax error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error during PDF conversion")
            raise PDFConversionError(f"PDF conversion failed: {e}") from e

        pages_dir.mkdir(parents=True, exist_ok=True)
        for number, image in enumerate(images, start=1):
            image.save(
                pages_dir / f"page-{number}.webp",
                format=self.image_format,
                quality=self.quality,
            )

        logger.info("Successfully converted %d page(s)", len(images))
        return len(images)

    async def rasterize(self, input_pdf: Path, pages_dir: Path, session_id: str) -> None:
        await asyncio.to_thread(self.convert_pdf_to_pages, input_pdf, pages_dir)


class ScriptRasterizer:
    """Rasterizer delegating to an external conversion script."""

    def __init__(self, script: Path, timeout: float = 30.0, cwd: Path | None = None):
        self.script = Path(script)
        self.timeout = timeout
        self.cwd = cwd

    async def rasterize(self, input_pdf: Path, pages_dir: Path, session_id: str) -> None:
        """
        Run the script with the PDF path and session ID as arguments.

        Arguments are passed as a list, never through a shell.

        Raises:
            PDFConversionError: On a non-zero exit, a timeout, or a missing script.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                str(self.script),
                str(input_pdf),
                session_id,
                cwd=self.cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PDFConversionError(f"Could not start conversion script {self.script}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise PDFConversionError(
                f"Conversion script timed out after {self.timeout}s"
            ) from e

        if process.returncode != 0:
            raise PDFConversionError(
                f"Script exited with code {process.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        logger.debug("Script output: %s", stdout.decode("utf-8", errors="replace"))


# Singleton instance for convenience
_rasterizer: Rasterizer | None = None


def get_rasterizer() -> Rasterizer:
    """Get or create the configured rasterizer."""
    global _rasterizer
    if _rasterizer is None:
        settings = get_settings()
        if settings.conversion_script:
            _rasterizer = ScriptRasterizer(
                settings.conversion_script,
                timeout=settings.conversion_timeout,
                cwd=settings.uploads_dir.resolve().parent,
            )
        else:
            _rasterizer = PDFService(dpi=settings.rasterize_dpi)
    return _rasterizer
