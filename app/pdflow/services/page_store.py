"""
Filesystem layout of processing sessions.

A session owns two directories:

- ``<uploads_dir>/<session_id>/`` holding ``input.pdf`` and ``pages/page-<n>.webp``
- ``<outputs_dir>/<session_id>/`` holding per-page outputs, completion markers
  and aggregated documents

The presence of ``page-<n>.meta.json`` is the durable record that page ``n``
was extracted. Everything in this module is a pure filesystem query except
the atomic write helpers.
"""

import logging
import os
import re
import tempfile
from pathlib import Path

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..models import OutputFormat
except ImportError:
    from config import get_settings
    from models import OutputFormat

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

PAGE_IMAGE_PATTERN = re.compile(r"page-(\d+)\.webp")
PAGE_MARKER_PATTERN = re.compile(r"page-(\d+)\.meta\.json")
SAFE_COMPONENT_PATTERN = re.compile(r"[A-Za-z0-9_.-]+")

IMAGE_MIME_TYPES = {
    ".webp": "image/webp",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def is_safe_path_component(component: str) -> bool:
    """Return True if ``component`` can be used as a single path segment."""
    return (
        SAFE_COMPONENT_PATTERN.fullmatch(component) is not None
        and ".." not in component
        and component != "."
    )


def _stage_text(path: Path, text: str) -> str:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return tmp_name


def write_texts_atomic(files: list[tuple[Path, str]]) -> None:
    """
    Write several files so a failure leaves all of them untouched.

    Every file is staged to a temp file first; the renames only start once
    all writes succeeded, and happen in the given order.
    """
    staged: list[tuple[str, Path]] = []
    try:
        for path, text in files:
            staged.append((_stage_text(path, text), path))
        for tmp_name, path in staged:
            os.replace(tmp_name, path)
    except BaseException:
        for tmp_name, _ in staged:
            Path(tmp_name).unlink(missing_ok=True)
        raise


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temp file and an atomic rename."""
    write_texts_atomic([(path, text)])


class PageStore:
    """Resolves session paths and answers page-level state queries."""

    def __init__(self, uploads_dir: Path, outputs_dir: Path):
        self.uploads_dir = Path(uploads_dir)
        self.outputs_dir = Path(outputs_dir)

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def validate_session_id(self, session_id: str) -> str:
        """Reject session IDs that could escape the session roots."""
        if not session_id or not is_safe_path_component(session_id):
            raise ValidationError(f"Invalid session ID: {session_id!r}")
        return session_id

    def session_upload_dir(self, session_id: str) -> Path:
        return self.uploads_dir / self.validate_session_id(session_id)

    def pages_dir(self, session_id: str) -> Path:
        return self.session_upload_dir(session_id) / "pages"

    def session_output_dir(self, session_id: str) -> Path:
        return self.outputs_dir / self.validate_session_id(session_id)

    def page_output_path(self, session_id: str, page: int, output_format: OutputFormat) -> Path:
        return self.session_output_dir(session_id) / f"page-{page}.{output_format.extension}"

    def marker_path(self, session_id: str, page: int) -> Path:
        return self.session_output_dir(session_id) / f"page-{page}.meta.json"

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_pages(self, session_id: str) -> list[int]:
        """
        List the page numbers of a session's rasterized images.

        Args:
            session_id: Session identifier.

        Returns:
            Page numbers sorted ascending; empty if the session has no pages
            directory.
        """
        pages_dir = self.pages_dir(session_id)
        if not pages_dir.is_dir():
            return []

        pages: set[int] = set()
        for entry in pages_dir.iterdir():
            match = PAGE_IMAGE_PATTERN.fullmatch(entry.name)
            if match and int(match.group(1)) > 0:
                pages.add(int(match.group(1)))
        return sorted(pages)

    def find_page_image(self, session_id: str, page: int) -> Path | None:
        """
        Locate the image of a page.

        Accepts ``page-7.webp`` and ``page-07.webp``. Wider zero padding (as
        produced for documents with 100+ pages) is found by a directory scan.
        """
        pages_dir = self.pages_dir(session_id)
        for name in (f"page-{page}.webp", f"page-{page:02d}.webp"):
            candidate = pages_dir / name
            if candidate.is_file():
                return candidate

        if pages_dir.is_dir():
            for entry in sorted(pages_dir.iterdir()):
                match = PAGE_IMAGE_PATTERN.fullmatch(entry.name)
                if match and int(match.group(1)) == page:
                    return entry
        return None

    def is_page_extracted(self, session_id: str, page: int) -> bool:
        """Return True if the page's completion marker exists."""
        return self.marker_path(session_id, page).is_file()

    def list_extracted_pages(self, session_id: str) -> list[tuple[int, Path]]:
        """List ``(page, marker_path)`` pairs sorted by numeric page index."""
        output_dir = self.session_output_dir(session_id)
        if not output_dir.is_dir():
            return []

        markers = []
        for entry in output_dir.iterdir():
            match = PAGE_MARKER_PATTERN.fullmatch(entry.name)
            if match and int(match.group(1)) > 0:
                markers.append((int(match.group(1)), entry))
        return sorted(markers, key=lambda item: item[0])

    def resolve_output_file(self, session_id: str, filename: str) -> Path:
        """
        Resolve a file inside a session's output directory.

        Both components are checked against the allow-list before any
        filesystem access, then the resolved path must stay under the outputs
        root.

        Raises:
            ValidationError: If either component is unsafe.
        """
        if not is_safe_path_component(session_id) or not is_safe_path_component(filename):
            raise ValidationError("Invalid session ID or filename")

        root = self.outputs_dir.resolve()
        resolved = (root / session_id / filename).resolve()
        if not resolved.is_relative_to(root / session_id):
            raise ValidationError("Invalid session ID or filename")
        return resolved


def image_mime_type(path: Path) -> str:
    return IMAGE_MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")


# Singleton instance for convenience
_page_store: PageStore | None = None


def get_page_store() -> PageStore:
    """Get or create the page store singleton."""
    global _page_store
    if _page_store is None:
        settings = get_settings()
        _page_store = PageStore(settings.uploads_dir, settings.outputs_dir)
    return _page_store
