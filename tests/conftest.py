"""Pytest configuration and fixtures."""

import re
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from app.pdflow.models import OutputFormat, PageExtraction
from app.pdflow.services.aggregation import Aggregator
from app.pdflow.services.ai.exceptions import AIServiceError
from app.pdflow.services.ai.extraction import PageExtractor
from app.pdflow.services.exceptions import PDFConversionError
from app.pdflow.services.page_store import PageStore
from app.pdflow.services.processor import PageProcessor
from app.pdflow.services.progress import InMemoryProgressStore
from app.pdflow.services.upload_service import UploadService

IMAGE_CONTENT = re.compile(rb"^image-(\d+)$")


class FakeAIService:
    """
    Stand-in for AIService.

    Page images written by ``make_session`` contain ``image-<n>``, which is how
    the fake knows which page it is transcribing.
    """

    def __init__(self, fail_pages: set[int] | None = None):
        self.fail_pages = set(fail_pages or ())
        self.calls: list[int] = []
        self.timeout = None

    async def generate_page_text(self, image_bytes, mime_type, prompt, output_format=OutputFormat.MARKDOWN):
        match = IMAGE_CONTENT.match(image_bytes)
        page = int(match.group(1)) if match else 0
        self.calls.append(page)
        if page in self.fail_pages:
            raise AIServiceError(f"Simulated failure on page {page}")
        return f"Content of page {page}"


class FakeRasterizer:
    """Writes ``page_count`` page images, or fails."""

    def __init__(self, page_count: int = 3, fail: bool = False, padded: bool = False):
        self.page_count = page_count
        self.fail = fail
        self.padded = padded
        self.calls: list[str] = []

    async def rasterize(self, input_pdf: Path, pages_dir: Path, session_id: str) -> None:
        self.calls.append(session_id)
        if self.fail:
            raise PDFConversionError("Script exited with code 1: simulated failure")
        for page in range(1, self.page_count + 1):
            name = f"page-{page:02d}.webp" if self.padded else f"page-{page}.webp"
            (pages_dir / name).write_bytes(f"image-{page}".encode())


@pytest.fixture
def page_store(tmp_path: Path) -> PageStore:
    """Page store rooted in a temporary directory."""
    return PageStore(tmp_path / "uploads", tmp_path / "outputs")


@pytest.fixture
def make_session(page_store: PageStore):
    """Create a session with ``pages`` page images and return its ID."""

    def _make(session_id: str = "session_test", pages: int = 3, padded: bool = False) -> str:
        pages_dir = page_store.pages_dir(session_id)
        pages_dir.mkdir(parents=True, exist_ok=True)
        for page in range(1, pages + 1):
            name = f"page-{page:02d}.webp" if padded else f"page-{page}.webp"
            (pages_dir / name).write_bytes(f"image-{page}".encode())
        return session_id

    return _make


@pytest.fixture
def write_page(page_store: PageStore):
    """Write an extracted page (output file and completion marker) directly."""

    def _write(session_id: str, page: int, text: str, fmt: OutputFormat = OutputFormat.MARKDOWN) -> None:
        output_dir = page_store.session_output_dir(session_id)
        output_dir.mkdir(parents=True, exist_ok=True)
        page_store.page_output_path(session_id, page, fmt).write_text(text, encoding="utf-8")
        marker = PageExtraction(page=page, text=text, format=fmt)
        page_store.marker_path(session_id, page).write_text(marker.model_dump_json(), encoding="utf-8")

    return _write


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def extractor(page_store: PageStore, fake_ai: FakeAIService) -> PageExtractor:
    return PageExtractor(page_store, fake_ai, timeout=5.0)


@pytest.fixture
def aggregator(page_store: PageStore) -> Aggregator:
    return Aggregator(page_store)


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def processor(
    page_store: PageStore,
    extractor: PageExtractor,
    aggregator: Aggregator,
    progress_store: InMemoryProgressStore,
) -> PageProcessor:
    return PageProcessor(progress_store, extractor, aggregator, page_store)


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer(page_count=3)


@pytest.fixture
def upload_service(page_store: PageStore, rasterizer: FakeRasterizer) -> UploadService:
    return UploadService(page_store, rasterizer, max_upload_bytes=1024 * 1024)


@pytest.fixture
def client(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    page_store: PageStore,
    processor: PageProcessor,
    aggregator: Aggregator,
    upload_service: UploadService,
) -> Generator[TestClient, None, None]:
    """Create a test client wired to temporary session directories."""
    from app.pdflow.config import get_settings
    from app.pdflow.main import app
    from app.pdflow.services.aggregation import get_aggregator
    from app.pdflow.services.page_store import get_page_store
    from app.pdflow.services.processor import get_page_processor
    from app.pdflow.services.upload_service import get_upload_service

    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("OUTPUTS_DIR", str(tmp_path / "outputs"))
    monkeypatch.setenv("OPENAI_API_KEY", "")
    get_settings.cache_clear()

    app.dependency_overrides[get_page_store] = lambda: page_store
    app.dependency_overrides[get_page_processor] = lambda: processor
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    app.dependency_overrides[get_upload_service] = lambda: upload_service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        get_settings.cache_clear()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    pdf_content = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT
/F1 12 Tf
100 700 Td
(Test) Tj
ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000214 00000 n
trailer
<< /Size 5 /Root 1 0 R >>
startxref
306
%%EOF"""
    return pdf_content


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"
