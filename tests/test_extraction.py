"""Tests for the per-page Extraction Unit."""

import asyncio
import json

import pytest

from app.pdflow.models import OutputFormat
from app.pdflow.services.ai.extraction import PageExtractor
from app.pdflow.services.exceptions import ExtractionFailure, ValidationError
from app.pdflow.services.page_store import PageStore

from conftest import FakeAIService


class SlowAIService(FakeAIService):
    async def generate_page_text(self, *args, **kwargs):
        await asyncio.sleep(1)
        return "too late"


class TestExtractPage:
    """Tests for PageExtractor.extract_page."""

    @pytest.mark.asyncio
    async def test_writes_output_and_marker(
        self, page_store: PageStore, extractor: PageExtractor, make_session
    ):
        session_id = make_session(pages=2)

        result = await extractor.extract_page(session_id, 2, OutputFormat.JSON)

        assert result.page == 2
        assert result.text == "Content of page 2"
        output = page_store.session_output_dir(session_id) / "page-2.json"
        assert output.read_text() == "Content of page 2"
        marker = json.loads(page_store.marker_path(session_id, 2).read_text())
        assert marker == {"page": 2, "text": "Content of page 2", "format": "json", "images": []}
        assert page_store.is_page_extracted(session_id, 2)

    @pytest.mark.asyncio
    async def test_accepts_padded_image_names(
        self, page_store: PageStore, extractor: PageExtractor, make_session
    ):
        session_id = make_session(pages=3, padded=True)
        result = await extractor.extract_page(session_id, 3, "markdown")
        assert result.text == "Content of page 3"
        assert (page_store.session_output_dir(session_id) / "page-3.md").is_file()

    @pytest.mark.asyncio
    async def test_failure_writes_nothing(self, page_store: PageStore, make_session):
        session_id = make_session(pages=2)
        extractor = PageExtractor(page_store, FakeAIService(fail_pages={1}), timeout=5.0)

        with pytest.raises(ExtractionFailure) as exc_info:
            await extractor.extract_page(session_id, 1, OutputFormat.MARKDOWN)

        assert exc_info.value.page == 1
        assert not page_store.is_page_extracted(session_id, 1)
        assert not page_store.session_output_dir(session_id).exists()

    @pytest.mark.asyncio
    async def test_missing_image(self, extractor: PageExtractor, fake_ai: FakeAIService, make_session):
        session_id = make_session(pages=1)

        with pytest.raises(ExtractionFailure, match="Image file not found"):
            await extractor.extract_page(session_id, 4, OutputFormat.MARKDOWN)
        assert fake_ai.calls == []

    @pytest.mark.asyncio
    async def test_unknown_format(self, extractor: PageExtractor, fake_ai: FakeAIService, make_session):
        session_id = make_session(pages=1)

        with pytest.raises(ValidationError):
            await extractor.extract_page(session_id, 1, "docx")
        assert fake_ai.calls == []

    @pytest.mark.asyncio
    async def test_timeout_is_extraction_failure(self, page_store: PageStore, make_session):
        session_id = make_session(pages=1)
        extractor = PageExtractor(page_store, SlowAIService(), timeout=0.05)

        with pytest.raises(ExtractionFailure, match="timed out"):
            await extractor.extract_page(session_id, 1, OutputFormat.MARKDOWN)
        assert not page_store.is_page_extracted(session_id, 1)

    @pytest.mark.asyncio
    async def test_re_extraction_overwrites(
        self, page_store: PageStore, extractor: PageExtractor, fake_ai: FakeAIService, make_session
    ):
        """Test extracting the same page twice leaves one consistent result."""
        session_id = make_session(pages=1)
        await extractor.extract_page(session_id, 1, OutputFormat.MARKDOWN)
        await extractor.extract_page(session_id, 1, OutputFormat.MARKDOWN)

        assert fake_ai.calls == [1, 1]
        files = sorted(p.name for p in page_store.session_output_dir(session_id).iterdir())
        assert files == ["page-1.md", "page-1.meta.json"]

    @pytest.mark.asyncio
    async def test_write_error_is_extraction_failure(
        self, page_store: PageStore, extractor: PageExtractor, make_session
    ):
        session_id = make_session(pages=1)
        page_store.outputs_dir.mkdir(parents=True)
        # A file where the session output directory should be
        page_store.session_output_dir(session_id).write_text("blocked")

        with pytest.raises(ExtractionFailure, match="Could not write output of page 1") as exc_info:
            await extractor.extract_page(session_id, 1, OutputFormat.MARKDOWN)
        assert exc_info.value.page == 1
