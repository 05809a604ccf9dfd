"""
Services package for the page-processing pipeline.

Contains:
- page_store: Session filesystem layout and page state queries
- pdf_service: PDF to page image rasterization
- upload_service: Upload validation and session creation
- ai: OpenAI integration and the per-page Extraction Unit
- progress: Session progress stores
- processor: The driver walking a session's pages
- aggregation: Combining page outputs into one document
"""

from .aggregation import Aggregator
from .page_store import PageStore
from .pdf_service import PDFService, ScriptRasterizer
from .processor import PageProcessor
from .progress import DatabaseProgressStore, InMemoryProgressStore, ProgressStore
from .upload_service import UploadService

__all__ = [
    "Aggregator",
    "DatabaseProgressStore",
    "InMemoryProgressStore",
    "PDFService",
    "PageProcessor",
    "PageStore",
    "ProgressStore",
    "ScriptRasterizer",
    "UploadService",
]
