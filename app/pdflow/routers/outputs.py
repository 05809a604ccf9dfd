"""
Router for output retrieval.

Handles:
- Serving per-page and aggregated output files of a session
- Listing the aggregated formats of a session
"""

import asyncio
import logging
from pathlib import PurePath

from fastapi import APIRouter, Depends, HTTPException, Response, status

# Handle both package imports and standalone imports
try:
    from ..models import OutputListResponse
    from ..services.aggregation import Aggregator, get_aggregator
    from ..services.page_store import PageStore, get_page_store
except ImportError:
    from models import OutputListResponse
    from services.aggregation import Aggregator, get_aggregator
    from services.page_store import PageStore, get_page_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/outputs", tags=["outputs"])

CONTENT_TYPES = {
    ".md": "text/markdown",
    ".mdx": "text/markdown",
    ".json": "application/json",
    ".xml": "application/xml",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".html": "text/html",
    ".csv": "text/csv",
    ".txt": "text/plain",
}


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(PurePath(filename).suffix.lower(), "text/plain")


@router.get("/{session_id}", response_model=OutputListResponse)
async def list_outputs(
    session_id: str,
    page_store: PageStore = Depends(get_page_store),
    aggregator: Aggregator = Depends(get_aggregator),
) -> OutputListResponse:
    """List the aggregated formats available for a session."""
    page_store.validate_session_id(session_id)
    return OutputListResponse(
        session_id=session_id,
        formats=aggregator.available_formats(session_id),
    )


@router.get("/{session_id}/{filename}")
async def get_output_file(
    session_id: str,
    filename: str,
    page_store: PageStore = Depends(get_page_store),
) -> Response:
    """
    Return a raw output file of a session.

    Unsafe session IDs or filenames are rejected with 400 before any
    filesystem access.
    """
    path = page_store.resolve_output_file(session_id, filename)

    try:
        # Aggregated documents can be large; keep the read off the event loop
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return Response(
        content=content,
        media_type=content_type_for(filename),
        headers={"Cache-Control": "no-cache"},
    )
