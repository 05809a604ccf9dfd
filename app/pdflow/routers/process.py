"""
Router for page processing.

Handles:
- Starting or resuming extraction of a session
- Polling a session's progress
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

# Handle both package imports and standalone imports
try:
    from ..models import ProcessRequest, ProcessResult
    from ..services.processor import PageProcessor, get_page_processor
except ImportError:
    from models import ProcessRequest, ProcessResult
    from services.processor import PageProcessor, get_page_processor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["process"])


@router.post("/process", response_model=ProcessResult, response_model_exclude_none=True)
async def start_processing(
    request: ProcessRequest,
    processor: PageProcessor = Depends(get_page_processor),
) -> ProcessResult:
    """
    Start or resume processing of a session.

    Safe to call repeatedly: extracted pages are skipped, failed pages are
    retried, and a completed session returns its cached counts.
    """
    return await processor.process(request.session_id, request.format, request.aggregate)


@router.get("/process", response_model=ProcessResult, response_model_exclude_none=True)
async def get_processing_progress(
    sessionId: str | None = None,
    processor: PageProcessor = Depends(get_page_processor),
) -> ProcessResult:
    """Report the progress of a session without extracting anything."""
    if not sessionId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session ID is required",
        )
    return processor.get_progress(sessionId)
