"""
Router for PDF upload.

Handles:
- PDF upload, validation and rasterization into a new session
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

# Handle both package imports and standalone imports
try:
    from ..models import UploadResult
    from ..services.upload_service import UploadService, get_upload_service
except ImportError:
    from models import UploadResult
    from services.upload_service import UploadService, get_upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])


@router.post("/upload", response_model=UploadResult)
async def upload_pdf(
    file: Annotated[UploadFile, File(description="PDF file to convert")],
    upload_service: UploadService = Depends(get_upload_service),
) -> UploadResult:
    """
    Upload a PDF and rasterize it into page images.

    Returns the new session ID and the number of pages. Invalid files are
    rejected with 400, conversion failures with 500; neither leaves a
    session behind.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    if not file.filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are accepted",
        )

    try:
        file_bytes = await file.read()
        logger.info("Received upload: %s (%d bytes)", file.filename, len(file_bytes))
        return await upload_service.create_session(file.filename, file_bytes)
    finally:
        await file.close()
