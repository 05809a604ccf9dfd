"""
Router for model API key settings.

Handles:
- Reporting whether the server has an OpenAI key configured
- Checking a candidate key with one test request
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

# Handle both package imports and standalone imports
try:
    from ..models import ApiKeyStatus, KeyValidationResult, ValidateKeyRequest
    from ..services.ai import AIService, get_ai_service, get_ai_service_factory
    from ..services.ai.exceptions import AIServiceError, InvalidCredentialsError
except ImportError:
    from models import ApiKeyStatus, KeyValidationResult, ValidateKeyRequest
    from services.ai import AIService, get_ai_service, get_ai_service_factory
    from services.ai.exceptions import AIServiceError, InvalidCredentialsError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _invalid(error: str) -> JSONResponse:
    result = KeyValidationResult(valid=False, error=error)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=result.model_dump(by_alias=True, exclude_none=True),
    )


@router.get("/api-key", response_model=ApiKeyStatus)
async def get_api_key_status(
    ai_service: AIService = Depends(get_ai_service),
) -> ApiKeyStatus:
    """Report whether extraction runs against OpenAI or in mock mode."""
    has_api_key = not ai_service.use_mock
    return ApiKeyStatus(
        has_api_key=has_api_key,
        message="API key is configured" if has_api_key else "API key not configured",
    )


@router.post(
    "/validate-key",
    response_model=KeyValidationResult,
    response_model_exclude_none=True,
)
async def validate_api_key(
    request: ValidateKeyRequest,
    service_factory: Callable[[str], AIService] = Depends(get_ai_service_factory),
):
    """
    Check a candidate API key with one small request.

    The key is neither stored nor logged. An invalid key and any other
    failure both answer 400 with ``valid: false`` and differ in ``error``.
    """
    api_key = request.api_key.strip()
    if not api_key:
        return _invalid("API key is required")

    try:
        await service_factory(api_key).check_credentials()
    except InvalidCredentialsError:
        return _invalid("Invalid API key")
    except AIServiceError as e:
        return _invalid(str(e) or "Failed to validate API key")

    return KeyValidationResult(valid=True, message="API key is valid and working")
