"""
Shared exceptions for AI service modules.
"""

from ..exceptions import ExtractionFailure


class AIServiceError(ExtractionFailure):
    """Raised when the model call fails or returns nothing usable."""

    pass


class InvalidCredentialsError(AIServiceError):
    """Raised when the model provider rejects the configured API key."""

    pass
