"""
AI service package for per-page document extraction.

This package provides:
- prompts: System prompt and format-specific instructions
- extraction: The Extraction Unit that turns one page image into a persisted output

The AIService class wraps the OpenAI client and is the only place a model
call is made.
"""

import base64
import json
import logging
import os

# Handle both package imports and standalone imports
try:
    from ...models import OutputFormat
except ImportError:
    from models import OutputFormat

from .exceptions import AIServiceError, InvalidCredentialsError
from .prompts import PAGE_SYSTEM_PROMPT, build_page_prompt

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "InvalidCredentialsError",
    "build_page_prompt",
    "create_ai_service",
    "get_ai_service",
    "get_ai_service_factory",
]


class AIService:
    """
    Service for multimodal page transcription.

    Uses OpenAI's vision-capable chat models. One call per page: the page
    image plus a format instruction in, free-form text out.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        use_mock: bool = False,
        timeout: float | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            model: OpenAI model to use (must support vision). If None, reads from config.
            use_mock: If True, return mock text instead of calling OpenAI.
            timeout: Per-request timeout in seconds passed to the client.
        """
        if api_key is None or model is None or timeout is None:
            try:
                from ...config import get_settings

                settings = get_settings()
                api_key = settings.openai_api_key if api_key is None else api_key
                model = model or settings.openai_model
                timeout = settings.extraction_timeout if timeout is None else timeout
            except ImportError:
                api_key = os.getenv("OPENAI_API_KEY") if api_key is None else api_key
                model = model or "gpt-4.1"
                timeout = 120.0 if timeout is None else timeout

        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.use_mock = use_mock or not self.api_key
        self._client = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY in .env for real extraction."
            )

    @property
    def client(self):
        """Lazy-load the async OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise InvalidCredentialsError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
            except ImportError as e:
                raise AIServiceError(
                    "openai library not installed. Run: pip install openai"
                ) from e
        return self._client

    async def generate_page_text(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
    ) -> str:
        """
        Transcribe one page image.

        Args:
            image_bytes: Raw image bytes.
            mime_type: MIME type of the image (e.g. ``image/webp``).
            prompt: Format-specific instruction for this page.
            output_format: Target format; only used to shape mock output.

        Returns:
            The model's text response.

        Raises:
            InvalidCredentialsError: If the provider rejects the API key.
            AIServiceError: For any other failure or an empty response.
        """
        if self.use_mock:
            return self._get_mock_text(output_format)

        import openai

        encoded = base64.b64encode(image_bytes).decode("utf-8")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": PAGE_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{mime_type};base64,{encoded}",
                                    "detail": "high",
                                },
                            },
                        ],
                    },
                ],
            )
        except openai.AuthenticationError as e:
            logger.error("OpenAI rejected the API key: %s", e)
            raise InvalidCredentialsError("Invalid OpenAI API key") from e
        except openai.OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise AIServiceError(f"Model request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIServiceError("Empty response from OpenAI")
        return content

    async def check_credentials(self) -> None:
        """
        Make one small text-only request to confirm the API key works.

        Raises:
            InvalidCredentialsError: If there is no key or the provider rejects it.
            AIServiceError: If the request fails for any other reason.
        """
        if not self.api_key:
            raise InvalidCredentialsError("OpenAI API key not provided")

        import openai

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hello"}],
            )
        except openai.AuthenticationError as e:
            logger.info("OpenAI rejected the candidate API key: %s", e)
            raise InvalidCredentialsError("Invalid API key") from e
        except openai.OpenAIError as e:
            logger.warning("API key check failed: %s", e)
            raise AIServiceError(f"Failed to validate API key: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise AIServiceError("API key validation failed")

    def _get_mock_text(self, output_format: OutputFormat) -> str:
        """Return format-shaped placeholder text for development."""
        fmt = OutputFormat(output_format)
        body = "DEVELOPMENT MODE: mock transcription. Set OPENAI_API_KEY for real extraction."
        if fmt in (OutputFormat.MARKDOWN, OutputFormat.MDX):
            return f"# Mock Page\n\n{body}\n"
        if fmt == OutputFormat.JSON:
            return json.dumps({"title": "Mock Page", "sections": [{"heading": "Mock", "content": body}]})
        if fmt == OutputFormat.XML:
            return f"<page><heading>Mock Page</heading><paragraph>{body}</paragraph></page>"
        if fmt == OutputFormat.YAML:
            return f"title: Mock Page\nsections:\n  - heading: Mock\n    content: \"{body}\"\n"
        if fmt == OutputFormat.HTML:
            return f"<h1>Mock Page</h1>\n<p>{body}</p>"
        return f"heading,content\nMock Page,\"{body}\"\n"


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


def create_ai_service(api_key: str) -> AIService:
    """Build a non-singleton service for a caller-supplied API key."""
    return AIService(api_key=api_key)


def get_ai_service_factory():
    """Dependency returning the factory used to check candidate API keys."""
    return create_ai_service
