"""Tests for the AI service and prompt construction."""

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.pdflow.models import OutputFormat
from app.pdflow.services.ai import AIService
from app.pdflow.services.ai.exceptions import AIServiceError, InvalidCredentialsError
from app.pdflow.services.ai.prompts import FORMAT_INSTRUCTIONS, build_page_prompt
from app.pdflow.services.exceptions import ExtractionFailure, ValidationError


class FakeCompletions:
    """Mimics ``client.chat.completions`` of the async OpenAI client."""

    def __init__(self, content: str | None = "Page text", error: Exception | None = None):
        self.content = content
        self.error = error
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service_with(completions: FakeCompletions) -> AIService:
    service = AIService(api_key="sk-test", model="gpt-4.1", timeout=10.0)
    service._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return service


def _openai_request() -> httpx.Request:
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestAIServiceMock:
    """Tests for AI service in mock mode."""

    def test_mock_mode_enabled_without_api_key(self):
        """Test that mock mode is enabled without API key."""
        # Explicitly pass empty string as API key to force mock mode
        # (None would trigger loading from settings/.env)
        service = AIService(api_key="", use_mock=False)
        assert service.use_mock is True

    def test_mock_mode_enabled_explicitly(self):
        """Test that mock mode can be explicitly enabled."""
        service = AIService(api_key="fake-key", use_mock=True)
        assert service.use_mock is True

    def test_real_mode_with_api_key(self):
        service = AIService(api_key="fake-key", model="gpt-4.1", timeout=5.0)
        assert service.use_mock is False
        assert service.timeout == 5.0

    @pytest.mark.asyncio
    async def test_mock_json_output_parses(self):
        """Test that mock JSON output is valid JSON."""
        service = AIService(api_key="", use_mock=True)
        text = await service.generate_page_text(b"img", "image/webp", "prompt", OutputFormat.JSON)
        assert json.loads(text)["title"] == "Mock Page"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fmt", list(OutputFormat))
    async def test_mock_output_for_every_format(self, fmt: OutputFormat):
        service = AIService(api_key="", use_mock=True)
        text = await service.generate_page_text(b"img", "image/webp", "prompt", fmt)
        assert "Mock" in text


class TestAIServiceRequests:
    """Tests for the OpenAI request and error mapping."""

    @pytest.mark.asyncio
    async def test_request_embeds_image_and_prompt(self):
        completions = FakeCompletions(content="# Heading")
        service = _service_with(completions)

        text = await service.generate_page_text(b"\x00\x01", "image/webp", "Convert page 1")

        assert text == "# Heading"
        request = completions.requests[0]
        assert request["model"] == "gpt-4.1"
        user_content = request["messages"][1]["content"]
        assert user_content[0] == {"type": "text", "text": "Convert page 1"}
        assert user_content[1]["image_url"]["url"] == "data:image/webp;base64,AAE="

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        service = _service_with(FakeCompletions(content=""))
        with pytest.raises(AIServiceError, match="Empty response"):
            await service.generate_page_text(b"x", "image/webp", "p")

    @pytest.mark.asyncio
    async def test_authentication_error_is_invalid_credentials(self):
        error = openai.AuthenticationError(
            "Incorrect API key provided",
            response=httpx.Response(401, request=_openai_request()),
            body=None,
        )
        service = _service_with(FakeCompletions(error=error))

        with pytest.raises(InvalidCredentialsError):
            await service.generate_page_text(b"x", "image/webp", "p")

    @pytest.mark.asyncio
    async def test_other_errors_are_service_errors(self):
        error = openai.APIConnectionError(request=_openai_request())
        service = _service_with(FakeCompletions(error=error))

        with pytest.raises(AIServiceError) as exc_info:
            await service.generate_page_text(b"x", "image/webp", "p")
        assert not isinstance(exc_info.value, InvalidCredentialsError)

    def test_service_errors_are_extraction_failures(self):
        """Test the driver can catch every model error as ExtractionFailure."""
        assert issubclass(AIServiceError, ExtractionFailure)
        assert issubclass(InvalidCredentialsError, AIServiceError)


class TestCheckCredentials:
    """Tests for the API key check."""

    @pytest.mark.asyncio
    async def test_valid_key_sends_text_only_request(self):
        completions = FakeCompletions(content="Hi")
        service = _service_with(completions)

        await service.check_credentials()

        assert completions.requests[0]["messages"] == [{"role": "user", "content": "Hello"}]

    @pytest.mark.asyncio
    async def test_rejected_key(self):
        error = openai.AuthenticationError(
            "Incorrect API key provided",
            response=httpx.Response(401, request=_openai_request()),
            body=None,
        )
        service = _service_with(FakeCompletions(error=error))

        with pytest.raises(InvalidCredentialsError, match="Invalid API key"):
            await service.check_credentials()

    @pytest.mark.asyncio
    async def test_other_failure_is_not_invalid_credentials(self):
        service = _service_with(FakeCompletions(error=openai.APIConnectionError(request=_openai_request())))

        with pytest.raises(AIServiceError, match="Failed to validate API key") as exc_info:
            await service.check_credentials()
        assert not isinstance(exc_info.value, InvalidCredentialsError)

    @pytest.mark.asyncio
    async def test_empty_response(self):
        service = _service_with(FakeCompletions(content=None))

        with pytest.raises(AIServiceError, match="validation failed"):
            await service.check_credentials()

    @pytest.mark.asyncio
    async def test_missing_key(self):
        service = AIService(api_key="", model="gpt-4.1", timeout=5.0)

        with pytest.raises(InvalidCredentialsError):
            await service.check_credentials()


class TestPrompts:
    """Tests for prompt generation."""

    def test_every_format_has_instruction(self):
        assert set(FORMAT_INSTRUCTIONS) == set(OutputFormat)

    def test_prompt_mentions_page_and_format(self):
        prompt = build_page_prompt(7, "csv")
        assert "page 7" in prompt
        assert "csv" in prompt
        assert FORMAT_INSTRUCTIONS[OutputFormat.CSV] in prompt

    def test_unknown_format_rejected(self):
        with pytest.raises(ValidationError):
            build_page_prompt(1, "docx")
