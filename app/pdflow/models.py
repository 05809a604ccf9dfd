"""
Pydantic models for the page-processing pipeline.

Defines the output formats, the per-page completion marker, the progress
record, aggregation results and the request/response bodies of the API.
API payloads use camelCase keys; Python code uses the snake_case attributes.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OutputFormat(str, Enum):
    """Formats a page can be extracted to."""

    MARKDOWN = "markdown"
    MDX = "mdx"
    JSON = "json"
    XML = "xml"
    YAML = "yaml"
    HTML = "html"
    CSV = "csv"

    @property
    def extension(self) -> str:
        """File extension used for page and aggregated outputs."""
        return FILE_EXTENSIONS[self]


FILE_EXTENSIONS: dict[OutputFormat, str] = {
    OutputFormat.MARKDOWN: "md",
    OutputFormat.MDX: "mdx",
    OutputFormat.JSON: "json",
    OutputFormat.XML: "xml",
    OutputFormat.YAML: "yaml",
    OutputFormat.HTML: "html",
    OutputFormat.CSV: "csv",
}


class ProcessStatus(str, Enum):
    """Processing status of a session."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PageExtraction(BaseModel):
    """
    Completion marker for one extracted page.

    Written to ``page-<n>.meta.json`` after the page output file. Its existence
    is the only signal that the page was extracted.
    """

    page: int = Field(..., ge=1, description="1-based page number")
    text: str = Field(..., description="Raw model output for the page")
    format: OutputFormat = Field(..., description="Format the page was extracted to")
    images: list[str] = Field(
        default_factory=list,
        description="Descriptions of images found on the page",
    )


class ProgressRecord(BaseModel):
    """Cached processing counters for one session."""

    session_id: str
    total_pages: int = Field(..., ge=0)
    processed_pages: int = Field(default=0, ge=0)
    failed_pages: list[int] = Field(default_factory=list)
    status: ProcessStatus = ProcessStatus.PROCESSING
    error: str | None = None
    start_time: datetime = Field(default_factory=utc_now)


# =============================================================================
# Aggregation Models
# =============================================================================


class AggregationMetadata(CamelModel):
    """Envelope stored next to an aggregated document."""

    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    total_characters: int = Field(..., ge=0)
    processing_time: int | None = Field(
        default=None,
        description="Aggregation time in milliseconds",
    )


class AggregatedOutput(CamelModel):
    """All completed pages of a session combined into one document."""

    session_id: str
    total_pages: int = Field(..., ge=0)
    format: OutputFormat
    content: str
    metadata: AggregationMetadata


class AggregateInfo(CamelModel):
    """Summary of an aggregated document returned by the processing endpoint."""

    available: bool
    format: OutputFormat | None = None
    total_pages: int | None = None
    created_at: str | None = None
    total_characters: int | None = None
    error: str | None = None
    details: str | None = None


# =============================================================================
# API Models
# =============================================================================


class ProcessRequest(CamelModel):
    """Body of ``POST /api/process``."""

    session_id: str = Field(..., min_length=1, description="Session ID from upload")
    format: OutputFormat = Field(default=OutputFormat.MARKDOWN)
    aggregate: bool = Field(
        default=False,
        description="Combine all pages into one file once every page is extracted",
    )


class ProcessResult(CamelModel):
    """Status and counters of a session, returned by the processing endpoints."""

    session_id: str
    status: ProcessStatus
    total_pages: int = Field(..., ge=0)
    processed_pages: int = Field(..., ge=0)
    failed_pages: list[int] = Field(default_factory=list)
    processing_time: str | None = None
    message: str | None = None
    aggregate: AggregateInfo | None = None
    error: str | None = None


class UploadResult(CamelModel):
    """Response of ``POST /api/upload``."""

    success: bool = True
    session_id: str
    page_count: int = Field(..., ge=1)
    message: str
    pages: list[str] = Field(default_factory=list)


class OutputListResponse(CamelModel):
    """Aggregated formats available for a session."""

    session_id: str
    formats: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str | None = None
    version: str = Field(default="1.0.0")


# =============================================================================
# Settings Models
# =============================================================================


class ApiKeyStatus(CamelModel):
    """Whether the server has a model API key configured."""

    has_api_key: bool
    message: str


class ValidateKeyRequest(CamelModel):
    """Body of ``POST /api/settings/validate-key``."""

    api_key: str = Field(default="", description="Candidate OpenAI API key")


class KeyValidationResult(CamelModel):
    """Outcome of a test call made with a candidate API key."""

    valid: bool
    message: str | None = None
    error: str | None = None
