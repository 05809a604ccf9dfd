"""
Error taxonomy for the page-processing pipeline.

Route handlers map these to HTTP status codes in ``main.py``.
"""


class PDFlowError(Exception):
    """Base class for pipeline errors."""

    pass


class ValidationError(PDFlowError):
    """Raised for bad caller input (unknown format, unsafe session ID, bad upload)."""

    pass


class NotFoundError(PDFlowError):
    """Raised when a session or one of its files does not exist."""

    pass


class NoPagesFoundError(NotFoundError):
    """Raised when a session has no page images or no extracted pages."""

    pass


class ExtractionFailure(PDFlowError):
    """Raised when a single page could not be extracted.

    Nothing is written for the page, so it stays un-extracted and is retried
    by the next processing request.
    """

    def __init__(self, message: str, page: int | None = None):
        super().__init__(message)
        self.page = page


class AggregationFailure(PDFlowError):
    """Raised when per-page outputs cannot be combined into one document."""

    pass


class PDFConversionError(PDFlowError):
    """Raised when a PDF cannot be rasterized into page images."""

    pass
