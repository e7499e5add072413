"""Error types raised by the ingestion, annotation and search layers."""


class PixtagError(RuntimeError):
    """Base class for domain errors."""


class SourceUnreadable(PixtagError):
    """Raised when source bytes cannot be decoded as an image."""


class UpstreamError(PixtagError):
    """Raised when the vision model call fails or returns a non-success status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ParseError(PixtagError):
    """Raised when a vision model response holds no usable JSON object."""


class NotFound(PixtagError):
    """Raised for a missing image/annotation or an owner mismatch."""


class InvalidColor(PixtagError, ValueError):
    """Raised for a hex color that is not #RRGGBB."""


class StoreError(PixtagError):
    """Raised on object-store or metadata-store I/O failure."""
