"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails.

    ``status_code`` lets request-level checks pick the 4xx they surface as.
    """
    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        status_code: int = 400,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class StorageError(AppError):
    """Raised when raw file bytes cannot be stored or loaded."""
    pass


class PipelineError(AppError):
    """Base exception for pipeline errors."""
    pass


class InvalidPDFError(PipelineError):
    """Rasterization failed: the byte stream is not a readable PDF."""
    pass


class OCRExtractionError(PipelineError):
    """Text recognition failed for a page."""
    pass


class ExtractionError(PipelineError):
    """Structured extraction failed for a page."""
    pass


class ClassificationError(PipelineError):
    """A classification batch could not be obtained or trusted."""
    pass


class NotFoundError(AppError):
    """Base exception for unknown resource ids."""
    pass


class DocumentNotFoundError(NotFoundError):
    """Raised when a document is not found."""
    pass


class MappingNotFoundError(NotFoundError):
    """Raised when a procedure mapping is not found."""
    pass


class ProviderNotFoundError(NotFoundError):
    """Raised when an insurance provider does not exist for the clinic."""
    pass


class CatalogMatchError(PipelineError):
    """A catalog matching batch could not be obtained or trusted."""
    pass
