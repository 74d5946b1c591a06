"""Pydantic request and response models."""

from clinic_ingest.schemas.responses import ApiResponse, ErrorDetail, ResponseMeta

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ResponseMeta",
]
