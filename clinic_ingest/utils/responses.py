"""Envelope builders for success bodies and problem details."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request

from clinic_ingest.schemas.responses import ApiResponse, ErrorDetail, ResponseMeta


def _request_id(request: Optional[Request]) -> str:
    if request is not None:
        return getattr(request.state, "request_id", None) or str(uuid4())
    return str(uuid4())


def _dump(value: Any) -> Any:
    return value.model_dump(by_alias=True) if hasattr(value, "model_dump") else value


def _payload(data: Any) -> Dict[str, Any]:
    # Collections are wrapped so ``data`` is always an object.
    if data is None:
        return {}
    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return {"items": [_dump(item) for item in data]}
    dumped = _dump(data)
    return dumped if isinstance(dumped, dict) else {"value": dumped}


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Build the JSON-ready success envelope.

    Pydantic models are dumped with their camelCase aliases.
    """
    envelope = ApiResponse(
        status=status,
        message=message,
        data=_payload(data),
        meta=ResponseMeta(
            timestamp=datetime.now(timezone.utc),
            request_id=_request_id(request),
            api_version=api_version,
        ),
    )
    return envelope.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
) -> ErrorDetail:
    """Problem details for ``request``; ``instance`` defaults to its path."""
    if instance is None and request is not None:
        instance = request.url.path
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
    )
