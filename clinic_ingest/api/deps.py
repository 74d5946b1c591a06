"""Shared FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.core.config import settings
from clinic_ingest.core.database import get_async_session
from clinic_ingest.core.unified_llm import ReasoningClient, create_reasoning_client
from clinic_ingest.services.document_service import DocumentService
from clinic_ingest.services.review.mapping_review_service import MappingReviewService
from clinic_ingest.services.storage_service import FileStorage, get_storage
from clinic_ingest.temporal.dispatcher import PipelineDispatcher, get_dispatcher
from clinic_ingest.utils.responses import create_error_detail


async def get_current_user_id(
    request: Request,
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> str:
    """Acting user id, supplied by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        error_detail = create_error_detail(
            title="Unauthorized",
            status=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
            request=request,
        )
        raise HTTPException(status_code=401, detail=error_detail.model_dump(mode="json"))
    return x_user_id.strip()


@lru_cache(maxsize=1)
def get_reasoning_client() -> ReasoningClient:
    return create_reasoning_client(settings.llm)


def get_file_storage() -> FileStorage:
    return get_storage()


def get_pipeline_dispatcher() -> PipelineDispatcher:
    return get_dispatcher()


async def get_document_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    storage: Annotated[FileStorage, Depends(get_file_storage)],
    dispatcher: Annotated[PipelineDispatcher, Depends(get_pipeline_dispatcher)],
) -> DocumentService:
    return DocumentService(db_session, storage, dispatcher)


async def get_mapping_review_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MappingReviewService:
    return MappingReviewService(db_session)
