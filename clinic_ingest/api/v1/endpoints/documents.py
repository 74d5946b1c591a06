from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.api.deps import (
    get_current_user_id,
    get_document_service,
    get_reasoning_client,
)
from clinic_ingest.core.config import settings
from clinic_ingest.core.database import get_async_session
from clinic_ingest.core.unified_llm import ReasoningClient
from clinic_ingest.pipeline.classification_pipeline import ClassificationPipeline
from clinic_ingest.schemas.documents import (
    DocumentResponse,
    DocumentStatusResponse,
    DocumentSummaryResponse,
    UploadAcceptedResponse,
)
from clinic_ingest.schemas.responses import ApiResponse
from clinic_ingest.services.document_service import DocumentService, UploadedFile
from clinic_ingest.utils.logging import get_logger
from clinic_ingest.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{provider_id}/upload-pdf",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload a provider price-table PDF",
    operation_id="upload_insurance_pdf",
)
async def upload_pdf(
    request: Request,
    provider_id: UUID,
    pdf: Optional[UploadFile] = File(None, description="Price-table PDF"),
    clinic_id: Optional[UUID] = Form(None),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Store the PDF and start background processing. Poll the status endpoint for progress."""
    upload = None
    if pdf is not None:
        # One byte over the limit is enough to reject it
        data = await pdf.read(settings.pipeline.max_upload_bytes + 1)
        upload = UploadedFile(file_name=pdf.filename or "", content_type=pdf.content_type, data=data)

    document = await document_service.execute(provider_id, clinic_id, upload, user_id)

    return create_api_response(
        data=UploadAcceptedResponse(document_id=document.id),
        message="Document accepted for processing",
        request=request,
    )


@router.get(
    "/documents/{document_id}/status",
    response_model=ApiResponse,
    summary="Get document processing progress",
    operation_id="get_insurance_document_status",
)
async def get_document_status(
    request: Request,
    document_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    document = await document_service.get_document(document_id)
    return create_api_response(
        data=DocumentStatusResponse(
            progress=document.processing_progress,
            stage=document.processing_stage,
            status=document.processing_status,
        ),
        message="Document status retrieved successfully",
        request=request,
    )


@router.get(
    "/documents/{document_id}",
    response_model=ApiResponse,
    summary="Get document details and extracted data",
    operation_id="get_insurance_document",
)
async def get_document(
    request: Request,
    document_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    document = await document_service.get_document(document_id)
    return create_api_response(
        data=DocumentResponse.model_validate(document),
        message="Document details retrieved successfully",
        request=request,
    )


@router.get(
    "/{provider_id}/documents",
    response_model=ApiResponse,
    summary="List a provider's documents, newest first",
    operation_id="list_insurance_documents",
)
async def list_documents(
    request: Request,
    provider_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    documents = await document_service.list_documents(provider_id, limit=limit, offset=offset)
    return create_api_response(
        data=[DocumentSummaryResponse.model_validate(d) for d in documents],
        message="Documents retrieved successfully",
        request=request,
    )


@router.post(
    "/documents/{document_id}/classify",
    response_model=ApiResponse,
    summary="Classify extracted procedures and seed review mappings",
    operation_id="classify_insurance_document",
)
async def classify_document(
    request: Request,
    document_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    db_session: Annotated[AsyncSession, Depends(get_async_session)] = None,
    llm_client: Annotated[ReasoningClient, Depends(get_reasoning_client)] = None,
) -> ApiResponse:
    """Runs synchronously; only COMPLETED documents are accepted."""
    result = await ClassificationPipeline(db_session, llm_client).classify_document(document_id)
    return create_api_response(
        data=result,
        message="Document classified successfully",
        request=request,
    )
