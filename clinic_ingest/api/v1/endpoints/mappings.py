from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from clinic_ingest.api.deps import get_current_user_id, get_mapping_review_service
from clinic_ingest.schemas.mappings import (
    ApprovalResponse,
    ApproveMappingRequest,
    MappingResponse,
    MappingUpdateRequest,
)
from clinic_ingest.schemas.responses import ApiResponse
from clinic_ingest.services.review.mapping_review_service import MappingReviewService
from clinic_ingest.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/documents/{document_id}/mappings",
    response_model=ApiResponse,
    summary="List procedure mappings of a document",
    operation_id="list_procedure_mappings",
)
async def list_mappings(
    request: Request,
    document_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    review_service: Annotated[MappingReviewService, Depends(get_mapping_review_service)] = None,
) -> ApiResponse:
    mappings = await review_service.list_mappings(document_id)
    return create_api_response(
        data=[MappingResponse(**m) for m in mappings],
        message="Mappings retrieved successfully",
        request=request,
    )


@router.post(
    "/mappings/{mapping_id}/update",
    response_model=ApiResponse,
    summary="Edit a procedure mapping",
    operation_id="update_procedure_mapping",
)
async def update_mapping(
    request: Request,
    mapping_id: UUID,
    body: MappingUpdateRequest,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    review_service: Annotated[MappingReviewService, Depends(get_mapping_review_service)] = None,
) -> ApiResponse:
    mapping = await review_service.update(mapping_id, body, user_id)
    return create_api_response(
        data=MappingResponse(**mapping),
        message="Mapping updated successfully",
        request=request,
    )


@router.post(
    "/mappings/{mapping_id}/approve",
    response_model=ApiResponse,
    summary="Approve a mapping into a billable provider procedure",
    operation_id="approve_procedure_mapping",
)
async def approve_mapping(
    request: Request,
    mapping_id: UUID,
    body: ApproveMappingRequest,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    review_service: Annotated[MappingReviewService, Depends(get_mapping_review_service)] = None,
) -> ApiResponse:
    """Idempotent: approving again returns the procedure created the first time."""
    result = await review_service.approve(mapping_id, body.provider_id, user_id)
    return create_api_response(
        data=ApprovalResponse(procedure_id=result.procedure_id, created=result.created),
        message="Mapping approved" if result.created else "Mapping was already approved",
        request=request,
    )
