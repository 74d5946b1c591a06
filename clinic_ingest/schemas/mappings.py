"""Request and response models for procedure mapping review."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MappingResponse(BaseModel):
    """A mapping joined with the display fields of its canonical procedure."""

    id: UUID
    document_id: UUID
    extracted_procedure_code: str
    extracted_description: Optional[str] = None
    extracted_value: Optional[float] = None
    extracted_is_periciable: bool = False
    extracted_adults_only: bool = Field(
        default=False,
        description="Falls back to the canonical flag, then false, when never classified",
    )
    ai_periciable_confidence: Optional[float] = None
    ai_adults_only_confidence: Optional[float] = None
    ai_reasoning: Optional[str] = None
    mapped_procedure_base_id: Optional[UUID] = None
    confidence_score: Optional[float] = Field(
        default=None, description="Confidence of the automatic catalog link; null once a reviewer changes it"
    )
    status: str
    notes: Optional[str] = None
    mapped_provider_procedure_id: Optional[UUID] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    base_code: Optional[str] = None
    base_description: Optional[str] = None
    base_is_periciable: Optional[bool] = None
    base_adults_only: Optional[bool] = None


class MappingUpdateRequest(BaseModel):
    """Reviewer edit of a mapping.

    ``mapped_procedure_base_id`` and ``notes`` are written as given (null
    clears them). Missing ``status`` means PENDING. The classification
    flags only change when provided.
    """

    model_config = ConfigDict(populate_by_name=True)

    mapped_procedure_base_id: Optional[UUID] = Field(default=None, alias="mappedProcedureBaseId")
    status: Optional[Literal["PENDING", "APPROVED", "REJECTED"]] = None
    notes: Optional[str] = None
    extracted_is_periciable: Optional[bool] = Field(default=None, alias="extractedIsPericiable")
    extracted_adults_only: Optional[bool] = Field(default=None, alias="extractedAdultsOnly")


class ApproveMappingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_id: UUID = Field(..., alias="providerId")


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    procedure_id: UUID = Field(..., serialization_alias="procedureId")
    created: bool
