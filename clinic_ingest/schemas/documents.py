"""Response models for insurance documents."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatusResponse(BaseModel):
    progress: int = Field(..., ge=0, le=100)
    stage: str
    status: str


class DocumentResponse(BaseModel):
    """Document metadata including ``extracted_data``."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    insurance_provider_id: UUID
    clinic_id: UUID
    file_name: str
    file_size: int
    mime_type: str
    processed: bool
    processing_status: str
    processing_progress: int
    processing_stage: str
    extracted_data: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class DocumentSummaryResponse(BaseModel):
    """Document list entry; omits the extracted payload."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    file_name: str
    file_size: int
    processing_status: str
    processing_progress: int
    processing_stage: str
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class UploadAcceptedResponse(BaseModel):
    document_id: UUID = Field(..., serialization_alias="documentId")
