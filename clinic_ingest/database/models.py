"""SQLAlchemy models for the insurance price-table tables."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_ingest.core.database import Base


class ProcessingStatus:
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ProcessingStage:
    UPLOADING = "UPLOADING"
    CONVERTING = "CONVERTING"
    EXTRACTING = "EXTRACTING"
    DEDUPLICATING = "DEDUPLICATING"
    SAVING = "SAVING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class MappingStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    ALL = (PENDING, APPROVED, REJECTED)


class InsuranceProvider(Base):
    """Insurance provider (convênio) owned by a clinic. Managed elsewhere."""

    __tablename__ = "insurance_providers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()")
    )

    documents: Mapped[list["InsuranceDocument"]] = relationship(
        "InsuranceDocument", back_populates="provider"
    )


class InsuranceDocument(Base):
    """Uploaded price-table PDF and its pipeline state."""

    __tablename__ = "insurance_provider_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    insurance_provider_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("insurance_providers.id", ondelete="CASCADE"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String, nullable=False, default="application/pdf")
    file_path: Mapped[str] = mapped_column(
        String, nullable=False, comment="Raw file store handle"
    )
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processing_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ProcessingStatus.PROCESSING
    )  # PROCESSING | COMPLETED | FAILED
    processing_progress: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="0-100"
    )
    processing_stage: Mapped[str] = mapped_column(
        String, nullable=False, default=ProcessingStage.UPLOADING
    )
    extracted_data: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment="Extracted procedure set or error payload"
    )
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    provider: Mapped["InsuranceProvider"] = relationship(
        "InsuranceProvider", back_populates="documents"
    )
    mappings: Mapped[list["ProcedureMapping"]] = relationship(
        "ProcedureMapping", back_populates="document", cascade="all, delete-orphan"
    )


class ProcedureBase(Base):
    """Canonical procedure catalog. clinic_id NULL means a global entry."""

    __tablename__ = "procedure_base_table"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    code: Mapped[str] = mapped_column(String, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_periciable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    adults_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ProcedureMapping(Base):
    """One reviewable row per extracted procedure code of a document."""

    __tablename__ = "procedure_mappings"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "extracted_procedure_code", name="uq_procedure_mappings_document_code"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("insurance_provider_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    extracted_procedure_code: Mapped[str] = mapped_column(String, nullable=False)
    extracted_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracted_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    extracted_is_periciable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extracted_adults_only: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, comment="NULL on rows created before classification existed"
    )
    ai_periciable_confidence: Mapped[Decimal | None] = mapped_column(Numeric(4, 3), nullable=True)
    ai_adults_only_confidence: Mapped[Decimal | None] = mapped_column(Numeric(4, 3), nullable=True)
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    mapped_procedure_base_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("procedure_base_table.id", ondelete="SET NULL"), nullable=True
    )
    confidence_score: Mapped[Decimal | None] = mapped_column(
        Numeric(4, 3), nullable=True, comment="Catalog match confidence; 1.000 for an exact code match"
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=MappingStatus.PENDING
    )  # PENDING | APPROVED | REJECTED
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    mapped_provider_procedure_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )

    document: Mapped["InsuranceDocument"] = relationship(
        "InsuranceDocument", back_populates="mappings"
    )
    procedure_base: Mapped["ProcedureBase | None"] = relationship("ProcedureBase")


class ProviderProcedure(Base):
    """Billable procedure of an insurance provider."""

    __tablename__ = "insurance_provider_procedures"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    insurance_provider_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("insurance_providers.id", ondelete="CASCADE"), nullable=False
    )
    procedure_base_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("procedure_base_table.id", ondelete="SET NULL"), nullable=True
    )
    provider_code: Mapped[str] = mapped_column(String, nullable=False)
    provider_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_periciable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    source_mapping_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("procedure_mappings.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        comment="Mapping this row was approved from; at most one row per mapping",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
