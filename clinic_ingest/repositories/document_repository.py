from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.database.models import InsuranceDocument, ProcessingStage, ProcessingStatus
from clinic_ingest.repositories.base_repository import BaseRepository
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentRepository(BaseRepository[InsuranceDocument]):
    """Repository for insurance price-table documents."""

    def __init__(self, session: AsyncSession):
        """Initialize document repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, InsuranceDocument)

    async def create_document(
        self,
        insurance_provider_id: UUID,
        clinic_id: UUID,
        file_name: str,
        file_size: int,
        file_path: str,
        created_by: Optional[str] = None,
        mime_type: str = "application/pdf",
    ) -> InsuranceDocument:
        """Create a new document record in PROCESSING state.

        Args:
            insurance_provider_id: Owning provider
            clinic_id: Owning clinic
            file_name: Original upload name
            file_size: Size in bytes
            file_path: Raw file store handle
            created_by: Acting user id
            mime_type: MIME type of the upload

        Returns:
            Created InsuranceDocument record
        """
        now = datetime.now(timezone.utc)
        return await self.create(
            insurance_provider_id=insurance_provider_id,
            clinic_id=clinic_id,
            file_name=file_name,
            file_size=file_size,
            file_path=file_path,
            mime_type=mime_type,
            created_by=created_by,
            processed=False,
            processing_status=ProcessingStatus.PROCESSING,
            processing_progress=0,
            processing_stage=ProcessingStage.UPLOADING,
            created_at=now,
            updated_at=now,
        )

    async def list_by_provider(self, provider_id: UUID, limit: int = 50, offset: int = 0) -> List[InsuranceDocument]:
        """List a provider's documents, newest first."""
        try:
            query = (
                select(InsuranceDocument)
                .where(InsuranceDocument.insurance_provider_id == provider_id)
                .order_by(InsuranceDocument.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Error listing documents for provider {provider_id}: {str(e)}", exc_info=True)
            raise

    async def set_progress(self, document_id: UUID, progress: int, stage: str) -> bool:
        """Write progress and stage. Returns False if the document is unknown."""
        return await self.update(
            document_id,
            processing_progress=progress,
            processing_stage=stage,
        ) is not None

    async def mark_completed(self, document_id: UUID, extracted_data: Dict[str, Any]) -> Optional[InsuranceDocument]:
        """Persist the extracted set and flip the document to COMPLETED."""
        return await self.update(
            document_id,
            extracted_data=extracted_data,
            processed=True,
            processing_status=ProcessingStatus.COMPLETED,
            processed_at=datetime.now(timezone.utc),
        )

    async def mark_failed(self, document_id: UUID, error_payload: Dict[str, Any]) -> Optional[InsuranceDocument]:
        """Flip the document to FAILED with the error payload as its data."""
        return await self.update(
            document_id,
            processing_status=ProcessingStatus.FAILED,
            processing_stage=ProcessingStage.FAILED,
            processing_progress=0,
            extracted_data=error_payload,
            processed_at=datetime.now(timezone.utc),
        )

    async def replace_extracted_data(
        self, document_id: UUID, extracted_data: Dict[str, Any], commit: bool = True
    ) -> Optional[InsuranceDocument]:
        return await self.update(document_id, commit=commit, extracted_data=extracted_data)
