"""Upload intake and read access for insurance documents."""

from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.core.config import settings
from clinic_ingest.core.exceptions import (
    DocumentNotFoundError,
    PipelineError,
    ProviderNotFoundError,
    ValidationError,
)
from clinic_ingest.database.models import InsuranceDocument
from clinic_ingest.pipeline.document_pipeline import build_error_payload
from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.repositories.insurance_provider_repository import InsuranceProviderRepository
from clinic_ingest.services.base_service import BaseService
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"


@dataclass
class UploadedFile:
    file_name: str
    content_type: Optional[str]
    data: bytes


class DocumentService(BaseService):
    """Accepts price-table uploads and hands them to background processing.

    ``execute(provider_id, clinic_id, upload, user_id)`` validates the
    request, stores the bytes, persists the document in PROCESSING state
    and dispatches the pipeline without waiting for it.
    """

    def __init__(self, session: AsyncSession, storage, dispatcher):
        super().__init__(DocumentRepository(session))
        self.session = session
        self.storage = storage
        self.dispatcher = dispatcher
        self.provider_repo = InsuranceProviderRepository(session)
        self.max_upload_bytes = settings.pipeline.max_upload_bytes

    def validate(
        self,
        provider_id: UUID,
        clinic_id: Optional[UUID],
        upload: Optional[UploadedFile],
        user_id: str,
    ):
        if upload is None or not upload.file_name:
            raise ValidationError("No PDF file was uploaded")
        if clinic_id is None:
            raise ValidationError("clinic_id is required")
        if upload.content_type != PDF_MIME_TYPE:
            raise ValidationError(
                f"Only PDF files are accepted (got {upload.content_type or 'unknown type'})"
            )
        if len(upload.data) > self.max_upload_bytes:
            raise ValidationError(
                f"File exceeds the {self.max_upload_bytes // (1024 * 1024)}MB upload limit",
                status_code=413,
            )
        if not upload.data:
            raise ValidationError("Uploaded file is empty")

    async def run(
        self,
        provider_id: UUID,
        clinic_id: UUID,
        upload: UploadedFile,
        user_id: str,
    ) -> InsuranceDocument:
        provider = await self.provider_repo.get_for_clinic(provider_id, clinic_id)
        if provider is None:
            raise ProviderNotFoundError(
                f"Insurance provider {provider_id} not found for clinic {clinic_id}"
            )

        handle = await self.storage.save(upload.data, upload.file_name)
        try:
            document = await self.repository.create_document(
                insurance_provider_id=provider_id,
                clinic_id=clinic_id,
                file_name=upload.file_name,
                file_size=len(upload.data),
                file_path=handle,
                created_by=user_id,
                mime_type=PDF_MIME_TYPE,
            )
        except Exception:
            await self._discard_upload(handle)
            raise

        LOGGER.info(
            f"Document {document.id} created for provider {provider_id}",
            extra={"document_id": str(document.id), "file_size": len(upload.data)},
        )

        try:
            await self.dispatcher.dispatch(document.id)
        except Exception as e:
            LOGGER.error(
                f"Failed to dispatch processing for document {document.id}: {e}",
                exc_info=True,
                extra={"document_id": str(document.id)},
            )
            await self.repository.mark_failed(document.id, build_error_payload(e))
            raise PipelineError(f"Could not start processing for document {document.id}", e) from e

        return document

    async def get_document(self, document_id: UUID) -> InsuranceDocument:
        document = await self.repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def list_documents(self, provider_id: UUID, limit: int = 50, offset: int = 0) -> List[InsuranceDocument]:
        return await self.repository.list_by_provider(provider_id, limit=limit, offset=offset)

    async def _discard_upload(self, handle: str) -> None:
        """Delete bytes stored for a document that was never created."""
        try:
            await self.storage.delete(handle)
        except Exception as e:
            LOGGER.error(f"Could not delete orphaned upload {handle}: {e}", exc_info=True)
