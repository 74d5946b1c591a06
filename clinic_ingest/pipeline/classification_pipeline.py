"""Classify a completed document's procedures and seed review mappings."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.core.config import settings
from clinic_ingest.core.exceptions import DocumentNotFoundError, ValidationError
from clinic_ingest.database.models import ProcessingStatus
from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.services.classification.procedure_classifier import ProcedureClassifier
from clinic_ingest.services.matching.catalog_matcher import CatalogMatcher
from clinic_ingest.services.review.mapping_review_service import MappingReviewService
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ClassificationPipeline:
    def __init__(
        self,
        session: AsyncSession,
        llm_client,
        classifier: Optional[ProcedureClassifier] = None,
    ):
        self.session = session
        self.document_repo = DocumentRepository(session)
        self.review_service = MappingReviewService(
            session,
            catalog_matcher=CatalogMatcher(
                llm_client,
                batch_size=settings.pipeline.classifier_batch_size,
                temperature=settings.pipeline.classification_temperature,
            ),
        )
        self.classifier = classifier or ProcedureClassifier(
            llm_client,
            batch_size=settings.pipeline.classifier_batch_size,
            temperature=settings.pipeline.classification_temperature,
        )

    async def classify_document(self, document_id: UUID) -> Dict[str, Any]:
        """Classify the persisted procedures of a COMPLETED document.

        The augmented procedures replace the stored ones (with
        ``classifiedAt``), then one mapping per new code is seeded. Safe to
        re-run.

        Raises:
            DocumentNotFoundError: Unknown document
            ValidationError: Document is not COMPLETED (409)
        """
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if document.processing_status != ProcessingStatus.COMPLETED:
            raise ValidationError(
                f"Document {document_id} is {document.processing_status}; only COMPLETED documents can be classified",
                status_code=409,
            )

        extracted_data = dict(document.extracted_data or {})
        procedures = extracted_data.get("procedures") or []

        classified = await self.classifier.classify(procedures)

        extracted_data["procedures"] = classified
        extracted_data["classifiedAt"] = datetime.now(timezone.utc).isoformat()
        await self.document_repo.replace_extracted_data(document_id, extracted_data)

        created = await self.review_service.seed_mappings(document_id, classified)

        LOGGER.info(
            f"Classified {len(classified)} procedures for document {document_id}; {created} mappings created",
            extra={"document_id": str(document_id)},
        )
        return {
            "documentId": str(document_id),
            "classified": len(classified),
            "mappingsCreated": created,
        }
