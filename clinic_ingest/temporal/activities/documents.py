"""Activities wrapping the document and classification pipelines."""

from typing import Dict
from uuid import UUID

from temporalio import activity

from clinic_ingest.core.config import settings
from clinic_ingest.core.database import async_session_maker
from clinic_ingest.core.unified_llm import create_reasoning_client
from clinic_ingest.pipeline.classification_pipeline import ClassificationPipeline
from clinic_ingest.pipeline.document_pipeline import DocumentPipeline
from clinic_ingest.services.storage_service import get_storage
from clinic_ingest.temporal.core.activity_registry import ActivityRegistry


@ActivityRegistry.register("insurance", "process_insurance_document")
@activity.defn
async def process_insurance_document(document_id: str) -> Dict:
    """Run OCR extraction for a document. Failures are recorded on the document."""
    activity.logger.info(
        f"[Extraction] Starting document {document_id}",
        extra={"document_id": document_id},
    )
    pipeline = DocumentPipeline(
        session_factory=async_session_maker,
        storage=get_storage(),
        llm_client=create_reasoning_client(settings.llm),
    )
    result = await pipeline.process(UUID(document_id))
    activity.logger.info(
        f"[Extraction] Document {document_id} finished with {result['status']}",
        extra={"document_id": document_id},
    )
    return result


@ActivityRegistry.register("insurance", "classify_insurance_document")
@activity.defn
async def classify_insurance_document(document_id: str) -> Dict:
    """Classify a completed document's procedures and seed its mappings."""
    activity.logger.info(
        f"[Classification] Starting document {document_id}",
        extra={"document_id": document_id},
    )
    try:
        async with async_session_maker() as session:
            pipeline = ClassificationPipeline(session, create_reasoning_client(settings.llm))
            return await pipeline.classify_document(UUID(document_id))
    except Exception as e:
        activity.logger.error(f"[Classification] Document {document_id} failed: {e}")
        raise
