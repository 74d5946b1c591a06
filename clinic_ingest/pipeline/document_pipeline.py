"""Document processing: rasterize, OCR, extract, dedupe, persist.

Progress is written at every stage so polling clients can follow along.
Page-level problems cost only that page's records; anything else marks the
document FAILED with an error payload.
"""

import math
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.core.config import settings
from clinic_ingest.core.exceptions import ConfigurationError, DocumentNotFoundError, OCRExtractionError
from clinic_ingest.database.models import ProcessingStage, ProcessingStatus
from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.services.extraction.deduplicator import deduplicate
from clinic_ingest.services.extraction.procedure_extractor import ProcedureExtractor
from clinic_ingest.services.ocr.rasterizer import PageRasterizer
from clinic_ingest.services.ocr.text_recognizer import TextRecognizer
from clinic_ingest.services.progress_tracker import ProgressTracker
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

EXTRACTION_PROGRESS_START = 20
EXTRACTION_PROGRESS_SPAN = 60


def extraction_progress(page_index: int, page_count: int) -> int:
    """Progress while extracting page ``page_index`` (0-based) of ``page_count``."""
    if page_count <= 0:
        return EXTRACTION_PROGRESS_START
    return EXTRACTION_PROGRESS_START + math.floor(page_index / page_count * EXTRACTION_PROGRESS_SPAN)


def build_error_payload(error: BaseException) -> Dict[str, Any]:
    return {
        "error": str(error) or error.__class__.__name__,
        "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class DocumentPipeline:
    """Runs the extraction pipeline for one uploaded document."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        storage,
        llm_client,
        rasterizer: Optional[PageRasterizer] = None,
        recognizer: Optional[TextRecognizer] = None,
        extractor: Optional[ProcedureExtractor] = None,
        progress: Optional[ProgressTracker] = None,
    ):
        """
        Args:
            session_factory: Async session factory; each DB step opens its own session
            storage: Raw file store holding the uploaded bytes
            llm_client: Reasoning client
            rasterizer: Page rasterizer (defaults from settings)
            recognizer: OCR engine (defaults from settings)
            extractor: Page extractor (defaults to one using ``llm_client``)
            progress: Progress tracker (defaults to one using ``session_factory``)
        """
        pipeline_settings = settings.pipeline
        self.session_factory = session_factory
        self.storage = storage
        self.llm_client = llm_client
        self.rasterizer = rasterizer or PageRasterizer(scale=pipeline_settings.raster_scale)
        self.recognizer = recognizer or TextRecognizer(
            language=pipeline_settings.ocr_language,
            min_text_length=pipeline_settings.min_ocr_text_length,
        )
        self.extractor = extractor or ProcedureExtractor(
            llm_client, temperature=pipeline_settings.extraction_temperature
        )
        self.progress = progress or ProgressTracker(session_factory)

    async def process(self, document_id: UUID) -> Dict[str, Any]:
        """Process a document end to end.

        Fatal errors are recorded on the document (status FAILED, progress
        0, error payload) rather than raised.

        Returns:
            Summary with ``status`` (COMPLETED or FAILED) and counts
        """
        LOGGER.info(f"Processing document {document_id}", extra={"document_id": str(document_id)})
        await self.progress.set_progress(document_id, 5, ProcessingStage.UPLOADING)

        try:
            return await self._run(document_id)
        except Exception as e:
            LOGGER.error(
                f"Document {document_id} failed: {e}",
                exc_info=True,
                extra={"document_id": str(document_id)},
            )
            await self._mark_failed(document_id, e)
            return {
                "document_id": str(document_id),
                "status": ProcessingStatus.FAILED,
                "error": str(e),
            }

    async def _run(self, document_id: UUID) -> Dict[str, Any]:
        if not getattr(self.llm_client, "available", True):
            raise ConfigurationError(
                "Reasoning service is not configured; cannot extract procedures"
            )

        async with self.session_factory() as session:
            document = await DocumentRepository(session).get_by_id(document_id)
            if document is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            file_handle = document.file_path

        pdf_bytes = await self.storage.load(file_handle)

        await self.progress.set_progress(document_id, 10, ProcessingStage.CONVERTING)
        pages = await self.rasterizer.rasterize(pdf_bytes)
        page_count = len(pages)

        all_records: List[Dict[str, Any]] = []
        pages_processed = 0
        pages_skipped = 0

        for index, page in enumerate(pages):
            await self.progress.set_progress(
                document_id, extraction_progress(index, page_count), ProcessingStage.EXTRACTING
            )
            log_extra = {"document_id": str(document_id), "page_number": page.page_number}

            try:
                text = await self.recognizer.recognize(page.image)
            except OCRExtractionError as e:
                LOGGER.warning(f"OCR failed on page {page.page_number}: {e.message}", extra=log_extra)
                pages_skipped += 1
                continue

            if not self.recognizer.is_extractable(text):
                LOGGER.info(
                    f"Page {page.page_number} has too little text ({len(text.strip())} chars); skipping",
                    extra=log_extra,
                )
                pages_skipped += 1
                continue

            records = await self.extractor.extract_page(text, page.page_number)
            all_records.extend(records)
            pages_processed += 1

        await self.progress.set_progress(document_id, 85, ProcessingStage.DEDUPLICATING)
        procedures = deduplicate(all_records)

        await self.progress.set_progress(document_id, 95, ProcessingStage.SAVING)
        extracted_data = {
            "procedures": procedures,
            "pageCount": page_count,
            "pagesProcessed": pages_processed,
            "pagesSkipped": pages_skipped,
            "totalExtracted": len(all_records),
            "extractedAt": datetime.now(timezone.utc).isoformat(),
        }
        async with self.session_factory() as session:
            await DocumentRepository(session).mark_completed(document_id, extracted_data)

        await self.progress.set_progress(document_id, 100, ProcessingStage.COMPLETED)

        LOGGER.info(
            f"Document {document_id} completed: {len(procedures)} unique procedures "
            f"({len(all_records)} extracted, {pages_skipped}/{page_count} pages skipped)",
            extra={"document_id": str(document_id)},
        )
        return {
            "document_id": str(document_id),
            "status": ProcessingStatus.COMPLETED,
            "page_count": page_count,
            "pages_processed": pages_processed,
            "pages_skipped": pages_skipped,
            "total_extracted": len(all_records),
            "unique_procedures": len(procedures),
        }

    async def _mark_failed(self, document_id: UUID, error: BaseException) -> None:
        try:
            async with self.session_factory() as session:
                await DocumentRepository(session).mark_failed(document_id, build_error_payload(error))
        except Exception as e:
            LOGGER.error(
                f"Could not record failure for document {document_id}: {e}",
                exc_info=True,
                extra={"document_id": str(document_id)},
            )
