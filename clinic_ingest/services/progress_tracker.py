"""Best-effort progress reporting for document processing."""

from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ProgressTracker:
    """Writes (progress, stage) for a document.

    Every write runs in its own short-lived session so a failed update
    cannot poison the pipeline's unit of work, and failures never reach
    the caller.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """
        Args:
            session_factory: Callable returning an async session context
                manager, e.g. ``async_session_maker``
        """
        self.session_factory = session_factory

    async def set_progress(self, document_id: UUID, progress: int, stage: str) -> None:
        """Record progress, clamped to 0..100. Never raises."""
        clamped = max(0, min(100, int(progress)))
        try:
            async with self.session_factory() as session:
                updated = await DocumentRepository(session).set_progress(document_id, clamped, stage)
            if not updated:
                LOGGER.warning(
                    "Progress update for unknown document",
                    extra={"document_id": str(document_id), "stage": stage},
                )
                return
            LOGGER.info(
                f"Document {document_id}: {clamped}% ({stage})",
                extra={"document_id": str(document_id), "progress": clamped, "stage": stage},
            )
        except Exception as e:
            LOGGER.error(
                f"Failed to update progress for document {document_id}: {e}",
                extra={"document_id": str(document_id), "stage": stage},
            )
