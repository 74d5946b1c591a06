"""Hands uploaded documents to background processing.

``temporal`` starts a workflow on the worker task queue; ``inline`` runs
the same pipelines as an asyncio task inside the API process, for local
development without a Temporal server. Dispatch never waits for the
pipeline itself.
"""

import asyncio
from datetime import timedelta
from typing import Optional, Set, Union
from uuid import UUID

from clinic_ingest.core.config import settings
from clinic_ingest.core.database import async_session_maker
from clinic_ingest.core.exceptions import ConfigurationError
from clinic_ingest.core.temporal_client import get_temporal_client
from clinic_ingest.core.unified_llm import create_reasoning_client
from clinic_ingest.database.models import ProcessingStatus
from clinic_ingest.pipeline.classification_pipeline import ClassificationPipeline
from clinic_ingest.pipeline.document_pipeline import DocumentPipeline
from clinic_ingest.services.storage_service import get_storage
from clinic_ingest.temporal.core.constants import DEFAULT_WORKFLOW_TIMEOUT_SECONDS, WORKFLOW_ID_PREFIX
from clinic_ingest.temporal.workflows.process_document import ProcessInsuranceDocumentWorkflow
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


def workflow_id_for(document_id: UUID) -> str:
    return f"{WORKFLOW_ID_PREFIX}{document_id}"


class TemporalDispatcher:
    """Starts ProcessInsuranceDocumentWorkflow for a document."""

    def __init__(self, task_queue: str):
        self.task_queue = task_queue

    async def dispatch(self, document_id: UUID) -> str:
        """Start the workflow. Temporal rejects a second start for the same document."""
        client = await get_temporal_client()
        handle = await client.start_workflow(
            ProcessInsuranceDocumentWorkflow.run,
            str(document_id),
            id=workflow_id_for(document_id),
            task_queue=self.task_queue,
            execution_timeout=timedelta(seconds=DEFAULT_WORKFLOW_TIMEOUT_SECONDS),
        )
        LOGGER.info(
            f"Started workflow {handle.id} on {self.task_queue}",
            extra={"document_id": str(document_id)},
        )
        return handle.id


class InlineDispatcher:
    """Runs extraction and classification as an in-process asyncio task."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, document_id: UUID) -> str:
        task = asyncio.create_task(self._run(document_id), name=workflow_id_for(document_id))
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        LOGGER.info("Scheduled inline processing", extra={"document_id": str(document_id)})
        return task.get_name()

    async def _run(self, document_id: UUID) -> None:
        llm_client = create_reasoning_client(settings.llm)
        pipeline = DocumentPipeline(
            session_factory=async_session_maker,
            storage=get_storage(),
            llm_client=llm_client,
        )
        result = await pipeline.process(document_id)
        if result.get("status") != ProcessingStatus.COMPLETED:
            return

        try:
            async with async_session_maker() as session:
                await ClassificationPipeline(session, llm_client).classify_document(document_id)
        except Exception as e:
            LOGGER.error(
                f"Inline classification failed for document {document_id}: {e}",
                exc_info=True,
                extra={"document_id": str(document_id)},
            )

    async def drain(self) -> None:
        """Wait for scheduled tasks; used at shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


PipelineDispatcher = Union[TemporalDispatcher, InlineDispatcher]

_dispatcher: Optional[PipelineDispatcher] = None


def create_dispatcher(mode: str) -> PipelineDispatcher:
    mode = mode.lower()
    if mode == "temporal":
        return TemporalDispatcher(task_queue=settings.temporal.task_queue)
    if mode == "inline":
        return InlineDispatcher()
    raise ConfigurationError(f"Unsupported PIPELINE_DISPATCH mode: {mode}")


def get_dispatcher() -> PipelineDispatcher:
    """Process-wide dispatcher selected by PIPELINE_DISPATCH."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = create_dispatcher(settings.pipeline.dispatch)
        LOGGER.info(f"Pipeline dispatch mode: {settings.pipeline.dispatch}")
    return _dispatcher
