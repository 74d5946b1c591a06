"""Workflow for one uploaded price-table PDF."""

from datetime import timedelta
from typing import Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

from clinic_ingest.temporal.core.constants import (
    CLASSIFY_DOCUMENT_TIMEOUT_SECONDS,
    PROCESS_DOCUMENT_TIMEOUT_SECONDS,
)
from clinic_ingest.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType

# Pipelines record their own failures; nothing is retried automatically
NO_RETRY = RetryPolicy(maximum_attempts=1)


@WorkflowRegistry.register(category=WorkflowType.INSURANCE)
@workflow.defn
class ProcessInsuranceDocumentWorkflow:
    """Extraction, then classification when extraction completed."""

    def __init__(self):
        self._status = "initialized"
        self._current_phase: Optional[str] = None

    @workflow.query
    def get_status(self) -> dict:
        return {"status": self._status, "current_phase": self._current_phase}

    @workflow.run
    async def run(self, document_id: str) -> dict:
        self._status = "processing"
        self._current_phase = "extraction"

        extraction: Dict = await workflow.execute_activity(
            "process_insurance_document",
            document_id,
            start_to_close_timeout=timedelta(seconds=PROCESS_DOCUMENT_TIMEOUT_SECONDS),
            retry_policy=NO_RETRY,
        )

        classification: Optional[Dict] = None
        if extraction.get("status") == "COMPLETED":
            self._current_phase = "classification"
            classification = await workflow.execute_activity(
                "classify_insurance_document",
                document_id,
                start_to_close_timeout=timedelta(seconds=CLASSIFY_DOCUMENT_TIMEOUT_SECONDS),
                retry_policy=NO_RETRY,
            )

        self._status = extraction.get("status", "FAILED").lower()
        self._current_phase = None

        return {
            "document_id": document_id,
            "status": self._status,
            "extraction": extraction,
            "classification": classification,
        }
