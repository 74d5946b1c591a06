"""Tests for pipeline dispatch and Temporal registration."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from clinic_ingest.core.config import settings
from clinic_ingest.core.exceptions import ConfigurationError
from clinic_ingest.database.models import ProcessingStatus
from clinic_ingest.temporal.core.activity_registry import ActivityRegistry
from clinic_ingest.temporal.core.discovery import discover_all
from clinic_ingest.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType
from clinic_ingest.temporal.dispatcher import (
    InlineDispatcher,
    TemporalDispatcher,
    create_dispatcher,
    workflow_id_for,
)
from clinic_ingest.temporal.workflows.process_document import ProcessInsuranceDocumentWorkflow

MODULE = "clinic_ingest.temporal.dispatcher"


def test_workflow_id_is_derived_from_document():
    document_id = uuid4()

    assert workflow_id_for(document_id) == f"insurance-document-{document_id}"


def test_create_dispatcher():
    assert isinstance(create_dispatcher("inline"), InlineDispatcher)
    assert isinstance(create_dispatcher("Temporal"), TemporalDispatcher)

    with pytest.raises(ConfigurationError):
        create_dispatcher("celery")


@pytest.mark.asyncio
async def test_temporal_dispatch_starts_workflow():
    document_id = uuid4()
    client = MagicMock()
    client.start_workflow = AsyncMock(return_value=SimpleNamespace(id=workflow_id_for(document_id)))

    with patch(f"{MODULE}.get_temporal_client", new=AsyncMock(return_value=client)):
        workflow_id = await TemporalDispatcher(task_queue="test-queue").dispatch(document_id)

    assert workflow_id == f"insurance-document-{document_id}"
    args, kwargs = client.start_workflow.call_args
    assert args == (ProcessInsuranceDocumentWorkflow.run, str(document_id))
    assert kwargs == {
        "id": f"insurance-document-{document_id}",
        "task_queue": "test-queue",
        "execution_timeout": timedelta(hours=1),
    }


@pytest.mark.asyncio
async def test_inline_dispatch_does_not_wait():
    document_id = uuid4()
    dispatcher = InlineDispatcher()

    with patch.object(InlineDispatcher, "_run", new=AsyncMock()) as run:
        name = await dispatcher.dispatch(document_id)
        await dispatcher.drain()

    assert name == workflow_id_for(document_id)
    run.assert_awaited_once_with(document_id)


@pytest.mark.asyncio
async def test_inline_run_classifies_only_completed_documents():
    document_id = uuid4()
    with patch(f"{MODULE}.DocumentPipeline") as pipeline_cls, \
            patch(f"{MODULE}.ClassificationPipeline") as classification_cls, \
            patch(f"{MODULE}.get_storage"), \
            patch(f"{MODULE}.async_session_maker"):
        pipeline_cls.return_value.process = AsyncMock(return_value={"status": ProcessingStatus.FAILED})

        await InlineDispatcher()._run(document_id)

    pipeline_cls.return_value.process.assert_awaited_once_with(document_id)
    classification_cls.assert_not_called()


def test_activities_and_workflow_are_registered():
    discover_all()

    activities = ActivityRegistry.get_all_activities()
    assert "insurance:process_insurance_document" in activities
    assert "insurance:classify_insurance_document" in activities

    workflows = WorkflowRegistry.get_all_workflows().values()
    assert [w.workflow_class for w in workflows] == [ProcessInsuranceDocumentWorkflow]
    assert all(w.category == WorkflowType.INSURANCE for w in workflows)
    assert WorkflowRegistry.by_task_queue() == {settings.temporal.task_queue: [ProcessInsuranceDocumentWorkflow]}
