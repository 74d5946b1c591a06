"""Unit tests for document status transitions."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from clinic_ingest.database.models import ProcessingStage, ProcessingStatus
from clinic_ingest.repositories.document_repository import DocumentRepository


def make_document():
    return SimpleNamespace(
        id=uuid4(),
        processing_status=ProcessingStatus.PROCESSING,
        processing_stage=ProcessingStage.EXTRACTING,
        processing_progress=40,
        extracted_data=None,
        processed=False,
        processed_at=None,
        updated_at=None,
    )


class TestDocumentRepository:
    """Tests for DocumentRepository terminal states."""

    @pytest.mark.asyncio
    async def test_mark_failed_stamps_processed_at(self, mock_session):
        document = make_document()
        repository = DocumentRepository(mock_session)
        payload = {"error": "Unreadable PDF", "stack": "", "timestamp": "2026-10-19T10:00:00+00:00"}

        with patch.object(DocumentRepository, "get_by_id", new=AsyncMock(return_value=document)):
            await repository.mark_failed(document.id, payload)

        assert document.processing_status == ProcessingStatus.FAILED
        assert document.processing_stage == ProcessingStage.FAILED
        assert document.processing_progress == 0
        assert document.extracted_data == payload
        assert document.processed_at is not None
        assert document.processed is False
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_completed_stamps_processed_at(self, mock_session):
        document = make_document()
        repository = DocumentRepository(mock_session)

        with patch.object(DocumentRepository, "get_by_id", new=AsyncMock(return_value=document)):
            await repository.mark_completed(document.id, {"procedures": []})

        assert document.processing_status == ProcessingStatus.COMPLETED
        assert document.processed is True
        assert document.processed_at is not None
