"""Tests for upload intake."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from clinic_ingest.core.exceptions import AppError, PipelineError, StorageError
from clinic_ingest.services.document_service import DocumentService, UploadedFile
from clinic_ingest.services.storage_service import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(return_value="insurance-document-x")
    return dispatcher


@pytest.fixture
def service(mock_session, storage, dispatcher):
    service = DocumentService(mock_session, storage, dispatcher)
    service.provider_repo = MagicMock()
    service.provider_repo.get_for_clinic = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    service.repository = MagicMock()
    service.repository.create_document = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    service.repository.mark_failed = AsyncMock()
    return service


@pytest.fixture
def upload(sample_pdf_content):
    return UploadedFile(file_name="tabela.pdf", content_type="application/pdf", data=sample_pdf_content)


@pytest.mark.asyncio
async def test_upload_bytes_are_kept_for_created_document(service, storage, upload):
    document = await service.execute(uuid4(), uuid4(), upload, "user-1")

    handle = service.repository.create_document.call_args.kwargs["file_path"]
    assert await storage.load(handle) == upload.data
    assert document is service.repository.create_document.return_value


@pytest.mark.asyncio
async def test_failed_insert_discards_stored_bytes(service, storage, dispatcher, upload):
    service.repository.create_document.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))

    with pytest.raises(AppError) as exc_info:
        await service.execute(uuid4(), uuid4(), upload, "user-1")

    assert isinstance(exc_info.value.original_error, OperationalError)

    handle = service.repository.create_document.call_args.kwargs["file_path"]
    with pytest.raises(StorageError):
        await storage.load(handle)
    dispatcher.dispatch.assert_not_awaited()


@pytest.mark.asyncio
async def test_cleanup_failure_keeps_the_insert_error(service, storage, upload):
    service.repository.create_document.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
    storage.delete = AsyncMock(side_effect=StorageError("disk gone"))

    with pytest.raises(AppError) as exc_info:
        await service.execute(uuid4(), uuid4(), upload, "user-1")

    assert isinstance(exc_info.value.original_error, OperationalError)
    storage.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_dispatch_failure_marks_document_failed(service, dispatcher, upload):
    dispatcher.dispatch.side_effect = RuntimeError("temporal unreachable")

    with pytest.raises(PipelineError):
        await service.execute(uuid4(), uuid4(), upload, "user-1")

    service.repository.mark_failed.assert_awaited_once()
