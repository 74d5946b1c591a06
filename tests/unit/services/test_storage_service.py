"""Tests for the raw file store backends."""

import pytest

from clinic_ingest.core.exceptions import ConfigurationError, StorageError
from clinic_ingest.services.storage_service import InMemoryStorage, LocalFileStorage, create_storage


class TestInMemoryStorage:

    @pytest.mark.asyncio
    async def test_save_and_load(self, sample_pdf_content):
        storage = InMemoryStorage()

        handle = await storage.save(sample_pdf_content, "tabela.pdf")

        assert handle.startswith("memory://")
        assert await storage.load(handle) == sample_pdf_content

    @pytest.mark.asyncio
    async def test_handles_are_unique(self, sample_pdf_content):
        storage = InMemoryStorage()

        first = await storage.save(sample_pdf_content, "tabela.pdf")
        second = await storage.save(sample_pdf_content, "tabela.pdf")

        assert first != second

    @pytest.mark.asyncio
    async def test_unknown_handle(self):
        with pytest.raises(StorageError):
            await InMemoryStorage().load("memory://missing")

    @pytest.mark.asyncio
    async def test_delete(self, sample_pdf_content):
        storage = InMemoryStorage()
        handle = await storage.save(sample_pdf_content, "tabela.pdf")

        await storage.delete(handle)

        with pytest.raises(StorageError):
            await storage.load(handle)
        with pytest.raises(StorageError):
            await storage.delete(handle)


class TestLocalFileStorage:

    @pytest.mark.asyncio
    async def test_save_writes_under_uploads(self, tmp_path, sample_pdf_content):
        storage = LocalFileStorage(tmp_path)

        handle = await storage.save(sample_pdf_content, "Tabela Convênio.PDF")

        assert handle.startswith("uploads/")
        assert handle.endswith(".pdf")
        assert (tmp_path / handle).read_bytes() == sample_pdf_content
        assert await storage.load(handle) == sample_pdf_content

    @pytest.mark.asyncio
    async def test_unknown_handle(self, tmp_path):
        storage = LocalFileStorage(tmp_path)

        with pytest.raises(StorageError):
            await storage.load("uploads/missing.pdf")

    @pytest.mark.asyncio
    async def test_handle_cannot_escape_root(self, tmp_path):
        storage = LocalFileStorage(tmp_path / "store")

        with pytest.raises(StorageError):
            await storage.load("../outside.pdf")

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path, sample_pdf_content):
        storage = LocalFileStorage(tmp_path)
        handle = await storage.save(sample_pdf_content, "tabela.pdf")

        await storage.delete(handle)

        assert not (tmp_path / handle).exists()


def test_create_storage(tmp_path):
    assert isinstance(create_storage("memory", str(tmp_path)), InMemoryStorage)
    assert isinstance(create_storage("LOCAL", str(tmp_path)), LocalFileStorage)

    with pytest.raises(ConfigurationError):
        create_storage("s3", str(tmp_path))
