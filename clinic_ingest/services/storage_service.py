"""Raw file store for uploaded PDFs.

Bytes are addressed by an opaque handle string that is persisted on the
document row as ``file_path``.
"""

import asyncio
import time
from pathlib import Path
from typing import Dict, Optional, Union
from uuid import uuid4

from clinic_ingest.core.config import settings
from clinic_ingest.core.exceptions import ConfigurationError, StorageError
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LocalFileStorage:
    """Stores files under a root directory. Handles are paths relative to it."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def _resolve(self, handle: str) -> Path:
        path = (self.root / handle).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Storage handle escapes the storage root: {handle}")
        return path

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def save(self, data: bytes, filename: str) -> str:
        """Save bytes and return the new handle.

        Args:
            data: File content
            filename: Original name, used only for its extension

        Returns:
            Handle of the form ``uploads/<uuid>-<timestamp><ext>``
        """
        suffix = Path(filename).suffix.lower() or ".pdf"
        handle = f"uploads/{uuid4()}-{int(time.time() * 1000)}{suffix}"
        path = self._resolve(handle)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            LOGGER.error(f"Failed to write {handle}: {e}", exc_info=True)
            raise StorageError(f"Failed to store file {filename}", e) from e

        LOGGER.info(f"Stored {len(data)} bytes", extra={"handle": handle})
        return handle

    async def load(self, handle: str) -> bytes:
        """Read the bytes behind a handle.

        Raises:
            StorageError: If the handle is unknown or unreadable
        """
        path = self._resolve(handle)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Unknown storage handle: {handle}", e) from e
        except OSError as e:
            LOGGER.error(f"Failed to read {handle}: {e}", exc_info=True)
            raise StorageError(f"Failed to read stored file: {handle}", e) from e

    async def delete(self, handle: str) -> None:
        path = self._resolve(handle)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as e:
            raise StorageError(f"Unknown storage handle: {handle}", e) from e


class InMemoryStorage:
    """Process-local store for tests and the inline dispatcher."""

    def __init__(self):
        self._files: Dict[str, bytes] = {}

    async def save(self, data: bytes, filename: str) -> str:
        handle = f"memory://{uuid4()}"
        self._files[handle] = bytes(data)
        return handle

    async def load(self, handle: str) -> bytes:
        try:
            return self._files[handle]
        except KeyError as e:
            raise StorageError(f"Unknown storage handle: {handle}", e) from e

    async def delete(self, handle: str) -> None:
        if self._files.pop(handle, None) is None:
            raise StorageError(f"Unknown storage handle: {handle}")


FileStorage = Union[LocalFileStorage, InMemoryStorage]

_storage: Optional[FileStorage] = None


def create_storage(backend: str, directory: str) -> FileStorage:
    """Build a storage backend by name ("local" or "memory")."""
    backend = backend.lower()
    if backend == "local":
        return LocalFileStorage(directory)
    if backend == "memory":
        return InMemoryStorage()
    raise ConfigurationError(f"Unsupported storage backend: {backend}")


def get_storage() -> FileStorage:
    """Return the process-wide storage backend from settings."""
    global _storage
    if _storage is None:
        _storage = create_storage(settings.storage.backend, settings.storage.directory)
        LOGGER.info(f"Using {settings.storage.backend} file storage")
    return _storage
