from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generic, Iterator, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Shared persistence helpers for a single mapped table.

    Database errors are logged with the table and operation and then
    re-raised unchanged. Writes commit unless ``commit=False`` is passed,
    which lets a caller group several writes into one transaction.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    @contextmanager
    def _logged(self, operation: str, ref: object = None) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            target = f"{self.model.__name__} {ref}" if ref is not None else self.model.__name__
            self.logger.error(f"{operation} failed for {target}: {e}", exc_info=True)
            raise

    async def _finish(self, commit: bool) -> None:
        await self.session.flush()
        if commit:
            await self.session.commit()

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Fetch one row by primary key, or None."""
        with self._logged("lookup", id):
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()

    async def create(self, commit: bool = True, **fields) -> ModelType:
        """Insert a row built from ``fields`` and return it flushed."""
        with self._logged("insert"):
            row = self.model(**fields)
            self.session.add(row)
            await self._finish(commit)
            return row

    async def update(self, id: UUID, commit: bool = True, **fields) -> Optional[ModelType]:
        """Apply ``fields`` to an existing row.

        Unknown attribute names are ignored. ``updated_at`` is stamped when
        the model has one. Returns None when no row has this id.
        """
        with self._logged("update", id):
            row = await self.get_by_id(id)
            if row is None:
                return None

            for name, value in fields.items():
                if hasattr(row, name):
                    setattr(row, name, value)
            if hasattr(row, "updated_at"):
                row.updated_at = datetime.now(timezone.utc)

            await self._finish(commit)
            return row
