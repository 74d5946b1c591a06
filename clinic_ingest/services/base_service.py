from abc import ABC, abstractmethod
from typing import Any, Optional

from clinic_ingest.core.exceptions import AppError
from clinic_ingest.repositories.base_repository import BaseRepository
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Template for request-facing services.

    Callers use ``execute``, which runs ``validate`` and then ``run`` with the
    same arguments. ``AppError`` subclasses pass through so the API can map
    them to status codes. Anything else becomes a plain ``AppError``.
    """

    def __init__(self, repository: Optional[BaseRepository] = None):
        self.repository = repository
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        name = type(self).__name__
        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)
        except AppError:
            raise
        except Exception as e:
            self.logger.error(f"{name} failed: {e}", exc_info=True, extra={"service": name})
            raise AppError(f"{name} failed: {e}", original_error=e)

    def validate(self, *args, **kwargs) -> None:
        """Raise ``ValidationError`` for bad input. No checks by default."""

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        ...
