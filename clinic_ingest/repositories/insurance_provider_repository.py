from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.database.models import InsuranceProvider
from clinic_ingest.repositories.base_repository import BaseRepository


class InsuranceProviderRepository(BaseRepository[InsuranceProvider]):
    """Read access to insurance providers."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, InsuranceProvider)

    async def get_for_clinic(self, provider_id: UUID, clinic_id: UUID) -> Optional[InsuranceProvider]:
        """Get a provider only if it belongs to the given clinic."""
        try:
            query = select(InsuranceProvider).where(
                InsuranceProvider.id == provider_id,
                InsuranceProvider.clinic_id == clinic_id,
            )
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving provider {provider_id} for clinic {clinic_id}: {str(e)}",
                exc_info=True
            )
            raise
