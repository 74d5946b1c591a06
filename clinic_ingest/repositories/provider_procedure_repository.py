from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.database.models import ProviderProcedure
from clinic_ingest.repositories.base_repository import BaseRepository


class ProviderProcedureRepository(BaseRepository[ProviderProcedure]):
    """Repository for billable provider procedures."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProviderProcedure)

    async def get_by_source_mapping(self, mapping_id: UUID) -> Optional[ProviderProcedure]:
        """Get the row created from a mapping's approval, if any."""
        try:
            query = select(ProviderProcedure).where(ProviderProcedure.source_mapping_id == mapping_id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving provider procedure for mapping {mapping_id}: {str(e)}",
                exc_info=True
            )
            raise
