from typing import Optional, List, Set, Tuple, Any, Dict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.database.models import ProcedureBase, ProcedureMapping
from clinic_ingest.repositories.base_repository import BaseRepository
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ProcedureMappingRepository(BaseRepository[ProcedureMapping]):
    """Repository for extracted-code to catalog mappings."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProcedureMapping)

    async def get_codes_for_document(self, document_id: UUID) -> Set[str]:
        """Codes that already have a mapping row for the document."""
        try:
            query = select(ProcedureMapping.extracted_procedure_code).where(
                ProcedureMapping.document_id == document_id
            )
            result = await self.session.execute(query)
            return set(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Error reading mapping codes for document {document_id}: {str(e)}", exc_info=True)
            raise

    async def add_many(self, rows: List[Dict[str, Any]]) -> List[ProcedureMapping]:
        """Insert mapping rows in one flush and commit."""
        try:
            instances = [ProcedureMapping(**row) for row in rows]
            self.session.add_all(instances)
            await self.session.flush()
            await self.session.commit()
            return instances
        except SQLAlchemyError as e:
            LOGGER.error(f"Error inserting {len(rows)} procedure mappings: {str(e)}", exc_info=True)
            await self.session.rollback()
            raise

    async def list_with_base(self, document_id: UUID) -> List[Tuple[ProcedureMapping, Optional[ProcedureBase]]]:
        """Mappings of a document joined with their canonical procedure, ordered by code."""
        try:
            query = (
                select(ProcedureMapping, ProcedureBase)
                .outerjoin(ProcedureBase, ProcedureMapping.mapped_procedure_base_id == ProcedureBase.id)
                .where(ProcedureMapping.document_id == document_id)
                .order_by(ProcedureMapping.extracted_procedure_code)
            )
            result = await self.session.execute(query)
            return [(row[0], row[1]) for row in result.all()]
        except SQLAlchemyError as e:
            LOGGER.error(f"Error listing mappings for document {document_id}: {str(e)}", exc_info=True)
            raise

    async def get_for_update(self, mapping_id: UUID) -> Optional[ProcedureMapping]:
        """Load a mapping with a row lock held until the transaction ends."""
        try:
            query = (
                select(ProcedureMapping)
                .where(ProcedureMapping.id == mapping_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            LOGGER.error(f"Error locking mapping {mapping_id}: {str(e)}", exc_info=True)
            raise
