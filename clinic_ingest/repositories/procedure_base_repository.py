from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.database.models import ProcedureBase
from clinic_ingest.repositories.base_repository import BaseRepository


class ProcedureBaseRepository(BaseRepository[ProcedureBase]):
    """Read access to the canonical procedure catalog."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProcedureBase)

    @staticmethod
    def _visible_to(clinic_id: Optional[UUID]):
        scope = ProcedureBase.clinic_id.is_(None)
        if clinic_id is not None:
            scope = or_(ProcedureBase.clinic_id == clinic_id, scope)
        return scope

    async def list_active(self, clinic_id: Optional[UUID]) -> List[ProcedureBase]:
        """Active global entries plus the clinic's own, ordered by code."""
        with self._logged("catalog listing", clinic_id):
            query = (
                select(ProcedureBase)
                .where(ProcedureBase.active.is_(True), self._visible_to(clinic_id))
                .order_by(ProcedureBase.code)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def find_active_by_codes(
        self, codes: Iterable[str], clinic_id: Optional[UUID]
    ) -> Dict[str, ProcedureBase]:
        """Resolve codes to active catalog entries.

        A clinic-scoped entry wins over a global one with the same code.

        Args:
            codes: Normalized procedure codes
            clinic_id: Clinic whose private catalog is searched first

        Returns:
            Mapping of code to catalog entry, only for codes that matched
        """
        code_list = list(dict.fromkeys(codes))
        if not code_list:
            return {}

        with self._logged(f"resolving {len(code_list)} catalog codes"):
            query = select(ProcedureBase).where(
                ProcedureBase.code.in_(code_list),
                ProcedureBase.active.is_(True),
                self._visible_to(clinic_id),
            )
            result = await self.session.execute(query)
            entries = list(result.scalars().all())

        resolved: Dict[str, ProcedureBase] = {}
        for entry in entries:
            current = resolved.get(entry.code)
            if current is None or (current.clinic_id is None and entry.clinic_id is not None):
                resolved[entry.code] = entry
        return resolved
