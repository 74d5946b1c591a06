"""Human review of extracted procedures.

Mappings start PENDING and move to APPROVED or REJECTED. Approval turns a
mapping into exactly one billable ProviderProcedure; approving again
returns the row created the first time.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ingest.core.exceptions import (
    DatabaseError,
    DocumentNotFoundError,
    MappingNotFoundError,
    ProviderNotFoundError,
    ValidationError,
)
from clinic_ingest.database.models import MappingStatus, ProcedureBase, ProcedureMapping
from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.repositories.insurance_provider_repository import InsuranceProviderRepository
from clinic_ingest.repositories.procedure_base_repository import ProcedureBaseRepository
from clinic_ingest.repositories.procedure_mapping_repository import ProcedureMappingRepository
from clinic_ingest.repositories.provider_procedure_repository import ProviderProcedureRepository
from clinic_ingest.schemas.mappings import MappingUpdateRequest
from clinic_ingest.services.matching.catalog_matcher import (
    EXACT_CODE_CONFIDENCE,
    EXACT_CODE_REASONING,
    CatalogMatch,
    CatalogMatcher,
    no_match,
)
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ApprovalResult:
    procedure_id: UUID
    created: bool


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return None


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _new_records(records: List[Dict[str, Any]], existing_codes: Set[str]) -> List[Dict[str, Any]]:
    """First record per code, skipping codes that already have a mapping."""
    seen = set(existing_codes)
    fresh: List[Dict[str, Any]] = []
    for record in records:
        code = record.get("code")
        if not code or code in seen:
            continue
        seen.add(code)
        fresh.append(record)
    return fresh


def _mapping_row(document_id: UUID, record: Dict[str, Any], match: CatalogMatch) -> Dict[str, Any]:
    return {
        "document_id": document_id,
        "extracted_procedure_code": record["code"],
        "extracted_description": record.get("description"),
        "extracted_value": _to_decimal(record.get("value")),
        "extracted_is_periciable": bool(record.get("isPericiable", False)),
        "extracted_adults_only": record.get("adultsOnly"),
        "ai_periciable_confidence": _to_decimal(record.get("aiPericiableConfidence")),
        "ai_adults_only_confidence": _to_decimal(record.get("aiAdultsOnlyConfidence")),
        "ai_reasoning": record.get("reasoning"),
        "mapped_procedure_base_id": match.procedure_base_id,
        "confidence_score": _to_decimal(round(match.confidence, 3)),
        "status": MappingStatus.PENDING,
    }


def serialize_mapping(mapping: ProcedureMapping, base: Optional[ProcedureBase]) -> Dict[str, Any]:
    """Flatten a mapping and its canonical procedure for the review UI.

    ``extracted_adults_only`` is backfilled here for rows that were never
    classified; the stored value stays NULL.
    """
    adults_only = mapping.extracted_adults_only
    if adults_only is None:
        adults_only = base.adults_only if base is not None else False

    return {
        "id": mapping.id,
        "document_id": mapping.document_id,
        "extracted_procedure_code": mapping.extracted_procedure_code,
        "extracted_description": mapping.extracted_description,
        "extracted_value": _to_float(mapping.extracted_value),
        "extracted_is_periciable": bool(mapping.extracted_is_periciable),
        "extracted_adults_only": bool(adults_only),
        "ai_periciable_confidence": _to_float(mapping.ai_periciable_confidence),
        "ai_adults_only_confidence": _to_float(mapping.ai_adults_only_confidence),
        "ai_reasoning": mapping.ai_reasoning,
        "mapped_procedure_base_id": mapping.mapped_procedure_base_id,
        "confidence_score": _to_float(mapping.confidence_score),
        "status": mapping.status,
        "notes": mapping.notes,
        "mapped_provider_procedure_id": mapping.mapped_provider_procedure_id,
        "reviewed_by": mapping.reviewed_by,
        "reviewed_at": mapping.reviewed_at,
        "created_at": mapping.created_at,
        "base_code": base.code if base is not None else None,
        "base_description": base.description if base is not None else None,
        "base_is_periciable": base.is_periciable if base is not None else None,
        "base_adults_only": base.adults_only if base is not None else None,
    }


class MappingReviewService:
    """Seeds, lists, edits and approves procedure mappings."""

    def __init__(self, session: AsyncSession, catalog_matcher: Optional[CatalogMatcher] = None):
        """
        Args:
            session: Database session shared by every repository
            catalog_matcher: Pre-fills catalog links by description when given;
                otherwise only exact code matches are linked
        """
        self.session = session
        self.catalog_matcher = catalog_matcher
        self.document_repo = DocumentRepository(session)
        self.mapping_repo = ProcedureMappingRepository(session)
        self.catalog_repo = ProcedureBaseRepository(session)
        self.provider_repo = InsuranceProviderRepository(session)
        self.provider_procedure_repo = ProviderProcedureRepository(session)

    async def seed_mappings(self, document_id: UUID, classified_records: List[Dict[str, Any]]) -> int:
        """Create one PENDING mapping per new code of a document.

        Codes already mapped for the document are skipped, so re-running
        classification never duplicates rows. Each new mapping is pre-linked
        to the catalog with a ``confidence_score``. If another run seeds the
        same document concurrently, the codes it inserted are skipped.

        Returns:
            Number of mappings created
        """
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        existing_codes = await self.mapping_repo.get_codes_for_document(document_id)
        new_records = _new_records(classified_records, existing_codes)
        if not new_records:
            LOGGER.info(f"No new mappings to seed for document {document_id}")
            return 0

        matches = await self._match_catalog(new_records, document.clinic_id)
        rows = [_mapping_row(document_id, record, match) for record, match in zip(new_records, matches)]

        try:
            await self.mapping_repo.add_many(rows)
        except IntegrityError:
            # A concurrent seeding of this document inserted some of the codes
            existing_codes = await self.mapping_repo.get_codes_for_document(document_id)
            rows = [row for row in rows if row["extracted_procedure_code"] not in existing_codes]
            LOGGER.warning(
                f"Concurrent seeding of document {document_id}; retrying {len(rows)} remaining codes",
                extra={"document_id": str(document_id)},
            )
            if not rows:
                return 0
            try:
                await self.mapping_repo.add_many(rows)
            except IntegrityError as retry_error:
                raise ValidationError(
                    f"Mappings for document {document_id} are being created by another run",
                    status_code=409,
                    original_error=retry_error,
                ) from retry_error

        LOGGER.info(
            f"Seeded {len(rows)} mappings for document {document_id} "
            f"({sum(1 for r in rows if r['mapped_procedure_base_id'])} prefilled from catalog)",
            extra={"document_id": str(document_id)},
        )
        return len(rows)

    async def _match_catalog(self, records: List[Dict[str, Any]], clinic_id: Optional[UUID]) -> List[CatalogMatch]:
        if self.catalog_matcher is not None:
            catalog = await self.catalog_repo.list_active(clinic_id)
            return await self.catalog_matcher.match(records, catalog)

        by_code = await self.catalog_repo.find_active_by_codes((r["code"] for r in records), clinic_id)
        return [
            CatalogMatch(by_code[r["code"]].id, EXACT_CODE_CONFIDENCE, EXACT_CODE_REASONING)
            if r["code"] in by_code else no_match()
            for r in records
        ]

    async def list_mappings(self, document_id: UUID) -> List[Dict[str, Any]]:
        """List a document's mappings ordered by extracted code."""
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        rows = await self.mapping_repo.list_with_base(document_id)
        return [serialize_mapping(mapping, base) for mapping, base in rows]

    async def update(
        self,
        mapping_id: UUID,
        changes: MappingUpdateRequest,
        reviewer_id: str,
    ) -> Dict[str, Any]:
        """Apply a reviewer edit. Allowed from any state."""
        mapping = await self.mapping_repo.get_by_id(mapping_id)
        if mapping is None:
            raise MappingNotFoundError(f"Mapping {mapping_id} not found")

        status = changes.status or MappingStatus.PENDING
        if status not in MappingStatus.ALL:
            raise ValidationError(f"Invalid mapping status: {status}")

        base = None
        if changes.mapped_procedure_base_id is not None:
            base = await self.catalog_repo.get_by_id(changes.mapped_procedure_base_id)
            if base is None:
                raise ValidationError(
                    f"Canonical procedure {changes.mapped_procedure_base_id} not found"
                )

        if changes.mapped_procedure_base_id != mapping.mapped_procedure_base_id:
            # The suggested link was replaced by a reviewer choice
            mapping.confidence_score = None
        mapping.mapped_procedure_base_id = changes.mapped_procedure_base_id
        mapping.status = status
        mapping.notes = changes.notes
        if changes.extracted_is_periciable is not None:
            mapping.extracted_is_periciable = changes.extracted_is_periciable
        if changes.extracted_adults_only is not None:
            mapping.extracted_adults_only = changes.extracted_adults_only
        mapping.reviewed_by = reviewer_id
        mapping.reviewed_at = datetime.now(timezone.utc)

        await self.session.flush()
        await self.session.commit()

        LOGGER.info(
            f"Mapping {mapping_id} updated to {status}",
            extra={"mapping_id": str(mapping_id), "reviewer_id": reviewer_id},
        )
        return serialize_mapping(mapping, base)

    async def approve(self, mapping_id: UUID, provider_id: UUID, reviewer_id: str) -> ApprovalResult:
        """Approve a mapping, creating its billable procedure at most once.

        Runs in one transaction with the mapping row locked. If the mapping
        already produced a ProviderProcedure, that id is returned and
        nothing is inserted.

        Raises:
            MappingNotFoundError: Unknown mapping
            ProviderNotFoundError: Unknown provider
        """
        provider = await self.provider_repo.get_by_id(provider_id)
        if provider is None:
            raise ProviderNotFoundError(f"Insurance provider {provider_id} not found")

        try:
            mapping = await self.mapping_repo.get_for_update(mapping_id)
            if mapping is None:
                await self.session.rollback()
                raise MappingNotFoundError(f"Mapping {mapping_id} not found")

            if mapping.mapped_provider_procedure_id is not None:
                existing_id = mapping.mapped_provider_procedure_id
                if mapping.status != MappingStatus.APPROVED:
                    self._stamp_approved(mapping, existing_id, reviewer_id)
                    await self.session.commit()
                else:
                    await self.session.rollback()
                LOGGER.info(
                    f"Mapping {mapping_id} already approved as {existing_id}",
                    extra={"mapping_id": str(mapping_id)},
                )
                return ApprovalResult(procedure_id=existing_id, created=False)

            procedure = await self.provider_procedure_repo.create(
                commit=False,
                insurance_provider_id=provider_id,
                procedure_base_id=mapping.mapped_procedure_base_id,
                provider_code=mapping.extracted_procedure_code,
                provider_description=mapping.extracted_description,
                is_periciable=bool(mapping.extracted_is_periciable),
                max_value=mapping.extracted_value,
                active=True,
                source_mapping_id=mapping.id,
            )
            self._stamp_approved(mapping, procedure.id, reviewer_id)
            await self.session.flush()
            await self.session.commit()

        except IntegrityError as e:
            # A concurrent approval won the unique source_mapping_id slot
            await self.session.rollback()
            winner = await self.provider_procedure_repo.get_by_source_mapping(mapping_id)
            if winner is None:
                raise DatabaseError(f"Failed to approve mapping {mapping_id}", e) from e
            LOGGER.warning(
                f"Concurrent approval of mapping {mapping_id}; returning {winner.id}",
                extra={"mapping_id": str(mapping_id)},
            )
            return ApprovalResult(procedure_id=winner.id, created=False)

        LOGGER.info(
            f"Mapping {mapping_id} approved as provider procedure {procedure.id}",
            extra={"mapping_id": str(mapping_id), "provider_id": str(provider_id), "reviewer_id": reviewer_id},
        )
        return ApprovalResult(procedure_id=procedure.id, created=True)

    @staticmethod
    def _stamp_approved(mapping: ProcedureMapping, procedure_id: UUID, reviewer_id: str) -> None:
        mapping.status = MappingStatus.APPROVED
        mapping.mapped_provider_procedure_id = procedure_id
        mapping.reviewed_by = reviewer_id
        mapping.reviewed_at = datetime.now(timezone.utc)
