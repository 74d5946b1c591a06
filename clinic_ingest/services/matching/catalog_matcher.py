"""Pre-fill of canonical catalog links for extracted procedures.

A record whose code exists in the active catalog is linked outright. The
rest are sent to the reasoning service in sequential batches, together
with the catalog, and matched by description. As with classification the
model must answer one item per input in order; a batch that can't be
trusted positionally leaves all of its records unmatched. Suggestions
under ``MATCH_THRESHOLD`` or pointing outside the catalog are dropped.
The matcher never raises.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from clinic_ingest.core.exceptions import AppError, CatalogMatchError
from clinic_ingest.prompts.system_prompts import (
    MATCHING_PROMPT_VERSION,
    MATCHING_SYSTEM_PROMPT,
    MATCHING_USER_PROMPT,
)
from clinic_ingest.services.classification.procedure_classifier import clamp_confidence
from clinic_ingest.utils.json_parser import parse_json_safely
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

MATCH_THRESHOLD = 0.70
EXACT_CODE_CONFIDENCE = 1.0
CATALOG_PROMPT_LIMIT = 100

EXACT_CODE_REASONING = "Código idêntico na tabela base."
NO_MATCH_REASONING = "Sem correspondência automática; requer revisão manual."


@dataclass(frozen=True)
class CatalogMatch:
    procedure_base_id: Optional[UUID]
    confidence: float
    reasoning: str


def no_match(reasoning: str = NO_MATCH_REASONING) -> CatalogMatch:
    return CatalogMatch(procedure_base_id=None, confidence=0.0, reasoning=reasoning)


def index_by_code(catalog: Sequence[Any]) -> Dict[str, Any]:
    """Code to catalog entry; a clinic-scoped entry shadows a global one."""
    by_code: Dict[str, Any] = {}
    for entry in catalog:
        current = by_code.get(entry.code)
        if current is None or (current.clinic_id is None and entry.clinic_id is not None):
            by_code[entry.code] = entry
    return by_code


def _parse_uuid(raw: Any) -> Optional[UUID]:
    if raw is None:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


class CatalogMatcher:
    """Links extracted procedures to canonical catalog entries."""

    def __init__(
        self,
        llm_client,
        batch_size: int = 50,
        temperature: float = 0.1,
        catalog_limit: int = CATALOG_PROMPT_LIMIT,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.llm_client = llm_client
        self.batch_size = batch_size
        self.temperature = temperature
        self.catalog_limit = catalog_limit

    async def match(self, records: List[Dict[str, Any]], catalog: Sequence[Any]) -> List[CatalogMatch]:
        """One ``CatalogMatch`` per record, in record order.

        Args:
            records: Procedure records with at least ``code`` and ``description``
            catalog: Active ``ProcedureBase`` rows visible to the clinic
        """
        if not records:
            return []

        by_code = index_by_code(catalog)
        matches: List[Optional[CatalogMatch]] = []
        pending: List[int] = []
        for position, record in enumerate(records):
            entry = by_code.get(record.get("code"))
            if entry is not None:
                matches.append(CatalogMatch(entry.id, EXACT_CODE_CONFIDENCE, EXACT_CODE_REASONING))
            else:
                matches.append(None)
                pending.append(position)

        if pending and catalog and getattr(self.llm_client, "available", True):
            await self._match_by_description(records, pending, catalog, matches)

        resolved = [m if m is not None else no_match() for m in matches]
        LOGGER.info(
            f"Catalog matching: {len(records) - len(pending)} by code, "
            f"{sum(1 for i in pending if resolved[i].procedure_base_id)} by description, "
            f"{sum(1 for m in resolved if m.procedure_base_id is None)} unmatched"
        )
        return resolved

    async def _match_by_description(
        self,
        records: List[Dict[str, Any]],
        pending: List[int],
        catalog: Sequence[Any],
        matches: List[Optional[CatalogMatch]],
    ) -> None:
        shown = list(index_by_code(catalog).values())[: self.catalog_limit]
        known_ids = {entry.id for entry in shown}
        catalog_json = json.dumps(
            [
                {
                    "id": str(entry.id),
                    "code": entry.code,
                    "description": entry.description,
                    "is_periciable": entry.is_periciable,
                    "adults_only": entry.adults_only,
                }
                for entry in shown
            ],
            ensure_ascii=False,
            indent=2,
        )

        total_batches = (len(pending) + self.batch_size - 1) // self.batch_size
        for start in range(0, len(pending), self.batch_size):
            positions = pending[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            try:
                batch_matches = await self._match_batch(
                    [records[i] for i in positions], catalog_json, known_ids
                )
            except CatalogMatchError as e:
                LOGGER.warning(
                    f"Matching batch {batch_number}/{total_batches} left unmatched: {e.message}",
                    extra={"batch_number": batch_number, "batch_size": len(positions)},
                )
                continue
            except Exception as e:
                LOGGER.error(
                    f"Unexpected failure matching batch {batch_number}/{total_batches}: {e}",
                    exc_info=True,
                    extra={"batch_number": batch_number},
                )
                continue

            for position, found in zip(positions, batch_matches):
                matches[position] = found

    async def _match_batch(
        self, batch: List[Dict[str, Any]], catalog_json: str, known_ids: set
    ) -> List[CatalogMatch]:
        prompt = MATCHING_USER_PROMPT.format(
            batch_size=len(batch),
            procedures_json=json.dumps(
                [{"code": r.get("code"), "description": r.get("description")} for r in batch],
                ensure_ascii=False,
                indent=2,
            ),
            catalog_json=catalog_json,
        )

        try:
            response = await self.llm_client.generate_json(
                system_instruction=MATCHING_SYSTEM_PROMPT,
                prompt=prompt,
                temperature=self.temperature,
            )
        except AppError as e:
            raise CatalogMatchError(f"Reasoning service call failed: {e.message}", e) from e

        payload = parse_json_safely(response)
        items = payload.get("matches") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise CatalogMatchError("Response has no matches array")
        if len(items) != len(batch):
            raise CatalogMatchError(f"Expected {len(batch)} matches, got {len(items)}")
        if not all(isinstance(item, dict) for item in items):
            raise CatalogMatchError("Match items must be objects")

        LOGGER.debug("Matching batch answered", extra={"prompt_version": MATCHING_PROMPT_VERSION})
        return [self._to_match(item, known_ids) for item in items]

    @staticmethod
    def _to_match(item: Dict[str, Any], known_ids: set) -> CatalogMatch:
        confidence = clamp_confidence(item.get("confidenceScore"))
        reasoning = str(item.get("reasoning") or "").strip() or NO_MATCH_REASONING
        base_id = _parse_uuid(item.get("matchedProcedureBaseId"))
        if base_id not in known_ids or confidence < MATCH_THRESHOLD:
            base_id = None
        return CatalogMatch(procedure_base_id=base_id, confidence=confidence, reasoning=reasoning)
