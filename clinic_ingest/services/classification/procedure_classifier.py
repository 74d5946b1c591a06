"""Batched classification of extracted procedures.

Each record gets ``isPericiable`` / ``adultsOnly`` flags, a confidence for
each and a short rationale. The model is asked for exactly one item per
input, in order; results are merged by position. A batch whose response
can't be trusted positionally falls back to the conservative default for
all of its records. The classifier never raises.
"""

import json
from typing import Any, Dict, List, Optional

from clinic_ingest.core.exceptions import AppError, ClassificationError
from clinic_ingest.prompts.system_prompts import (
    CLASSIFICATION_PROMPT_VERSION,
    CLASSIFICATION_SYSTEM_PROMPT,
    CLASSIFICATION_USER_PROMPT,
)
from clinic_ingest.utils.json_parser import repair_json_text
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

FALLBACK_REASONING = "Classificação automática indisponível; requer revisão manual."


def coerce_flag(raw: Any) -> bool:
    """True only for JSON true or the string "true"."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() == "true"
    return False


def clamp_confidence(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


def conservative_classification(record: Dict[str, Any], reasoning: str = FALLBACK_REASONING) -> Dict[str, Any]:
    return {
        **record,
        "isPericiable": False,
        "adultsOnly": False,
        "aiPericiableConfidence": 0.0,
        "aiAdultsOnlyConfidence": 0.0,
        "reasoning": reasoning,
    }


def merge_classification(record: Dict[str, Any], item: Dict[str, Any]) -> Dict[str, Any]:
    reasoning = item.get("reasoning")
    return {
        **record,
        "isPericiable": coerce_flag(item.get("isPericiable")),
        "adultsOnly": coerce_flag(item.get("adultsOnly")),
        "aiPericiableConfidence": clamp_confidence(item.get("periciableConfidence")),
        "aiAdultsOnlyConfidence": clamp_confidence(item.get("adultsOnlyConfidence")),
        "reasoning": str(reasoning).strip() if reasoning else "",
    }


class ProcedureClassifier:
    """Classifies procedure records in sequential fixed-size batches."""

    def __init__(self, llm_client, batch_size: int = 50, temperature: float = 0.1):
        """
        Args:
            llm_client: Reasoning client exposing ``generate_json`` and ``available``
            batch_size: Records per model call
            temperature: Sampling temperature
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.llm_client = llm_client
        self.batch_size = batch_size
        self.temperature = temperature

    async def classify(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Classify records, preserving their order.

        Args:
            records: ``{code, description, value}`` records

        Returns:
            The same records with classification fields merged in. Empty
            input returns an empty list without calling the service.
        """
        if not records:
            return []

        if not getattr(self.llm_client, "available", True):
            LOGGER.warning(
                f"Reasoning service unavailable; applying default classification to {len(records)} records"
            )
            return [conservative_classification(record) for record in records]

        total_batches = (len(records) + self.batch_size - 1) // self.batch_size
        classified: List[Dict[str, Any]] = []

        for index in range(0, len(records), self.batch_size):
            batch = records[index:index + self.batch_size]
            batch_number = index // self.batch_size + 1
            try:
                classified.extend(await self._classify_batch(batch, batch_number))
            except ClassificationError as e:
                LOGGER.warning(
                    f"Batch {batch_number}/{total_batches} fell back to defaults: {e.message}",
                    extra={"batch_number": batch_number, "batch_size": len(batch)},
                )
                classified.extend(conservative_classification(record) for record in batch)
            except Exception as e:
                LOGGER.error(
                    f"Unexpected failure classifying batch {batch_number}/{total_batches}: {e}",
                    exc_info=True,
                    extra={"batch_number": batch_number},
                )
                classified.extend(conservative_classification(record) for record in batch)

        LOGGER.info(f"Classified {len(classified)} procedures in {total_batches} batches")
        return classified

    async def _classify_batch(self, batch: List[Dict[str, Any]], batch_number: int) -> List[Dict[str, Any]]:
        procedures_json = json.dumps(
            [
                {"code": r.get("code"), "description": r.get("description"), "value": r.get("value")}
                for r in batch
            ],
            ensure_ascii=False,
            indent=2,
        )
        prompt = CLASSIFICATION_USER_PROMPT.format(
            batch_size=len(batch),
            procedures_json=procedures_json,
        )

        try:
            response = await self.llm_client.generate_json(
                system_instruction=CLASSIFICATION_SYSTEM_PROMPT,
                prompt=prompt,
                temperature=self.temperature,
            )
        except AppError as e:
            raise ClassificationError(f"Reasoning service call failed: {e.message}", e) from e

        items = self._parse_items(response)
        if items is None:
            raise ClassificationError("Response has no classifications array")
        if len(items) != len(batch):
            raise ClassificationError(
                f"Expected {len(batch)} classifications, got {len(items)}"
            )
        if not all(isinstance(item, dict) for item in items):
            raise ClassificationError("Classification items must be objects")

        LOGGER.debug(
            f"Batch {batch_number} classified",
            extra={"batch_number": batch_number, "prompt_version": CLASSIFICATION_PROMPT_VERSION},
        )
        return [merge_classification(record, item) for record, item in zip(batch, items)]

    @staticmethod
    def _parse_items(response: Optional[str]) -> Optional[List[Any]]:
        try:
            payload = json.loads(repair_json_text(response or ""))
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        items = payload.get("classifications")
        return items if isinstance(items, list) else None
