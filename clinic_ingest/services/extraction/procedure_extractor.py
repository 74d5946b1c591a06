"""Structured extraction of procedure rows from one page of OCR text."""

import re
from typing import Any, Dict, List, Optional

from clinic_ingest.core.exceptions import AppError, ExtractionError
from clinic_ingest.prompts.system_prompts import (
    EXTRACTION_PROMPT_VERSION,
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT,
)
from clinic_ingest.utils.json_parser import parse_json_safely
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

# "A1.01.01.01", "A 1.01.01.01", "A1 01 01 01", "a1. 01.01.01"
_CODE_PATTERN = re.compile(r"^A\s*(\d+(?:\s*[.\s]\s*\d+)*)\.?$", re.IGNORECASE)
_NON_NUMERIC = re.compile(r"[^\d,.\-]")


def normalize_code(raw: Any) -> Optional[str]:
    """Normalize a procedure code to ``A<d>.<d>...``.

    Codes that don't look like ``A`` followed by digit groups are kept with
    their whitespace removed. Empty codes yield None.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    match = _CODE_PATTERN.match(text)
    if not match:
        return re.sub(r"\s+", "", text).upper()

    groups = re.findall(r"\d+", match.group(1))
    return "A" + ".".join(groups)


def coerce_value(raw: Any) -> Optional[float]:
    """Coerce a monetary value to float.

    Accepts numbers and strings such as ``"50,00"``, ``"€ 130"`` or
    ``"1.234,56"``. Returns None for missing, "Sem CP" and unparseable
    values.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)

    text = _NON_NUMERIC.sub("", str(raw))
    if not text or not any(ch.isdigit() for ch in text):
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")

    try:
        return float(text)
    except ValueError:
        return None


def normalize_records(items: Any) -> List[Dict[str, Any]]:
    """Normalize raw model records, dropping those without a code."""
    if not isinstance(items, list):
        return []

    records: List[Dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        code = normalize_code(item.get("code"))
        if not code:
            continue
        description = str(item.get("description") or "").strip() or code
        records.append({
            "code": code,
            "description": description,
            "value": coerce_value(item.get("value")),
        })
    return records


def parse_response(response: Any) -> Dict[str, Any]:
    """Decode a model response into its top-level object.

    Raises:
        ExtractionError: If the response is not JSON or not an object
    """
    if not isinstance(response, str):
        raise ExtractionError(f"Expected text, got {type(response).__name__}")
    payload = parse_json_safely(response)
    if payload is None:
        raise ExtractionError("Response is not valid JSON")
    if not isinstance(payload, dict):
        raise ExtractionError(f"Response is a JSON {type(payload).__name__}, not an object")
    return payload


class ProcedureExtractor:
    """Turns one page of OCR text into procedure records via the reasoning service."""

    def __init__(self, llm_client, temperature: float = 0.0):
        """
        Args:
            llm_client: Reasoning client exposing ``generate_json``
            temperature: Sampling temperature for extraction calls
        """
        self.llm_client = llm_client
        self.temperature = temperature

    async def extract_page(self, page_text: str, page_number: int) -> List[Dict[str, Any]]:
        """Extract ``{code, description, value}`` records from one page.

        Failures are isolated to the page: a reasoning-service error or an
        unparseable response yields an empty list.

        Args:
            page_text: OCR text of the page
            page_number: 1-indexed page number, used for logging and prompting

        Returns:
            Normalized records in the order the model returned them
        """
        prompt = EXTRACTION_USER_PROMPT.format(page_number=page_number, page_text=page_text)

        try:
            response = await self.llm_client.generate_json(
                system_instruction=EXTRACTION_SYSTEM_PROMPT,
                prompt=prompt,
                temperature=self.temperature,
            )
        except AppError as e:
            LOGGER.error(
                f"Extraction call failed for page {page_number}: {e.message}",
                extra={"page_number": page_number, "prompt_version": EXTRACTION_PROMPT_VERSION},
            )
            return []
        except Exception as e:
            LOGGER.error(
                f"Unexpected error extracting page {page_number}: {e}",
                exc_info=True,
                extra={"page_number": page_number, "prompt_version": EXTRACTION_PROMPT_VERSION},
            )
            return []

        try:
            payload = parse_response(response)
        except ExtractionError as e:
            LOGGER.warning(
                f"Discarding extraction response for page {page_number}: {e.message}",
                extra={"page_number": page_number, "preview": str(response or "")[:200]},
            )
            return []

        records = normalize_records(payload.get("procedures"))
        LOGGER.info(
            f"Extracted {len(records)} procedures from page {page_number}",
            extra={"page_number": page_number, "count": len(records)},
        )
        return records
