"""Procedure extraction from OCR text.

- ProcedureExtractor: one page of text to ``{code, description, value}`` records
- deduplicate: one record per code across the whole document
"""

from clinic_ingest.services.extraction.deduplicator import deduplicate, record_score
from clinic_ingest.services.extraction.procedure_extractor import (
    ProcedureExtractor,
    coerce_value,
    normalize_code,
)

__all__ = [
    "ProcedureExtractor",
    "coerce_value",
    "deduplicate",
    "normalize_code",
    "record_score",
]
