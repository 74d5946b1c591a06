"""Collapse repeated procedure codes to the most informative record."""

from typing import Any, Dict, List

VALUE_BONUS = 1000


def record_score(record: Dict[str, Any]) -> int:
    """Description length, plus a bonus that makes any priced record beat any unpriced one."""
    description = record.get("description") or ""
    return len(description) + (VALUE_BONUS if record.get("value") is not None else 0)


def deduplicate(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep one record per code.

    The highest-scoring record wins; on a tie the first one seen is kept.
    Output follows the order in which each code first appeared.
    """
    best: Dict[str, Dict[str, Any]] = {}
    for record in records:
        code = record["code"]
        current = best.get(code)
        if current is None or record_score(record) > record_score(current):
            best[code] = record
    return list(best.values())
