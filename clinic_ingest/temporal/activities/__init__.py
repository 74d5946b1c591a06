from .documents import process_insurance_document, classify_insurance_document

__all__ = [
    "process_insurance_document",
    "classify_insurance_document",
]
