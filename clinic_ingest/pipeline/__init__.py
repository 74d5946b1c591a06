"""Background pipelines run by the worker or the inline dispatcher."""

from clinic_ingest.pipeline.classification_pipeline import ClassificationPipeline
from clinic_ingest.pipeline.document_pipeline import DocumentPipeline

__all__ = [
    "ClassificationPipeline",
    "DocumentPipeline",
]
