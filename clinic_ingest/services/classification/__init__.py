from clinic_ingest.services.classification.procedure_classifier import ProcedureClassifier

__all__ = ["ProcedureClassifier"]
