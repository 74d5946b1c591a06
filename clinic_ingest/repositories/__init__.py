"""Data access layer."""

from clinic_ingest.repositories.base_repository import BaseRepository
from clinic_ingest.repositories.document_repository import DocumentRepository
from clinic_ingest.repositories.insurance_provider_repository import InsuranceProviderRepository
from clinic_ingest.repositories.procedure_base_repository import ProcedureBaseRepository
from clinic_ingest.repositories.procedure_mapping_repository import ProcedureMappingRepository
from clinic_ingest.repositories.provider_procedure_repository import ProviderProcedureRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "InsuranceProviderRepository",
    "ProcedureBaseRepository",
    "ProcedureMappingRepository",
    "ProviderProcedureRepository",
]
