"""Database models for the price-table ingestion tables."""

from clinic_ingest.core.database import Base, async_session_maker, engine, get_async_session
from clinic_ingest.database.models import (
    InsuranceDocument,
    InsuranceProvider,
    MappingStatus,
    ProcedureBase,
    ProcedureMapping,
    ProcessingStage,
    ProcessingStatus,
    ProviderProcedure,
)

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "get_async_session",
    "InsuranceDocument",
    "InsuranceProvider",
    "MappingStatus",
    "ProcedureBase",
    "ProcedureMapping",
    "ProcessingStage",
    "ProcessingStatus",
    "ProviderProcedure",
]
