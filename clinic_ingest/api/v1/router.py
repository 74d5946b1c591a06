from fastapi import APIRouter

from clinic_ingest.api.v1.endpoints import documents, mappings

api_router = APIRouter()

api_router.include_router(documents.router, prefix="/insurance", tags=["Insurance Documents"])
api_router.include_router(mappings.router, prefix="/insurance", tags=["Procedure Mappings"])

__all__ = ["api_router"]
