"""Health check API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from clinic_ingest.api.deps import get_reasoning_client
from clinic_ingest.core.config import settings
from clinic_ingest.core.database import db_client
from clinic_ingest.core.unified_llm import ReasoningClient

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="healthy, or degraded when a dependency is down")
    version: str
    database: str = Field(..., description="Database reachability")
    dispatch: str = Field(..., description="Pipeline dispatch mode")
    reasoning_available: bool = Field(..., description="Whether LLM credentials are configured")


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Service health",
    operation_id="get_service_health_status",
)
async def health_check(
    llm_client: Annotated[ReasoningClient, Depends(get_reasoning_client)] = None,
) -> HealthCheckResponse:
    database = (await db_client.health_check())["status"]
    reasoning_available = bool(getattr(llm_client, "available", False))

    return HealthCheckResponse(
        status="healthy" if database == "healthy" and reasoning_available else "degraded",
        version=settings.app_version,
        database=database,
        dispatch=settings.pipeline.dispatch,
        reasoning_available=reasoning_available,
    )
