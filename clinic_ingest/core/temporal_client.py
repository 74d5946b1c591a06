"""Temporal client configuration and connection management.

The API process and the dispatcher share one lazily created client.
"""

from typing import Optional

from temporalio.client import Client as TemporalClient

from clinic_ingest.core.config import settings
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemporalClientManager:
    """Lazily creates a Temporal client and keeps it around for reuse."""

    def __init__(self):
        self._client: Optional[TemporalClient] = None

    async def get_client(self) -> TemporalClient:
        """Get or create the Temporal client.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            target = settings.temporal.address
            LOGGER.info(f"Connecting to Temporal at {target}")
            self._client = await TemporalClient.connect(
                target,
                namespace=settings.temporal.namespace,
            )
        return self._client

    async def close(self) -> None:
        # temporalio clients hold no closable resources; dropping the reference is enough
        self._client = None


_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    """Get the shared Temporal client instance."""
    return await _temporal_manager.get_client()


async def close_temporal_client() -> None:
    """Forget the shared Temporal client."""
    await _temporal_manager.close()
