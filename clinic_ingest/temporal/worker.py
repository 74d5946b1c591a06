"""Temporal worker for insurance document processing.

Run with ``python -m clinic_ingest.temporal.worker``.
"""

import asyncio
from typing import List

from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from clinic_ingest.core.config import settings
from clinic_ingest.temporal.core.discovery import discover_all

# Register every workflow and activity before reading the registries
discover_all()

from clinic_ingest.temporal.core.activity_registry import ActivityRegistry  # noqa: E402
from clinic_ingest.temporal.core.workflow_registry import WorkflowRegistry  # noqa: E402
from clinic_ingest.utils.logging import get_logger  # noqa: E402

logger = get_logger(__name__)

MAX_CONNECT_ATTEMPTS = 5
CONNECT_RETRY_DELAY_SECONDS = 5


async def connect_with_retry() -> Client:
    target = settings.temporal.address
    for attempt in range(MAX_CONNECT_ATTEMPTS):
        try:
            logger.info(f"Connecting to Temporal server at {target} (Attempt {attempt + 1}/{MAX_CONNECT_ATTEMPTS})")
            return await Client.connect(target, namespace=settings.temporal.namespace)
        except Exception as e:
            if attempt == MAX_CONNECT_ATTEMPTS - 1:
                logger.error(f"Failed to connect to Temporal server after {MAX_CONNECT_ATTEMPTS} attempts: {e}")
                raise
            logger.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {CONNECT_RETRY_DELAY_SECONDS}s...")
            await asyncio.sleep(CONNECT_RETRY_DELAY_SECONDS)
    raise RuntimeError("unreachable")


def build_workers(client: Client) -> List[Worker]:
    """One worker per task queue; every worker gets every activity."""
    activities = list(ActivityRegistry.get_all_activities().values())
    queues = WorkflowRegistry.by_task_queue()

    workflow_names = ", ".join(WorkflowRegistry.get_all_workflows())
    logger.info(f"Registered workflows [{workflow_names}] and {len(activities)} activities")

    return [
        Worker(
            client,
            task_queue=queue_name,
            workflows=workflows,
            activities=activities,
            max_concurrent_activities=4,
            workflow_runner=SandboxedWorkflowRunner(
                restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
            ),
        )
        for queue_name, workflows in queues.items()
    ]


async def main():
    client = await connect_with_retry()
    workers = build_workers(client)
    logger.info(f"{len(workers)} workers polling for tasks...")
    await asyncio.gather(*(worker.run() for worker in workers))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Workers stopped by user")
