"""Shared constants for Temporal workflows."""

from clinic_ingest.core.config import settings

# Task Queues
DEFAULT_TASK_QUEUE = settings.temporal.task_queue

# Timeouts
DEFAULT_WORKFLOW_TIMEOUT_SECONDS = 3600  # 1 hour
PROCESS_DOCUMENT_TIMEOUT_SECONDS = 1800  # OCR of long tables is slow
CLASSIFY_DOCUMENT_TIMEOUT_SECONDS = 900

WORKFLOW_ID_PREFIX = "insurance-document-"
