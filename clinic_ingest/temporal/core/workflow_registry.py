from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Type

from clinic_ingest.temporal.core.constants import DEFAULT_TASK_QUEUE


class WorkflowType(str, Enum):
    INSURANCE = "insurance"


@dataclass(frozen=True)
class WorkflowMetadata:
    workflow_class: Type
    category: WorkflowType
    task_queue: str

    @property
    def name(self) -> str:
        return self.workflow_class.__name__


class WorkflowRegistry:
    """Workflow classes collected at import time, grouped for worker setup."""

    _workflows: Dict[str, WorkflowMetadata] = {}

    @classmethod
    def register(cls, category: WorkflowType, task_queue: Optional[str] = None):
        def decorator(workflow_class: Type) -> Type:
            metadata = WorkflowMetadata(
                workflow_class=workflow_class,
                category=category,
                task_queue=task_queue or DEFAULT_TASK_QUEUE,
            )
            cls._workflows[metadata.name] = metadata
            return workflow_class
        return decorator

    @classmethod
    def get_all_workflows(cls) -> Dict[str, WorkflowMetadata]:
        return dict(cls._workflows)

    @classmethod
    def by_task_queue(cls) -> Dict[str, List[Type]]:
        """Workflow classes per task queue, in registration order."""
        queues: Dict[str, List[Type]] = {}
        for metadata in cls._workflows.values():
            queues.setdefault(metadata.task_queue, []).append(metadata.workflow_class)
        return queues
