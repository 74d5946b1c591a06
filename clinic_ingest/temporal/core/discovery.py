"""Imports activity and workflow modules so their registry decorators run."""

import importlib
import pkgutil

from clinic_ingest.utils.logging import get_logger

logger = get_logger(__name__)

COMPONENT_PACKAGES = (
    "clinic_ingest.temporal.activities",
    "clinic_ingest.temporal.workflows",
)


def discover_all() -> int:
    """Import every module under the component packages and return how many were loaded."""
    loaded = 0
    for package_name in COMPONENT_PACKAGES:
        package = importlib.import_module(package_name)
        for module_info in pkgutil.walk_packages(package.__path__, f"{package_name}."):
            importlib.import_module(module_info.name)
            loaded += 1
    logger.debug(f"Loaded {loaded} Temporal component modules")
    return loaded
