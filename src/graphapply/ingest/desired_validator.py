"""Validate desired-state document structure."""

from collections import Counter
from typing import Dict, Any, List
from ..utils.errors import ConfigLoadError
from ..utils.logging import get_logger
from .models import DesiredState

logger = get_logger("ingest.desired_validator")

SUPPORTED_VERSIONS = ["1"]


def validate_document_structure(data: Dict[str, Any]) -> None:
    """
    Validate raw desired-state document structure before model parsing.

    Args:
        data: Parsed JSON/YAML document

    Raises:
        ConfigLoadError: If document structure is invalid
    """
    if not isinstance(data, dict):
        raise ConfigLoadError(
            "Desired-state document must be a dictionary with a 'resources' list."
        )

    if "resources" not in data:
        raise ConfigLoadError(
            "Desired-state document missing required field: resources. "
            "Declare resources as a list of {kind, name, attributes, depends_on}."
        )

    if not isinstance(data["resources"], list):
        raise ConfigLoadError("'resources' must be a list.")

    version = str(data.get("version", "1"))
    if version not in SUPPORTED_VERSIONS:
        logger.warning(
            f"Document version '{version}' may not be fully supported. "
            f"Supported versions: {', '.join(SUPPORTED_VERSIONS)}"
        )

    for idx, resource in enumerate(data["resources"]):
        warnings = validate_resource_entry(resource)
        if warnings:
            raise ConfigLoadError(f"Invalid resource at index {idx}: {'; '.join(warnings)}")

    logger.debug("Desired-state structure validation passed")


def validate_resource_entry(resource: Any) -> List[str]:
    """
    Validate a single resource entry.

    Returns:
        List of problems (empty if valid)
    """
    problems = []

    if not isinstance(resource, dict):
        problems.append("Resource entry must be a dictionary")
        return problems

    missing_fields = [field for field in ("kind", "name") if field not in resource]
    if missing_fields:
        problems.append(f"Missing required fields: {', '.join(missing_fields)}")

    if "attributes" in resource and not isinstance(resource["attributes"], dict):
        problems.append("'attributes' must be a dictionary")

    if "depends_on" in resource and not isinstance(resource["depends_on"], list):
        problems.append("'depends_on' must be a list")

    return problems


def check_unique_ids(desired: DesiredState) -> None:
    """
    Ensure every node id (kind.name) is declared once.

    Raises:
        ConfigLoadError: If duplicates exist
    """
    counts = Counter(desired.node_ids())
    duplicates = sorted(node_id for node_id, count in counts.items() if count > 1)
    if duplicates:
        raise ConfigLoadError(f"Duplicate resource declarations: {', '.join(duplicates)}")


def get_document_summary(desired: DesiredState) -> Dict[str, Any]:
    """Summarise a parsed desired state for logging."""
    kinds = Counter(r.kind for r in desired.resources)
    return {
        "version": desired.version,
        "resource_count": len(desired.resources),
        "kinds": dict(sorted(kinds.items())),
    }
