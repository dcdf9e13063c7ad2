"""Load and validate desired-state documents (JSON or YAML)."""

import json
from pathlib import Path
from typing import Dict, Any
import yaml
from pydantic import ValidationError
from ..utils.errors import ConfigLoadError
from ..utils.logging import get_logger
from .desired_validator import validate_document_structure, check_unique_ids, get_document_summary
from .models import DesiredState

logger = get_logger("ingest.desired_loader")

YAML_SUFFIXES = (".yaml", ".yml")


def load_desired_state(path_str: str) -> DesiredState:
    """
    Load desired-state document from disk.

    Args:
        path_str: Path to a .json, .yaml or .yml document

    Returns:
        Parsed and validated DesiredState

    Raises:
        ConfigLoadError: If file cannot be loaded or is invalid
    """
    path = Path(path_str)

    if not path.exists():
        raise ConfigLoadError(
            f"Desired-state file not found: {path_str}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise ConfigLoadError(f"Path is not a file: {path_str}.")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in desired-state file: {e}")
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in desired-state file: {e}")
    except OSError as e:
        raise ConfigLoadError(
            f"Error reading desired-state file: {e}. "
            "Please check file permissions and try again."
        )

    desired = parse_desired_state(data)

    summary = get_document_summary(desired)
    logger.info(
        f"Loaded desired state from {path_str} "
        f"(version: {summary['version']}, resources: {summary['resource_count']})"
    )
    return desired


def parse_desired_state(data: Dict[str, Any]) -> DesiredState:
    """
    Validate and parse an in-memory desired-state document.

    Raises:
        ConfigLoadError: If the document is invalid
    """
    validate_document_structure(data)

    try:
        desired = DesiredState(**data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid desired-state document: {e}")

    check_unique_ids(desired)
    return desired
