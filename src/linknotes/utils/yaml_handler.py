"""YAML serialization of the persisted store document."""

from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from ..models.bookmark import Bookmark

Partitions = Dict[str, List[Bookmark]]


class YAMLError(Exception):
    """YAML processing error."""

    pass


def partitions_to_data(partitions: Partitions) -> Dict[str, List[Dict[str, Any]]]:
    """Convert a partition map into plain JSON-compatible data."""
    return {
        domain: [bookmark.model_dump(mode="json") for bookmark in bookmarks]
        for domain, bookmarks in partitions.items()
    }


def data_to_partitions(data: Any) -> Partitions:
    """Validate plain data into a partition map.

    Raises:
        ValueError: If the data is not a mapping of domain to bookmark lists
        ValidationError: If a bookmark record is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping of domain to bookmarks, got {type(data).__name__}")

    partitions: Partitions = {}
    for domain, records in data.items():
        if not isinstance(records, list):
            raise ValueError(f"Partition '{domain}' is not a list")
        partitions[str(domain)] = [Bookmark.model_validate(record) for record in records]

    return partitions


def serialize_store(partitions: Partitions) -> str:
    """Serialize a partition map to a YAML string.

    Raises:
        YAMLError: If serialization fails
    """
    try:
        return yaml.safe_dump(
            partitions_to_data(partitions),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    except Exception as e:
        raise YAMLError(f"Failed to serialize store: {e}") from e


def deserialize_store(yaml_str: str) -> Partitions:
    """Deserialize a partition map from a YAML string.

    An empty document is an empty store.

    Raises:
        YAMLError: If the YAML is malformed or does not describe a store
    """
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise YAMLError(f"Invalid YAML format: {e}") from e

    if data is None:
        return {}

    try:
        return data_to_partitions(data)
    except (ValueError, ValidationError) as e:
        raise YAMLError(f"Invalid store document: {e}") from e


def load_store_from_file(file_path: Path) -> Partitions:
    """Load a partition map from a YAML file. Missing file means empty store."""
    if not file_path.exists():
        return {}

    try:
        yaml_str = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise YAMLError(f"Failed to read store from {file_path}: {e}") from e

    return deserialize_store(yaml_str)


def save_store_to_file(partitions: Partitions, file_path: Path) -> None:
    """Write a partition map to a YAML file.

    The document is written to a temporary sibling and renamed into place so
    a crash mid-write never leaves a truncated store.

    Raises:
        YAMLError: If file writing fails
    """
    yaml_str = serialize_store(partitions)
    tmp_path = file_path.with_name(file_path.name + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(yaml_str, encoding="utf-8")
        tmp_path.replace(file_path)
    except OSError as e:
        raise YAMLError(f"Failed to save store to {file_path}: {e}") from e
