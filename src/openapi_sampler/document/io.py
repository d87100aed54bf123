"""Load and save OpenAPI documents as JSON or YAML files."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from openapi_sampler.errors import DocumentLoadError
from openapi_sampler.utils import deep_merge

from .model import ApiDocument

logger = logging.getLogger(__name__)


def load_document(file_path: Path | str, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Read a seed document and overlay ``overrides`` onto it.

    A ``.json`` file is parsed as JSON, anything else as YAML. A path
    without a suffix is assumed to name a ``.yaml`` file.

    Raises:
        DocumentLoadError: if the file cannot be read or parsed, or does
            not hold a mapping.
    """
    file_path = Path(file_path)
    if not file_path.suffix:
        file_path = file_path.with_suffix(".yaml")

    try:
        text = file_path.read_text(encoding="utf-8")
        doc = json.loads(text) if file_path.suffix == ".json" else yaml.safe_load(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise DocumentLoadError(f"Could not load document {file_path}: {e}") from e

    if not isinstance(doc, dict):
        raise DocumentLoadError(f"Document {file_path} does not contain a mapping")

    logger.info("Loaded seed document from %s", file_path)

    if overrides:
        try:
            doc = deep_merge(doc, overrides)
        except ValueError as e:
            raise DocumentLoadError(f"Could not merge overrides into {file_path}: {e}") from e
    return doc


def save_document(document: ApiDocument, file_path: Path | str) -> Path:
    """Write the document to disk, as JSON for ``.json`` paths and YAML otherwise."""
    file_path = Path(file_path)
    fmt = "json" if file_path.suffix == ".json" else "yaml"
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(document.serialize(fmt), encoding="utf-8")
    logger.info("Saved document to %s", file_path)
    return file_path
