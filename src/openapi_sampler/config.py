"""Engine settings and response sampling options.

Settings can be built in code or read from a YAML file::

    openapi:
      info: {title: Pet Store, version: 1.0.0}
    default_tag: pets
    response_sampling:
      samplingMode: combine
      samplingInterval: 0.5
      samplingMaxCount: 100
    exclude_paths: [/health]
    exclude_path_patterns: ["^/internal/"]
    exclude_methods: [options]
    in_spec_path: ./openapi.yaml
"""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from openapi_sampler.utils import as_list

logger = logging.getLogger(__name__)

SamplingMode = Literal["combine", "individual"]

DEFAULT_SAMPLING_MODE: SamplingMode = "individual"
DEFAULT_SAMPLING_INTERVAL = 1.0


class SamplingOptions(BaseModel):
    """How responses are sampled. Unset fields fall back to the next layer.

    Attributes:
        sampling_mode: ``combine`` merges differing responses into one
            object schema; ``individual`` keeps each shape as a union member.
        sampling_interval: fraction [0-1] of responses that are inspected.
        sampling_max_count: stop inspecting after this many samples.
    """

    model_config = ConfigDict(populate_by_name=True)

    sampling_mode: SamplingMode | None = Field(None, alias="samplingMode")
    sampling_interval: float | None = Field(None, ge=0, le=1, alias="samplingInterval")
    sampling_max_count: int | None = Field(None, ge=0, alias="samplingMaxCount")


def resolve_sampling(*layers: SamplingOptions | None) -> SamplingOptions:
    """Resolve options field by field, earlier layers taking precedence.

    The result always has a mode and an interval; a missing max count means
    no limit.
    """
    resolved: dict[str, Any] = {
        "sampling_mode": DEFAULT_SAMPLING_MODE,
        "sampling_interval": DEFAULT_SAMPLING_INTERVAL,
        "sampling_max_count": None,
    }
    for layer in reversed(layers):
        if layer is None:
            continue
        for field_name, value in layer.model_dump(exclude_none=True).items():
            resolved[field_name] = value
    return SamplingOptions(**resolved)


class EngineSettings(BaseModel):
    """Per-instance engine configuration."""

    model_config = ConfigDict(extra="ignore")

    # Instance metadata (openapi, info, servers, ...) overlaid on the document
    openapi: dict[str, Any] = {}
    default_tag: str | None = None
    response_sampling: SamplingOptions | None = None
    exclude_paths: list[str] = []
    exclude_path_patterns: list[str] = []
    exclude_methods: list[str] = []
    in_spec_path: Path | None = None
    verbose: bool = False

    @field_validator("exclude_paths", "exclude_path_patterns", "exclude_methods", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> list[Any]:
        return as_list(value)

    @field_validator("exclude_methods")
    @classmethod
    def _lower_methods(cls, value: list[str]) -> list[str]:
        return [method.lower() for method in value]


def load_settings(config_path: Path) -> EngineSettings:
    """Load settings from a YAML file, falling back to defaults if it is missing."""
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found: %s. Using defaults.", config_path)
        return EngineSettings()

    logger.info("Loaded engine settings from %s", config_path)
    settings = EngineSettings.model_validate(data)
    if settings.in_spec_path is not None and not settings.in_spec_path.is_absolute():
        settings.in_spec_path = config_path.parent / settings.in_spec_path
    return settings
