"""The OpenAPI document grown by the engine."""

import copy
import json
from typing import Any

import yaml

DEFAULT_OPENAPI_VERSION = "3.1.0"
DEFAULT_INFO = {"title": "OpenApi Spec", "version": "0.0.0"}

SAMPLE_COUNT_KEY = "x-openapi-sample-count"


class ApiDocument:
    """Mutable OpenAPI 3.1 document.

    Wraps a plain dict so it can be dumped as-is. Entries are only added or
    replaced in place, never removed.
    """

    def __init__(self, spec: dict[str, Any] | None = None):
        spec = copy.deepcopy(spec) if spec else {}
        spec.setdefault("openapi", DEFAULT_OPENAPI_VERSION)
        if not spec.get("info"):
            spec["info"] = dict(DEFAULT_INFO)
        if not isinstance(spec.get("components"), dict):
            spec["components"] = {}
        if not isinstance(spec.get("paths"), dict):
            spec["paths"] = {}
        self.spec = spec
        self._normalize_status_codes()

    @property
    def schemas(self) -> dict[str, Any]:
        return self.spec["components"].setdefault("schemas", {})

    @property
    def parameters(self) -> dict[str, Any]:
        return self.spec["components"].setdefault("parameters", {})

    @property
    def paths(self) -> dict[str, Any]:
        return self.spec["paths"]

    def operation(self, path: str, method: str) -> dict[str, Any] | None:
        path_item = self.paths.get(path)
        if not isinstance(path_item, dict):
            return None
        return path_item.get(method)

    def set_operation(self, path: str, method: str, operation: dict[str, Any]) -> None:
        self.paths.setdefault(path, {})[method] = operation

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy that later mutations do not affect."""
        return copy.deepcopy(self.spec)

    def serialize(self, fmt: str = "json") -> str:
        """Serialize the document as ``json`` or ``yaml``."""
        if fmt == "json":
            return json.dumps(self.spec, indent=2, ensure_ascii=False)
        if fmt == "yaml":
            return yaml.safe_dump(self.spec, sort_keys=False, allow_unicode=True)
        raise ValueError(f"Unsupported document format: {fmt!r}")

    def _normalize_status_codes(self) -> None:
        # YAML documents may key responses by integers
        for path_item in self.paths.values():
            if not isinstance(path_item, dict):
                continue
            for operation in path_item.values():
                if isinstance(operation, dict) and isinstance(operation.get("responses"), dict):
                    operation["responses"] = {str(code): value for code, value in operation["responses"].items()}
