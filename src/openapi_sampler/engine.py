"""SchemaEngine: the entry points a routing layer calls.

Typical use::

    engine = SchemaEngine(EngineSettings(default_tag="pets"))
    engine.register_route(
        "/pets",
        "get",
        RouteDefinition(summary="List pets"),
        DeclaredSchemas(query={"type": "object", "properties": {"limit": {"type": "integer"}}}),
    )
    # after each handled request
    engine.observe_response("/pets", "get", 200, "application/json", body_bytes)
    engine.save_document("openapi.yaml")
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from openapi_sampler.config import EngineSettings, SamplingOptions
from openapi_sampler.document.io import load_document, save_document
from openapi_sampler.document.model import ApiDocument
from openapi_sampler.document.references import ReferenceMap, ReferenceStore
from openapi_sampler.document.routes import RouteRegistrar
from openapi_sampler.models import DeclaredSchemas, Observation, ParameterDescriptor, RouteDefinition
from openapi_sampler.sampler import ResponseSampler, SampleOutcome
from openapi_sampler.typesystem.compiler import compile_schema
from openapi_sampler.typesystem.nodes import TypeNode
from openapi_sampler.utils import deep_merge

logger = logging.getLogger(__name__)


class SchemaEngine:
    """Owns one API document and everything that grows it."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        document: dict[str, Any] | None = None,
        rng: Callable[[], float] | None = None,
    ):
        self.settings = settings or EngineSettings()
        if self.settings.verbose:
            logging.getLogger("openapi_sampler").setLevel(logging.DEBUG)

        self.document = ApiDocument(self._initial_spec(document))
        self.reference_map = ReferenceMap()
        self.references = ReferenceStore(self.document, self.reference_map)
        self.routes = RouteRegistrar(
            self.document,
            self.references,
            default_tag=self.settings.default_tag,
            exclude_paths=self.settings.exclude_paths,
            exclude_path_patterns=self.settings.exclude_path_patterns,
            exclude_methods=self.settings.exclude_methods,
        )
        self.sampler = ResponseSampler(
            self.document,
            self.references,
            options=self.settings.response_sampling,
            route_options=self.routes.route_sampling,
            rng=rng,
        )

    def _initial_spec(self, document: dict[str, Any] | None) -> dict[str, Any]:
        overrides = self.settings.openapi
        if document is not None:
            return deep_merge(document, overrides)
        if self.settings.in_spec_path is not None:
            return load_document(self.settings.in_spec_path, overrides)
        return dict(overrides)

    def compile_declared_schema(self, fragment: Any) -> TypeNode:
        return compile_schema(fragment)

    def register_parameter(self, descriptor: ParameterDescriptor, node: TypeNode) -> str:
        return self.references.register_parameter(descriptor, node)

    def register_body(self, name: str, node: TypeNode) -> str:
        return self.references.register_body(name, node)

    def register_route(
        self,
        path: str,
        method: str,
        definition: RouteDefinition | None = None,
        declared: DeclaredSchemas | None = None,
        sampling: SamplingOptions | None = None,
    ) -> dict[str, Any] | None:
        return self.routes.register_route(path, method, definition, declared, sampling)

    def observe_response(
        self,
        path: str,
        method: str,
        status_code: int,
        content_type: str | None = None,
        body: bytes | str | None = None,
    ) -> SampleOutcome:
        """Feed one finished response to the sampler.

        ``body`` should be a copy of what was sent; the engine only reads it.
        """
        return self.observe(
            Observation(path=path, method=method, status_code=status_code, content_type=content_type, body=body)
        )

    def observe(self, observation: Observation) -> SampleOutcome:
        return self.sampler.observe_response(observation)

    def get_document(self) -> dict[str, Any]:
        return self.document.snapshot()

    def serialize_document(self, fmt: str = "json") -> str:
        return self.document.serialize(fmt)

    def save_document(self, file_path: Path | str) -> Path:
        return save_document(self.document, file_path)
