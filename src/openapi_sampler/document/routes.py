"""Route registration: one operation entry per documented route."""

import logging
import re
from typing import Any

from openapi_sampler.config import SamplingOptions
from openapi_sampler.errors import UnsupportedSchemaError
from openapi_sampler.models import DeclaredSchemas, ParameterDescriptor, RouteDefinition
from openapi_sampler.typesystem.compiler import compile_schema
from openapi_sampler.typesystem.nodes import ObjectNode, SchemaNode, TypeNode
from openapi_sampler.typesystem.render import to_json_schema

from .model import ApiDocument
from .references import ReferenceStore, capitalize_path, request_body_name

logger = logging.getLogger(__name__)

DOCUMENTED_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# ``/users/:id`` and ``/users/{id}`` style path parameters
PATH_PARAMETER_PATTERN = re.compile(r"/:(\w+)|\{(\w+)\}")


def path_parameter_names(path: str) -> list[str]:
    return [colon or braced for colon, braced in PATH_PARAMETER_PATTERN.findall(path)]


class RouteRegistrar:
    """Adds or augments operations in the document.

    Request-side entries follow "first registration wins": once an
    operation has parameters or a request body, re-registering the route
    keeps them. Responses are left to the sampler.
    """

    def __init__(
        self,
        document: ApiDocument,
        references: ReferenceStore,
        default_tag: str | None = None,
        exclude_paths: list[str] | None = None,
        exclude_path_patterns: list[str] | None = None,
        exclude_methods: list[str] | None = None,
    ):
        self.document = document
        self.references = references
        self.default_tag = default_tag
        self.exclude_paths = list(exclude_paths or [])
        self.exclude_path_patterns = [re.compile(pattern) for pattern in exclude_path_patterns or []]
        self.exclude_methods = [method.lower() for method in exclude_methods or []]
        self.route_sampling: dict[tuple[str, str], SamplingOptions] = {}

    def is_excluded(self, path: str, method: str) -> bool:
        if method in self.exclude_methods:
            return True
        if path in self.exclude_paths:
            return True
        return any(pattern.search(path) for pattern in self.exclude_path_patterns)

    def register_route(
        self,
        path: str,
        method: str,
        definition: RouteDefinition | None = None,
        declared: DeclaredSchemas | None = None,
        sampling: SamplingOptions | None = None,
    ) -> dict[str, Any] | None:
        """Add an operation for ``method path`` or augment the existing one.

        Metadata missing from ``definition`` is kept from an earlier
        registration or a seed document.

        Returns:
            The operation dict, or None if the route is not documented.

        Raises:
            UnsupportedSchemaError: if a declared schema cannot be compiled
                or a parameter schema is not an object.
        """
        method = method.lower()
        if method not in DOCUMENTED_METHODS:
            logger.debug("Method %s is not documented, skipping %s", method, path)
            return None
        if self.is_excluded(path, method):
            logger.debug("Route %s %s is excluded from the document", method, path)
            return None

        if sampling is not None:
            self.route_sampling[(path, method)] = sampling

        existing = self.document.operation(path, method)
        if existing is not None and definition is None and (declared is None or declared.is_empty()):
            return existing

        definition = definition or RouteDefinition()
        declared = declared or DeclaredSchemas()
        previous = existing or {}

        if previous.get("parameters") or previous.get("requestBody"):
            parameters = previous.get("parameters", [])
            request_body = previous.get("requestBody")
        else:
            parameters = self._parameters(path, declared)
            request_body = self._request_body(path, method, declared)

        tags = definition.tags or previous.get("tags") or ([self.default_tag] if self.default_tag else None)
        operation = {
            "summary": definition.summary or previous.get("summary"),
            "description": definition.description or previous.get("description"),
            "deprecated": definition.deprecated if definition.deprecated is not None else previous.get("deprecated"),
            "tags": tags,
            "externalDocs": definition.external_docs or previous.get("externalDocs"),
            "operationId": definition.operation_id or previous.get("operationId") or f"{method}{capitalize_path(path)}",
            "servers": definition.servers or previous.get("servers"),
            "security": definition.security if definition.security is not None else previous.get("security"),
            "requestBody": request_body,
            "parameters": parameters,
            "responses": previous.get("responses", {}),
        }
        operation = {key: value for key, value in operation.items() if value is not None}

        self.document.set_operation(path, method, operation)
        logger.debug("Registered operation %s %s", method, path)
        return operation

    def _request_body(self, path: str, method: str, declared: DeclaredSchemas) -> dict[str, Any] | None:
        if declared.json_body is None:
            return None
        if method == "get":
            logger.warning("A json body can not be declared for get routes. Ignoring it for %s", path)
            return None

        node = _as_node(declared.json_body)
        ref = self.references.register_body(request_body_name(path, method), node)
        return {"content": {"application/json": {"schema": {"$ref": ref}}}}

    def _parameters(self, path: str, declared: DeclaredSchemas) -> list[dict[str, Any]]:
        parameters: list[dict[str, Any]] = []
        for location, schema in (
            ("query", declared.query),
            ("cookie", declared.cookie),
            ("header", declared.header),
            ("path", declared.param),
        ):
            if schema is not None:
                parameters.extend(self._register_parameters(location, _as_node(schema)))

        if declared.param is None:
            for name in path_parameter_names(path):
                parameters.append({"in": "path", "name": name, "schema": {"type": "string"}, "required": True})
        return parameters

    def _register_parameters(self, location: str, node: TypeNode) -> list[dict[str, str]]:
        if not isinstance(node, ObjectNode):
            raise UnsupportedSchemaError(
                f"The {location} parameter schema must be an object schema", to_json_schema(node)
            )

        refs = []
        for name, prop in node.properties.items():
            examples = prop.node.annotations.get("examples")
            descriptor = ParameterDescriptor(
                location=location,
                name=name,
                required=prop.required,
                examples=examples if isinstance(examples, list) else None,
                example=None if isinstance(examples, list) else examples,
            )
            refs.append({"$ref": self.references.register_parameter(descriptor, prop.node)})
        return refs


def _as_node(schema: Any) -> TypeNode:
    if isinstance(schema, SchemaNode):
        return schema
    return compile_schema(schema)
