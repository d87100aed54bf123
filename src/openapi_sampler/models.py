"""Data models exchanged between the routing layer and the engine.

A routing layer describes its routes with RouteDefinition and
DeclaredSchemas, and reports finished requests as Observations.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ParameterLocation = Literal["query", "header", "cookie", "path"]


class ParameterDescriptor(BaseModel):
    """A single operation parameter, before it is stored as a component."""

    location: ParameterLocation
    name: str
    required: bool = False
    example: Any = None
    examples: list[Any] | None = None

    def to_openapi(self, schema: dict[str, Any]) -> dict[str, Any]:
        """Build the OpenAPI parameter object for the rendered ``schema``."""
        parameter: dict[str, Any] = {
            "in": self.location,
            "name": self.name,
            "schema": schema,
            "required": self.required,
        }
        if self.examples is not None:
            parameter["examples"] = self.examples
        elif self.example is not None:
            parameter["example"] = self.example
        return parameter


class RouteDefinition(BaseModel):
    """Operation metadata a route declares about itself."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str | None = None
    description: str | None = None
    operation_id: str | None = Field(None, alias="operationId")
    tags: list[str] | None = None
    deprecated: bool | None = None
    security: list[dict[str, list[str]]] | None = None
    servers: list[dict[str, Any]] | None = None
    external_docs: dict[str, Any] | None = Field(None, alias="externalDocs")


class DeclaredSchemas(BaseModel):
    """Validation schemas declared for a route.

    Each entry is either a compiled Type Model node or a JSON Schema dict,
    which is compiled when the route is registered. Reusing one compiled
    node across routes lets the engine reuse its component reference.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    json_body: Any = Field(None, alias="json")
    query: Any = None
    header: Any = None
    cookie: Any = None
    param: Any = None

    def is_empty(self) -> bool:
        return all(
            value is None for value in (self.json_body, self.query, self.header, self.cookie, self.param)
        )


class Observation(BaseModel):
    """One finished request as seen by the routing layer."""

    path: str
    method: str
    status_code: int = 200
    content_type: str | None = None
    body: bytes | str | None = None
