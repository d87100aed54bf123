"""Type Model: the internal tagged representation of a schema.

Every node is a pydantic model carrying a ``kind`` discriminator. The set
of node classes is closed; everything that dispatches on nodes matches
over all of them and ends in ``assert_never``.

Non-structural keywords (title, description, example, bounds, ...) live in
``annotations``. Document references assigned to a node are tracked
out-of-band (see ``document/references.py``), never on the node itself.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

PrimitiveType = Literal["string", "number", "integer", "boolean", "null"]
LiteralValue = str | int | float | bool


class SchemaNode(BaseModel):
    """Base class of all Type Model nodes."""

    model_config = ConfigDict(extra="forbid")

    annotations: dict[str, Any] = {}


class PrimitiveNode(SchemaNode):
    kind: Literal["primitive"] = "primitive"
    type: PrimitiveType


class LiteralNode(SchemaNode):
    kind: Literal["literal"] = "literal"
    value: LiteralValue


class EnumNode(SchemaNode):
    """A closed set of values, built directly by callers.

    Compiling an ``enum`` keyword yields a union of literals instead, so
    this node only appears when a caller constructs it, e.g. for a
    parameter registered from a hand-built node.
    """

    kind: Literal["enum"] = "enum"
    values: list[LiteralValue | None]


class Property(BaseModel):
    """A named slot of an object node."""

    node: "TypeNode"
    required: bool = True


class ObjectNode(SchemaNode):
    kind: Literal["object"] = "object"
    properties: dict[str, Property] = {}
    additional_properties: bool = True

    @property
    def required(self) -> list[str]:
        return [name for name, prop in self.properties.items() if prop.required]


class ArrayNode(SchemaNode):
    """Array of ``items``; a list of item nodes is the positional (tuple) form."""

    kind: Literal["array"] = "array"
    items: Union["TypeNode", list["TypeNode"]]

    @property
    def is_tuple(self) -> bool:
        return isinstance(self.items, list)


class UnionNode(SchemaNode):
    """anyOf, or oneOf when ``one_of`` is set (exactly one member must match)."""

    kind: Literal["union"] = "union"
    members: list["TypeNode"]
    one_of: bool = False


class IntersectNode(SchemaNode):
    kind: Literal["intersect"] = "intersect"
    members: list["TypeNode"]


class NotNode(SchemaNode):
    kind: Literal["not"] = "not"
    inner: "TypeNode"


class UnknownNode(SchemaNode):
    """Permits any value."""

    kind: Literal["unknown"] = "unknown"


TypeNode = Annotated[
    Union[
        PrimitiveNode,
        LiteralNode,
        EnumNode,
        ObjectNode,
        ArrayNode,
        UnionNode,
        IntersectNode,
        NotNode,
        UnknownNode,
    ],
    Field(discriminator="kind"),
]

for _model in (Property, ObjectNode, ArrayNode, UnionNode, IntersectNode, NotNode):
    _model.model_rebuild()


def json_kind(value: Any) -> str | None:
    """Return the JSON type name of a decoded value, or None for foreign types."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return None
