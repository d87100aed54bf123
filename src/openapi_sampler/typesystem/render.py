"""Render Type Model nodes as JSON Schema dicts for the document."""

import copy
from typing import Any, assert_never

from .nodes import (
    ArrayNode,
    EnumNode,
    IntersectNode,
    LiteralNode,
    NotNode,
    ObjectNode,
    PrimitiveNode,
    TypeNode,
    UnionNode,
    UnknownNode,
)


def to_json_schema(node: TypeNode) -> dict[str, Any]:
    """Return the JSON Schema for ``node``.

    Structural keywords come first, annotations follow and never override
    them. The result is a fresh dict that shares nothing with the node.
    """
    match node:
        case PrimitiveNode():
            body: dict[str, Any] = {"type": node.type}
        case LiteralNode():
            body = {"const": node.value}
        case EnumNode():
            body = {"enum": list(node.values)}
        case ObjectNode():
            body = {
                "type": "object",
                "properties": {name: to_json_schema(prop.node) for name, prop in node.properties.items()},
            }
            if node.required:
                body["required"] = node.required
            if not node.additional_properties:
                body["additionalProperties"] = False
        case ArrayNode():
            if node.is_tuple:
                items: Any = [to_json_schema(item) for item in node.items]
            else:
                items = to_json_schema(node.items)
            body = {"type": "array", "items": items}
        case UnionNode():
            keyword = "oneOf" if node.one_of else "anyOf"
            body = {keyword: [to_json_schema(member) for member in node.members]}
        case IntersectNode():
            body = {"allOf": [to_json_schema(member) for member in node.members]}
        case NotNode():
            body = {"not": to_json_schema(node.inner)}
        case UnknownNode():
            body = {}
        case _:
            assert_never(node)

    for key, value in node.annotations.items():
        body.setdefault(key, copy.deepcopy(value))
    return body
