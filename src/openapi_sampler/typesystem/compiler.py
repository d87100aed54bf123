"""Compile JSON-Schema-like fragments into Type Model nodes.

Shape detection runs in a fixed order and the first match wins, because
several keywords may appear in the same fragment:

    boolean or annotation-only schema -> object -> enum -> anyOf -> allOf -> oneOf -> not
    -> array (with items) -> multiple types -> const -> single type

Anything else raises UnsupportedSchemaError, as does a bare ``$ref``:
references are never resolved here.
"""

import json
from typing import Any

from openapi_sampler.errors import UnsupportedSchemaError

from .nodes import (
    ArrayNode,
    IntersectNode,
    LiteralNode,
    NotNode,
    ObjectNode,
    PrimitiveNode,
    Property,
    TypeNode,
    UnionNode,
    UnknownNode,
)

STRUCTURAL_KEYWORDS = frozenset(
    {
        "type",
        "items",
        "allOf",
        "anyOf",
        "oneOf",
        "not",
        "properties",
        "required",
        "const",
        "enum",
        "additionalProperties",
    }
)

PRIMITIVE_TYPES = ("string", "number", "integer", "boolean", "null")


def compile_schema(fragment: Any) -> TypeNode:
    """Compile a JSON Schema fragment into a Type Model node.

    Raises:
        UnsupportedSchemaError: if the fragment matches no known shape.
    """
    if isinstance(fragment, bool):
        return UnknownNode() if fragment else NotNode(inner=UnknownNode())

    if not isinstance(fragment, dict):
        raise UnsupportedSchemaError(f"Schema must be an object or a boolean, got {fragment!r}", fragment)

    if not fragment.keys() & STRUCTURAL_KEYWORDS:
        if "$ref" in fragment:
            raise UnsupportedSchemaError(f"Schema references are not resolved: {_dump(fragment)}", fragment)
        # {} is the object form of ``true``; any other keys are annotations
        return UnknownNode(annotations=_annotations(fragment))

    schema_type = fragment.get("type")

    if schema_type == "object":
        return _compile_object(fragment)
    if "enum" in fragment:
        return _compile_enum(fragment)
    if "anyOf" in fragment:
        return UnionNode(members=_compile_all(fragment["anyOf"]), annotations=_annotations(fragment))
    if "allOf" in fragment:
        return IntersectNode(members=_compile_all(fragment["allOf"]), annotations=_annotations(fragment))
    if "oneOf" in fragment:
        return UnionNode(members=_compile_all(fragment["oneOf"]), one_of=True, annotations=_annotations(fragment))
    if "not" in fragment:
        return NotNode(inner=compile_schema(fragment["not"]), annotations=_annotations(fragment))
    if schema_type == "array" and "items" in fragment:
        return _compile_array(fragment)
    if isinstance(schema_type, list):
        members = [_compile_type_name(name, fragment, {}) for name in schema_type]
        return UnionNode(members=members, annotations=_annotations(fragment))
    if "const" in fragment:
        return _compile_const(fragment)
    if isinstance(schema_type, str):
        return _compile_type_name(schema_type, fragment, _annotations(fragment))

    raise UnsupportedSchemaError(
        f"Unsupported schema. Did not match any known shape: {_dump(fragment)}", fragment
    )


def _annotations(fragment: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fragment.items() if key not in STRUCTURAL_KEYWORDS}


def _compile_all(fragments: Any) -> list[TypeNode]:
    if not isinstance(fragments, list):
        raise UnsupportedSchemaError(f"Expected a list of schemas, got {fragments!r}", fragments)
    return [compile_schema(fragment) for fragment in fragments]


def _compile_object(fragment: dict[str, Any]) -> TypeNode:
    annotations = _annotations(fragment)
    properties = fragment.get("properties")
    if properties is None:
        # Without properties there is nothing structural to enforce.
        return UnknownNode(annotations=annotations)
    if not isinstance(properties, dict):
        raise UnsupportedSchemaError(f"Object properties must be a mapping: {_dump(fragment)}", fragment)

    required = fragment.get("required") or []
    if not isinstance(required, list) or not all(isinstance(name, str) for name in required):
        raise UnsupportedSchemaError(f"Object required must be a list of property names: {_dump(fragment)}", fragment)
    required = set(required)
    compiled = {
        name: Property(node=compile_schema(schema), required=name in required)
        for name, schema in properties.items()
    }
    return ObjectNode(
        properties=compiled,
        additional_properties=fragment.get("additionalProperties", True) is not False,
        annotations=annotations,
    )


def _compile_enum(fragment: dict[str, Any]) -> UnionNode:
    values = fragment["enum"]
    if not isinstance(values, list):
        raise UnsupportedSchemaError(f"enum must be a list: {_dump(fragment)}", fragment)
    return UnionNode(members=[_compile_value(value, fragment) for value in values], annotations=_annotations(fragment))


def _compile_const(fragment: dict[str, Any]) -> TypeNode:
    value = fragment["const"]
    annotations = _annotations(fragment)
    if isinstance(value, list):
        return UnionNode(members=[_compile_value(item, fragment) for item in value], annotations=annotations)
    if isinstance(value, dict):
        raise UnsupportedSchemaError(f"const with an object value is not supported: {_dump(fragment)}", fragment)
    if value is None:
        return PrimitiveNode(type="null", annotations=annotations)
    return LiteralNode(value=value, annotations=annotations)


def _compile_value(value: Any, fragment: dict[str, Any]) -> TypeNode:
    """Compile one enum/const entry into a literal."""
    if value is None:
        return PrimitiveNode(type="null")
    if isinstance(value, (str, int, float, bool)):
        return LiteralNode(value=value)
    raise UnsupportedSchemaError(f"Only scalar enum/const values are supported: {_dump(fragment)}", fragment)


def _compile_array(fragment: dict[str, Any]) -> ArrayNode:
    items = fragment["items"]
    annotations = _annotations(fragment)
    if isinstance(items, list):
        # Positional tuples are widened to an array of the union of their members.
        return ArrayNode(items=UnionNode(members=_compile_all(items)), annotations=annotations)
    return ArrayNode(items=compile_schema(items), annotations=annotations)


def _compile_type_name(name: Any, fragment: dict[str, Any], annotations: dict[str, Any]) -> TypeNode:
    if name in PRIMITIVE_TYPES:
        return PrimitiveNode(type=name, annotations=annotations)
    if name == "array":
        return ArrayNode(items=UnknownNode(), annotations=annotations)
    if name == "object":
        return UnknownNode(annotations=annotations)
    raise UnsupportedSchemaError(f"Unknown schema type {name!r}: {_dump(fragment)}", fragment)


def _dump(fragment: Any) -> str:
    return json.dumps(fragment, default=str)
