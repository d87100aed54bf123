"""Conformance test of a decoded value against a Type Model node."""

import re
from typing import Any, assert_never

from .equality import deep_equal
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
    json_kind,
)


def check(node: TypeNode, value: Any) -> bool:
    """Return True if ``value`` conforms to ``node``. Never raises."""
    match node:
        case PrimitiveNode():
            return _matches_primitive(node.type, value) and _within_bounds(node.annotations, value)
        case LiteralNode():
            return json_kind(value) == json_kind(node.value) and deep_equal(value, node.value)
        case EnumNode():
            return any(
                json_kind(value) == json_kind(allowed) and deep_equal(value, allowed)
                for allowed in node.values
            )
        case ObjectNode():
            return _check_object(node, value)
        case ArrayNode():
            return _check_array(node, value)
        case UnionNode():
            matches = sum(1 for member in node.members if check(member, value))
            return matches == 1 if node.one_of else matches >= 1
        case IntersectNode():
            return all(check(member, value) for member in node.members)
        case NotNode():
            return not check(node.inner, value)
        case UnknownNode():
            return True
        case _:
            assert_never(node)


def _matches_primitive(type_name: str, value: Any) -> bool:
    kind = json_kind(value)
    if type_name == "integer":
        return kind == "number" and (isinstance(value, int) or float(value).is_integer())
    return kind == type_name


def _check_object(node: ObjectNode, value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    for name, prop in node.properties.items():
        if name in value:
            if not check(prop.node, value[name]):
                return False
        elif prop.required:
            return False
    if not node.additional_properties and not set(value) <= set(node.properties):
        return False
    return True


def _check_array(node: ArrayNode, value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    if node.is_tuple:
        if len(value) > len(node.items):
            return False
        if not all(check(item, element) for item, element in zip(node.items, value)):
            return False
    elif not all(check(node.items, element) for element in value):
        return False
    return _within_bounds(node.annotations, value)


def _is_bound(bound: Any) -> bool:
    return isinstance(bound, (int, float)) and not isinstance(bound, bool)


def _within_bounds(annotations: dict[str, Any], value: Any) -> bool:
    kind = json_kind(value)

    if kind == "string":
        if _is_bound(annotations.get("minLength")) and len(value) < annotations["minLength"]:
            return False
        if _is_bound(annotations.get("maxLength")) and len(value) > annotations["maxLength"]:
            return False
        pattern = annotations.get("pattern")
        if isinstance(pattern, str):
            try:
                if re.search(pattern, value) is None:
                    return False
            except re.error:
                # Patterns Python cannot compile are not enforced.
                pass

    elif kind == "number":
        if _is_bound(annotations.get("minimum")) and value < annotations["minimum"]:
            return False
        if _is_bound(annotations.get("maximum")) and value > annotations["maximum"]:
            return False
        if _is_bound(annotations.get("exclusiveMinimum")) and value <= annotations["exclusiveMinimum"]:
            return False
        if _is_bound(annotations.get("exclusiveMaximum")) and value >= annotations["exclusiveMaximum"]:
            return False

    elif kind == "array":
        if _is_bound(annotations.get("minItems")) and len(value) < annotations["minItems"]:
            return False
        if _is_bound(annotations.get("maxItems")) and len(value) > annotations["maxItems"]:
            return False

    return True
