"""Deep equality for plain values and Type Model nodes."""

import math
from collections.abc import Collection
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


def deep_equal(a: Any, b: Any, ignored_keys: Collection[str] = ()) -> bool:
    """Compare two decoded JSON-like values.

    Mapping keys listed in ``ignored_keys`` are skipped at every depth and
    key order does not matter; sequences compare element-wise in order.
    Two NaN values are equal, and booleans never equal numbers.
    """
    if a is b:
        return True

    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True

    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b

    if isinstance(a, dict) and isinstance(b, dict):
        keys_a = {k for k in a if k not in ignored_keys}
        keys_b = {k for k in b if k not in ignored_keys}
        if keys_a != keys_b:
            return False
        return all(deep_equal(a[k], b[k], ignored_keys) for k in keys_a)

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y, ignored_keys) for x, y in zip(a, b))

    if isinstance(a, (dict, list, tuple)) or isinstance(b, (dict, list, tuple)):
        return False

    return a == b


def structurally_equal(a: TypeNode, b: TypeNode, ignored_keys: Collection[str] = ()) -> bool:
    """Compare two nodes by kind, structure and annotations.

    Annotation keys in ``ignored_keys`` are skipped, which is how
    example-only differences are disregarded.
    """
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    if not deep_equal(a.annotations, b.annotations, ignored_keys):
        return False

    match a:
        case PrimitiveNode():
            return a.type == b.type
        case LiteralNode():
            return deep_equal(a.value, b.value)
        case EnumNode():
            return deep_equal(a.values, b.values)
        case ObjectNode():
            if a.additional_properties != b.additional_properties:
                return False
            if a.properties.keys() != b.properties.keys():
                return False
            return all(
                prop.required == b.properties[name].required
                and structurally_equal(prop.node, b.properties[name].node, ignored_keys)
                for name, prop in a.properties.items()
            )
        case ArrayNode():
            if a.is_tuple != b.is_tuple:
                return False
            if a.is_tuple:
                return _all_equal(a.items, b.items, ignored_keys)
            return structurally_equal(a.items, b.items, ignored_keys)
        case UnionNode():
            return a.one_of == b.one_of and _all_equal(a.members, b.members, ignored_keys)
        case IntersectNode():
            return _all_equal(a.members, b.members, ignored_keys)
        case NotNode():
            return structurally_equal(a.inner, b.inner, ignored_keys)
        case UnknownNode():
            return True
        case _:
            assert_never(a)


def _all_equal(xs: list, ys: list, ignored_keys: Collection[str]) -> bool:
    if len(xs) != len(ys):
        return False
    return all(structurally_equal(x, y, ignored_keys) for x, y in zip(xs, ys))
