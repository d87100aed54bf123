"""Infer Type Model nodes from observed response bodies.

Inference works on a single sample: every observed object key is
required and objects are closed. Widening happens later, when the
sampler merges samples into the stored schema.
"""

import json
import math
from typing import Any, NamedTuple

from .equality import structurally_equal
from .nodes import (
    ArrayNode,
    ObjectNode,
    PrimitiveNode,
    Property,
    TypeNode,
    UnionNode,
    UnknownNode,
    json_kind,
)

TUPLE_MIN_ITEMS = 0
TUPLE_MAX_ITEMS = 1000

TEXT_CONTENT_TYPES = ("text/plain", "text/html")


class InferredBody(NamedTuple):
    """A decoded response body together with the schema inferred from it."""

    value: Any
    node: TypeNode


def infer_from_value(value: Any) -> TypeNode:
    """Infer a schema from a decoded JSON value."""
    if value is None:
        return PrimitiveNode(type="null")

    if isinstance(value, bool):
        return PrimitiveNode(type="boolean", annotations={"example": value})

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            # NaN and Infinity have no JSON form to keep as an example
            return PrimitiveNode(type="number")
        return PrimitiveNode(type="number", annotations={"example": value})

    if isinstance(value, str):
        return PrimitiveNode(type="string", annotations={"example": value})

    if isinstance(value, (list, tuple)):
        return _infer_array(list(value))

    if isinstance(value, dict):
        return ObjectNode(
            properties={str(key): Property(node=infer_from_value(item)) for key, item in value.items()},
            additional_properties=False,
        )

    # Not a JSON type, treat as string
    return PrimitiveNode(type="string", annotations={"example": str(value)})


def _infer_array(values: list[Any]) -> ArrayNode:
    elements = [infer_from_value(item) for item in values]

    if len({json_kind(item) for item in values}) > 1:
        return ArrayNode(
            items=elements,
            annotations={"minItems": TUPLE_MIN_ITEMS, "maxItems": TUPLE_MAX_ITEMS},
        )

    distinct: list[TypeNode] = []
    for element in elements:
        if not any(structurally_equal(seen, element, ("example",)) for seen in distinct):
            distinct.append(element)

    if not distinct:
        return ArrayNode(items=UnknownNode())
    if len(distinct) == 1:
        return ArrayNode(items=distinct[0])
    return ArrayNode(items=UnionNode(members=distinct))


def infer_from_text(text: str) -> PrimitiveNode:
    return PrimitiveNode(type="string", annotations={"example": text})


def is_json_content_type(content_type: str) -> bool:
    return content_type == "application/json" or content_type.endswith("+json")


def infer_from_body(content_type: str, body: bytes | str | None) -> InferredBody | None:
    """Decode a response body and infer its schema.

    Returns None when there is nothing to record: an empty body or a
    content type that is neither JSON nor plain text / HTML.

    Raises:
        ValueError: if the body cannot be decoded (bad UTF-8 or bad JSON).
    """
    is_json = is_json_content_type(content_type)
    if body is None or not (is_json or content_type in TEXT_CONTENT_TYPES):
        return None
    text = body.decode("utf-8") if isinstance(body, bytes) else body
    if not text:
        return None

    if is_json:
        value = json.loads(text)
        return InferredBody(value, infer_from_value(value))
    return InferredBody(text, infer_from_text(text))
