"""Schema algebra: intersection, flattening and union of Type Model nodes.

Intersections grow when responses are sampled in ``combine`` mode;
flattening keeps them from accumulating members that differ only by
their example values.
"""

from typing import assert_never

from openapi_sampler.errors import UnsupportedSchemaError

from .equality import structurally_equal
from .nodes import (
    ArrayNode,
    EnumNode,
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
from .render import to_json_schema

VOLATILE_KEYS = ("example",)


def merge_as_intersection(a: TypeNode, b: TypeNode) -> TypeNode:
    """Combine two schemas into one that describes what both guarantee.

    Two objects merge into a single object holding the properties of both
    sides; a property stays required only if it is required on both sides.
    Any other pair becomes an intersection node.
    """
    if isinstance(a, ObjectNode) and isinstance(b, ObjectNode):
        return _merge_objects(a, b)
    return IntersectNode(members=[a, b])


def _merge_objects(a: ObjectNode, b: ObjectNode) -> ObjectNode:
    properties: dict[str, Property] = {}
    for name, prop in a.properties.items():
        other = b.properties.get(name)
        if other is None:
            properties[name] = Property(node=prop.node, required=False)
        else:
            properties[name] = Property(
                node=_merge_slot(prop.node, other.node),
                required=prop.required and other.required,
            )
    for name, prop in b.properties.items():
        if name not in properties:
            properties[name] = Property(node=prop.node, required=False)

    return ObjectNode(
        properties=properties,
        additional_properties=a.additional_properties or b.additional_properties,
        annotations={**b.annotations, **a.annotations},
    )


def _merge_slot(x: TypeNode, y: TypeNode) -> TypeNode:
    """Merge the schemas found at the same position on both sides."""
    if structurally_equal(x, y, VOLATILE_KEYS):
        return x
    if isinstance(x, ObjectNode) and isinstance(y, ObjectNode):
        return _merge_objects(x, y)
    if isinstance(x, ArrayNode) and isinstance(y, ArrayNode) and not x.is_tuple and not y.is_tuple:
        return ArrayNode(items=_merge_slot(x.items, y.items), annotations={**y.annotations, **x.annotations})
    return IntersectNode(members=[x, y])


def flatten_intersection(node: TypeNode) -> TypeNode:
    """Simplify nested intersections inside ``node``.

    Nested intersections are spliced into their parent, members that equal
    an already kept member (ignoring examples) are dropped, and a single
    survivor replaces the intersection. Objects and arrays are flattened
    recursively. Applying it twice gives the same result as applying it once.

    Raises:
        UnsupportedSchemaError: if an intersection holds a union or a
            negation, which have no flattening rule.
    """
    if isinstance(node, IntersectNode):
        kept: list[TypeNode] = []
        for member in _splice(node.members):
            flattened = _flatten_member(member)
            if flattened is None:
                continue
            if not any(structurally_equal(existing, flattened, VOLATILE_KEYS) for existing in kept):
                kept.append(flattened)
        if not kept:
            return UnknownNode(annotations=dict(node.annotations))
        if len(kept) == 1:
            return kept[0]
        return IntersectNode(members=kept, annotations=dict(node.annotations))

    if isinstance(node, ObjectNode):
        return node.model_copy(
            update={
                "properties": {
                    name: Property(node=flatten_intersection(prop.node), required=prop.required)
                    for name, prop in node.properties.items()
                }
            }
        )

    if isinstance(node, ArrayNode):
        if node.is_tuple:
            return node.model_copy(update={"items": [flatten_intersection(item) for item in node.items]})
        return node.model_copy(update={"items": flatten_intersection(node.items)})

    return node


def _splice(members: list[TypeNode]) -> list[TypeNode]:
    spliced: list[TypeNode] = []
    for member in members:
        if isinstance(member, IntersectNode):
            spliced.extend(_splice(member.members))
        else:
            spliced.append(member)
    return spliced


def _flatten_member(member: TypeNode) -> TypeNode | None:
    match member:
        case ObjectNode() | ArrayNode():
            return flatten_intersection(member)
        case PrimitiveNode() | LiteralNode() | EnumNode():
            return member
        case UnknownNode():
            # Accepts everything, so it adds nothing to an intersection.
            return None
        case UnionNode() | NotNode() | IntersectNode():
            raise UnsupportedSchemaError(
                f"Schema kind {member.kind!r} is not supported by the flattening operation",
                to_json_schema(member),
            )
        case _:
            assert_never(member)


def merge_as_union(existing: TypeNode, incoming: TypeNode) -> UnionNode:
    """Add ``incoming`` as an alternative of ``existing``.

    An existing union gains one more member; anything else becomes the
    first member of a new two-member union. Duplicates are not filtered.
    """
    if isinstance(existing, UnionNode):
        return existing.model_copy(update={"members": [*existing.members, incoming]})
    return UnionNode(members=[existing, incoming])
