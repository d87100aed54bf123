"""Reference Store: stable component names for schemas and parameters.

A schema or parameter is stored once under ``components`` and pointed to
by ``$ref`` from every operation that uses it. The store remembers which
reference each node object received, per usage context, so registering
the same node again is a dictionary lookup.
"""

import logging

from openapi_sampler.errors import ReferenceNamingExhaustedError
from openapi_sampler.models import ParameterDescriptor
from openapi_sampler.typesystem.equality import deep_equal
from openapi_sampler.typesystem.nodes import SchemaNode, TypeNode
from openapi_sampler.typesystem.render import to_json_schema

from .model import ApiDocument

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"
PARAMETER_REF_PREFIX = "#/components/parameters/"

BODY_CONTEXT = "body"

# Candidate names tried per parameter before giving up.
MAX_NAME_PROBES = 2000


class ReferenceMap:
    """References assigned to node objects, keyed by node identity.

    Kept apart from the nodes so that rendering a node can never leak
    engine bookkeeping into the document. Each entry holds the node itself,
    which keeps its ``id()`` from being reused while the entry exists.
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[SchemaNode, dict[str, str]]] = {}

    def get(self, node: SchemaNode, context: str) -> str | None:
        entry = self._entries.get(id(node))
        if entry is None or entry[0] is not node:
            return None
        return entry[1].get(context)

    def set(self, node: SchemaNode, context: str, ref: str) -> str:
        """Record ``ref`` for ``node`` in ``context`` unless one is already set.

        Returns the reference in effect afterwards.
        """
        _, refs = self._entries.setdefault(id(node), (node, {}))
        return refs.setdefault(context, ref)

    def __len__(self) -> int:
        return len(self._entries)


def capitalize_path(path: str) -> str:
    """``/users/list`` -> ``Users/list``."""
    return path[1:2].upper() + path[2:]


def request_body_name(path: str, method: str) -> str:
    return f"{capitalize_path(path)}Request_{method}".replace("/", "_")


def response_body_name(path: str, method: str, content_type: str, status_code: int | str) -> str:
    return f"{capitalize_path(path)}Response_{method}_{content_type}_{status_code}".replace("/", "_")


def schema_name_from_ref(ref: str) -> str | None:
    if not ref.startswith(SCHEMA_REF_PREFIX):
        return None
    return ref[len(SCHEMA_REF_PREFIX):]


class ReferenceStore:
    """Registers schemas and parameters in the document's components."""

    def __init__(self, document: ApiDocument, reference_map: ReferenceMap | None = None):
        self.document = document
        self.reference_map = reference_map if reference_map is not None else ReferenceMap()

    def register_parameter(self, descriptor: ParameterDescriptor, node: TypeNode) -> str:
        """Store a parameter under a unique name and return its reference.

        Names are probed as ``{name}_{location}``, then ``{name}_{location}0``,
        ``{name}_{location}1`` and so on. An existing entry equal to the new
        parameter is reused instead of adding a duplicate.

        Raises:
            ReferenceNamingExhaustedError: if no name is free after
                MAX_NAME_PROBES candidates.
        """
        cached = self.reference_map.get(node, descriptor.location)
        if cached is not None:
            return cached

        parameters = self.document.parameters
        parameter = descriptor.to_openapi(to_json_schema(node))

        base_name = f"{descriptor.name}_{descriptor.location}"
        candidate = base_name
        name = None
        for attempt in range(MAX_NAME_PROBES):
            existing = parameters.get(candidate)
            if existing is None:
                name = candidate
                break
            if deep_equal(existing, parameter):
                logger.debug("Reusing parameter %s", candidate)
                return self.reference_map.set(node, descriptor.location, PARAMETER_REF_PREFIX + candidate)
            candidate = f"{base_name}{attempt}"

        if name is None:
            raise ReferenceNamingExhaustedError(
                f"{MAX_NAME_PROBES} parameters named {base_name!r} registered without a duplicate"
            )

        parameters[name] = parameter
        logger.debug("Registered parameter %s", name)
        return self.reference_map.set(node, descriptor.location, PARAMETER_REF_PREFIX + name)

    def register_body(self, name: str, node: TypeNode) -> str:
        """Store a request or response body schema under ``name``.

        ``name`` must already be unique to the operation; a later
        registration of a different node under the same name overwrites it.
        """
        cached = self.reference_map.get(node, BODY_CONTEXT)
        if cached is not None:
            return cached

        self.document.schemas[name] = to_json_schema(node)
        logger.debug("Registered schema %s", name)
        return self.reference_map.set(node, BODY_CONTEXT, SCHEMA_REF_PREFIX + name)

    def replace_schema(self, name: str, node: TypeNode) -> None:
        self.document.schemas[name] = to_json_schema(node)
