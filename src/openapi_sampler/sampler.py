"""Response sampling: grow response schemas from observed traffic.

For every finished request the sampler decides whether to look at the
response at all (the sampling gate), infers a schema from the body, and
either records it as a new response or merges it into the schema already
referenced for that status code and content type.

Merging never raises into the caller: a failed inference or merge is
logged and the document is left as it was.
"""

import logging
import random
from collections.abc import Callable
from enum import Enum
from http import HTTPStatus
from typing import Any

from openapi_sampler.config import SamplingOptions, resolve_sampling
from openapi_sampler.document.model import SAMPLE_COUNT_KEY, ApiDocument
from openapi_sampler.document.references import ReferenceStore, response_body_name, schema_name_from_ref
from openapi_sampler.errors import NonReferencedSchemaConflict, SchemaEngineError
from openapi_sampler.models import Observation
from openapi_sampler.typesystem.algebra import (
    VOLATILE_KEYS,
    flatten_intersection,
    merge_as_intersection,
    merge_as_union,
)
from openapi_sampler.typesystem.check import check
from openapi_sampler.typesystem.compiler import compile_schema
from openapi_sampler.typesystem.equality import structurally_equal
from openapi_sampler.typesystem.inference import InferredBody, infer_from_body

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/html"

STATUS_DESCRIPTIONS = {
    200: "Success",
    400: "Validation Error",
    403: "Forbidden",
    404: "Not Found",
    418: "I'm a teapot",
    500: "Internal Server Error",
    504: "Gateway Timeout",
}


class SampleOutcome(Enum):
    """What observing a single response did to the document."""

    UNKNOWN_ROUTE = "unknown_route"  # No operation for path and method
    GATED = "gated"  # Skipped by the sampling gate
    NOTHING_INFERRED = "nothing_inferred"  # Empty body or unsupported content type
    CREATED = "created"  # New response schema registered
    UNCHANGED = "unchanged"  # Same schema as stored
    SUBSUMED = "subsumed"  # Stored schema already accepts the value
    MERGED = "merged"  # Stored schema replaced by the merged one
    CONFLICT = "conflict"  # Stored response schema is not a reference
    FAILED = "failed"  # Inference or merge raised; document untouched


def status_description(status_code: int) -> str:
    if status_code in STATUS_DESCRIPTIONS:
        return STATUS_DESCRIPTIONS[status_code]
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def normalize_content_type(content_type: str | None) -> str:
    """Strip parameters such as ``; charset=utf-8``; default to text/html."""
    if not content_type:
        return DEFAULT_CONTENT_TYPE
    return content_type.split(";", 1)[0].strip().lower() or DEFAULT_CONTENT_TYPE


class ResponseSampler:
    """Updates response schemas of the document from observed responses."""

    def __init__(
        self,
        document: ApiDocument,
        references: ReferenceStore,
        options: SamplingOptions | None = None,
        route_options: dict[tuple[str, str], SamplingOptions] | None = None,
        rng: Callable[[], float] | None = None,
    ):
        self.document = document
        self.references = references
        self.options = options
        self.route_options = route_options if route_options is not None else {}
        self.rng = rng or random.random

    def effective_options(self, path: str, method: str) -> SamplingOptions:
        """Per-route options override instance options, which override defaults."""
        return resolve_sampling(self.route_options.get((path, method)), self.options)

    def observe_response(self, observation: Observation) -> SampleOutcome:
        path = observation.path
        method = observation.method.lower()
        content_type = normalize_content_type(observation.content_type)
        status = str(observation.status_code)

        operation = self.document.operation(path, method)
        if operation is None:
            logger.debug("Path %s %s is not in the document, skipping response", method, path)
            return SampleOutcome.UNKNOWN_ROUTE

        response = operation.setdefault("responses", {}).get(status)
        schema_entry = _schema_entry(response, content_type)
        sample_count = schema_entry.get(SAMPLE_COUNT_KEY) if isinstance(schema_entry, dict) else None
        if not isinstance(sample_count, int) or isinstance(sample_count, bool):
            sample_count = None

        options = self.effective_options(path, method)
        if sample_count is not None and not self._passes_gate(sample_count, options):
            logger.debug(
                "Sampling gate closed for %s %s %s %s (count %s, max %s, interval %s)",
                method,
                path,
                status,
                content_type,
                sample_count,
                options.sampling_max_count,
                options.sampling_interval,
            )
            return SampleOutcome.GATED

        try:
            inferred = infer_from_body(content_type, observation.body)
            if inferred is None:
                logger.debug("Nothing to infer from %s response of %s %s", content_type, method, path)
                return SampleOutcome.NOTHING_INFERRED

            if schema_entry is None:
                self._create(operation, path, method, observation.status_code, content_type, inferred)
                return SampleOutcome.CREATED

            return self._merge(schema_entry, inferred, options)
        except NonReferencedSchemaConflict as e:
            logger.warning("%s (%s %s %s %s)", e, method, path, status, content_type)
            return SampleOutcome.CONFLICT
        except Exception:
            logger.exception("Failed to sample %s response of %s %s", status, method, path)
            return SampleOutcome.FAILED

    def _passes_gate(self, sample_count: Any, options: SamplingOptions) -> bool:
        max_count = options.sampling_max_count
        if max_count is not None and sample_count >= max_count:
            return False
        return self.rng() <= options.sampling_interval

    def _create(
        self,
        operation: dict[str, Any],
        path: str,
        method: str,
        status_code: int,
        content_type: str,
        inferred: InferredBody,
    ) -> None:
        name = response_body_name(path, method, content_type, status_code)
        ref = self.references.register_body(name, inferred.node)

        responses = operation["responses"]
        response = responses.get(str(status_code))
        if response is None:
            response = {"description": status_description(status_code)}
            responses[str(status_code)] = response
        response.setdefault("content", {})[content_type] = {"schema": {"$ref": ref, SAMPLE_COUNT_KEY: 1}}
        logger.debug("Created response schema %s", name)

    def _merge(self, schema_entry: Any, inferred: InferredBody, options: SamplingOptions) -> SampleOutcome:
        ref = schema_entry.get("$ref") if isinstance(schema_entry, dict) else None
        if not isinstance(ref, str):
            raise NonReferencedSchemaConflict(
                "Non reference schema object found in response schema. Merging is not supported"
            )

        name = schema_name_from_ref(ref)
        if name is None:
            raise NonReferencedSchemaConflict(f"Response schema {ref} does not point to a component schema")
        stored = self.document.schemas.get(name)
        if stored is None:
            raise SchemaEngineError(f"Response schema reference {ref} does not resolve")

        existing = compile_schema(stored)

        if structurally_equal(existing, inferred.node, VOLATILE_KEYS):
            logger.debug("Skip updating %s: definition is equal", name)
            outcome = SampleOutcome.UNCHANGED
        elif check(existing, inferred.value):
            logger.debug("Skip updating %s: stored schema accepts the value", name)
            outcome = SampleOutcome.SUBSUMED
        elif options.sampling_mode == "combine":
            logger.debug("Combining %s with the new sample", name)
            self.references.replace_schema(name, flatten_intersection(merge_as_intersection(existing, inferred.node)))
            outcome = SampleOutcome.MERGED
        else:
            logger.debug("Adding the new sample to %s as an individual member", name)
            self.references.replace_schema(name, merge_as_union(existing, inferred.node))
            outcome = SampleOutcome.MERGED

        schema_entry[SAMPLE_COUNT_KEY] = (schema_entry.get(SAMPLE_COUNT_KEY) or 0) + 1
        return outcome


def _schema_entry(response: Any, content_type: str) -> Any:
    """Return the schema stored for ``content_type`` in a response object, if any."""
    if not isinstance(response, dict):
        return None
    if "$ref" in response:
        # A referenced response object counts as hand-authored
        return response
    media = (response.get("content") or {}).get(content_type)
    if not isinstance(media, dict):
        return None
    return media.get("schema", {})
