import json
import logging

import pytest

from openapi_sampler.config import SamplingOptions
from openapi_sampler.document.model import SAMPLE_COUNT_KEY, ApiDocument
from openapi_sampler.document.references import ReferenceStore
from openapi_sampler.models import Observation
from openapi_sampler.sampler import ResponseSampler, SampleOutcome, normalize_content_type, status_description
from openapi_sampler.typesystem.check import check
from openapi_sampler.typesystem.compiler import compile_schema

SCHEMA_NAME = "PetsResponse_get_application_json_200"


def _sampler(options=None, rng=None, spec=None):
    document = ApiDocument(spec or {"paths": {"/pets": {"get": {"responses": {}}}}})
    sampler = ResponseSampler(document, ReferenceStore(document), options=options, rng=rng)
    return document, sampler


def _observe(sampler, body, status=200, content_type="application/json", path="/pets"):
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    return sampler.observe_response(
        Observation(path=path, method="GET", status_code=status, content_type=content_type, body=body)
    )


def _schema_ref(document, status="200", content_type="application/json"):
    return document.operation("/pets", "get")["responses"][status]["content"][content_type]["schema"]


def _seeded_spec(pet_schema):
    media = {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}}
    return {
        "components": {"schemas": {"Pet": pet_schema}},
        "paths": {"/pets": {"get": {"responses": {"200": {"description": "ok", "content": media}}}}},
    }


class TestHelpers:
    def test_normalize_content_type(self):
        assert normalize_content_type("Application/JSON; charset=utf-8") == "application/json"
        assert normalize_content_type(None) == "text/html"
        assert normalize_content_type("") == "text/html"

    def test_status_description(self):
        assert status_description(200) == "Success"
        assert status_description(201) == "Created"
        assert status_description(799) == ""


class TestFirstObservation:
    def test_creates_response_schema(self):
        document, sampler = _sampler()
        assert _observe(sampler, {"id": 1, "name": "Rex"}) == SampleOutcome.CREATED
        response = document.operation("/pets", "get")["responses"]["200"]
        assert response["description"] == "Success"
        assert response["content"]["application/json"]["schema"] == {
            "$ref": f"#/components/schemas/{SCHEMA_NAME}",
            SAMPLE_COUNT_KEY: 1,
        }
        assert document.schemas[SCHEMA_NAME]["required"] == ["id", "name"]
        assert document.schemas[SCHEMA_NAME]["additionalProperties"] is False

    def test_unknown_route(self):
        document, sampler = _sampler()
        assert _observe(sampler, {}, path="/other") == SampleOutcome.UNKNOWN_ROUTE
        assert "/other" not in document.paths

    def test_nothing_inferred(self):
        document, sampler = _sampler()
        assert _observe(sampler, b"", content_type="application/json") == SampleOutcome.NOTHING_INFERRED
        assert _observe(sampler, b"\x89PNG", content_type="image/png") == SampleOutcome.NOTHING_INFERRED
        assert document.schemas == {}

    def test_text_response(self):
        document, sampler = _sampler()
        assert _observe(sampler, "Not Found", status=404, content_type="text/plain") == SampleOutcome.CREATED
        assert document.schemas["PetsResponse_get_text_plain_404"] == {"type": "string", "example": "Not Found"}
        assert document.operation("/pets", "get")["responses"]["404"]["description"] == "Not Found"

    def test_missing_content_type_defaults_to_html(self):
        document, sampler = _sampler()
        _observe(sampler, "<p>hi</p>", content_type=None)
        assert "text/html" in document.operation("/pets", "get")["responses"]["200"]["content"]

    def test_existing_status_without_content(self):
        spec = {"paths": {"/pets": {"get": {"responses": {"200": {"description": "Hand written"}}}}}}
        document, sampler = _sampler(spec=spec)
        assert _observe(sampler, [1]) == SampleOutcome.CREATED
        response = document.operation("/pets", "get")["responses"]["200"]
        assert response["description"] == "Hand written"
        assert "application/json" in response["content"]

    def test_invalid_json_fails_without_update(self, caplog):
        document, sampler = _sampler()
        with caplog.at_level(logging.ERROR, logger="openapi_sampler.sampler"):
            assert _observe(sampler, "{broken") == SampleOutcome.FAILED
        assert document.operation("/pets", "get")["responses"] == {}
        assert "Failed to sample" in caplog.text

    def test_deeply_nested_body_fails_without_update(self, caplog):
        document, sampler = _sampler()
        body = "[" * 50000 + "]" * 50000
        with caplog.at_level(logging.ERROR, logger="openapi_sampler.sampler"):
            assert _observe(sampler, body) == SampleOutcome.FAILED
        assert document.operation("/pets", "get")["responses"] == {}
        assert "RecursionError" in caplog.text

    def test_non_finite_numbers_export_as_valid_json(self):
        document, sampler = _sampler()
        assert _observe(sampler, '{"a": NaN, "b": Infinity}') == SampleOutcome.CREATED
        json.dumps(document.spec, allow_nan=False)
        assert document.schemas[SCHEMA_NAME]["properties"]["a"] == {"type": "number"}


class TestMerging:
    def test_identical_shape_increments_count(self):
        document, sampler = _sampler()
        _observe(sampler, {"a": 1, "b": 2})
        assert _observe(sampler, {"a": 5, "b": 6}) == SampleOutcome.UNCHANGED
        assert list(document.schemas) == [SCHEMA_NAME]
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 2

    def test_subsumed_by_stored_schema(self):
        document, sampler = _sampler(SamplingOptions(sampling_mode="combine"))
        _observe(sampler, {"a": 1, "b": 2})
        _observe(sampler, {"a": 1})
        before = dict(document.schemas[SCHEMA_NAME])
        assert _observe(sampler, {"a": 1}) == SampleOutcome.SUBSUMED
        assert document.schemas[SCHEMA_NAME] == before
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 3

    def test_individual_mode_builds_union(self):
        document, sampler = _sampler(SamplingOptions(sampling_mode="individual"))
        first = {"a": "x", "b": "y"}
        second = {"a": "z"}
        _observe(sampler, first)
        assert _observe(sampler, second) == SampleOutcome.MERGED

        schema = document.schemas[SCHEMA_NAME]
        assert len(schema["anyOf"]) == 2
        node = compile_schema(schema)
        assert check(node, first) is True
        assert check(node, second) is True

    def test_individual_mode_appends_members(self):
        document, sampler = _sampler()
        _observe(sampler, {"a": 1})
        _observe(sampler, {"b": 1})
        _observe(sampler, {"c": 1})
        assert len(document.schemas[SCHEMA_NAME]["anyOf"]) == 3
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 3

    def test_combine_mode_shrinks_required(self):
        document, sampler = _sampler(SamplingOptions(sampling_mode="combine"))
        _observe(sampler, {"a": 1, "b": 2})
        assert _observe(sampler, {"a": 3, "c": "x"}) == SampleOutcome.MERGED
        schema = document.schemas[SCHEMA_NAME]
        assert schema["required"] == ["a"]
        assert set(schema["properties"]) == {"a", "b", "c"}

    def test_combine_mode_collapses_repeated_conflicts(self):
        document, sampler = _sampler(SamplingOptions(sampling_mode="combine"))
        _observe(sampler, {"a": 1})
        _observe(sampler, {"a": "x"})
        _observe(sampler, {"a": True})
        schema = document.schemas[SCHEMA_NAME]
        assert [member["type"] for member in schema["properties"]["a"]["allOf"]] == ["number", "string", "boolean"]

    def test_empty_array_then_items(self):
        document, sampler = _sampler()
        _observe(sampler, {"tags": []})
        assert _observe(sampler, {"tags": []}) == SampleOutcome.UNCHANGED
        assert _observe(sampler, {"tags": ["a"]}) == SampleOutcome.SUBSUMED

    def test_per_route_options_override_instance(self):
        document, sampler = _sampler(SamplingOptions(sampling_mode="individual"))
        sampler.route_options[("/pets", "get")] = SamplingOptions(sampling_mode="combine")
        _observe(sampler, {"a": 1, "b": 2})
        _observe(sampler, {"a": 1})
        assert "anyOf" not in document.schemas[SCHEMA_NAME]


class TestConflicts:
    def test_inline_schema_left_untouched(self, caplog):
        inline = {"type": "object", "properties": {"id": {"type": "integer"}}}
        spec = {
            "paths": {
                "/pets": {
                    "get": {
                        "responses": {
                            "200": {"description": "ok", "content": {"application/json": {"schema": inline}}}
                        }
                    }
                }
            }
        }
        document, sampler = _sampler(spec=spec)
        with caplog.at_level(logging.WARNING, logger="openapi_sampler.sampler"):
            assert _observe(sampler, {"id": "x"}) == SampleOutcome.CONFLICT
        assert _schema_ref(document) == inline
        assert document.schemas == {}
        assert "Non reference schema" in caplog.text

    def test_referenced_response_object(self):
        spec = {"paths": {"/pets": {"get": {"responses": {"200": {"$ref": "#/components/responses/Pets"}}}}}}
        document, sampler = _sampler(spec=spec)
        assert _observe(sampler, {"id": 1}) == SampleOutcome.CONFLICT
        assert document.operation("/pets", "get")["responses"]["200"] == {"$ref": "#/components/responses/Pets"}

    def test_dangling_reference_fails(self):
        spec = {
            "paths": {
                "/pets": {
                    "get": {
                        "responses": {
                            "200": {
                                "description": "ok",
                                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Gone"}}},
                            }
                        }
                    }
                }
            }
        }
        _, sampler = _sampler(spec=spec)
        assert _observe(sampler, {"id": 1}) == SampleOutcome.FAILED

    def test_seeded_reference_is_merged(self):
        spec = {
            "components": {"schemas": {"Pet": {"type": "object", "properties": {"id": {"type": "integer"}}}}},
            "paths": {
                "/pets": {
                    "get": {
                        "responses": {
                            "200": {
                                "description": "ok",
                                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                            }
                        }
                    }
                }
            },
        }
        document, sampler = _sampler(spec=spec)
        assert _observe(sampler, {"id": 1, "name": "x"}) == SampleOutcome.SUBSUMED
        assert _observe(sampler, {"id": "x"}) == SampleOutcome.MERGED
        assert len(document.schemas["Pet"]["anyOf"]) == 2
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 2

    def test_malformed_seeded_schema_fails_without_update(self):
        pet = {"type": "object", "properties": {"a": {"type": "string"}}, "required": 5}
        document, sampler = _sampler(spec=_seeded_spec(pet))
        assert _observe(sampler, {"a": "x"}) == SampleOutcome.FAILED
        assert document.schemas["Pet"] == pet
        assert SAMPLE_COUNT_KEY not in _schema_ref(document)

    def test_free_form_property_survives_repeated_merges(self):
        pet = {
            "type": "object",
            "properties": {"id": {"type": "number"}, "meta": {"type": "object", "description": "free"}},
            "required": ["id"],
        }
        document, sampler = _sampler(options=SamplingOptions(sampling_mode="individual"), spec=_seeded_spec(pet))
        outcomes = [_observe(sampler, body) for body in ({"id": "x", "meta": {}}, {"id": 1, "meta": {}}, {"id": 2})]

        assert outcomes == [SampleOutcome.MERGED, SampleOutcome.SUBSUMED, SampleOutcome.SUBSUMED]
        assert document.schemas["Pet"]["anyOf"][0]["properties"]["meta"] == {"description": "free"}
        assert _observe(sampler, {"id": True}) == SampleOutcome.MERGED
        assert len(document.schemas["Pet"]["anyOf"]) == 3


class TestSamplingGate:
    def test_interval_one_never_skips(self):
        document, sampler = _sampler(SamplingOptions(sampling_interval=1))
        for i in range(5):
            _observe(sampler, {"a": i})
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 5

    def test_first_observation_ignores_gate(self):
        document, sampler = _sampler(SamplingOptions(sampling_interval=0), rng=lambda: 0.99)
        assert _observe(sampler, {"a": 1}) == SampleOutcome.CREATED
        assert _observe(sampler, {"a": 2}) == SampleOutcome.GATED
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 1

    @pytest.mark.parametrize("draw, expected", [(0.2, SampleOutcome.UNCHANGED), (0.8, SampleOutcome.GATED)])
    def test_interval_compared_with_draw(self, draw, expected):
        _, sampler = _sampler(SamplingOptions(sampling_interval=0.5), rng=lambda: draw)
        _observe(sampler, {"a": 1})
        assert _observe(sampler, {"a": 2}) == expected

    def test_max_count(self):
        document, sampler = _sampler(SamplingOptions(sampling_max_count=2), rng=lambda: 0.0)
        outcomes = [_observe(sampler, {"a": i}) for i in range(4)]
        assert outcomes == [
            SampleOutcome.CREATED,
            SampleOutcome.UNCHANGED,
            SampleOutcome.GATED,
            SampleOutcome.GATED,
        ]
        assert _schema_ref(document)[SAMPLE_COUNT_KEY] == 2

    def test_effective_options(self):
        _, sampler = _sampler(SamplingOptions(sampling_interval=0.3))
        sampler.route_options[("/pets", "get")] = SamplingOptions(sampling_max_count=7)
        options = sampler.effective_options("/pets", "get")
        assert options.sampling_mode == "individual"
        assert options.sampling_interval == 0.3
        assert options.sampling_max_count == 7
