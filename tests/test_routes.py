import pytest

from openapi_sampler.config import SamplingOptions
from openapi_sampler.document.model import ApiDocument
from openapi_sampler.document.references import ReferenceStore
from openapi_sampler.document.routes import RouteRegistrar, path_parameter_names
from openapi_sampler.errors import UnsupportedSchemaError
from openapi_sampler.models import DeclaredSchemas, RouteDefinition
from openapi_sampler.typesystem.compiler import compile_schema

QUERY_SCHEMA = {
    "type": "object",
    "properties": {"limit": {"type": "integer", "examples": [10]}, "lang": {"type": "string", "examples": "de"}},
    "required": ["limit"],
}


def _registrar(spec=None, **kwargs):
    document = ApiDocument(spec)
    return document, RouteRegistrar(document, ReferenceStore(document), **kwargs)


class TestPathParameters:
    def test_colon_and_brace_styles(self):
        assert path_parameter_names("/users/:id/posts/{postId}") == ["id", "postId"]
        assert path_parameter_names("/users") == []


class TestRegisterRoute:
    def test_minimal_route(self):
        document, registrar = _registrar()
        operation = registrar.register_route("/pets", "GET")
        assert operation == {"operationId": "getPets", "parameters": [], "responses": {}}
        assert document.operation("/pets", "get") is operation

    def test_metadata_and_default_tag(self):
        _, registrar = _registrar(default_tag="pets")
        operation = registrar.register_route("/pets", "get", RouteDefinition(summary="List", deprecated=False))
        assert operation["summary"] == "List"
        assert operation["deprecated"] is False
        assert operation["tags"] == ["pets"]

    def test_explicit_tags_win(self):
        _, registrar = _registrar(default_tag="pets")
        operation = registrar.register_route("/pets", "get", RouteDefinition(tags=["admin"]))
        assert operation["tags"] == ["admin"]

    def test_query_parameters(self):
        document, registrar = _registrar()
        operation = registrar.register_route("/pets", "get", declared=DeclaredSchemas(query=QUERY_SCHEMA))
        assert operation["parameters"] == [
            {"$ref": "#/components/parameters/limit_query"},
            {"$ref": "#/components/parameters/lang_query"},
        ]
        limit = document.parameters["limit_query"]
        assert limit["required"] is True
        assert limit["examples"] == [10]
        lang = document.parameters["lang_query"]
        assert lang["required"] is False
        assert lang["example"] == "de"

    def test_parameter_location_order(self):
        document, registrar = _registrar()
        object_schema = {"type": "object", "properties": {"a": {"type": "string"}}}
        declared = DeclaredSchemas(header=object_schema, cookie=object_schema, query=object_schema, param=object_schema)
        operation = registrar.register_route("/x/:a", "get", declared=declared)
        assert [p["$ref"].rsplit("/", 1)[1] for p in operation["parameters"]] == ["a_query", "a_cookie", "a_header", "a_path"]

    def test_implicit_path_parameters(self):
        _, registrar = _registrar()
        operation = registrar.register_route("/pets/:petId", "get")
        assert operation["parameters"] == [{"in": "path", "name": "petId", "schema": {"type": "string"}, "required": True}]

    def test_parameter_schema_must_be_object(self):
        _, registrar = _registrar()
        with pytest.raises(UnsupportedSchemaError):
            registrar.register_route("/pets", "get", declared=DeclaredSchemas(query={"type": "string"}))

    def test_request_body(self):
        document, registrar = _registrar()
        body = {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]}
        operation = registrar.register_route("/pets/new", "post", declared=DeclaredSchemas(json_body=body))
        assert operation["requestBody"] == {
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pets_newRequest_post"}}}
        }
        assert document.schemas["Pets_newRequest_post"] == body

    def test_get_body_ignored(self):
        document, registrar = _registrar()
        operation = registrar.register_route("/pets", "get", declared=DeclaredSchemas(json_body={"type": "string"}))
        assert "requestBody" not in operation
        assert document.schemas == {}

    def test_compiled_node_reused_across_routes(self):
        document, registrar = _registrar()
        node = compile_schema({"type": "object", "properties": {"q": {"type": "string"}}})
        first = registrar.register_route("/a", "get", declared=DeclaredSchemas(query=node))
        second = registrar.register_route("/b", "get", declared=DeclaredSchemas(query=node))
        assert first["parameters"] == second["parameters"]
        assert list(document.parameters) == ["q_query"]

    def test_undocumented_method(self):
        document, registrar = _registrar()
        assert registrar.register_route("/pets", "connect") is None
        assert document.paths == {}


class TestExclusions:
    def test_excluded_path_method_and_pattern(self):
        document, registrar = _registrar(
            exclude_paths=["/health"], exclude_path_patterns=["^/internal/"], exclude_methods=["OPTIONS"]
        )
        assert registrar.register_route("/health", "get") is None
        assert registrar.register_route("/internal/metrics", "get") is None
        assert registrar.register_route("/pets", "options") is None
        assert registrar.register_route("/pets", "get") is not None
        assert list(document.paths) == ["/pets"]


class TestReRegistration:
    def test_first_registration_wins_for_parameters(self):
        document, registrar = _registrar()
        registrar.register_route("/pets", "get", declared=DeclaredSchemas(query=QUERY_SCHEMA))
        operation = registrar.register_route(
            "/pets",
            "get",
            RouteDefinition(summary="Again"),
            DeclaredSchemas(query={"type": "object", "properties": {"other": {"type": "string"}}}),
        )
        assert len(operation["parameters"]) == 2
        assert "other_query" not in document.parameters
        assert operation["summary"] == "Again"

    def test_seed_metadata_and_responses_kept(self):
        responses = {"200": {"description": "ok"}}
        seed = {"paths": {"/pets": {"get": {"summary": "Seeded", "operationId": "listPets", "responses": responses}}}}
        _, registrar = _registrar(seed)
        operation = registrar.register_route("/pets", "get", RouteDefinition(description="More"))
        assert operation["summary"] == "Seeded"
        assert operation["description"] == "More"
        assert operation["operationId"] == "listPets"
        assert operation["responses"] == responses

    def test_bare_re_registration_returns_existing(self):
        _, registrar = _registrar()
        first = registrar.register_route("/pets", "get", RouteDefinition(summary="List"))
        assert registrar.register_route("/pets", "get") is first

    def test_sampling_options_recorded(self):
        _, registrar = _registrar()
        options = SamplingOptions(sampling_mode="combine")
        registrar.register_route("/pets", "POST", sampling=options)
        assert registrar.route_sampling[("/pets", "post")] is options
