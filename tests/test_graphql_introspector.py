"""Tests for GraphQL introspection, purpose inference and query synthesis."""

import json

import httpx
import pytest

from catalog_autoconfig.analysis.graphql_introspector import (
    INTROSPECTION_QUERY,
    LIGHT_INTROSPECTION_QUERY,
    GraphQLIntrospector,
    build_selections,
    candidate_endpoints,
    generate_queries,
    infer_purpose,
    parse_introspection_result,
    render_type_ref,
    unwrap_type_ref,
)
from catalog_autoconfig.types import (
    GraphQLArgument,
    GraphQLField,
    GraphQLType,
    GraphQLTypeKind,
    ProviderType,
    QueryPurpose,
    SiteProfile,
)

ENDPOINT = "https://anime.example/api/graphql"


@pytest.fixture
def schema(introspection_payload):
    return parse_introspection_result(ENDPOINT, introspection_payload)


class TestTypeRefs:
    def test_render(self):
        ref = {"kind": "NON_NULL", "ofType": {"kind": "LIST", "ofType": {"kind": "SCALAR", "name": "ID"}}}
        assert render_type_ref(ref) == "[ID]!"
        assert render_type_ref(None) == "Unknown"

    def test_unwrap(self):
        ref = {"kind": "LIST", "ofType": {"kind": "NON_NULL", "ofType": {"kind": "OBJECT", "name": "Show"}}}
        assert unwrap_type_ref(ref) == ("Show", True)
        assert unwrap_type_ref({"kind": "OBJECT", "name": "Show"}) == ("Show", False)


class TestParseIntrospectionResult:
    def test_missing_schema_returns_none(self):
        assert parse_introspection_result(ENDPOINT, {"data": {}}) is None
        assert parse_introspection_result(ENDPOINT, {"errors": [{"message": "disabled"}]}) is None
        assert parse_introspection_result(ENDPOINT, ["not", "a", "dict"]) is None

    def test_types_skip_introspection_types(self, schema):
        names = [t.name for t in schema.types]
        assert "__Schema" not in names
        assert "Show" in names
        assert schema.get_type("ID").kind == GraphQLTypeKind.SCALAR

    def test_queries_and_purposes(self, schema):
        purposes = {q.name: (q.inferred_purpose, q.purpose_confidence) for q in schema.queries}

        assert purposes["searchShows"] == (QueryPurpose.SEARCH, 0.9)
        assert purposes["show"] == (QueryPurpose.GET_BY_ID, 0.6)
        assert purposes["episodes"] == (QueryPurpose.GET_EPISODES, 0.85)
        assert purposes["sources"] == (QueryPurpose.GET_STREAMS, 0.7)
        assert purposes["viewer"] == (QueryPurpose.UNKNOWN, 0.0)

    def test_arguments(self, schema):
        show = next(q for q in schema.queries if q.name == "show")

        assert show.arguments == [GraphQLArgument(name="id", type_name="ID!", is_required=True)]
        assert show.returns_list is False
        assert next(q for q in schema.queries if q.name == "searchShows").returns_list is True

    def test_mutations(self, schema):
        assert [m.name for m in schema.mutations] == ["rateShow"]
        assert schema.supports_introspection
        assert schema.endpoint == ENDPOINT

    def test_no_mutation_type(self, introspection_payload):
        introspection_payload["data"]["__schema"]["mutationType"] = None
        assert parse_introspection_result(ENDPOINT, introspection_payload).mutations == []

    def test_types_not_a_list_returns_none(self):
        assert parse_introspection_result(ENDPOINT, {"data": {"__schema": {"types": 5}}}) is None
        assert parse_introspection_result(ENDPOINT, {"data": {"__schema": {"queryType": {"name": "Query"}}}}) is None

    def test_non_string_kind_defaults_to_object(self):
        payload = {"data": {"__schema": {"types": [{"name": "Show", "kind": 5, "fields": 3}]}}}

        schema = parse_introspection_result(ENDPOINT, payload)

        assert schema.get_type("Show").kind == GraphQLTypeKind.OBJECT
        assert schema.get_type("Show").fields == []

    def test_malformed_args_are_dropped(self, introspection_payload):
        query_root = introspection_payload["data"]["__schema"]["types"][0]
        query_root["fields"][1]["args"] = 7
        query_root["fields"][0]["args"] = [5, {"name": 3}, {"name": "search", "type": {"kind": "SCALAR", "name": "String"}}]

        schema = parse_introspection_result(ENDPOINT, introspection_payload)

        show = next(q for q in schema.queries if q.name == "show")
        search = next(q for q in schema.queries if q.name == "searchShows")
        assert show.arguments == []
        assert [a.name for a in search.arguments] == ["search"]


class TestInferPurpose:
    def test_name_keyword_order(self):
        field = GraphQLField(name="searchEpisodes", type_name="Episode")
        assert infer_purpose(field, {}) == (QueryPurpose.SEARCH, 0.9)

    def test_search_argument(self):
        field = GraphQLField(
            name="shows",
            type_name="Show",
            is_list=True,
            arguments=[GraphQLArgument(name="query", type_name="String")],
        )
        assert infer_purpose(field, {}) == (QueryPurpose.SEARCH, 0.5)

    def test_get_by_id_requires_object_return(self):
        field = GraphQLField(
            name="node", type_name="Show", arguments=[GraphQLArgument(name="_id", type_name="String!", is_required=True)]
        )
        types = {"Show": GraphQLType(name="Show", kind=GraphQLTypeKind.OBJECT)}

        assert infer_purpose(field, types) == (QueryPurpose.GET_BY_ID, 0.6)
        assert infer_purpose(field, {})[0] == QueryPurpose.UNKNOWN

    def test_pictures_are_pages(self):
        assert infer_purpose(GraphQLField(name="chapterPictures", type_name="X"), {})[0] == QueryPurpose.GET_CHAPTERS
        assert infer_purpose(GraphQLField(name="pictures", type_name="X"), {})[0] == QueryPurpose.GET_PAGES


class TestBuildSelections:
    def test_scalar_fields(self, schema):
        assert build_selections(schema, "Show") == ["_id", "name", "thumbnail", "description"]

    def test_unknown_type(self, schema):
        assert build_selections(schema, "Missing") == []

    def test_limit(self, schema):
        assert build_selections(schema, "Show", limit=2) == ["_id", "name"]


class TestGenerateQueries:
    def test_anime_queries_sorted_by_confidence(self, schema):
        queries = generate_queries(schema, ProviderType.ANIME)

        assert [q.field_name for q in queries] == ["searchShows", "episodes", "sources", "show"]
        assert [q.confidence for q in queries] == sorted((q.confidence for q in queries), reverse=True)

    def test_manga_excludes_anime_purposes(self, schema):
        purposes = {q.purpose for q in generate_queries(schema, ProviderType.MANGA)}
        assert purposes == {QueryPurpose.SEARCH, QueryPurpose.GET_BY_ID}

    def test_document_shape(self, schema):
        search = generate_queries(schema, ProviderType.ANIME)[0]

        assert search.document.startswith("query SearchSearchShows($search: String) {")
        assert "searchShows(search: $search) {" in search.document
        assert "    thumbnail\n" in search.document
        assert search.variables == {"search": None}

    def test_every_argument_is_declared(self, schema):
        for query in generate_queries(schema, ProviderType.ANIME):
            for name in query.variables:
                assert f"${name}:" in query.document
                assert f"{name}: ${name}" in query.document


class TestCandidateEndpoints:
    def test_detected_endpoints(self, anime_profile):
        assert candidate_endpoints(anime_profile) == ["https://anime.example/api/graphql"]

    def test_fallback_when_flagged(self):
        profile = SiteProfile(base_url="https://x.io", has_graphql=True, detected_api_endpoints=["/api/search"])
        assert candidate_endpoints(profile) == ["https://x.io/graphql"]

    def test_none_without_graphql(self):
        assert candidate_endpoints(SiteProfile(base_url="https://x.io")) == []


class TestGraphQLIntrospector:
    @pytest.mark.asyncio
    async def test_introspect_success(self, anime_profile, introspection_payload, client_for):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=introspection_payload)

        async with client_for(handler) as client:
            schema = await GraphQLIntrospector(client).introspect("/api/graphql", anime_profile)

        assert schema is not None
        assert schema.endpoint == ENDPOINT
        body = json.loads(seen[0].content)
        assert body == {"query": INTROSPECTION_QUERY, "variables": {}}
        assert seen[0].headers["Referer"] == "https://anime.example"
        assert seen[0].method == "POST"

    @pytest.mark.asyncio
    async def test_falls_back_to_light_query(self, anime_profile, client_for):
        queries = []
        light = {
            "data": {
                "__schema": {
                    "queryType": {"name": "Query"},
                    "types": [{"name": "Query", "kind": "OBJECT"}, {"name": "Show", "kind": "OBJECT"}],
                }
            }
        }

        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["query"]
            queries.append(query)
            if query == INTROSPECTION_QUERY:
                return httpx.Response(400, json={"errors": [{"message": "too complex"}]})
            return httpx.Response(200, json=light)

        async with client_for(handler) as client:
            schema = await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile)

        assert queries == [INTROSPECTION_QUERY, LIGHT_INTROSPECTION_QUERY]
        assert {t.name for t in schema.types} == {"Query", "Show"}
        assert schema.queries == []

    @pytest.mark.asyncio
    async def test_disabled_introspection_returns_none(self, anime_profile, client_for):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"errors": [{"message": "introspection disabled"}]})

        async with client_for(handler) as client:
            assert await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile) is None

    @pytest.mark.asyncio
    async def test_network_error_returns_none(self, anime_profile, client_for):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with client_for(handler) as client:
            assert await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile) is None

    @pytest.mark.asyncio
    async def test_non_json_returns_none(self, anime_profile, client_for):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>blocked</html>")

        async with client_for(handler) as client:
            assert await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"data": {"__schema": {"types": 5}}},
            {"data": {"__schema": 5}},
        ],
    )
    async def test_malformed_schema_returns_none(self, anime_profile, client_for, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        async with client_for(handler) as client:
            schema = await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile)

        assert schema is None

    @pytest.mark.asyncio
    async def test_malformed_entries_are_tolerated(self, anime_profile, client_for):
        body = {
            "data": {
                "__schema": {
                    "queryType": {"name": "Query"},
                    "types": [
                        {"kind": "OBJECT", "name": "Query", "fields": [{"name": "show", "type": 3, "args": 7}]},
                        {"kind": 5, "name": "Show", "fields": None},
                    ],
                }
            }
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        async with client_for(handler) as client:
            schema = await GraphQLIntrospector(client).introspect(ENDPOINT, anime_profile)

        assert schema.get_type("Show").kind == GraphQLTypeKind.OBJECT
        assert [(q.name, q.return_type, q.arguments) for q in schema.queries] == [("show", "Unknown", [])]


class TestShowsSchemaScenario:
    @pytest.mark.asyncio
    async def test_search_and_get_by_id_from_introspection(self, client_for):
        def ref(kind, name=None, of_type=None):
            return {"kind": kind, "name": name, "ofType": of_type}

        body = {
            "data": {
                "__schema": {
                    "queryType": {"name": "Query"},
                    "types": [
                        {
                            "kind": "OBJECT",
                            "name": "Query",
                            "fields": [
                                {
                                    "name": "shows",
                                    "type": ref("LIST", of_type=ref("OBJECT", "Show")),
                                    "args": [{"name": "search", "type": ref("SCALAR", "String")}],
                                },
                                {
                                    "name": "show",
                                    "type": ref("OBJECT", "Show"),
                                    "args": [{"name": "_id", "type": ref("NON_NULL", of_type=ref("SCALAR", "String"))}],
                                },
                            ],
                        },
                        {
                            "kind": "OBJECT",
                            "name": "Show",
                            "fields": [
                                {"name": "_id", "type": ref("SCALAR", "String"), "args": []},
                                {"name": "name", "type": ref("SCALAR", "String"), "args": []},
                            ],
                        },
                        {"kind": "SCALAR", "name": "String"},
                    ],
                }
            }
        }
        profile = SiteProfile(base_url="https://anime.example", has_graphql=True, detected_api_endpoints=["/graphql"])

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://anime.example/graphql"
            return httpx.Response(200, json=body)

        async with client_for(handler) as client:
            introspector = GraphQLIntrospector(client)
            schema = await introspector.introspect(candidate_endpoints(profile)[0], profile)
            queries = introspector.generate_queries(schema, ProviderType.ANIME)

        by_purpose = {q.purpose: q for q in queries}
        assert by_purpose[QueryPurpose.SEARCH].field_name == "shows"
        assert by_purpose[QueryPurpose.GET_BY_ID].field_name == "show"
        assert all(q.confidence > 0 for q in by_purpose.values())
        assert "show(_id: $_id) {" in by_purpose[QueryPurpose.GET_BY_ID].document
