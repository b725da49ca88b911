"""Shared fixtures: site profiles, an introspection payload and provider configs."""

from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from catalog_autoconfig.types import (
    ContentConfig,
    DynamicProviderConfig,
    EndpointConfig,
    FieldMapping,
    HostConfig,
    MediaConfig,
    PageConfig,
    ProviderType,
    RequestMethod,
    SearchConfig,
    SiteProfile,
    StreamConfig,
)


def scalar(name: str) -> Dict[str, Any]:
    return {"kind": "SCALAR", "name": name, "ofType": None}


def obj(name: str) -> Dict[str, Any]:
    return {"kind": "OBJECT", "name": name, "ofType": None}


def non_null(ref: Dict[str, Any]) -> Dict[str, Any]:
    return {"kind": "NON_NULL", "name": None, "ofType": ref}


def list_of(ref: Dict[str, Any]) -> Dict[str, Any]:
    return {"kind": "LIST", "name": None, "ofType": ref}


def field(name: str, type_ref: Dict[str, Any], args: Optional[list] = None) -> Dict[str, Any]:
    return {"name": name, "type": type_ref, "args": args or []}


def arg(name: str, type_ref: Dict[str, Any], default: Optional[str] = None) -> Dict[str, Any]:
    return {"name": name, "type": type_ref, "defaultValue": default}


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient backed by an in-process handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def anime_profile() -> SiteProfile:
    return SiteProfile(
        base_url="https://anime.example",
        site_type="SPA",
        category="anime",
        requires_javascript=True,
        has_cloudflare_protection=True,
        has_graphql=True,
        js_framework="React",
        detected_api_endpoints=["/api/graphql", "/api/search?q=naruto", "/api/episodes/123"],
        detected_cdn_hosts=["cdn.anime.example"],
        site_title="AnimeSite - Watch anime online",
    )


@pytest.fixture
def rest_manga_profile() -> SiteProfile:
    return SiteProfile(
        base_url="https://www.mangaworld.io",
        site_type="static",
        category="manga",
        server_software="nginx",
        detected_api_endpoints=["/api/search?keyword=x", "/api/manga/42/chapters", "/api/pages/7"],
    )


@pytest.fixture
def introspection_payload() -> Dict[str, Any]:
    """Small anime schema: search, get-by-id, episodes and sources."""
    return {
        "data": {
            "__schema": {
                "queryType": {"name": "Query"},
                "mutationType": {"name": "Mutation"},
                "types": [
                    {
                        "kind": "OBJECT",
                        "name": "Query",
                        "fields": [
                            field("searchShows", list_of(obj("Show")), [arg("search", scalar("String"))]),
                            field("show", obj("Show"), [arg("id", non_null(scalar("ID")))]),
                            field("episodes", list_of(obj("Episode")), [arg("showId", non_null(scalar("ID")))]),
                            field("sources", list_of(obj("Source")), [arg("episodeId", non_null(scalar("ID")))]),
                            field("viewer", obj("User")),
                        ],
                    },
                    {
                        "kind": "OBJECT",
                        "name": "Mutation",
                        "fields": [field("rateShow", scalar("Boolean"), [arg("id", non_null(scalar("ID")))])],
                    },
                    {
                        "kind": "OBJECT",
                        "name": "Show",
                        "fields": [
                            field("_id", non_null(scalar("ID"))),
                            field("name", scalar("String")),
                            field("thumbnail", scalar("String")),
                            field("description", scalar("String")),
                        ],
                    },
                    {
                        "kind": "OBJECT",
                        "name": "Episode",
                        "fields": [field("_id", scalar("ID")), field("number", scalar("Float"))],
                    },
                    {
                        "kind": "OBJECT",
                        "name": "Source",
                        "fields": [field("sourceUrl", scalar("String")), field("quality", scalar("String"))],
                    },
                    {"kind": "OBJECT", "name": "User", "fields": [field("login", scalar("String"))]},
                    {"kind": "SCALAR", "name": "ID", "fields": None},
                    {"kind": "SCALAR", "name": "String", "fields": None},
                    {"kind": "SCALAR", "name": "Float", "fields": None},
                    {"kind": "SCALAR", "name": "Boolean", "fields": None},
                    {"kind": "OBJECT", "name": "__Schema", "fields": [field("types", list_of(obj("__Type")))]},
                ],
            }
        }
    }


@pytest.fixture
def graphql_config() -> DynamicProviderConfig:
    """Anime provider configured against https://api.anime.example/graphql."""
    return DynamicProviderConfig(
        name="AnimeSite",
        slug="animesite",
        type=ProviderType.ANIME,
        hosts=HostConfig(
            base_host="anime.example",
            api_base="https://api.anime.example",
            referer="https://anime.example/",
        ),
        search=SearchConfig(
            endpoint="/graphql",
            query_template="query Search($search: String) { shows(search: $search) { edges { _id name } } }",
            variables={"search": "${query}", "limit": "${limit}"},
            results_path="$.data.shows.edges",
            result_mapping=[
                FieldMapping(source_path="$._id", target_field="Id"),
                FieldMapping(source_path="$.name", target_field="Title"),
            ],
        ),
        content=ContentConfig(
            episodes=EndpointConfig(
                endpoint="/graphql",
                query_template="query Episodes($showId: String!) { show(_id: $showId) { episodes { n } } }",
                variables={"showId": "${showId}"},
                results_path="$.data.show.episodes",
                result_mapping=[FieldMapping(source_path="$.n", target_field="Number")],
            )
        ),
        media=MediaConfig(
            streams=StreamConfig(
                endpoint="/graphql",
                query_template=(
                    "query Sources($showId: String!, $ep: String!) "
                    "{ sources(showId: $showId, episode: $ep) { url quality } }"
                ),
                variables={"showId": "${showId}", "ep": "${episode}"},
                results_path="$.data.sources",
                result_mapping=[
                    FieldMapping(source_path="$.url", target_field="Url"),
                    FieldMapping(source_path="$.quality", target_field="Quality"),
                ],
            )
        ),
    )


@pytest.fixture
def rest_manga_config() -> DynamicProviderConfig:
    return DynamicProviderConfig(
        name="MangaWorld",
        slug="mangaworld",
        type=ProviderType.MANGA,
        hosts=HostConfig(base_host="mangaworld.io", referer="https://mangaworld.io/"),
        search=SearchConfig(
            method=RequestMethod.REST,
            endpoint="/api/search",
            query_template="?keyword=${query}",
            results_path="$.results",
            result_mapping=[
                FieldMapping(source_path="$.id", target_field="Id"),
                FieldMapping(source_path="$.title", target_field="Title"),
            ],
        ),
        content=ContentConfig(
            chapters=EndpointConfig(
                method=RequestMethod.REST,
                endpoint="/api/manga",
                query_template="/${id}/chapters",
                results_path="$.chapters",
                result_mapping=[
                    FieldMapping(source_path="$.id", target_field="Id"),
                    FieldMapping(source_path="$.number", target_field="Number"),
                ],
            )
        ),
        media=MediaConfig(
            pages=PageConfig(
                method=RequestMethod.REST,
                endpoint="/api/pages",
                query_template="/${chapterId}",
                results_path="$.pages",
                result_mapping=[FieldMapping(source_path="$.file", target_field="Url")],
                image_base_url="https://img.mangaworld.io",
            )
        ),
    )


@pytest.fixture
def client_for() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory fixture: client_for(handler) -> AsyncClient over MockTransport."""
    return make_client
