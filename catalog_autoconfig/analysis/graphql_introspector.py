"""GraphQL schema introspection and query synthesis.

Introspection being disabled is an expected outcome, not an error: every
"no schema" case (non-2xx, non-JSON, GraphQL errors, missing __schema,
transport failure) returns None. Only cancellation propagates.

Example:
    >>> async with httpx.AsyncClient() as client:
    ...     introspector = GraphQLIntrospector(client)
    ...     schema = await introspector.introspect("/graphql", profile)
    ...     if schema is not None:
    ...         queries = generate_queries(schema, ProviderType.ANIME)
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from catalog_autoconfig.generation.query_renderer import QueryRenderer
from catalog_autoconfig.types.enums import GraphQLTypeKind, ProviderType, QueryPurpose
from catalog_autoconfig.types.graphql import (
    GeneratedQuery,
    GraphQLArgument,
    GraphQLField,
    GraphQLMutation,
    GraphQLQuery,
    GraphQLSchemaInfo,
    GraphQLType,
)
from catalog_autoconfig.types.provider_config import DEFAULT_USER_AGENT
from catalog_autoconfig.types.site import SiteProfile
from catalog_autoconfig.utils.profiling import profile_time

logger = logging.getLogger(__name__)


INTROSPECTION_QUERY = """
query IntrospectionQuery {
  __schema {
    queryType { name }
    mutationType { name }
    types {
      kind
      name
      fields(includeDeprecated: false) {
        name
        args {
          name
          type { ...TypeRef }
          defaultValue
        }
        type { ...TypeRef }
      }
    }
  }
}

fragment TypeRef on __Type {
  kind
  name
  ofType {
    kind
    name
    ofType {
      kind
      name
      ofType {
        kind
        name
        ofType { kind name }
      }
    }
  }
}
"""

LIGHT_INTROSPECTION_QUERY = "query { __schema { queryType { name } types { name kind } } }"

BUILTIN_SCALARS = {"String", "Int", "Float", "Boolean", "ID"}
MAX_SELECTIONS = 8

# Name keyword rules, checked in order; first match wins
PURPOSE_NAME_RULES: Tuple[Tuple[Tuple[str, ...], QueryPurpose, float], ...] = (
    (("search",), QueryPurpose.SEARCH, 0.9),
    (("episode",), QueryPurpose.GET_EPISODES, 0.85),
    (("chapter",), QueryPurpose.GET_CHAPTERS, 0.85),
    (("source", "stream"), QueryPurpose.GET_STREAMS, 0.7),
    (("page", "picture"), QueryPurpose.GET_PAGES, 0.7),
)

GET_BY_ID_CONFIDENCE = 0.6
SEARCH_ARGUMENT_CONFIDENCE = 0.5
SEARCH_ARGUMENTS = {"search", "query", "keyword", "q"}

RELEVANT_PURPOSES: Dict[ProviderType, Tuple[QueryPurpose, ...]] = {
    ProviderType.ANIME: (
        QueryPurpose.SEARCH,
        QueryPurpose.GET_BY_ID,
        QueryPurpose.GET_EPISODES,
        QueryPurpose.GET_STREAMS,
    ),
    ProviderType.MANGA: (
        QueryPurpose.SEARCH,
        QueryPurpose.GET_BY_ID,
        QueryPurpose.GET_CHAPTERS,
        QueryPurpose.GET_PAGES,
    ),
}

_GRAPHQL_PATH = re.compile(r"/(api/)?graphql|/gql\b", re.IGNORECASE)


def render_type_ref(ref: Any) -> str:
    """Render an introspection type reference as written in a document.

    Example:
        >>> render_type_ref({"kind": "NON_NULL", "ofType": {"kind": "SCALAR", "name": "ID"}})
        'ID!'
    """
    if not isinstance(ref, dict):
        return "Unknown"
    kind = ref.get("kind")
    if kind == "NON_NULL":
        return render_type_ref(ref.get("ofType")) + "!"
    if kind == "LIST":
        return "[" + render_type_ref(ref.get("ofType")) + "]"
    return ref.get("name") or "Unknown"


def unwrap_type_ref(ref: Any) -> Tuple[str, bool]:
    """Strip NON_NULL/LIST wrappers, returning (named type, is_list)."""
    is_list = False
    current = ref
    while isinstance(current, dict) and current.get("kind") in ("NON_NULL", "LIST"):
        if current.get("kind") == "LIST":
            is_list = True
        current = current.get("ofType")
    if not isinstance(current, dict):
        return "Unknown", is_list
    return current.get("name") or "Unknown", is_list


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _parse_argument(raw: Dict[str, Any]) -> GraphQLArgument:
    type_ref = raw.get("type")
    default = raw.get("defaultValue")
    return GraphQLArgument(
        name=raw["name"],
        type_name=render_type_ref(type_ref),
        is_required=isinstance(type_ref, dict) and type_ref.get("kind") == "NON_NULL",
        default_value=str(default) if default is not None else None,
    )


def _parse_field(raw: Dict[str, Any]) -> GraphQLField:
    type_name, is_list = unwrap_type_ref(raw.get("type"))
    arguments = [
        _parse_argument(arg)
        for arg in _as_list(raw.get("args"))
        if isinstance(arg, dict) and isinstance(arg.get("name"), str)
    ]
    return GraphQLField(name=raw["name"], type_name=type_name, is_list=is_list, arguments=arguments)


def _parse_type(raw: Dict[str, Any]) -> GraphQLType:
    fields = [
        _parse_field(field)
        for field in _as_list(raw.get("fields"))
        if isinstance(field, dict) and isinstance(field.get("name"), str)
    ]
    return GraphQLType(
        name=raw["name"],
        kind=GraphQLTypeKind.from_introspection(raw.get("kind")),
        fields=fields,
    )


def _root_name(schema: Dict[str, Any], key: str) -> Optional[str]:
    root = schema.get(key)
    if isinstance(root, dict) and isinstance(root.get("name"), str):
        return root["name"]
    return None


def parse_introspection_result(endpoint: str, payload: Any) -> Optional[GraphQLSchemaInfo]:
    """Build a GraphQLSchemaInfo from an introspection response body.

    Pure function. Returns None when the payload lacks data.__schema or its
    type list. Malformed entries inside the type list are skipped.

    Args:
        endpoint: Absolute endpoint URL recorded on the schema
        payload: Decoded JSON response body
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    schema = data.get("__schema")
    if not isinstance(schema, dict):
        return None
    if not isinstance(schema.get("types"), list):
        return None

    types = [
        _parse_type(raw)
        for raw in schema["types"]
        if isinstance(raw, dict)
        and isinstance(raw.get("name"), str)
        and not raw["name"].startswith("__")
    ]
    type_map = {t.name: t for t in types}

    query_type_name = _root_name(schema, "queryType") or "Query"
    queries = []
    query_root = type_map.get(query_type_name)
    if query_root is not None:
        for field in query_root.fields:
            purpose, confidence = infer_purpose(field, type_map)
            queries.append(
                GraphQLQuery(
                    name=field.name,
                    return_type=field.type_name,
                    returns_list=field.is_list,
                    arguments=field.arguments,
                    inferred_purpose=purpose,
                    purpose_confidence=confidence,
                )
            )

    mutations = []
    mutation_type_name = _root_name(schema, "mutationType")
    if mutation_type_name and mutation_type_name in type_map:
        mutations = [
            GraphQLMutation(name=f.name, return_type=f.type_name, arguments=f.arguments)
            for f in type_map[mutation_type_name].fields
        ]

    return GraphQLSchemaInfo(
        endpoint=endpoint,
        types=types,
        queries=queries,
        mutations=mutations,
        supports_introspection=True,
        query_type_name=query_type_name,
    )


def _is_id_like(argument: GraphQLArgument) -> bool:
    name = argument.name
    return (
        name.lower() in ("id", "_id")
        or (name.endswith("Id") and len(name) > 2)
        or name.endswith("_id")
        or argument.named_type == "ID"
    )


def infer_purpose(
    field: GraphQLField, types: Mapping[str, GraphQLType]
) -> Tuple[QueryPurpose, float]:
    """Classify a root query field. Conservative: Unknown when unsure.

    Order: name keywords (search, episode, chapter, source/stream,
    page/picture), then a single required ID-like argument returning a
    singular object (GetById), then a search-like argument (Search).

    Example:
        >>> infer_purpose(GraphQLField(name="searchAnime", type_name="Anime"), {})
        (<QueryPurpose.SEARCH: 'search'>, 0.9)
    """
    lowered = field.name.lower()
    for keywords, purpose, confidence in PURPOSE_NAME_RULES:
        if any(keyword in lowered for keyword in keywords):
            return purpose, confidence

    required = [arg for arg in field.arguments if arg.is_required]
    return_type = types.get(field.type_name)
    if (
        len(required) == 1
        and _is_id_like(required[0])
        and not field.is_list
        and return_type is not None
        and return_type.kind == GraphQLTypeKind.OBJECT
    ):
        return QueryPurpose.GET_BY_ID, GET_BY_ID_CONFIDENCE

    if any(arg.name.lower() in SEARCH_ARGUMENTS for arg in field.arguments):
        return QueryPurpose.SEARCH, SEARCH_ARGUMENT_CONFIDENCE

    return QueryPurpose.UNKNOWN, 0.0


def _is_leaf(schema: GraphQLSchemaInfo, type_name: str) -> bool:
    gql_type = schema.get_type(type_name)
    if gql_type is None:
        return type_name in BUILTIN_SCALARS
    return gql_type.kind in (GraphQLTypeKind.SCALAR, GraphQLTypeKind.ENUM)


def _selectable(field: GraphQLField) -> bool:
    return not any(arg.is_required for arg in field.arguments)


def build_selections(schema: GraphQLSchemaInfo, type_name: str, limit: int = MAX_SELECTIONS) -> List[str]:
    """Pick up to `limit` scalar fields of a type for a selection set.

    Falls back to one level of nested object selections when the type has
    no scalar fields (connection/edge wrappers). Empty when nothing fits.
    """
    gql_type = schema.get_type(type_name)
    if gql_type is None:
        return []

    scalars = [
        f.name for f in gql_type.fields if _selectable(f) and _is_leaf(schema, f.type_name)
    ]
    if scalars:
        return scalars[:limit]

    nested = []
    for field in gql_type.fields:
        if not _selectable(field):
            continue
        child = schema.get_type(field.type_name)
        if child is None or child.kind != GraphQLTypeKind.OBJECT:
            continue
        leaves = [
            f.name for f in child.fields if _selectable(f) and _is_leaf(schema, f.type_name)
        ][:limit]
        if leaves:
            nested.append(f"{field.name} {{ {' '.join(leaves)} }}")
        if len(nested) >= limit:
            break
    return nested


def generate_queries(
    schema: GraphQLSchemaInfo,
    provider_type: ProviderType,
    renderer: Optional[QueryRenderer] = None,
) -> List[GeneratedQuery]:
    """Synthesize candidate documents for the purposes a provider needs.

    Args:
        schema: Introspected schema
        provider_type: Anime adds episodes/streams, Manga chapters/pages
        renderer: Query renderer (a default one is created when omitted)

    Returns:
        Candidates sorted by confidence, highest first (stable)
    """
    renderer = renderer or QueryRenderer()
    relevant = RELEVANT_PURPOSES[provider_type]

    generated = []
    for query in schema.queries:
        if query.inferred_purpose not in relevant:
            continue
        document = renderer.render_query(
            operation=f"{query.inferred_purpose.display_name} {query.name}",
            field=query.name,
            arguments=query.arguments,
            selections=build_selections(schema, query.return_type),
        )
        generated.append(
            GeneratedQuery(
                name=query.name,
                field_name=query.name,
                purpose=query.inferred_purpose,
                document=document,
                variables={arg.name: None for arg in query.arguments},
                confidence=query.purpose_confidence,
            )
        )

    generated.sort(key=lambda q: q.confidence, reverse=True)
    logger.debug(
        f"Generated {len(generated)} candidate queries for {provider_type.value}",
        extra={"endpoint": schema.endpoint, "provider_type": provider_type.value},
    )
    return generated


def candidate_endpoints(profile: SiteProfile) -> List[str]:
    """Absolute GraphQL endpoint candidates for a profile, in crawl order.

    Falls back to {base_url}/graphql when the site is flagged as GraphQL
    but no endpoint path was recorded.
    """
    endpoints = [
        profile.resolve(e) for e in profile.detected_api_endpoints if _GRAPHQL_PATH.search(e)
    ]
    if not endpoints and profile.has_graphql:
        endpoints.append(profile.resolve("/graphql"))
    return list(dict.fromkeys(endpoints))


class GraphQLIntrospector:
    """Introspects GraphQL endpoints over a shared AsyncClient.

    Attributes:
        client: Shared httpx.AsyncClient
        user_agent: User-Agent sent with introspection requests
        renderer: Query renderer used by generate_queries
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = DEFAULT_USER_AGENT,
        renderer: Optional[QueryRenderer] = None,
    ):
        self.client = client
        self.user_agent = user_agent
        self.renderer = renderer or QueryRenderer()

    @profile_time("GraphQL introspection")
    async def introspect(self, endpoint: str, profile: SiteProfile) -> Optional[GraphQLSchemaInfo]:
        """Introspect an endpoint, falling back to a lightweight query.

        Args:
            endpoint: Absolute URL or path relative to the profile base URL
            profile: Site profile supplying referer and required headers

        Returns:
            GraphQLSchemaInfo, or None when introspection is unsupported
        """
        url = profile.resolve(endpoint)
        headers = {
            "User-Agent": self.user_agent,
            "Referer": profile.base_url,
            "Accept": "application/json",
            **profile.required_headers,
        }

        logger.info(f"Starting GraphQL introspection for {url}", extra={"endpoint": url})

        schema = await self._try_introspect(url, headers, INTROSPECTION_QUERY)
        if schema is None:
            logger.warning(
                f"Full introspection failed for {url}, trying lightweight introspection",
                extra={"endpoint": url},
            )
            schema = await self._try_introspect(url, headers, LIGHT_INTROSPECTION_QUERY)

        if schema is None:
            logger.warning(f"GraphQL introspection unsupported at {url}", extra={"endpoint": url})
            return None

        logger.info(
            f"Introspection found {len(schema.types)} types, {len(schema.queries)} queries, "
            f"{len(schema.mutations)} mutations",
            extra={"endpoint": url},
        )
        return schema

    async def _try_introspect(
        self, url: str, headers: Dict[str, str], query: str
    ) -> Optional[GraphQLSchemaInfo]:
        try:
            response = await self.client.post(
                url, json={"query": query, "variables": {}}, headers=headers
            )
        except httpx.HTTPError as e:
            logger.debug(f"Introspection request failed: {e}", extra={"endpoint": url})
            return None

        if not response.is_success:
            logger.debug(
                f"Introspection returned HTTP {response.status_code}",
                extra={"endpoint": url, "status_code": response.status_code},
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.debug("Introspection response is not JSON", extra={"endpoint": url})
            return None

        return parse_introspection_result(url, payload)

    def generate_queries(
        self, schema: GraphQLSchemaInfo, provider_type: ProviderType
    ) -> List[GeneratedQuery]:
        """Candidate documents for a provider type, highest confidence first."""
        return generate_queries(schema, provider_type, self.renderer)
