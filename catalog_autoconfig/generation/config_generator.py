"""Assembles a DynamicProviderConfig from analysis evidence.

Two construction paths:
- GraphQL: the best generated query per purpose fills the search,
  listing and media blocks, with a variables template bound by argument
  name.
- REST: detected Search/Episode/Chapter/Stream endpoint patterns fill the
  blocks, falling back to conventional paths (/search, /episodes, ...).

Example:
    >>> generator = ConfigGenerator()
    >>> config = generator.generate(profile, analysis, queries)
    >>> config.slug
    'animesite'
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl, urlparse

from catalog_autoconfig.runtime.transform_engine import HEX_PREFIXED_DECODER
from catalog_autoconfig.types.analysis import AnalysisResult
from catalog_autoconfig.types.enums import (
    ContentCategory,
    PatternType,
    ProviderType,
    QueryPurpose,
    RequestMethod,
    TransformType,
)
from catalog_autoconfig.types.errors import GenerationError
from catalog_autoconfig.types.graphql import GeneratedQuery
from catalog_autoconfig.types.provider_config import (
    DEFAULT_USER_AGENT,
    ContentConfig,
    DynamicProviderConfig,
    EndpointConfig,
    FieldMapping,
    HostConfig,
    MediaConfig,
    PageConfig,
    RateLimitConfig,
    SearchConfig,
    StreamConfig,
    TransformRule,
    slugify,
)
from catalog_autoconfig.types.site import SiteProfile

logger = logging.getLogger(__name__)

TITLE_SEPARATORS = re.compile(r"[-|–:•]")

SEARCH_ARGUMENTS = {"search", "query", "keyword", "q", "term", "title"}
LIMIT_ARGUMENTS = {"limit", "first", "perpage", "per_page", "size", "count"}

CLOUDFLARE_RATE_LIMIT = RateLimitConfig(
    requests_per_minute=20, retry_after_seconds=10.0, use_exponential_backoff=True
)

# Candidate source keys per target field, first present in the document wins
GRAPHQL_FIELD_CANDIDATES: Dict[str, Sequence[str]] = {
    "Id": ("_id", "id"),
    "Title": ("name", "title", "englishName"),
    "CoverImage": ("thumbnail", "coverImage", "image", "cover"),
    "Synopsis": ("description", "synopsis"),
    "Number": ("number", "episodeNumber", "chapterNumber", "episodeString"),
    "Url": ("sourceUrl", "url", "link", "source"),
    "Quality": ("quality", "resolution"),
}

REST_SEARCH_MAPPINGS = [
    FieldMapping(source_path="$.id", target_field="Id"),
    FieldMapping(source_path="$.title", target_field="Title"),
    FieldMapping(source_path="$.image", target_field="CoverImage"),
    FieldMapping(source_path="$.description", target_field="Synopsis"),
]
REST_LISTING_MAPPINGS = [
    FieldMapping(source_path="$.id", target_field="Id"),
    FieldMapping(source_path="$.number", target_field="Number"),
    FieldMapping(source_path="$.title", target_field="Title"),
]
REST_STREAM_MAPPINGS = [
    FieldMapping(source_path="$.url", target_field="Url"),
    FieldMapping(source_path="$.quality", target_field="Quality"),
]
REST_PAGE_MAPPINGS = [
    FieldMapping(source_path="$.url", target_field="Url"),
]


def generate_provider_name(profile: SiteProfile) -> str:
    """Display name from the site title, else from the hostname.

    Example:
        >>> generate_provider_name(SiteProfile(base_url="https://www.animeflix.tv"))
        'Animeflix'
    """
    if profile.site_title and profile.site_title.strip():
        first = TITLE_SEPARATORS.split(profile.site_title)[0].strip()
        if len(first) >= 2:
            return first

    host = profile.host
    if host.lower().startswith("www."):
        host = host[4:]
    if "." in host:
        host = host[: host.rindex(".")]
    return host[:1].upper() + host[1:]


def _bind_argument(name: str) -> Any:
    lowered = name.lower()
    if lowered in SEARCH_ARGUMENTS:
        return "${query}"
    if lowered in LIMIT_ARGUMENTS:
        return "${limit}"
    if lowered == "page":
        return 1
    if "show" in lowered or "anime" in lowered:
        return "${showId}"
    if "manga" in lowered:
        return "${mangaId}"
    if "chapter" in lowered:
        return "${chapterId}"
    if "episode" in lowered and not lowered.endswith("id"):
        return "${episode}"
    if lowered in ("id", "_id") or lowered.endswith("id"):
        return "${id}"
    return None


def _pick(document: str, candidates: Sequence[str]) -> Optional[str]:
    for candidate in candidates:
        if re.search(rf"\b{re.escape(candidate)}\b", document):
            return candidate
    return None


def _graphql_mappings(document: str, targets: Sequence[str]) -> List[FieldMapping]:
    mappings = []
    for target in targets:
        source = _pick(document, GRAPHQL_FIELD_CANDIDATES[target])
        if source:
            mappings.append(FieldMapping(source_path=f"$.{source}", target_field=target))
    return mappings


def _results_path(query: GeneratedQuery) -> str:
    path = f"$.data.{query.field_name}"
    if re.search(r"\bedges\s*\{", query.document):
        path += ".edges"
    return path


def _strip_path(value: str) -> str:
    """Path part of an endpoint: query dropped, trailing numeric ids removed."""
    path = urlparse(value).path if value.startswith(("http://", "https://")) else value.split("?", 1)[0]
    path = re.sub(r"(/(\d+|\{id\}))+/?$", "", path)
    return path or "/"


class ConfigGenerator:
    """Builds provider configurations from profile, analysis and queries.

    Attributes:
        user_agent: User-Agent written into generated host blocks
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT):
        self.user_agent = user_agent

    def generate(
        self,
        profile: SiteProfile,
        analysis: AnalysisResult,
        queries: Optional[Sequence[GeneratedQuery]] = None,
        provider_type: Optional[ProviderType] = None,
        name: Optional[str] = None,
        graphql_endpoint: Optional[str] = None,
    ) -> DynamicProviderConfig:
        """Assemble a config.

        Args:
            profile: Crawled site profile
            analysis: Pattern engine result
            queries: Generated GraphQL candidates (empty selects the REST path)
            provider_type: Force anime or manga
            name: Force the display name
            graphql_endpoint: Endpoint the queries were generated against

        Returns:
            A new DynamicProviderConfig at version 1.0.0

        Raises:
            GenerationError: If the profile has no usable base URL or name
        """
        if not profile.host:
            raise GenerationError("Site profile has no usable base URL", url=profile.base_url, phase="generate")

        display_name = (name or "").strip() or generate_provider_name(profile)
        slug = slugify(display_name) or slugify(generate_provider_name(profile))
        if not slug:
            raise GenerationError(
                f"Cannot derive a provider slug from '{display_name}'", url=profile.base_url, phase="generate"
            )

        ptype = provider_type or self.infer_provider_type(profile, analysis)
        queries = list(queries or [])
        endpoint = graphql_endpoint or self._graphql_endpoint(profile, analysis)

        logger.info(
            f"Generating {ptype.value} provider config '{display_name}' for {profile.base_url}",
            extra={"url": profile.base_url, "slug": slug, "graphql_queries": len(queries)},
        )

        search = self._graphql_search(queries, endpoint) if queries else None
        template = "graphql" if search is not None else "rest"
        if search is None:
            search = self._rest_search(analysis)

        content = self._content(queries, endpoint, analysis, ptype)
        media = self._media(queries, endpoint, analysis, ptype)

        transforms: List[TransformRule] = []
        if analysis.best(PatternType.ENCODING) is not None and media.streams is not None:
            transforms.append(
                TransformRule(name=HEX_PREFIXED_DECODER, type=TransformType.CUSTOM, decoder=HEX_PREFIXED_DECODER)
            )
            media = media.model_copy(
                update={"streams": media.streams.model_copy(update={"custom_decoder": HEX_PREFIXED_DECODER})}
            )

        config = DynamicProviderConfig(
            name=display_name,
            slug=slug,
            type=ptype,
            hosts=self._hosts(profile, endpoint if template == "graphql" else None),
            search=search,
            content=content,
            media=media,
            transforms=transforms,
            rate_limit=CLOUDFLARE_RATE_LIMIT if profile.has_cloudflare_protection else None,
            notes=self._notes(profile, analysis, template),
        )
        logger.debug(f"Generated config {config.slug} using {template} template", extra={"slug": config.slug})
        return config

    def infer_provider_type(self, profile: SiteProfile, analysis: AnalysisResult) -> ProviderType:
        """Category first, then content-type evidence, then anime."""
        if profile.category == ContentCategory.MANGA:
            return ProviderType.MANGA
        if profile.category == ContentCategory.ANIME:
            return ProviderType.ANIME
        for match in analysis.patterns_of(PatternType.CONTENT_TYPE):
            if match.value == "Manga":
                return ProviderType.MANGA
            if match.value == "Anime":
                return ProviderType.ANIME
        return ProviderType.ANIME

    def _graphql_endpoint(self, profile: SiteProfile, analysis: AnalysisResult) -> str:
        best = analysis.best(PatternType.GRAPHQL_ENDPOINT)
        return profile.resolve(best.value if best else "/graphql")

    def _hosts(self, profile: SiteProfile, graphql_endpoint: Optional[str]) -> HostConfig:
        api_base = profile.origin
        if graphql_endpoint:
            parsed = urlparse(graphql_endpoint)
            if parsed.scheme and parsed.hostname:
                api_base = f"{parsed.scheme}://{parsed.netloc}"
        # base_host carries its scheme only when the site is not served over https
        base_host = profile.netloc if profile.scheme == "https" else profile.origin
        referer = profile.base_url if profile.base_url.endswith("/") else profile.base_url + "/"
        return HostConfig(
            base_host=base_host,
            api_base=api_base,
            referer=referer,
            user_agent=self.user_agent,
            custom_headers=dict(profile.required_headers),
        )

    def _best_query(self, queries: Sequence[GeneratedQuery], purpose: QueryPurpose) -> Optional[GeneratedQuery]:
        return next((q for q in queries if q.purpose == purpose), None)

    def _graphql_operation(
        self,
        cls: type,
        query: GeneratedQuery,
        endpoint: str,
        targets: Sequence[str],
    ) -> Any:
        return cls(
            method=RequestMethod.GRAPHQL,
            endpoint=endpoint,
            query_template=query.document,
            variables={arg: _bind_argument(arg) for arg in query.variables},
            results_path=_results_path(query),
            result_mapping=_graphql_mappings(query.document, targets),
        )

    def _graphql_search(
        self, queries: Sequence[GeneratedQuery], endpoint: str
    ) -> Optional[SearchConfig]:
        query = self._best_query(queries, QueryPurpose.SEARCH)
        if query is None:
            return None
        return self._graphql_operation(
            SearchConfig, query, endpoint, ("Id", "Title", "CoverImage", "Synopsis")
        )

    def _rest_search(self, analysis: AnalysisResult) -> SearchConfig:
        best = analysis.best(PatternType.SEARCH_ENDPOINT)
        endpoint, template = "/search", "?q=${query}"
        if best is not None:
            endpoint = _strip_path(best.value)
            params = parse_qsl(urlparse(best.value).query)
            if params:
                template = f"?{params[0][0]}=${{query}}"
        return SearchConfig(
            method=RequestMethod.REST,
            endpoint=endpoint,
            query_template=template,
            result_mapping=list(REST_SEARCH_MAPPINGS),
        )

    def _rest_operation(
        self,
        cls: type,
        analysis: AnalysisResult,
        pattern_type: PatternType,
        fallback: str,
        template: str,
        mappings: List[FieldMapping],
    ) -> Any:
        best = analysis.best(pattern_type)
        return cls(
            method=RequestMethod.REST,
            endpoint=_strip_path(best.value) if best else fallback,
            query_template=template,
            result_mapping=list(mappings),
        )

    def _content(
        self,
        queries: Sequence[GeneratedQuery],
        endpoint: str,
        analysis: AnalysisResult,
        ptype: ProviderType,
    ) -> ContentConfig:
        details = None
        by_id = self._best_query(queries, QueryPurpose.GET_BY_ID)
        if by_id is not None:
            details = self._graphql_operation(
                EndpointConfig, by_id, endpoint, ("Id", "Title", "CoverImage", "Synopsis")
            )

        if ptype == ProviderType.ANIME:
            query = self._best_query(queries, QueryPurpose.GET_EPISODES)
            if query is not None:
                episodes = self._graphql_operation(
                    EndpointConfig, query, endpoint, ("Id", "Number", "Title")
                )
            elif queries:
                episodes = None
            else:
                episodes = self._rest_operation(
                    EndpointConfig, analysis, PatternType.EPISODE_ENDPOINT,
                    "/episodes", "/${id}", REST_LISTING_MAPPINGS,
                )
            return ContentConfig(episodes=episodes, details=details)

        query = self._best_query(queries, QueryPurpose.GET_CHAPTERS)
        if query is not None:
            chapters = self._graphql_operation(
                EndpointConfig, query, endpoint, ("Id", "Number", "Title")
            )
        elif queries:
            chapters = None
        else:
            chapters = self._rest_operation(
                EndpointConfig, analysis, PatternType.CHAPTER_ENDPOINT,
                "/chapters", "/${id}", REST_LISTING_MAPPINGS,
            )
        return ContentConfig(chapters=chapters, details=details)

    def _media(
        self,
        queries: Sequence[GeneratedQuery],
        endpoint: str,
        analysis: AnalysisResult,
        ptype: ProviderType,
    ) -> MediaConfig:
        if ptype == ProviderType.ANIME:
            query = self._best_query(queries, QueryPurpose.GET_STREAMS)
            if query is not None:
                return MediaConfig(
                    streams=self._graphql_operation(StreamConfig, query, endpoint, ("Url", "Quality"))
                )
            if queries:
                return MediaConfig()
            return MediaConfig(
                streams=self._rest_operation(
                    StreamConfig, analysis, PatternType.STREAM_ENDPOINT,
                    "/sources", "/${episodeId}", REST_STREAM_MAPPINGS,
                )
            )

        query = self._best_query(queries, QueryPurpose.GET_PAGES)
        if query is not None:
            return MediaConfig(pages=self._graphql_operation(PageConfig, query, endpoint, ("Url",)))
        if queries:
            return MediaConfig()
        return MediaConfig(
            pages=PageConfig(
                method=RequestMethod.REST,
                endpoint="/pages",
                query_template="/${chapterId}",
                result_mapping=list(REST_PAGE_MAPPINGS),
            )
        )

    def _notes(self, profile: SiteProfile, analysis: AnalysisResult, template: str) -> str:
        notes = [
            f"Generated using '{template}' template",
            f"Site type: {profile.site_type.value}",
            f"Architecture: {analysis.fingerprint.architecture}",
            f"Analysis confidence: {analysis.overall_confidence:.2f}",
        ]
        if profile.has_cloudflare_protection:
            notes.append("WARNING: Cloudflare protection detected - rate limit applied")
        if profile.requires_javascript:
            notes.append("WARNING: Site requires JavaScript - API endpoints preferred over HTML")
        if not profile.detected_api_endpoints:
            notes.append("WARNING: No API endpoints discovered - configuration may be incomplete")
        return "\n".join(notes)
