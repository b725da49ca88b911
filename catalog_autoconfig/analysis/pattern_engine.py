"""Site fingerprinting and structural pattern scoring.

analyze() is a pure function of the SiteProfile: no network access, no
randomness. Scoring is table-driven: each PatternType maps to a list of
regexes and a base weight, and known site families map to substring
indicators, so new heuristics are added as table rows.

analyze_with_responses() adds one supplementary step: a GET of the first
detected endpoints over the shared httpx client, reading the JSON shape
of whatever answers.

Scoring rules:
- GraphQL endpoint (/graphql, /gql): 1.0, plus ContentType evidence 0.8
- Search endpoint: 0.9
- Episode / chapter endpoint: 0.85
- Stream endpoint (source, stream): 0.8
- CDN host: 0.7
- Known architecture: indicator share plus API-type boost, kept at >= 0.3
- Anything unmatched: 0.3 (weak evidence, never dropped)

Example:
    >>> engine = PatternEngine()
    >>> result = engine.analyze(profile)
    >>> result.fingerprint.technologies
    ['Cloudflare', 'GraphQL']
    >>> get_pattern_confidence("SearchEndpoint", "/api/search")
    0.9
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx

from catalog_autoconfig.types.analysis import AnalysisResult, PatternMatch, SiteFingerprint
from catalog_autoconfig.types.enums import ContentCategory, PatternType, RequestMethod, SiteType
from catalog_autoconfig.types.provider_config import DEFAULT_USER_AGENT
from catalog_autoconfig.types.site import SiteProfile
from catalog_autoconfig.utils.profiling import profile_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternRule:
    """Regexes that identify one pattern type, with the weight of a hit."""

    patterns: Tuple[str, ...]
    weight: float


ENDPOINT_RULES: Dict[PatternType, PatternRule] = {
    PatternType.GRAPHQL_ENDPOINT: PatternRule((r"/graphql", r"/api/graphql", r"/gql\b"), 1.0),
    PatternType.SEARCH_ENDPOINT: PatternRule((r"search",), 0.9),
    PatternType.EPISODE_ENDPOINT: PatternRule((r"episode",), 0.85),
    PatternType.CHAPTER_ENDPOINT: PatternRule((r"chapter",), 0.85),
    PatternType.STREAM_ENDPOINT: PatternRule(
        (r"/sources?\b", r"/stream", r"/ajax/.*source", r"streaming\.php"), 0.8
    ),
}

CDN_RULE = PatternRule(
    (r"cdn\.", r"static\.", r"img\.", r"media\.", r"cloudfront", r"bunnycdn"), 0.7
)

# (label, regex, confidence) over the joined endpoint text.
# Base64 runs exclude "/" and must mix digits with both letter cases.
ENCODING_RULES: Tuple[Tuple[str, str, float], ...] = (
    (
        "Base64",
        r"(?<![A-Za-z0-9+])(?=[A-Za-z0-9+]*\d)(?=[A-Za-z0-9+]*[A-Z])(?=[A-Za-z0-9+]*[a-z])[A-Za-z0-9+]{40,}={0,2}",
        0.7,
    ),
    ("Hex", r"[0-9a-fA-F]{32,}", 0.6),
    ("HexPrefixed", r"-[a-fA-F0-9]{20,}", 0.85),
)


@dataclass(frozen=True)
class ArchitectureSignature:
    """Lowercase substring indicators of a known site family."""

    name: str
    indicators: Tuple[str, ...]
    api_type: RequestMethod
    search_template: str


ARCHITECTURE_SIGNATURES: Tuple[ArchitectureSignature, ...] = (
    ArchitectureSignature(
        "AllAnime",
        ("allanime", "api.allanime", "__typename", "availableepisodesdetail"),
        RequestMethod.GRAPHQL,
        "shows(search: $search) { edges { _id name } }",
    ),
    ArchitectureSignature(
        "Gogoanime",
        ("gogoanime", "ajax/search", "category/", "vidcdn", "streaming.php"),
        RequestMethod.REST,
        "/search.html?keyword=${query}",
    ),
    ArchitectureSignature(
        "Aniwatch",
        ("aniwatch", "zoro", "aniwatch.to", "ajax/v2"),
        RequestMethod.REST,
        "/ajax/search/suggest?keyword=${query}",
    ),
    ArchitectureSignature(
        "MangaDex",
        ("mangadex", "api.mangadex", "chapter/", "manga/"),
        RequestMethod.REST,
        "/manga?title=${query}",
    ),
    ArchitectureSignature(
        "GenericGraphQL",
        ("graphql", "__schema", "__typename"),
        RequestMethod.GRAPHQL,
        "search(query: $q) { id title }",
    ),
)

ARCHITECTURE_THRESHOLD = 0.3
GRAPHQL_API_BOOST = 0.2
REST_API_BOOST = 0.1

RESPONSE_ENDPOINT_LIMIT = 3
MAX_FIELD_DEPTH = 5
GRAPHQL_STRUCTURE_CONFIDENCE = 0.95
RELAY_PAGINATION_CONFIDENCE = 0.9
ARRAY_ROOT_CONFIDENCE = 0.8
ID_FIELD_CONFIDENCE = 0.95
FIELD_CONTENT_CONFIDENCE = 0.8

_SIGNATURES_BY_NAME = {signature.name: signature for signature in ARCHITECTURE_SIGNATURES}

UNMATCHED_CONFIDENCE = 0.3
UNKNOWN_TYPE_CONFIDENCE = 0.5
GRAPHQL_CONTENT_CONFIDENCE = 0.8
ENDPOINT_CONTENT_CONFIDENCE = 0.8
CATEGORY_CONTENT_CONFIDENCE = 0.9
NO_SEARCH_CAP = 0.5

ANIME = "Anime"
MANGA = "Manga"


def _rule_for(pattern_type: PatternType) -> Optional[PatternRule]:
    if pattern_type == PatternType.CDN_HOST:
        return CDN_RULE
    return ENDPOINT_RULES.get(pattern_type)


def _first_hit(rule: PatternRule, candidate: str) -> Optional[str]:
    for pattern in rule.patterns:
        if re.search(pattern, candidate, re.IGNORECASE):
            return pattern
    return None


def get_pattern_confidence(pattern_type: "str | PatternType", candidate: str) -> float:
    """Score how well a candidate string matches a pattern type.

    Pure and side-effect free.

    Args:
        pattern_type: PatternType or its name ("SearchEndpoint", "search_endpoint")
        candidate: Endpoint path or host to score

    Returns:
        Rule weight on a match, 0.3 when the type is known but nothing
        matches, 0.5 when the type has no scoring rule.

    Example:
        >>> get_pattern_confidence("SearchEndpoint", "/api/search")
        0.9
        >>> get_pattern_confidence("SearchEndpoint", "/unknown")
        0.3
    """
    parsed = PatternType.parse(pattern_type)
    rule = _rule_for(parsed) if parsed else None
    if rule is None:
        return UNKNOWN_TYPE_CONFIDENCE
    if _first_hit(rule, candidate or "") is not None:
        return rule.weight
    return UNMATCHED_CONFIDENCE


def normalize_endpoint(endpoint: str) -> str:
    """Reduce an endpoint to its structural signature.

    Query string removed, digit runs replaced by {id}, lowercased.

    Example:
        >>> normalize_endpoint("/API/Anime/123?page=2")
        '/api/anime/{id}'
    """
    path = endpoint.strip().split("?", 1)[0].lower()
    return re.sub(r"\d+", "{id}", path)


def compute_fingerprint_hash(technologies: List[str], signatures: List[str]) -> str:
    """SHA-256 over the sorted tag set and endpoint signatures."""
    payload = "|".join(technologies) + "#" + "|".join(signatures)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def match_architecture(profile: SiteProfile) -> Optional[Tuple[ArchitectureSignature, float, int]]:
    """Best known site family for a profile.

    Score is the share of a signature's indicators found in the title,
    description and endpoints, plus 0.2 when a GraphQL signature meets a
    GraphQL site or 0.1 when a REST signature meets a non-GraphQL site.
    Ties keep table order.

    Returns:
        (signature, score capped at 1.0, indicator hits), or None below 0.3
    """
    text = " ".join(
        [profile.site_title or "", profile.site_description or "", *profile.detected_api_endpoints]
    ).lower()

    best: Optional[Tuple[ArchitectureSignature, float, int]] = None
    for signature in ARCHITECTURE_SIGNATURES:
        hits = sum(1 for indicator in signature.indicators if indicator in text)
        score = hits / len(signature.indicators)
        if profile.has_graphql and signature.api_type == RequestMethod.GRAPHQL:
            score += GRAPHQL_API_BOOST
        elif not profile.has_graphql and signature.api_type == RequestMethod.REST:
            score += REST_API_BOOST
        if best is None or score > best[1]:
            best = (signature, score, hits)

    if best is None or best[1] < ARCHITECTURE_THRESHOLD:
        return None
    return best[0], round(min(best[1], 1.0), 4), best[2]


def extract_field_names(value: Any, depth: int = 0) -> Set[str]:
    """Lowercased key names of a JSON document.

    Arrays contribute their first element only; nesting stops past depth 5.
    """
    names: Set[str] = set()
    if depth > MAX_FIELD_DEPTH:
        return names
    if isinstance(value, dict):
        for key, child in value.items():
            names.add(str(key).lower())
            names |= extract_field_names(child, depth + 1)
    elif isinstance(value, list) and value:
        names |= extract_field_names(value[0], depth + 1)
    return names


def analyze_json_structure(payload: Any, endpoint: str) -> List[PatternMatch]:
    """Structural evidence read from one decoded API response.

    Example:
        >>> [p.value for p in analyze_json_structure({"data": {"shows": {"edges": []}}}, "/api")]
        ['GraphQL', 'Relay-Connection']
    """
    matches: List[PatternMatch] = []

    if isinstance(payload, dict) and "data" in payload:
        matches.append(
            PatternMatch(
                type=PatternType.RESPONSE_STRUCTURE,
                value="GraphQL",
                confidence=GRAPHQL_STRUCTURE_CONFIDENCE,
                evidence=f"{endpoint} answers with a 'data' root property",
            )
        )
        data = payload["data"]
        if isinstance(data, dict):
            for name, child in data.items():
                if isinstance(child, dict) and "edges" in child:
                    matches.append(
                        PatternMatch(
                            type=PatternType.PAGINATION_STYLE,
                            value="Relay-Connection",
                            confidence=RELAY_PAGINATION_CONFIDENCE,
                            evidence=f"Found 'edges' in {name}",
                        )
                    )

    if isinstance(payload, list):
        matches.append(
            PatternMatch(
                type=PatternType.RESPONSE_STRUCTURE,
                value="ArrayRoot",
                confidence=ARRAY_ROOT_CONFIDENCE,
                evidence=f"{endpoint} answers with a JSON array",
            )
        )

    fields = extract_field_names(payload)
    if "_id" in fields or "id" in fields:
        matches.append(
            PatternMatch(
                type=PatternType.ID_FIELD,
                value="_id" if "_id" in fields else "id",
                confidence=ID_FIELD_CONFIDENCE,
                evidence=f"Identifier field in {endpoint} response",
            )
        )
    if any("episode" in f for f in fields):
        matches.append(
            PatternMatch(
                type=PatternType.CONTENT_TYPE,
                value=ANIME,
                confidence=FIELD_CONTENT_CONFIDENCE,
                evidence="Response contains episode-related fields",
            )
        )
    if any("chapter" in f for f in fields):
        matches.append(
            PatternMatch(
                type=PatternType.CONTENT_TYPE,
                value=MANGA,
                confidence=FIELD_CONTENT_CONFIDENCE,
                evidence="Response contains chapter-related fields",
            )
        )
    return matches


class PatternEngine:
    """Turns a SiteProfile into a fingerprint and scored patterns.

    Attributes:
        rules: Endpoint rule table (defaults to ENDPOINT_RULES)
        client: Shared httpx.AsyncClient for the response-structure inspection
            (None disables probing)
        user_agent: User-Agent sent with endpoint requests

    Example:
        >>> engine = PatternEngine()
        >>> result = engine.analyze(SiteProfile(base_url="https://x.io"))
        >>> result.patterns
        []
        >>> result.overall_confidence
        0.0
    """

    def __init__(
        self,
        rules: Optional[Dict[PatternType, PatternRule]] = None,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.rules = rules if rules is not None else ENDPOINT_RULES
        self.client = client
        self.user_agent = user_agent

    def analyze(self, profile: SiteProfile) -> AnalysisResult:
        """Fingerprint the site, detect patterns and grade overall confidence.

        Never raises for empty or partial profiles; missing evidence yields
        an empty pattern list and zero confidence.
        """
        return self._assemble(profile, [])

    async def analyze_with_responses(self, profile: SiteProfile) -> AnalysisResult:
        """analyze() plus evidence from live responses of the detected endpoints.

        Same result as analyze() when the engine has no client or no
        endpoint answers with JSON.
        """
        inspected = await self.inspect_response_structures(profile)
        return self._assemble(profile, inspected)

    @profile_time("Response structure inspection")
    async def inspect_response_structures(self, profile: SiteProfile) -> List[PatternMatch]:
        """GET the first three detected endpoints and read their JSON shape.

        Transport errors, non-2xx answers and non-JSON bodies are skipped.
        """
        if self.client is None:
            return []

        headers = {
            "User-Agent": self.user_agent,
            "Referer": profile.base_url,
            "Accept": "application/json",
            **profile.required_headers,
        }
        matches: List[PatternMatch] = []
        for endpoint in profile.detected_api_endpoints[:RESPONSE_ENDPOINT_LIMIT]:
            url = profile.resolve(endpoint)
            try:
                response = await self.client.get(url, headers=headers)
            except httpx.HTTPError as e:
                logger.debug(f"Endpoint request failed: {e}", extra={"endpoint": url})
                continue

            if not response.is_success:
                logger.debug(
                    f"Endpoint returned HTTP {response.status_code}",
                    extra={"endpoint": url, "status_code": response.status_code},
                )
                continue

            try:
                payload = response.json()
            except ValueError:
                logger.debug("Endpoint response is not JSON", extra={"endpoint": url})
                continue

            matches.extend(analyze_json_structure(payload, endpoint))

        logger.info(
            f"Response structure inspection found {len(matches)} patterns",
            extra={"url": profile.base_url},
        )
        return matches

    def _assemble(self, profile: SiteProfile, inspected: List[PatternMatch]) -> AnalysisResult:
        logger.info(
            f"Analyzing site patterns for {profile.base_url}",
            extra={"url": profile.base_url, "endpoint_count": len(profile.detected_api_endpoints)},
        )

        fingerprint = self.create_fingerprint(profile)

        patterns: List[PatternMatch] = []
        patterns.extend(self.detect_architecture(profile))
        patterns.extend(self.detect_endpoint_patterns(profile))
        patterns.extend(inspected)
        patterns.extend(self.detect_cdn_patterns(profile))
        patterns.extend(self.detect_encoding_patterns(profile))
        patterns.extend(self.infer_content_type(profile, patterns))
        patterns = _dedupe(patterns)

        recommendations = self.generate_recommendations(profile, fingerprint, patterns)
        overall = self.overall_confidence(patterns)

        logger.info(
            f"Pattern analysis complete: {len(patterns)} patterns, confidence {overall:.2f}",
            extra={
                "url": profile.base_url,
                "architecture": fingerprint.architecture,
                "fingerprint": fingerprint.hash[:12],
            },
        )

        return AnalysisResult(
            fingerprint=fingerprint,
            patterns=patterns,
            recommendations=recommendations,
            overall_confidence=overall,
        )

    def create_fingerprint(self, profile: SiteProfile) -> SiteFingerprint:
        """Build the technology/endpoint fingerprint of a profile."""
        tags = set()
        if profile.has_graphql:
            tags.add("GraphQL")
        if profile.has_cloudflare_protection:
            tags.add("Cloudflare")
        if profile.js_framework and profile.js_framework.strip():
            tags.add(profile.js_framework.strip())
        if profile.requires_javascript or profile.site_type == SiteType.SPA:
            tags.add("SPA")
        if profile.server_software and profile.server_software.strip():
            tags.add(profile.server_software.strip())

        technologies = sorted(tags)
        signatures = sorted({normalize_endpoint(e) for e in profile.detected_api_endpoints} - {""})

        if profile.has_graphql:
            architecture = "GraphQL-SPA" if "SPA" in tags else "GraphQL"
        else:
            architecture = "REST-SPA" if "SPA" in tags else "REST-Traditional"

        return SiteFingerprint(
            technologies=technologies,
            api_signatures=signatures,
            architecture=architecture,
            hash=compute_fingerprint_hash(technologies, signatures),
        )

    def detect_architecture(self, profile: SiteProfile) -> List[PatternMatch]:
        """Architecture evidence for the best matching known site family."""
        matched = match_architecture(profile)
        if matched is None:
            return []
        signature, score, hits = matched
        return [
            PatternMatch(
                type=PatternType.ARCHITECTURE,
                value=signature.name,
                confidence=score,
                evidence=f"Matched {hits} of {len(signature.indicators)} indicators",
            )
        ]

    def detect_endpoint_patterns(self, profile: SiteProfile) -> List[PatternMatch]:
        """Score every detected endpoint against the rule table."""
        matches: List[PatternMatch] = []
        for endpoint in profile.detected_api_endpoints:
            hit_any = False
            for pattern_type, rule in self.rules.items():
                hit = _first_hit(rule, endpoint)
                if hit is None:
                    continue
                hit_any = True
                matches.append(
                    PatternMatch(
                        type=pattern_type,
                        value=endpoint,
                        confidence=rule.weight,
                        evidence=f"Matched pattern: {hit}",
                    )
                )
                if pattern_type == PatternType.GRAPHQL_ENDPOINT:
                    matches.append(
                        PatternMatch(
                            type=PatternType.CONTENT_TYPE,
                            value="GraphQL",
                            confidence=GRAPHQL_CONTENT_CONFIDENCE,
                            evidence=f"GraphQL endpoint {endpoint} serves structured JSON",
                        )
                    )
            if not hit_any:
                matches.append(
                    PatternMatch(
                        type=PatternType.GENERIC,
                        value=endpoint,
                        confidence=UNMATCHED_CONFIDENCE,
                        evidence="No known pattern matched",
                    )
                )
        return matches

    def detect_cdn_patterns(self, profile: SiteProfile) -> List[PatternMatch]:
        """Score detected media hosts with the CDN rule."""
        matches = []
        for host in profile.detected_cdn_hosts:
            hit = _first_hit(CDN_RULE, host)
            matches.append(
                PatternMatch(
                    type=PatternType.CDN_HOST,
                    value=host,
                    confidence=CDN_RULE.weight if hit else UNMATCHED_CONFIDENCE,
                    evidence=f"Matched pattern: {hit}" if hit else "Host reported by crawler",
                )
            )
        return matches

    def detect_encoding_patterns(self, profile: SiteProfile) -> List[PatternMatch]:
        """Look for encoded tokens inside endpoint strings."""
        text = " ".join(profile.detected_api_endpoints)
        if not text:
            return []
        matches = []
        for label, regex, confidence in ENCODING_RULES:
            found = re.search(regex, text)
            if found:
                matches.append(
                    PatternMatch(
                        type=PatternType.ENCODING,
                        value=label,
                        confidence=confidence,
                        evidence=f"Encoded token: {found.group(0)[:24]}",
                    )
                )
        return matches

    def infer_content_type(
        self, profile: SiteProfile, patterns: List[PatternMatch]
    ) -> List[PatternMatch]:
        """Derive Anime/Manga evidence from listings and the crawl category."""
        matches = []
        if profile.category == ContentCategory.ANIME:
            matches.append(
                PatternMatch(
                    type=PatternType.CONTENT_TYPE,
                    value=ANIME,
                    confidence=CATEGORY_CONTENT_CONFIDENCE,
                    evidence="Crawler categorized site as anime",
                )
            )
        elif profile.category == ContentCategory.MANGA:
            matches.append(
                PatternMatch(
                    type=PatternType.CONTENT_TYPE,
                    value=MANGA,
                    confidence=CATEGORY_CONTENT_CONFIDENCE,
                    evidence="Crawler categorized site as manga",
                )
            )

        if any(p.type == PatternType.EPISODE_ENDPOINT for p in patterns):
            matches.append(
                PatternMatch(
                    type=PatternType.CONTENT_TYPE,
                    value=ANIME,
                    confidence=ENDPOINT_CONTENT_CONFIDENCE,
                    evidence="Episode endpoints detected",
                )
            )
        if any(p.type == PatternType.CHAPTER_ENDPOINT for p in patterns):
            matches.append(
                PatternMatch(
                    type=PatternType.CONTENT_TYPE,
                    value=MANGA,
                    confidence=ENDPOINT_CONTENT_CONFIDENCE,
                    evidence="Chapter endpoints detected",
                )
            )
        return matches

    def generate_recommendations(
        self,
        profile: SiteProfile,
        fingerprint: SiteFingerprint,
        patterns: List[PatternMatch],
    ) -> List[str]:
        """Free-text advisories keyed off the fingerprint and patterns."""
        recommendations = []
        tags = set(fingerprint.technologies)

        architecture = next((p for p in patterns if p.type == PatternType.ARCHITECTURE), None)
        if architecture is not None:
            signature = _SIGNATURES_BY_NAME[architecture.value]
            recommendations.append(
                f"Site matches '{signature.name}' architecture - "
                f"known search layout: {signature.search_template}"
            )

        graphql_response = any(
            p.type == PatternType.RESPONSE_STRUCTURE and p.value == "GraphQL" for p in patterns
        )
        if (
            "GraphQL" in tags
            or graphql_response
            or any(p.type == PatternType.GRAPHQL_ENDPOINT for p in patterns)
        ):
            recommendations.append(
                "GraphQL detected - use GraphQL queries instead of HTML scraping"
            )

        if "Cloudflare" in tags:
            recommendations.append(
                "Cloudflare protection detected - send browser-like headers "
                "and use a retry/backoff strategy"
            )

        if "SPA" in tags and profile.requires_javascript:
            recommendations.append(
                "SPA detected and JavaScript is required - use browser automation "
                "or a non-HTML data source such as the site's API"
            )

        encoding = next((p for p in patterns if p.type == PatternType.ENCODING), None)
        if encoding is not None:
            recommendations.append(
                f"Encoded URLs detected ({encoding.value}) - inspect the encoding "
                "scheme before trusting extracted links"
            )

        if not any(p.type == PatternType.SEARCH_ENDPOINT for p in patterns) and not profile.has_graphql:
            recommendations.append(
                "No search endpoint detected - search must be discovered manually"
            )

        content = max(
            (p for p in patterns if p.type == PatternType.CONTENT_TYPE and p.value in (ANIME, MANGA)),
            key=lambda p: p.confidence,
            default=None,
        )
        if content is not None:
            recommendations.append(f"Content type appears to be {content.value}")

        return recommendations

    def overall_confidence(self, patterns: List[PatternMatch]) -> float:
        """Aggregate confidence driven by the critical patterns.

        search 0.4, best of graphql/episode/chapter 0.3, stream 0.15,
        content type 0.15. Capped at 0.5 without a search endpoint.
        """

        def best(*types: PatternType) -> float:
            scores = [p.confidence for p in patterns if p.type in types]
            return max(scores) if scores else 0.0

        search = best(PatternType.SEARCH_ENDPOINT)
        score = (
            0.4 * search
            + 0.3 * best(
                PatternType.GRAPHQL_ENDPOINT,
                PatternType.EPISODE_ENDPOINT,
                PatternType.CHAPTER_ENDPOINT,
            )
            + 0.15 * best(PatternType.STREAM_ENDPOINT)
            + 0.15 * best(PatternType.CONTENT_TYPE)
        )
        score = min(score, 1.0)
        if search == 0.0:
            score = min(score, NO_SEARCH_CAP)
        return round(score, 4)


def _dedupe(patterns: List[PatternMatch]) -> List[PatternMatch]:
    seen = set()
    unique = []
    for pattern in patterns:
        key = (pattern.type, pattern.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(pattern)
    return unique


__all__ = [
    "ARCHITECTURE_SIGNATURES",
    "ENDPOINT_RULES",
    "CDN_RULE",
    "ENCODING_RULES",
    "ArchitectureSignature",
    "PatternEngine",
    "PatternRule",
    "analyze_json_structure",
    "compute_fingerprint_hash",
    "extract_field_names",
    "get_pattern_confidence",
    "match_architecture",
    "normalize_endpoint",
]
