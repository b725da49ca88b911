"""Enumerations shared across the autoconfig pipeline.

Enums that surface in CLI output provide a display_name property for
human-readable rendering in logs and tables.

Example:
    >>> ptype = ProviderType.ANIME
    >>> print(ptype.value)  # "anime"
    >>> print(ptype.display_name)  # "Anime"
"""

from enum import Enum
from typing import Any

# Module-level display name mappings (avoid enum metaclass issues)
_PROVIDER_TYPE_NAMES = {
    "anime": "Anime",
    "manga": "Manga",
}

_PATTERN_TYPE_NAMES = {
    "graphql_endpoint": "GraphQL endpoint",
    "search_endpoint": "Search endpoint",
    "episode_endpoint": "Episode endpoint",
    "chapter_endpoint": "Chapter endpoint",
    "stream_endpoint": "Stream endpoint",
    "cdn_host": "CDN host",
    "content_type": "Content type",
    "encoding": "Encoding",
    "architecture": "Architecture",
    "response_structure": "Response structure",
    "pagination_style": "Pagination style",
    "id_field": "ID field",
    "generic": "Generic",
}

_QUERY_PURPOSE_NAMES = {
    "search": "Search",
    "get_by_id": "Get by ID",
    "get_episodes": "Get episodes",
    "get_chapters": "Get chapters",
    "get_streams": "Get streams",
    "get_pages": "Get pages",
    "unknown": "Unknown",
}


class ProviderType(str, Enum):
    """Type of content a provider serves.

    Example:
        >>> ProviderType("manga") is ProviderType.MANGA
        True
    """

    ANIME = "anime"
    MANGA = "manga"

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return _PROVIDER_TYPE_NAMES[self.value]


class SiteType(str, Enum):
    """Site architecture detected by the crawler."""

    STATIC = "static"
    SPA = "spa"
    HYBRID = "hybrid"
    UNKNOWN = "unknown"


class ContentCategory(str, Enum):
    """Content category detected by the crawler."""

    ANIME = "anime"
    MANGA = "manga"
    BOTH = "both"
    UNKNOWN = "unknown"


class PatternType(str, Enum):
    """Kind of structural evidence a PatternMatch carries.

    Multiple matches may share a type; each is independent evidence.
    """

    GRAPHQL_ENDPOINT = "graphql_endpoint"
    SEARCH_ENDPOINT = "search_endpoint"
    EPISODE_ENDPOINT = "episode_endpoint"
    CHAPTER_ENDPOINT = "chapter_endpoint"
    STREAM_ENDPOINT = "stream_endpoint"
    CDN_HOST = "cdn_host"
    CONTENT_TYPE = "content_type"
    ENCODING = "encoding"
    ARCHITECTURE = "architecture"
    RESPONSE_STRUCTURE = "response_structure"
    PAGINATION_STYLE = "pagination_style"
    ID_FIELD = "id_field"
    GENERIC = "generic"

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return _PATTERN_TYPE_NAMES[self.value]

    @classmethod
    def parse(cls, value: "str | PatternType") -> "PatternType | None":
        """Resolve a pattern type from its value or CamelCase name.

        Accepts "search_endpoint", "SearchEndpoint" and "SEARCH_ENDPOINT".
        Returns None for unknown names instead of raising.

        Example:
            >>> PatternType.parse("SearchEndpoint")
            <PatternType.SEARCH_ENDPOINT: 'search_endpoint'>
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace("_", "").replace("-", "").lower()
        if not key:
            return None
        for member in cls:
            if member.value.replace("_", "") == key:
                return member
        return None


class QueryPurpose(str, Enum):
    """Heuristically inferred role of a discovered GraphQL query."""

    SEARCH = "search"
    GET_BY_ID = "get_by_id"
    GET_EPISODES = "get_episodes"
    GET_CHAPTERS = "get_chapters"
    GET_STREAMS = "get_streams"
    GET_PAGES = "get_pages"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return _QUERY_PURPOSE_NAMES[self.value]


class GraphQLTypeKind(str, Enum):
    """Kinds reported by the GraphQL introspection system."""

    SCALAR = "SCALAR"
    OBJECT = "OBJECT"
    INTERFACE = "INTERFACE"
    UNION = "UNION"
    ENUM = "ENUM"
    INPUT_OBJECT = "INPUT_OBJECT"
    LIST = "LIST"
    NON_NULL = "NON_NULL"

    @classmethod
    def from_introspection(cls, kind: Any) -> "GraphQLTypeKind":
        """Map an introspection kind string, defaulting to OBJECT."""
        if not isinstance(kind, str):
            return cls.OBJECT
        try:
            return cls((kind or "OBJECT").upper())
        except ValueError:
            return cls.OBJECT


class RequestMethod(str, Enum):
    """How a configured operation talks to the site."""

    GRAPHQL = "graphql"
    REST = "rest"


class TransformType(str, Enum):
    """Transformation applied to an extracted field value."""

    NONE = "none"
    DECODE_BASE64 = "decode_base64"
    DECODE_HEX = "decode_hex"
    URL_DECODE = "url_decode"
    PREPEND_HOST = "prepend_host"
    REGEX_EXTRACT = "regex_extract"
    CUSTOM = "custom"


class ValidationStatus(str, Enum):
    """Graded outcome of a validation run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"
