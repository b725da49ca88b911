"""Persistable provider configuration.

DynamicProviderConfig is the artifact the whole pipeline exists to
produce: a versioned description of how to query one site. It is the
durable contract between autoconfig and the execution layer and is stored
as JSON by ProviderStore.

Example:
    >>> config = DynamicProviderConfig(
    ...     name="Example",
    ...     slug="example",
    ...     hosts=HostConfig(base_host="example.com", referer="https://example.com/"),
    ...     search=SearchConfig(endpoint="/graphql", query_template="query { ... }"),
    ... )
    >>> config.model_dump_json(indent=2)
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catalog_autoconfig.types.enums import ProviderType, RequestMethod, TransformType

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(name: str) -> str:
    """Turn a display name into a provider slug.

    Example:
        >>> slugify("My Anime_Site.tv")
        'my-anime-sitetv'
    """
    text = name.strip().lower().replace(".", "")
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")


class FieldMapping(BaseModel):
    """Maps a JSON path in a response item to a target entity field."""

    model_config = ConfigDict(frozen=True)

    source_path: str = Field(..., description="Path like $.a.b[0]")
    target_field: str = Field(..., description="Target field, e.g. Id, Title, Url")
    transform: TransformType = TransformType.NONE
    transform_params: Optional[str] = None


class HostConfig(BaseModel):
    """Host and network configuration."""

    model_config = ConfigDict(frozen=True)

    base_host: str = Field(..., min_length=1, description="Hostname without scheme")
    api_base: Optional[str] = Field(default=None, description="API base URL with scheme")
    referer: str = Field(..., description="Referer header value")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")
    custom_headers: Dict[str, str] = Field(default_factory=dict)

    def headers(self) -> Dict[str, str]:
        """Headers to send on every request to this provider."""
        return {
            "User-Agent": self.user_agent,
            "Referer": self.referer,
            **self.custom_headers,
        }


class EndpointConfig(BaseModel):
    """One configured operation (listing, details).

    For GraphQL, query_template is the document and variables holds the
    variables template. For REST, query_template is the path appended to
    the endpoint. Placeholders (${query}, $id, $(id)) are filled at call
    time.
    """

    model_config = ConfigDict(frozen=True)

    method: RequestMethod = RequestMethod.GRAPHQL
    endpoint: str
    query_template: str
    variables: Dict[str, Any] = Field(default_factory=dict, description="GraphQL variables template")
    results_path: Optional[str] = Field(default=None, description="Path to the item list")
    result_mapping: List[FieldMapping] = Field(default_factory=list)


class SearchConfig(EndpointConfig):
    """Search operation configuration."""

    page_size: int = Field(default=20, ge=1)


class StreamConfig(EndpointConfig):
    """Stream URL resolution (anime)."""

    custom_decoder: Optional[str] = None


class PageConfig(EndpointConfig):
    """Page image resolution (manga)."""

    image_base_url: Optional[str] = None


class ContentConfig(BaseModel):
    """Content listing configuration."""

    model_config = ConfigDict(frozen=True)

    episodes: Optional[EndpointConfig] = None
    chapters: Optional[EndpointConfig] = None
    details: Optional[EndpointConfig] = None


class MediaConfig(BaseModel):
    """Media resolution configuration."""

    model_config = ConfigDict(frozen=True)

    streams: Optional[StreamConfig] = None
    pages: Optional[PageConfig] = None


class TransformRule(BaseModel):
    """Named custom transform referenced by stream/page configs."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: TransformType = TransformType.CUSTOM
    pattern: Optional[str] = None
    replacement: Optional[str] = None
    decoder: Optional[str] = Field(default=None, description="Registered decoder name")


class RateLimitConfig(BaseModel):
    """Client-side rate limiting hints."""

    model_config = ConfigDict(frozen=True)

    requests_per_minute: int = Field(default=60, ge=1)
    retry_after_seconds: float = Field(default=5.0, ge=0)
    use_exponential_backoff: bool = True


class DynamicProviderConfig(BaseModel):
    """Complete, versioned provider configuration.

    Attributes:
        name: Display name
        slug: Identifier, lowercase letters/digits/dashes
        type: Content type served (anime or manga)
        version: Semantic version of this config
        generated_at: When the config was generated
        last_validated_at: When the config last passed validation
        hosts: Host block (base host, API base, referer, user agent)
        search: Search operation
        content: Listing operations
        media: Media resolution operations
        transforms: Custom transform rules
        rate_limit: Optional rate limiting hints
        notes: Free-text generation notes
        is_built_in: Shipped with the application (never serialized)
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    slug: str
    type: ProviderType = ProviderType.ANIME
    version: str = "1.0.0"
    generated_at: datetime = Field(default_factory=_utcnow)
    last_validated_at: Optional[datetime] = None
    hosts: HostConfig
    search: SearchConfig
    content: ContentConfig = Field(default_factory=ContentConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    transforms: List[TransformRule] = Field(default_factory=list)
    rate_limit: Optional[RateLimitConfig] = None
    notes: Optional[str] = None
    is_built_in: bool = Field(default=False, exclude=True)

    @field_validator("slug")
    @classmethod
    def _validate_slug(cls, value: str) -> str:
        if not SLUG_PATTERN.match(value):
            raise ValueError(
                f"Invalid slug '{value}': use lowercase letters, digits and single dashes"
            )
        return value

    @field_validator("version")
    @classmethod
    def _validate_version(cls, value: str) -> str:
        if not SEMVER_PATTERN.match(value):
            raise ValueError(f"Invalid version '{value}': expected MAJOR.MINOR.PATCH")
        return value

    @property
    def base_url(self) -> str:
        """Base URL used for connectivity checks."""
        host = self.hosts.base_host
        if host.startswith(("http://", "https://")):
            return host.rstrip("/")
        return f"https://{host}"

    @property
    def api_base_url(self) -> str:
        """Base for relative endpoints."""
        return (self.hosts.api_base or self.base_url).rstrip("/")

    def with_validated_at(self, when: Optional[datetime] = None) -> "DynamicProviderConfig":
        """Copy with last_validated_at refreshed."""
        return self.model_copy(update={"last_validated_at": when or _utcnow()})

    def bump_version(self, part: Literal["major", "minor", "patch"] = "patch") -> "DynamicProviderConfig":
        """Copy with the version incremented.

        Example:
            >>> config.version
            '1.0.0'
            >>> config.bump_version("minor").version
            '1.1.0'
        """
        major, minor, patch = (int(x) for x in self.version.split("."))
        if part == "major":
            major, minor, patch = major + 1, 0, 0
        elif part == "minor":
            minor, patch = minor + 1, 0
        else:
            patch += 1
        return self.model_copy(update={"version": f"{major}.{minor}.{patch}"})
