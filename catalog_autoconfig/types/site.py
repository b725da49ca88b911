"""Site profile produced by the external crawl.

The profile is an immutable snapshot of one crawl of a content website.
It is the only input to the autoconfig pipeline and is usually loaded from
a JSON document written by the crawler.

Example:
    >>> from catalog_autoconfig.types.site import SiteProfile
    >>> profile = SiteProfile(
    ...     base_url="https://anime.example.com",
    ...     has_graphql=True,
    ...     detected_api_endpoints=["/graphql"],
    ... )
    >>> profile.host
    'anime.example.com'
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catalog_autoconfig.types.enums import ContentCategory, SiteType


class SiteProfile(BaseModel):
    """Profile of a website gathered during the crawl.

    Unknown or missing fields fall back to empty values so a partial crawl
    still yields a usable profile.

    Attributes:
        base_url: Base URL of the site
        site_type: Detected architecture (static, spa, hybrid, unknown)
        category: Detected content category
        requires_javascript: Whether content needs JS to render
        has_cloudflare_protection: Whether Cloudflare was detected
        has_graphql: Whether the site appears to expose GraphQL
        server_software: Server header value, if any
        js_framework: Detected JS framework (React, Vue, ...)
        detected_api_endpoints: Candidate API paths or URLs
        detected_cdn_hosts: Hosts that serve media
        required_headers: Headers the site expects on API requests
        site_title: Page title
        site_description: Page meta description
        robots_txt: robots.txt contents
        errors: Errors collected during the crawl
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str = Field(..., description="Base URL of the site")
    site_type: SiteType = Field(default=SiteType.UNKNOWN, description="Site architecture")
    category: ContentCategory = Field(default=ContentCategory.UNKNOWN, description="Content category")
    requires_javascript: bool = Field(default=False, description="JS needed to render content")
    has_cloudflare_protection: bool = Field(default=False, description="Cloudflare detected")
    has_graphql: bool = Field(default=False, description="GraphQL API detected")
    server_software: Optional[str] = Field(default=None, description="Server software")
    js_framework: Optional[str] = Field(default=None, description="JS framework")
    detected_api_endpoints: List[str] = Field(default_factory=list, description="API endpoints")
    detected_cdn_hosts: List[str] = Field(default_factory=list, description="CDN hosts")
    required_headers: Dict[str, str] = Field(default_factory=dict, description="Required headers")
    site_title: Optional[str] = Field(default=None, description="Site title")
    site_description: Optional[str] = Field(default=None, description="Site description")
    robots_txt: Optional[str] = Field(default=None, description="robots.txt text")
    errors: List[str] = Field(default_factory=list, description="Crawl errors")

    @field_validator("detected_api_endpoints", "detected_cdn_hosts", "errors", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set)):
            return value
        return [item for item in value if isinstance(item, str) and item.strip()]

    @field_validator("required_headers", mode="before")
    @classmethod
    def _none_to_empty_dict(cls, value: Any) -> Any:
        return value or {}

    @field_validator("site_type", "category", mode="before")
    @classmethod
    def _lowercase_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or "unknown"
        return value

    @property
    def host(self) -> str:
        """Hostname of the base URL (empty string when unparseable)."""
        return urlparse(self.base_url).hostname or ""

    @property
    def scheme(self) -> str:
        """Scheme of the base URL, defaulting to https."""
        return urlparse(self.base_url).scheme or "https"

    @property
    def netloc(self) -> str:
        """Host and port of the base URL (empty string when unparseable)."""
        return urlparse(self.base_url).netloc.rsplit("@", 1)[-1] if self.host else ""

    @property
    def origin(self) -> str:
        """Scheme, host and port of the base URL.

        Example:
            >>> SiteProfile(base_url="http://anime.local:8080/home").origin
            'http://anime.local:8080'
        """
        return f"{self.scheme}://{self.netloc}"

    def resolve(self, endpoint: str) -> str:
        """Resolve a detected endpoint against the base URL.

        Example:
            >>> SiteProfile(base_url="https://x.io").resolve("/graphql")
            'https://x.io/graphql'
        """
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return urljoin(self.base_url.rstrip("/") + "/", endpoint.lstrip("/"))
