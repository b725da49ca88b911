"""Execution layer: runs a DynamicProviderConfig against its site.

DynamicCatalog is the default implementation of CatalogProtocol. GraphQL
operations are sent as POST {query, variables}; REST operations as GET
with placeholders substituted into the path. Malformed responses raise so
callers (the validator in particular) can report them.

Example:
    >>> catalog = DynamicCatalog(config, client)
    >>> results = await catalog.search("Naruto")
    >>> episodes = await catalog.get_episodes(results[0].id)
    >>> streams = await catalog.get_streams(episodes[0].id)
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable
from urllib.parse import quote

import httpx

from catalog_autoconfig.runtime.transform_engine import TransformEngine
from catalog_autoconfig.types.domain import Anime, Chapter, ChapterPage, Episode, Manga, StreamLink
from catalog_autoconfig.types.enums import ProviderType, RequestMethod
from catalog_autoconfig.types.errors import CatalogError
from catalog_autoconfig.types.provider_config import DynamicProviderConfig, EndpointConfig

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{(\w+)\}|\$\((\w+)\)|\$(\w+)")

EPISODE_MARKER = ":ep-"
CHAPTER_MARKER = ":ch-"

ContentItem = Union[Anime, Manga]


@runtime_checkable
class CatalogProtocol(Protocol):
    """Operations the validator exercises against a configured provider."""

    async def search(self, query: str) -> Sequence[ContentItem]: ...

    async def get_episodes(self, content_id: str) -> Sequence[Episode]: ...

    async def get_chapters(self, content_id: str) -> Sequence[Chapter]: ...

    async def get_streams(self, episode_id: str) -> Sequence[StreamLink]: ...

    async def get_pages(self, chapter_id: str) -> Sequence[ChapterPage]: ...


def fill_placeholders(text: str, values: Mapping[str, Any], quote_values: bool = False) -> str:
    """Substitute ${key}, $(key) and $key; unknown keys are left as-is.

    Example:
        >>> fill_placeholders("/search?q=${query}", {"query": "One Piece"}, quote_values=True)
        '/search?q=One%20Piece'
    """

    def replace(match: "re.Match[str]") -> str:
        key = match.group(1) or match.group(2) or match.group(3)
        if key not in values:
            return match.group(0)
        value = str(values[key])
        return quote(value, safe="") if quote_values else value

    return _PLACEHOLDER.sub(replace, text)


def fill_variables(template: Any, values: Mapping[str, Any]) -> Any:
    """Recursively fill a variables template.

    A string that is exactly one known placeholder takes the raw value, so
    numeric values stay numeric.
    """
    if isinstance(template, str):
        whole = _PLACEHOLDER.fullmatch(template)
        if whole:
            key = whole.group(1) or whole.group(2) or whole.group(3)
            if key in values:
                return values[key]
        return fill_placeholders(template, values)
    if isinstance(template, dict):
        return {key: fill_variables(value, values) for key, value in template.items()}
    if isinstance(template, list):
        return [fill_variables(value, values) for value in template]
    return template


def _split_id(item_id: str, marker: str) -> tuple[str, str]:
    index = item_id.lower().rfind(marker)
    if index > 0:
        return item_id[:index], item_id[index + len(marker):]
    return item_id, "1"


def _parse_number(raw: Optional[str], fallback: float) -> float:
    if raw is None:
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


def _format_number(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


class DynamicCatalog:
    """Executes configured operations over a shared AsyncClient.

    Attributes:
        config: Provider configuration being executed
        client: Shared httpx.AsyncClient
        transforms: Field extraction engine
    """

    def __init__(
        self,
        config: DynamicProviderConfig,
        client: httpx.AsyncClient,
        transforms: Optional[TransformEngine] = None,
    ):
        self.config = config
        self.client = client
        self.transforms = transforms or TransformEngine()

    @property
    def provider_name(self) -> str:
        return self.config.name

    async def search(self, query: str) -> List[ContentItem]:
        """Search the provider; raises on HTTP or payload errors."""
        operation = self.config.search
        values = {
            "query": query,
            "search": query,
            "keyword": query,
            "q": query,
            "limit": operation.page_size,
        }
        items = await self._run(operation, values, "search")

        entity = Manga if self.config.type == ProviderType.MANGA else Anime
        results: List[ContentItem] = []
        for item in items:
            content_id = item.get("Id")
            if not content_id:
                logger.debug("Skipping search result without Id", extra={"provider": self.config.slug})
                continue
            results.append(
                entity(
                    id=content_id,
                    title=item.get("Title") or "Unknown",
                    provider=self.config.name,
                    detail_url=item.get("DetailPage"),
                    cover_image=item.get("CoverImage"),
                    synopsis=item.get("Synopsis"),
                )
            )
        return results

    async def get_episodes(self, content_id: str) -> List[Episode]:
        operation = self.config.content.episodes
        if operation is None:
            logger.warning(f"No episode configuration for provider {self.config.slug}")
            return []
        values = {"id": content_id, "showId": content_id, "animeId": content_id}
        items = await self._run(operation, values, "episodes")

        episodes = []
        for position, item in enumerate(items, start=1):
            number = _parse_number(item.get("Number"), position)
            label = _format_number(number)
            episodes.append(
                Episode(
                    id=item.get("Id") or f"{content_id}{EPISODE_MARKER}{label}",
                    number=number,
                    title=item.get("Title") or f"Episode {label}",
                    page_url=item.get("Page"),
                )
            )
        return sorted(episodes, key=lambda e: e.number)

    async def get_chapters(self, content_id: str) -> List[Chapter]:
        operation = self.config.content.chapters
        if operation is None:
            logger.warning(f"No chapter configuration for provider {self.config.slug}")
            return []
        values = {"id": content_id, "mangaId": content_id, "showId": content_id}
        items = await self._run(operation, values, "chapters")

        chapters = []
        for position, item in enumerate(items, start=1):
            number = _parse_number(item.get("Number"), position)
            label = _format_number(number)
            chapters.append(
                Chapter(
                    id=item.get("Id") or f"{content_id}{CHAPTER_MARKER}{label}",
                    number=number,
                    title=item.get("Title") or f"Chapter {label}",
                    page_url=item.get("Page"),
                )
            )
        return sorted(chapters, key=lambda c: c.number)

    async def get_streams(self, episode_id: str) -> List[StreamLink]:
        operation = self.config.media.streams
        if operation is None:
            logger.warning(f"No stream configuration for provider {self.config.slug}")
            return []
        show_id, episode = _split_id(episode_id, EPISODE_MARKER)
        values = {
            "id": episode_id,
            "episodeId": episode_id,
            "showId": show_id,
            "animeId": show_id,
            "episode": episode,
            "ep": episode,
            "episodeString": episode,
        }
        items = await self._run(operation, values, "streams")

        streams = []
        for item in items:
            url = self._decode(item.get("Url"), operation.custom_decoder)
            if not url or not url.startswith(("http://", "https://")):
                continue
            streams.append(
                StreamLink(
                    url=url,
                    quality=item.get("Quality") or "auto",
                    provider=item.get("Provider") or self.config.name,
                    referer=self.config.hosts.referer,
                    headers=dict(self.config.hosts.custom_headers),
                )
            )
        return streams

    async def get_pages(self, chapter_id: str) -> List[ChapterPage]:
        operation = self.config.media.pages
        if operation is None:
            logger.warning(f"No page configuration for provider {self.config.slug}")
            return []
        manga_id, chapter = _split_id(chapter_id, CHAPTER_MARKER)
        values = {"id": chapter_id, "chapterId": chapter_id, "mangaId": manga_id, "chapter": chapter}
        items = await self._run(operation, values, "pages")

        pages = []
        for item in items:
            image = item.get("Url") or item.get("ImageUrl")
            if not image:
                continue
            if operation.image_base_url and not image.startswith(("http://", "https://")):
                image = operation.image_base_url.rstrip("/") + "/" + image.lstrip("/")
            pages.append(
                ChapterPage(
                    number=len(pages) + 1,
                    image_url=image,
                    referer=self.config.hosts.referer,
                )
            )
        return pages

    def _decode(self, value: Optional[str], decoder: Optional[str]) -> Optional[str]:
        if value is None or not decoder:
            return value
        rule = next((t for t in self.config.transforms if t.name == decoder), None)
        if rule is not None:
            return self.transforms.apply_rule(value, rule)
        if self.transforms.has_decoder(decoder):
            return self.transforms.apply_decoder(value, decoder)
        return value

    def _url_for(self, endpoint: str, values: Mapping[str, Any]) -> str:
        filled = fill_placeholders(endpoint, values, quote_values=True)
        if filled.startswith(("http://", "https://")):
            return filled
        return f"{self.config.api_base_url}/{filled.lstrip('/')}"

    async def _run(
        self, operation: EndpointConfig, values: Dict[str, Any], name: str
    ) -> List[Dict[str, Optional[str]]]:
        url = self._url_for(operation.endpoint, values)
        headers = self.config.hosts.headers()

        if operation.method == RequestMethod.GRAPHQL:
            body = {"query": operation.query_template, "variables": fill_variables(operation.variables, values)}
            logger.debug(f"POST {url} ({name})", extra={"provider": self.config.slug})
            response = await self.client.post(url, json=body, headers=headers)
        else:
            path = fill_placeholders(operation.query_template, values, quote_values=True)
            if path.startswith(("http://", "https://")):
                url = path
            elif path:
                url = url.rstrip("/") + path if path[0] in "/?&" else f"{url.rstrip('/')}/{path}"
            logger.debug(f"GET {url} ({name})", extra={"provider": self.config.slug})
            response = await self.client.get(url, headers=headers)

        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogError(f"Non-JSON response for {name}", url=url, phase=name) from e

        if operation.method == RequestMethod.GRAPHQL and isinstance(payload, dict):
            errors = payload.get("errors")
            if errors and payload.get("data") is None:
                first = errors[0] if isinstance(errors, list) and errors else errors
                message = first.get("message") if isinstance(first, dict) else str(first)
                raise CatalogError(f"GraphQL error: {message}", url=url, phase=name)

        return self.transforms.extract_all(payload, operation.result_mapping, operation.results_path)
