"""Domain entities returned by the catalog execution layer."""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Anime(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    provider: str
    detail_url: Optional[str] = None
    cover_image: Optional[str] = None
    synopsis: Optional[str] = None


class Manga(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    provider: str
    detail_url: Optional[str] = None
    cover_image: Optional[str] = None
    synopsis: Optional[str] = None


class Episode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    number: float = 0
    title: Optional[str] = None
    page_url: Optional[str] = None


class Chapter(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    number: float = 0
    title: Optional[str] = None
    page_url: Optional[str] = None


class StreamLink(BaseModel):
    """Playable stream URL with the headers needed to fetch it."""

    model_config = ConfigDict(frozen=True)

    url: str
    quality: str = "auto"
    provider: str
    referer: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class ChapterPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    image_url: str
    referer: Optional[str] = None
