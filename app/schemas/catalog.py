"""
Catalog schemas
Parsed shapes of the external movie/TV catalog API
"""
from datetime import date
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class MediaType(str, Enum):
    MOVIE = "movie"
    TV = "tv"


class TimeWindow(str, Enum):
    """Time window for trending titles"""
    DAY = "day"
    WEEK = "week"


class SortField(str, Enum):
    """Sort keys accepted by genre discovery"""
    POPULARITY = "popularity"
    RATING = "rating"
    RELEASE_DATE = "release_date"

    def upstream_field(self, media_type: MediaType) -> str:
        if self is SortField.RATING:
            return "vote_average"
        if self is SortField.RELEASE_DATE:
            return "primary_release_date" if media_type is MediaType.MOVIE else "first_air_date"
        return "popularity"


# ============================================
# Catalog items (Movie | Series)
# ============================================

class CatalogItemBase(BaseModel):
    id: int
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    vote_average: float = Field(default=0.0, ge=0.0, le=10.0)
    vote_count: int = 0
    popularity: float = 0.0
    genre_ids: Tuple[int, ...] = ()
    original_language: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("overview", mode="before")
    @classmethod
    def empty_overview(cls, v):
        return v or ""

    @field_validator("genre_ids", mode="before")
    @classmethod
    def empty_genres(cls, v):
        return v or ()

    @property
    def display_title(self) -> str:
        raise NotImplementedError

    @property
    def release_or_air_date(self) -> Optional[date]:
        raise NotImplementedError

    @property
    def release_year(self) -> Optional[int]:
        value = self.release_or_air_date
        return value.year if value else None

    @property
    def identity(self) -> Tuple[str, int]:
        return (self.media_type, self.id)


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class Movie(CatalogItemBase):
    media_type: Literal["movie"] = "movie"
    title: str = ""
    release_date: Optional[date] = None

    @field_validator("release_date", mode="before")
    @classmethod
    def blank_release_date(cls, v):
        return _blank_to_none(v)

    @property
    def display_title(self) -> str:
        return self.title

    @property
    def release_or_air_date(self) -> Optional[date]:
        return self.release_date


class Series(CatalogItemBase):
    media_type: Literal["tv"] = "tv"
    name: str = ""
    first_air_date: Optional[date] = None
    origin_country: Tuple[str, ...] = ()

    @field_validator("first_air_date", mode="before")
    @classmethod
    def blank_first_air_date(cls, v):
        return _blank_to_none(v)

    @property
    def display_title(self) -> str:
        return self.name

    @property
    def release_or_air_date(self) -> Optional[date]:
        return self.first_air_date


CatalogItem = Annotated[Union[Movie, Series], Field(discriminator="media_type")]

_item_adapter: TypeAdapter = TypeAdapter(CatalogItem)


def parse_item(raw: Dict[str, Any], media_type: MediaType) -> Union[Movie, Series]:
    """
    Parse one upstream result. List endpoints omit ``media_type``; the
    endpoint's own media type is used in that case.
    """
    data = dict(raw)
    data["media_type"] = raw.get("media_type") or media_type.value
    return _item_adapter.validate_python(data)


# ============================================
# Pages, genres, videos, credits
# ============================================

class CatalogPage(BaseModel):
    items: List[CatalogItem] = []
    page: int = 1
    total_pages: int = 1
    total_results: int = 0


class Genre(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(frozen=True)


class Video(BaseModel):
    id: str
    key: str
    name: str = ""
    site: str
    type: str
    official: bool = False
    published_at: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CastMember(BaseModel):
    id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None
    order: Optional[int] = None


class CrewMember(BaseModel):
    id: int
    name: str
    job: Optional[str] = None
    department: Optional[str] = None
    profile_path: Optional[str] = None


class Credits(BaseModel):
    id: int
    cast: List[CastMember] = []
    crew: List[CrewMember] = []
