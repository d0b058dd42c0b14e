"""
List/Search State Store
=======================
Holds the visible result set, pagination, active filters and loading/error
status for one listing context (movies or TV series). Every action runs
``idle -> loading -> ready | failed``; a new action always restarts the cycle.

Overlapping actions are sequenced: each action takes a ticket and only the
newest ticket may write visible state. A slow earlier response that lands
after a newer one is discarded.
"""
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Sequence, Tuple, Union

from app.schemas.catalog import (
    CatalogPage,
    Genre,
    MediaType,
    Movie,
    Series,
    SortField,
    TimeWindow,
)
from app.services.catalog_client import UPSTREAM_PAGE_SIZE, CatalogClient
from app.utils.cache import ResultCache, make_key
from app.utils.errors import CineScopeError

logger = logging.getLogger(__name__)

Item = Union[Movie, Series]

CategoryFetcher = Callable[[int, int], Awaitable[CatalogPage]]

DEFAULT_PAGE_SIZE = {MediaType.MOVIE: 40, MediaType.TV: 20}


class ListingStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ListingState:
    status: ListingStatus = ListingStatus.IDLE
    items: Tuple[Item, ...] = ()
    current_page: int = 1
    total_pages: int = 1
    category: str = "popular"
    active_query: str = ""
    active_genre_filter: Optional[int] = None
    loading: bool = False
    error: Optional[str] = None
    genres: Tuple[Genre, ...] = ()
    trending: Tuple[Item, ...] = ()
    trending_error: Optional[str] = None
    genres_error: Optional[str] = None


def sort_by_release_year(items: Sequence[Item]) -> Tuple[Item, ...]:
    """Newest first; ties and undated titles keep upstream order."""
    return tuple(sorted(items, key=lambda item: item.release_year or 0, reverse=True))


def _pages_for(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


class ListingStore:
    """State container for one listing context, owned by the composition root."""

    def __init__(
        self,
        client: CatalogClient,
        cache: ResultCache,
        media_type: MediaType = MediaType.MOVIE,
        page_size: Optional[int] = None,
    ):
        self._client = client
        self._cache = cache
        self.media_type = MediaType(media_type)
        self.page_size = page_size or DEFAULT_PAGE_SIZE[self.media_type]
        self._state = ListingState()
        self._sequence = 0
        self._trending_sequence = 0

        self._categories: Dict[str, CategoryFetcher] = {
            "popular": lambda page, count: client.list_popular(self.media_type, page, count),
            "top_rated": lambda page, count: client.list_top_rated(self.media_type, page, count),
        }
        if self.media_type is MediaType.MOVIE:
            self._categories["now_playing"] = lambda page, count: client.list_now_playing(page, count)
            self._categories["upcoming"] = lambda page, count: client.list_upcoming(page, count)
        else:
            self._categories["on_the_air"] = lambda page, count: client.list_on_the_air(page, count)

    @property
    def state(self) -> ListingState:
        return self._state

    @property
    def categories(self) -> Tuple[str, ...]:
        return tuple(self._categories)

    # ============================================
    # State transitions
    # ============================================

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)

    def _begin(self, **changes) -> int:
        self._sequence += 1
        self._update(status=ListingStatus.LOADING, loading=True, error=None, **changes)
        return self._sequence

    def _superseded(self, ticket: int) -> bool:
        if ticket != self._sequence:
            logger.debug(f"Discarding superseded {self.media_type.value} response ({ticket} < {self._sequence})")
            return True
        return False

    def _succeed(self, ticket: int, **changes) -> None:
        if self._superseded(ticket):
            return
        self._update(status=ListingStatus.READY, loading=False, error=None, **changes)

    def _fail(self, ticket: int, error: CineScopeError) -> None:
        if self._superseded(ticket):
            return
        # Items from the last successful fetch stay in place.
        self._update(status=ListingStatus.FAILED, loading=False, error=str(error))

    def _apply_genre_filter(self, items: Sequence[Item]) -> Tuple[Item, ...]:
        genre_id = self._state.active_genre_filter
        if genre_id is None:
            return tuple(items)
        # Filters the fetched page only; no extra pages are requested to backfill.
        return tuple(item for item in items if genre_id in item.genre_ids)

    # ============================================
    # Actions
    # ============================================

    async def load_by_category(self, page: int = 1, page_size: Optional[int] = None,
                               category: Optional[str] = None) -> None:
        page_size = page_size or self.page_size
        category = category or self._state.category
        fetch = self._categories.get(category)
        if fetch is None:
            raise ValueError(f"Invalid category for {self.media_type.value}: {category}")

        key = make_key(self.media_type.value, category, page, page_size)
        ticket = self._begin(category=category, active_query="")

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached data for {category} {self.media_type.value}, page {page}")
            self._succeed(
                ticket,
                items=self._apply_genre_filter(cached),
                current_page=page,
                total_pages=_pages_for(len(cached), page_size),
            )
            return

        logger.debug(f"Fetching {page_size} {category} {self.media_type.value} titles for page {page}")
        try:
            result = await fetch(page, page_size)
        except CineScopeError as e:
            logger.error(f"Error fetching {category} {self.media_type.value}: {e}")
            self._fail(ticket, e)
            return

        self._cache.put(key, result.items)
        self._succeed(
            ticket,
            items=self._apply_genre_filter(result.items),
            current_page=result.page,
            total_pages=result.total_pages,
        )

    async def search(self, query: str, page: int = 1, page_size: Optional[int] = None) -> None:
        if not query or not query.strip():
            await self.load_by_category(1, page_size)
            return

        page_size = page_size or self.page_size
        key = make_key(self.media_type.value, "search", query, page, page_size)
        ticket = self._begin(active_query=query)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached data for search: {query!r}, page {page}")
            self._succeed(
                ticket,
                items=tuple(cached),
                current_page=page,
                total_pages=_pages_for(len(cached), page_size),
            )
            return

        try:
            result = await self._client.search(query, self.media_type, page, page_size)
        except CineScopeError as e:
            logger.error(f"Error searching {self.media_type.value} for {query!r}: {e}")
            self._fail(ticket, e)
            return

        items = sort_by_release_year(result.items)
        self._cache.put(key, items)
        self._succeed(ticket, items=items, current_page=result.page, total_pages=result.total_pages)

    async def load_by_genre(self, genre_id: int, page: int = 1,
                            sort_field: SortField = SortField.POPULARITY,
                            descending: bool = True) -> None:
        """Server-side genre discovery. The genre also becomes the active filter."""
        sort_field = SortField(sort_field)
        key = make_key(self.media_type.value, "genre", genre_id, page, sort_field.value, descending)
        ticket = self._begin(active_genre_filter=genre_id, active_query="")

        cached = self._cache.get(key)
        if cached is not None:
            self._succeed(
                ticket,
                items=tuple(cached),
                current_page=page,
                total_pages=_pages_for(len(cached), UPSTREAM_PAGE_SIZE),
            )
            return

        sort_by = f"{sort_field.upstream_field(self.media_type)}.{'desc' if descending else 'asc'}"
        try:
            result = await self._client.discover_by_genre(genre_id, self.media_type, page, sort_by)
        except CineScopeError as e:
            logger.error(f"Error fetching {self.media_type.value} for genre {genre_id}: {e}")
            self._fail(ticket, e)
            return

        self._cache.put(key, result.items)
        self._succeed(ticket, items=tuple(result.items), current_page=result.page,
                      total_pages=result.total_pages)

    def set_genre_filter(self, genre_id: Optional[int]) -> None:
        """Client-side filter for later category loads; does not refetch."""
        self._update(active_genre_filter=genre_id)

    async def fetch_trending(self, window: TimeWindow = TimeWindow.WEEK, count: int = 60) -> None:
        window = TimeWindow(window)
        key = make_key(self.media_type.value, "trending", window.value, count)
        self._trending_sequence += 1
        ticket = self._trending_sequence

        items = self._cache.get(key)
        if items is None:
            try:
                result = await self._client.list_trending(window, count, self.media_type)
            except CineScopeError as e:
                if ticket == self._trending_sequence:
                    self._update(trending_error=str(e))
                return
            items = result.items
            self._cache.put(key, items)

        if ticket != self._trending_sequence:
            return
        self._update(trending=tuple(items), trending_error=None)

    async def fetch_genres(self) -> None:
        key = make_key(self.media_type.value, "genres")
        genres = self._cache.get(key)
        if genres is None:
            try:
                genres = await self._client.get_genres(self.media_type)
            except CineScopeError as e:
                logger.warning(f"Genre list for {self.media_type.value} unavailable: {e}")
                self._update(genres_error=str(e))
                return
            self._cache.put(key, genres)
        self._update(genres=tuple(genres), genres_error=None)

    def clear_cache(self) -> None:
        self._cache.clear()
