import asyncio
from datetime import date

import pytest

from app.schemas.catalog import CatalogPage, Genre, MediaType, Movie, Series, SortField, TimeWindow
from app.stores.listing_store import ListingStatus, ListingStore, sort_by_release_year
from app.utils.cache import ResultCache
from app.utils.errors import NetworkUnreachable, UpstreamUnavailable


def movie(id_, year=None, genres=()):
    return Movie(id=id_, title=f"Movie {id_}",
                 release_date=date(year, 1, 1) if year else None, genre_ids=genres)


def page_of(items, page=1, total_pages=10):
    return CatalogPage(items=list(items), page=page, total_pages=total_pages, total_results=len(items) * total_pages)


class StubCatalog:
    """Stands in for CatalogClient; records calls and replays canned answers."""

    def __init__(self):
        self.calls = []
        self.popular = page_of([movie(i) for i in range(1, 41)])
        self.search_result = page_of([])
        self.genre_result = page_of([])
        self.trending = page_of([])
        self.error = None
        self.gates = {}

    async def _answer(self, name, result):
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return result

    async def list_popular(self, media_type, page, count):
        return await self._answer("popular", self.popular)

    async def list_top_rated(self, media_type, page, count):
        return await self._answer("top_rated", self.popular)

    async def list_now_playing(self, page, count):
        return await self._answer("now_playing", self.popular)

    async def list_upcoming(self, page, count):
        return await self._answer("upcoming", self.popular)

    async def list_on_the_air(self, page, count):
        return await self._answer("on_the_air", self.popular)

    async def search(self, query, media_type, page, count):
        return await self._answer(f"search:{query}", self.search_result)

    async def discover_by_genre(self, genre_id, media_type, page, sort_by):
        self.last_sort_by = sort_by
        return await self._answer("genre", self.genre_result)

    async def list_trending(self, window, count, media_type):
        return await self._answer("trending", self.trending)

    async def get_genres(self, media_type):
        return await self._answer("genres", [Genre(id=28, name="Action")])


@pytest.fixture
def catalog():
    return StubCatalog()


@pytest.fixture
def store(catalog):
    return ListingStore(catalog, ResultCache(), MediaType.MOVIE)


# ============================================
# Category loads
# ============================================

@pytest.mark.anyio
async def test_load_by_category_populates_state(store, catalog):
    await store.load_by_category()

    state = store.state
    assert state.status is ListingStatus.READY
    assert state.loading is False
    assert len(state.items) == 40
    assert state.total_pages == 10
    assert catalog.calls == ["popular"]


@pytest.mark.anyio
async def test_cache_hit_skips_fetch_and_derives_total_pages(store, catalog):
    await store.load_by_category(1, 40)
    await store.load_by_category(1, 40)

    assert catalog.calls == ["popular"]
    assert store.state.total_pages == 1
    assert len(store.state.items) == 40


@pytest.mark.anyio
async def test_unknown_category_is_rejected(store):
    with pytest.raises(ValueError):
        await store.load_by_category(category="on_the_air")


def test_category_sets_per_media_type(catalog):
    movies = ListingStore(catalog, ResultCache(), MediaType.MOVIE)
    series = ListingStore(catalog, ResultCache(), MediaType.TV)

    assert set(movies.categories) == {"popular", "top_rated", "now_playing", "upcoming"}
    assert set(series.categories) == {"popular", "top_rated", "on_the_air"}
    assert movies.page_size == 40
    assert series.page_size == 20


@pytest.mark.anyio
async def test_failure_keeps_previous_items(store, catalog):
    await store.load_by_category()
    before = store.state.items

    catalog.error = NetworkUnreachable()
    await store.load_by_category(2)

    assert store.state.status is ListingStatus.FAILED
    assert store.state.items == before
    assert store.state.error == "No response from server. Please check your internet connection"


@pytest.mark.anyio
async def test_media_types_do_not_share_cache_entries(catalog):
    cache = ResultCache()
    movies = ListingStore(catalog, cache, MediaType.MOVIE, page_size=20)
    series = ListingStore(catalog, cache, MediaType.TV, page_size=20)

    await movies.load_by_category()
    await series.load_by_category()

    assert catalog.calls == ["popular", "popular"]


# ============================================
# Search
# ============================================

@pytest.mark.anyio
async def test_search_sorts_newest_first(store, catalog):
    catalog.search_result = page_of([movie(1, 1999), movie(2, 2021), movie(3), movie(4, 2010)])

    await store.search("matrix")

    assert [item.id for item in store.state.items] == [2, 4, 1, 3]
    assert store.state.active_query == "matrix"


def test_sort_by_release_year_is_stable_for_ties():
    items = [movie(1, 2000), movie(2, 2000), movie(3, 2001)]

    assert [item.id for item in sort_by_release_year(items)] == [3, 1, 2]


@pytest.mark.anyio
async def test_blank_search_matches_first_category_page(catalog):
    searched = ListingStore(catalog, ResultCache(), MediaType.MOVIE)
    loaded = ListingStore(catalog, ResultCache(), MediaType.MOVIE)

    await searched.search("   ")
    await loaded.load_by_category(1)

    assert searched.state == loaded.state
    assert not any(call.startswith("search") for call in catalog.calls)


@pytest.mark.anyio
async def test_search_failure_is_recorded(store, catalog):
    catalog.error = UpstreamUnavailable()

    await store.search("dune")

    assert store.state.status is ListingStatus.FAILED
    assert store.state.error == "Server error. Please try again later"


# ============================================
# Genres
# ============================================

@pytest.mark.anyio
async def test_genre_filter_does_not_backfill(store, catalog):
    catalog.popular = page_of([movie(i, genres=(28,) if i <= 3 else (18,)) for i in range(1, 41)])
    store.set_genre_filter(28)

    await store.load_by_category()

    assert [item.id for item in store.state.items] == [1, 2, 3]
    assert catalog.calls == ["popular"]


@pytest.mark.anyio
async def test_genre_filter_applies_to_cached_pages(store, catalog):
    catalog.popular = page_of([movie(1, genres=(28,)), movie(2, genres=(18,))])
    await store.load_by_category()

    store.set_genre_filter(18)
    await store.load_by_category()

    assert [item.id for item in store.state.items] == [2]
    assert catalog.calls == ["popular"]


@pytest.mark.anyio
async def test_load_by_genre_sets_filter_and_sort(store, catalog):
    catalog.genre_result = page_of([movie(5, genres=(35,))], total_pages=3)

    await store.load_by_genre(35, sort_field=SortField.RELEASE_DATE, descending=False)

    assert store.state.active_genre_filter == 35
    assert store.state.total_pages == 3
    assert catalog.last_sort_by == "primary_release_date.asc"


@pytest.mark.anyio
async def test_load_by_genre_cache_hit_uses_upstream_page_size(store, catalog):
    catalog.genre_result = page_of([movie(i) for i in range(1, 21)], total_pages=9)

    await store.load_by_genre(35)
    await store.load_by_genre(35)

    assert catalog.calls == ["genre"]
    assert store.state.total_pages == 1


@pytest.mark.anyio
async def test_fetch_genres_is_cached(store, catalog):
    await store.fetch_genres()
    await store.fetch_genres()

    assert store.state.genres == (Genre(id=28, name="Action"),)
    assert catalog.calls == ["genres"]


@pytest.mark.anyio
async def test_genres_failure_does_not_touch_listing(store, catalog):
    await store.load_by_category()
    catalog.error = UpstreamUnavailable()

    await store.fetch_genres()

    assert store.state.genres_error == "Server error. Please try again later"
    assert store.state.status is ListingStatus.READY
    assert store.state.error is None


# ============================================
# Trending
# ============================================

@pytest.mark.anyio
async def test_trending_failure_does_not_touch_listing(store, catalog):
    await store.load_by_category()
    catalog.error = UpstreamUnavailable()

    await store.fetch_trending(TimeWindow.DAY)

    assert store.state.trending_error == "Server error. Please try again later"
    assert store.state.status is ListingStatus.READY


@pytest.mark.anyio
async def test_tv_trending_items(catalog):
    catalog.trending = page_of([Series(id=1, name="Show")])
    series = ListingStore(catalog, ResultCache(), MediaType.TV)

    await series.fetch_trending()

    assert [item.display_title for item in series.state.trending] == ["Show"]


# ============================================
# Overlapping actions
# ============================================

@pytest.mark.anyio
async def test_stale_response_is_discarded(store, catalog):
    gate = asyncio.Event()
    catalog.gates["search:slow"] = gate
    catalog.search_result = page_of([movie(99, 2001)])

    slow = asyncio.ensure_future(store.search("slow"))
    await asyncio.sleep(0)
    await store.load_by_category()
    gate.set()
    await slow

    assert store.state.active_query == ""
    assert len(store.state.items) == 40
    assert store.state.status is ListingStatus.READY


@pytest.mark.anyio
async def test_stale_failure_does_not_overwrite_newer_result(store, catalog):
    gate = asyncio.Event()
    catalog.gates["search:slow"] = gate

    slow = asyncio.ensure_future(store.search("slow"))
    await asyncio.sleep(0)
    await store.load_by_category()
    catalog.error = NetworkUnreachable()
    gate.set()
    await slow

    assert store.state.status is ListingStatus.READY
    assert store.state.error is None


@pytest.mark.anyio
async def test_loading_flag_while_in_flight(store, catalog):
    gate = asyncio.Event()
    catalog.gates["popular"] = gate

    pending = asyncio.ensure_future(store.load_by_category())
    await asyncio.sleep(0)
    assert store.state.loading is True
    assert store.state.status is ListingStatus.LOADING

    gate.set()
    await pending
    assert store.state.loading is False


@pytest.mark.anyio
async def test_clear_cache_forces_refetch(store, catalog):
    await store.load_by_category()
    store.clear_cache()
    await store.load_by_category()

    assert catalog.calls == ["popular", "popular"]


@pytest.mark.anyio
async def test_slow_page_one_does_not_replace_page_two():
    class PagedCatalog(StubCatalog):
        def __init__(self):
            super().__init__()
            self.page_one_gate = asyncio.Event()

        async def list_popular(self, media_type, page, count):
            if page == 1:
                await self.page_one_gate.wait()
            return page_of([movie(page * 100 + i) for i in range(count)], page=page)

    catalog = PagedCatalog()
    store = ListingStore(catalog, ResultCache(), MediaType.MOVIE, page_size=20)

    first = asyncio.ensure_future(store.load_by_category(1))
    await asyncio.sleep(0)
    await store.load_by_category(2)
    catalog.page_one_gate.set()
    await first

    assert store.state.current_page == 2
    assert store.state.items[0].id == 200
    assert store.state.loading is False
