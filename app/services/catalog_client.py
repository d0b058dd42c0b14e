import asyncio
import logging
import math
import os
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from app.schemas.catalog import (
    CatalogPage,
    Credits,
    Genre,
    MediaType,
    Movie,
    Series,
    TimeWindow,
    Video,
    parse_item,
)
from app.utils.errors import (
    CatalogError,
    NetworkUnreachable,
    UnknownCatalogError,
    classify_status,
)
from app.utils.retry import RetryPolicy, retry_async

load_dotenv()
logger = logging.getLogger(__name__)

TMDB_BASE_URL = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3")
TMDB_API_KEY = os.getenv("TMDB_API_KEY")
TMDB_LANGUAGE = os.getenv("TMDB_LANGUAGE", "en-US")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
UPSTREAM_PAGE_SIZE = 20
SUPPORTED_VIDEO_SITE = "YouTube"
TRAILER_TYPE_PREFERENCE = ("Trailer", "Teaser", "Clip", "Behind the Scenes")

T = TypeVar("T")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, CatalogError) and exc.is_retryable


def best_trailer(videos: Optional[Sequence[Video]]) -> Optional[Video]:
    """
    Pick the video to embed as a title's trailer.

    Type precedence beats the official flag: an unofficial Trailer wins over
    an official Teaser. Within a type, official uploads on the supported site
    come first. Returns None when nothing on the supported site exists.
    """
    if not videos:
        return None

    for video_type in TRAILER_TYPE_PREFERENCE:
        candidates = [v for v in videos if v.type == video_type and v.site == SUPPORTED_VIDEO_SITE]
        for video in candidates:
            if video.official:
                return video
        if candidates:
            return candidates[0]

    return next((v for v in videos if v.site == SUPPORTED_VIDEO_SITE), None)


def image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
    """Absolute image URL for a poster/backdrop path."""
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{IMAGE_BASE_URL}/{size}{path}"


def create_http_client(base_url: str = TMDB_BASE_URL, timeout: float = HTTP_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout)


class CatalogClient:
    """
    Async client for the external movie/TV catalog API.

    Every failure is raised as one of the classified ``CatalogError`` types.
    Only the trending aggregation retries; everything else surfaces the
    first failure.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = TMDB_API_KEY,
        language: str = TMDB_LANGUAGE,
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep=asyncio.sleep,
    ):
        if not api_key:
            raise ValueError("TMDB API key is required to use the catalog client")
        self._client = http_client
        self._api_key = api_key
        self._language = language
        self._retry_policy = retry_policy
        self._sleep = sleep

    # Internal method to make GET requests to the catalog API
    async def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make HTTP request to the catalog API.

        Args:
            endpoint: API endpoint (e.g., "/movie/popular")
            params: Query parameters

        Returns:
            JSON response body

        Raises:
            CatalogError: classified failure
        """
        query = {"api_key": self._api_key, "language": self._language}
        query.update({k: v for k, v in (params or {}).items() if v is not None})

        try:
            response = await self._client.get(endpoint, params=query)
        except httpx.TransportError as e:
            logger.error(f"Catalog API unreachable for {endpoint}: {e!r}")
            raise NetworkUnreachable() from e

        if response.status_code >= 400:
            upstream_message = None
            try:
                upstream_message = response.json().get("status_message")
            except (ValueError, AttributeError):
                pass
            logger.error(f"Catalog API error for {endpoint}: HTTP {response.status_code}")
            raise classify_status(response.status_code, upstream_message)

        try:
            data = response.json()
        except ValueError as e:
            raise UnknownCatalogError("Invalid response from the catalog API") from e
        if not isinstance(data, dict):
            raise UnknownCatalogError("Invalid response from the catalog API")

        logger.debug(f"Catalog API request successful: {endpoint}")
        return data

    @staticmethod
    def _validate(parse: Callable[[], T]) -> T:
        """Run a model parse, reporting malformed bodies as UnknownCatalogError."""
        try:
            return parse()
        except ValidationError as e:
            raise UnknownCatalogError("Invalid response from the catalog API") from e

    def _parse_page(self, data: Dict[str, Any], media_type: MediaType) -> CatalogPage:
        results = data.get("results")
        if results is None:
            raise UnknownCatalogError("Invalid response from the catalog API")
        items = self._validate(lambda: [parse_item(raw, media_type) for raw in results])
        return CatalogPage(
            items=items,
            page=data.get("page") or 1,
            total_pages=data.get("total_pages") or 1,
            total_results=data.get("total_results") or len(results),
        )

    async def _fetch_page(self, endpoint: str, media_type: MediaType, params: Dict[str, Any]) -> CatalogPage:
        return self._parse_page(await self._make_request(endpoint, params), media_type)

    async def _fetch_pages(
        self,
        endpoint: str,
        media_type: MediaType,
        page: int,
        count: int,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = False,
    ) -> CatalogPage:
        """
        Collect ``count`` results for caller page ``page``.

        Upstream pages are fixed at 20 results, so ``ceil(count / 20)`` pages
        are requested concurrently. Caller pages map onto non-overlapping
        upstream windows. Results keep upstream page order and are truncated
        to ``count``; totals come from the first page. One failed page fails
        the whole call.
        """
        pages_needed = max(1, math.ceil(count / UPSTREAM_PAGE_SIZE))
        first_upstream_page = (page - 1) * pages_needed + 1

        def fetch(upstream_page: int):
            page_params = dict(params or {}, page=upstream_page)
            if retry:
                return retry_async(
                    lambda: self._fetch_page(endpoint, media_type, page_params),
                    policy=self._retry_policy,
                    should_retry=_is_retryable,
                    sleep=self._sleep,
                )
            return self._fetch_page(endpoint, media_type, page_params)

        responses = await asyncio.gather(
            *(fetch(first_upstream_page + i) for i in range(pages_needed))
        )

        items: List[Union[Movie, Series]] = []
        for response in responses:
            items.extend(response.items)

        logger.debug(f"Aggregated {len(items)} results from {pages_needed} page(s) of {endpoint}")
        return CatalogPage(
            items=items[:count],
            page=page,
            total_pages=responses[0].total_pages,
            total_results=responses[0].total_results,
        )

    # ============================================
    # Listings
    # ============================================

    async def list_popular(self, media_type: MediaType = MediaType.MOVIE, page: int = 1,
                           count: int = UPSTREAM_PAGE_SIZE) -> CatalogPage:
        return await self._fetch_pages(f"/{media_type.value}/popular", media_type, page, count)

    async def list_top_rated(self, media_type: MediaType = MediaType.MOVIE, page: int = 1,
                             count: int = UPSTREAM_PAGE_SIZE) -> CatalogPage:
        return await self._fetch_pages(f"/{media_type.value}/top_rated", media_type, page, count)

    async def list_now_playing(self, page: int = 1, count: int = UPSTREAM_PAGE_SIZE,
                               region: str = "US") -> CatalogPage:
        return await self._fetch_pages("/movie/now_playing", MediaType.MOVIE, page, count, {"region": region})

    async def list_upcoming(self, page: int = 1, count: int = UPSTREAM_PAGE_SIZE,
                            region: str = "US") -> CatalogPage:
        return await self._fetch_pages("/movie/upcoming", MediaType.MOVIE, page, count, {"region": region})

    async def list_on_the_air(self, page: int = 1, count: int = UPSTREAM_PAGE_SIZE) -> CatalogPage:
        return await self._fetch_pages("/tv/on_the_air", MediaType.TV, page, count)

    async def list_trending(self, window: TimeWindow = TimeWindow.WEEK, count: int = 60,
                            media_type: MediaType = MediaType.MOVIE) -> CatalogPage:
        """Trending titles over ``window``; each page fetch is retried on transient failures."""
        window = TimeWindow(window)
        return await self._fetch_pages(f"/trending/{media_type.value}/{window.value}", media_type, 1, count, retry=True)

    async def search(self, query: str, media_type: MediaType = MediaType.MOVIE, page: int = 1,
                     count: int = UPSTREAM_PAGE_SIZE, include_adult: bool = False,
                     year: Optional[int] = None) -> CatalogPage:
        params: Dict[str, Any] = {"query": query, "include_adult": str(include_adult).lower()}
        if year:
            params["year" if media_type is MediaType.MOVIE else "first_air_date_year"] = year
        return await self._fetch_pages(f"/search/{media_type.value}", media_type, page, count, params)

    async def discover_by_genre(self, genre_id: int, media_type: MediaType = MediaType.MOVIE,
                                page: int = 1, sort_by: str = "popularity.desc") -> CatalogPage:
        return await self._fetch_page(
            f"/discover/{media_type.value}",
            media_type,
            {"with_genres": genre_id, "page": page, "sort_by": sort_by},
        )

    async def get_genres(self, media_type: MediaType = MediaType.MOVIE) -> List[Genre]:
        data = await self._make_request(f"/genre/{media_type.value}/list")
        return self._validate(lambda: [Genre.model_validate(g) for g in data.get("genres", [])])

    # ============================================
    # Title details
    # ============================================

    async def get_details(self, item_id: int, media_type: MediaType = MediaType.MOVIE,
                          append: Iterable[str] = ("videos", "credits")) -> Dict[str, Any]:
        params = {"append_to_response": ",".join(append)} if append else None
        return await self._make_request(f"/{media_type.value}/{item_id}", params)

    async def get_credits(self, item_id: int, media_type: MediaType = MediaType.MOVIE) -> Credits:
        data = await self._make_request(f"/{media_type.value}/{item_id}/credits")
        return self._validate(lambda: Credits.model_validate(data))

    async def get_similar(self, item_id: int, media_type: MediaType = MediaType.MOVIE,
                          page: int = 1) -> CatalogPage:
        return await self._fetch_page(f"/{media_type.value}/{item_id}/similar", media_type, {"page": page})

    async def get_videos(self, item_id: int, media_type: MediaType = MediaType.MOVIE) -> List[Video]:
        data = await self._make_request(f"/{media_type.value}/{item_id}/videos")
        return self._validate(lambda: [Video.model_validate(v) for v in data.get("results", [])])

    async def get_season(self, series_id: int, season_number: int) -> Dict[str, Any]:
        return await self._make_request(f"/tv/{series_id}/season/{season_number}")
