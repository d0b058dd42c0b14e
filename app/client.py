"""
Client composition root.

Usage:
    async with DiscoveryClient() as client:
        await client.auth.check_authentication()
        await client.movies.load_by_category()
        print(client.movies.state.items)
"""
import logging
import os
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

from app.schemas.catalog import MediaType
from app.services.account_client import ACCOUNT_API_URL, AccountClient
from app.services.catalog_client import HTTP_TIMEOUT_SECONDS, TMDB_API_KEY, TMDB_BASE_URL, CatalogClient
from app.stores.auth_store import AuthStore
from app.stores.listing_store import ListingStore
from app.utils.cache import ResultCache
from app.utils.storage import JSONFileStorage

load_dotenv()
logger = logging.getLogger(__name__)

CLIENT_STORAGE_PATH = os.getenv("CLIENT_STORAGE_PATH", str(Path.home() / ".cinescope" / "session.json"))


class DiscoveryClient:
    """Owns the HTTP clients, the shared result cache and the three stores."""

    def __init__(
        self,
        api_key: Optional[str] = TMDB_API_KEY,
        catalog_url: str = TMDB_BASE_URL,
        account_url: str = ACCOUNT_API_URL,
        storage_path: str = CLIENT_STORAGE_PATH,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        catalog_transport: Optional[httpx.AsyncBaseTransport] = None,
        account_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._catalog_http = httpx.AsyncClient(base_url=catalog_url, timeout=timeout, transport=catalog_transport)
        self._account_http = httpx.AsyncClient(base_url=account_url, timeout=timeout, transport=account_transport)

        self.cache = ResultCache()
        self.catalog = CatalogClient(self._catalog_http, api_key=api_key)
        self.accounts = AccountClient(self._account_http)

        self.movies = ListingStore(self.catalog, self.cache, MediaType.MOVIE)
        self.series = ListingStore(self.catalog, self.cache, MediaType.TV)
        self.auth = AuthStore(self.accounts, JSONFileStorage(storage_path))

    async def __aenter__(self) -> "DiscoveryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._catalog_http.aclose()
        await self._account_http.aclose()
        logger.debug("Discovery client closed")
