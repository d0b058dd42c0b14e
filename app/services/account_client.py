"""
HTTP client for the Account Service (``app.main``).

Translates transport failures and HTTP error responses into the client
error taxonomy so the auth store only ever sees classified errors.
"""
import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

from app.utils.errors import (
    CineScopeError,
    Conflict,
    NetworkUnreachable,
    NotFound,
    RateLimited,
    TokenExpired,
    TokenInvalid,
    Unauthorized,
    UpstreamUnavailable,
    ValidationFailed,
)

load_dotenv()
logger = logging.getLogger(__name__)

ACCOUNT_API_URL = os.getenv("ACCOUNT_API_URL", "http://localhost:8000")
SESSION_EXPIRED_DETAIL = "Session expired. Please log in again."
INVALID_RESPONSE = "Invalid response from the account service"


def _detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    detail = body.get("detail") or body.get("message")
    if isinstance(detail, list):
        # FastAPI request validation errors
        messages = [str(err.get("msg", "")) for err in detail if isinstance(err, dict)]
        return "; ".join(m for m in messages if m) or None
    return detail


def classify_account_error(response: httpx.Response, conflict_on_400: bool = False) -> CineScopeError:
    status_code = response.status_code
    detail = _detail(response)

    if status_code == 400 and conflict_on_400:
        return Conflict(detail, status_code=status_code)
    if status_code in (400, 422):
        return ValidationFailed(detail, status_code=status_code)
    if status_code == 401:
        if detail == SESSION_EXPIRED_DETAIL:
            return TokenExpired(detail, status_code=status_code)
        if detail == "Invalid token":
            return TokenInvalid(detail, status_code=status_code)
        return Unauthorized(detail or "Invalid credentials", status_code=status_code)
    if status_code == 404:
        return NotFound(detail, status_code=status_code)
    if status_code == 429:
        return RateLimited(detail, status_code=status_code)
    if status_code >= 500:
        return UpstreamUnavailable(status_code=status_code)
    return CineScopeError(detail or f"Error: {status_code}", status_code=status_code)


class AccountClient:
    """Thin async wrapper around the Account Service REST API."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        conflict_on_400: bool = False,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"Account service unreachable for {method} {path}: {e!r}")
            raise NetworkUnreachable() from e

        if response.status_code >= 400:
            raise classify_account_error(response, conflict_on_400=conflict_on_400)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Account service sent a non-JSON body for {method} {path}")
            raise CineScopeError(INVALID_RESPONSE, status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise CineScopeError(INVALID_RESPONSE, status_code=response.status_code)
        return data

    async def register(self, email: str, password: str, name: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"email": email, "password": password}
        if name:
            payload["name"] = name
        return await self._request("POST", "/auth/register", json=payload, conflict_on_400=True)

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        return await self._request("POST", "/auth/login", json={"email": email, "password": password})

    async def logout(self, token: str) -> None:
        await self._request("POST", "/auth/logout", token=token)

    async def get_profile(self, token: str) -> Dict[str, Any]:
        data = await self._request("GET", "/users/profile", token=token)
        return data["user"]

    async def update_profile(self, token: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("PUT", "/users/profile", token=token, json=updates)
        return data["user"]

    async def add_to_watchlist(self, token: str, item: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self._request("POST", "/users/watchlist", token=token, json=item)
        return data["watchlist"]

    async def remove_from_watchlist(self, token: str, item_id: int,
                                    media_type: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"media_type": media_type} if media_type else None
        data = await self._request("DELETE", f"/users/watchlist/{item_id}", token=token, params=params)
        return data["watchlist"]

    async def forgot_password(self, email: str) -> Dict[str, Any]:
        return await self._request("POST", "/auth/forgot-password", json={"email": email})

    async def reset_password(self, token: str, new_password: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/reset-password",
            json={"token": token, "newPassword": new_password},
        )
