"""
Auth Session Store
==================
Client-side session: who is signed in, their bearer token, and their
favorites and watchlist. The token is the only thing persisted (plus the
remembered email); everything else is rebuilt from the Account Service.

Favorites and watchlist toggles are applied locally first and then synced
best-effort. A failed sync is logged and never rolled back or retried.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from app.schemas.auth import MIN_PASSWORD_LENGTH
from app.schemas.user import WatchlistEntry
from app.services.account_client import AccountClient
from app.utils.errors import CineScopeError, TokenInvalidOrExpired, Unauthorized
from app.utils.security import session_expired, unverified_issued_at, utcnow
from app.utils.storage import REMEMBERED_EMAIL_KEY, TOKEN_KEY

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."
RESET_REQUESTED_MESSAGE = "If your email exists in our system, you will receive a reset link"


class AuthStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    SIGNING_OUT = "signing_out"


@dataclass(frozen=True)
class Principal:
    id: int
    email: str
    name: str = ""


@dataclass(frozen=True)
class AuthState:
    status: AuthStatus = AuthStatus.ANONYMOUS
    principal: Optional[Principal] = None
    token: Optional[str] = None
    favorites: Tuple[int, ...] = ()
    watchlist: Tuple[WatchlistEntry, ...] = ()
    error: Optional[str] = None
    loading: bool = False
    remembered_email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED


def _error_message(error: CineScopeError) -> str:
    return str(error) or GENERIC_ERROR


def _validate_credentials(email: str, password: str) -> Optional[str]:
    if not email or not email.strip():
        return "Email is required"
    if not password:
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


class AuthStore:
    def __init__(self, account_client: AccountClient, storage, now: Callable[[], datetime] = utcnow):
        self._client = account_client
        self._storage = storage
        self._now = now
        self._state = AuthState(remembered_email=storage.get(REMEMBERED_EMAIL_KEY))

    @property
    def state(self) -> AuthState:
        return self._state

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)

    def _anonymous(self, error: Optional[str] = None, status: AuthStatus = AuthStatus.ANONYMOUS) -> None:
        self._state = AuthState(
            status=status,
            error=error,
            remembered_email=self._state.remembered_email,
        )

    def _authenticated(self, token: str, user: Dict[str, Any]) -> None:
        self._storage.set(TOKEN_KEY, token)
        self._state = AuthState(
            status=AuthStatus.AUTHENTICATED,
            principal=Principal(id=user["id"], email=user["email"], name=user.get("name") or ""),
            token=token,
            favorites=tuple(user.get("favorites") or ()),
            watchlist=tuple(WatchlistEntry.model_validate(e) for e in user.get("watchlist") or ()),
            remembered_email=self._state.remembered_email,
        )

    def _forget_token(self) -> None:
        self._storage.remove(TOKEN_KEY)

    # ============================================
    # Sign up / sign in / sign out
    # ============================================

    async def register(self, email: str, password: str, name: Optional[str] = None) -> bool:
        problem = _validate_credentials(email, password)
        if problem:
            self._update(error=problem)
            return False

        self._anonymous(status=AuthStatus.AUTHENTICATING)
        self._update(loading=True)
        try:
            data = await self._client.register(email.strip(), password, name)
        except CineScopeError as e:
            logger.info(f"Registration failed: {e}")
            self._anonymous(error=_error_message(e))
            return False

        self._authenticated(data["token"], data["user"])
        return True

    async def sign_in(self, email: str, password: str, remember: bool = False) -> bool:
        problem = _validate_credentials(email, password)
        if problem:
            self._update(error=problem)
            return False

        self._anonymous(status=AuthStatus.AUTHENTICATING)
        self._update(loading=True)
        try:
            data = await self._client.login(email.strip(), password)
        except CineScopeError as e:
            logger.info(f"Sign-in failed: {e}")
            self._anonymous(error=_error_message(e))
            return False

        if remember:
            self._storage.set(REMEMBERED_EMAIL_KEY, email.strip())
            self._update(remembered_email=email.strip())
        else:
            self._storage.remove(REMEMBERED_EMAIL_KEY)
            self._update(remembered_email=None)

        self._authenticated(data["token"], data["user"])
        return True

    async def sign_out(self) -> None:
        """Local state is cleared first; the server call cannot block sign-out."""
        token = self._state.token
        self._forget_token()
        self._anonymous(status=AuthStatus.SIGNING_OUT)

        try:
            if token:
                await self._client.logout(token)
        except CineScopeError as e:
            logger.warning(f"Logout call failed after local sign-out: {e}")
        finally:
            self._update(status=AuthStatus.ANONYMOUS)
        logger.info("Signed out")

    async def check_authentication(self) -> bool:
        """Revalidate the stored token against the Account Service."""
        token = self._storage.get(TOKEN_KEY)
        if not token:
            self._anonymous()
            return False

        issued_at = unverified_issued_at(token)
        if issued_at is None or session_expired(issued_at, self._now()):
            logger.info("Stored session token expired; clearing it")
            self._forget_token()
            self._anonymous()
            return False

        self._update(loading=True, error=None)
        try:
            user = await self._client.get_profile(token)
        except (TokenInvalidOrExpired, Unauthorized) as e:
            logger.info(f"Stored session token rejected: {e}")
            self._forget_token()
            self._anonymous(error=_error_message(e))
            return False
        except CineScopeError as e:
            # Could not reach the service; the stored token is kept for a later retry
            logger.warning(f"Could not revalidate session: {e}")
            self._anonymous(error=_error_message(e))
            return False

        self._authenticated(token, user)
        return True

    # ============================================
    # Favorites and watchlist
    # ============================================

    async def toggle_favorite(self, item_id: int) -> bool:
        """Flip membership locally, then sync. Returns the new membership."""
        favorites = self._state.favorites
        if item_id in favorites:
            favorites = tuple(f for f in favorites if f != item_id)
            added = False
        else:
            favorites = favorites + (item_id,)
            added = True
        self._update(favorites=favorites)

        token = self._state.token
        if token:
            try:
                await self._client.update_profile(token, {"favorites": list(favorites)})
            except CineScopeError as e:
                logger.warning(f"Favorites sync failed for {item_id}: {e}")
        return added

    async def toggle_watchlist(
        self,
        item_id: int,
        title: Optional[str] = None,
        media_type: str = "movie",
        poster_path: Optional[str] = None,
    ) -> bool:
        watchlist = self._state.watchlist
        present = self.in_watchlist(item_id, media_type)
        if present:
            self._update(watchlist=tuple(
                e for e in watchlist if (e.id, e.media_type) != (item_id, media_type)
            ))
        else:
            entry = WatchlistEntry(
                id=item_id,
                title=title,
                poster_path=poster_path,
                media_type=media_type,
                date_added=self._now(),
            )
            self._update(watchlist=watchlist + (entry,))

        token = self._state.token
        if token:
            try:
                if present:
                    await self._client.remove_from_watchlist(token, item_id, media_type)
                else:
                    await self._client.add_to_watchlist(token, {
                        "id": item_id,
                        "title": title,
                        "poster_path": poster_path,
                        "media_type": media_type,
                    })
            except CineScopeError as e:
                logger.warning(f"Watchlist sync failed for {item_id}: {e}")
        return not present

    def is_favorite(self, item_id: int) -> bool:
        return item_id in self._state.favorites

    def in_watchlist(self, item_id: int, media_type: str = "movie") -> bool:
        """Watchlist entries are identified by id and media type together."""
        return any(
            entry.id == item_id and entry.media_type == media_type
            for entry in self._state.watchlist
        )

    # ============================================
    # Profile and password reset
    # ============================================

    async def update_profile(self, name: str) -> bool:
        token = self._state.token
        if not token or self._state.principal is None:
            self._update(error="Please sign in first")
            return False

        self._update(loading=True, error=None)
        try:
            user = await self._client.update_profile(token, {"name": name})
        except CineScopeError as e:
            self._update(loading=False, error=_error_message(e))
            return False

        self._update(
            loading=False,
            principal=replace(self._state.principal, name=user.get("name") or ""),
        )
        return True

    async def request_reset(self, email: str) -> str:
        """Always answers with the same message, whether or not the account exists."""
        if not email or not email.strip():
            self._update(error="Email is required")
            return RESET_REQUESTED_MESSAGE

        self._update(loading=True, error=None)
        try:
            await self._client.forgot_password(email.strip())
        except CineScopeError as e:
            logger.warning(f"Password reset request failed: {e}")
            self._update(loading=False, error=_error_message(e))
            return RESET_REQUESTED_MESSAGE

        self._update(loading=False)
        return RESET_REQUESTED_MESSAGE

    async def reset_with_token(
        self,
        token: str,
        new_password: str,
        confirm_password: Optional[str] = None,
    ) -> bool:
        if confirm_password is not None and confirm_password != new_password:
            self._update(error="Passwords do not match")
            return False
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            self._update(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
            return False

        self._update(loading=True, error=None)
        try:
            await self._client.reset_password(token, new_password)
        except CineScopeError as e:
            self._update(loading=False, error=_error_message(e))
            return False

        self._update(loading=False)
        return True
