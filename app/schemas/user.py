from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional, Literal


# ==================== PROFILE SCHEMAS ====================

PROTECTED_PROFILE_FIELDS = frozenset({"password", "password_hash", "id", "_id"})


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    name: Optional[str] = Field(None, max_length=255)
    favorites: Optional[List[int]] = Field(None, description="Complete favorites list (catalog ids)")


# ==================== WATCHLIST SCHEMAS ====================

class WatchlistEntry(BaseModel):
    id: int
    title: Optional[str] = None
    poster_path: Optional[str] = None
    media_type: Literal["movie", "tv"] = "movie"
    date_added: Optional[datetime] = None


class WatchlistAdd(BaseModel):
    """Schema for adding a title to the watchlist"""
    id: int = Field(..., description="Catalog id of the movie or series")
    title: Optional[str] = Field(None, max_length=500)
    poster_path: Optional[str] = Field(None, max_length=500)
    media_type: Literal["movie", "tv"] = "movie"


class WatchlistResponse(BaseModel):
    message: str
    watchlist: List[WatchlistEntry]
