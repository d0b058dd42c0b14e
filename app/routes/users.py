from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.auth import ProfileResponse
from app.schemas.user import WatchlistAdd, WatchlistResponse
from app.services.user_service import UserService
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/users", tags=["Users"])


# ============================================
# Profile
# ============================================

@router.get("/profile", response_model=ProfileResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the signed-in user's profile"""
    return {"user": current_user}


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    updates: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Partially update the profile.

    Credential and identity fields (``password``, ``password_hash``, ``id``,
    ``_id``) are refused with 400.
    """
    user = UserService.update_profile(db, current_user, updates)
    return {"user": user}


# ============================================
# Watchlist
# ============================================

@router.post("/watchlist", response_model=WatchlistResponse)
def add_to_watchlist(
    item: WatchlistAdd,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    watchlist = UserService.add_to_watchlist(db, current_user, item)
    return {"message": "Added to watchlist", "watchlist": watchlist}


@router.delete("/watchlist/{item_id}", response_model=WatchlistResponse)
def remove_from_watchlist(
    item_id: int,
    media_type: Optional[Literal["movie", "tv"]] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    watchlist = UserService.remove_from_watchlist(db, current_user, item_id, media_type)
    return {"message": "Removed from watchlist", "watchlist": watchlist}
