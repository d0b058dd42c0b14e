from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.user import PROTECTED_PROFILE_FIELDS, ProfileUpdate, WatchlistAdd
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Profile and per-user list operations"""

    @staticmethod
    def update_profile(db: Session, user: User, updates: Dict[str, Any]) -> User:
        """Apply a partial profile update, refusing credential/identity fields."""
        protected = sorted(PROTECTED_PROFILE_FIELDS.intersection(updates))
        if protected:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot update protected fields: {', '.join(protected)}"
            )

        try:
            profile = ProfileUpdate.model_validate(updates)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="; ".join(err["msg"] for err in e.errors())
            )

        if profile.name is not None:
            user.name = profile.name
        if profile.favorites is not None:
            # Keep first occurrence order, drop duplicates
            user.favorites = list(dict.fromkeys(profile.favorites))

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def _same_item(entry: Dict[str, Any], item_id: int, media_type: Optional[str]) -> bool:
        if entry.get("id") != item_id:
            return False
        return media_type is None or entry.get("media_type", "movie") == media_type

    @staticmethod
    def add_to_watchlist(db: Session, user: User, item: WatchlistAdd) -> List[Dict[str, Any]]:
        watchlist = list(user.watchlist or [])
        if any(UserService._same_item(entry, item.id, item.media_type) for entry in watchlist):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Item already in watchlist"
            )

        entry = item.model_dump()
        entry["date_added"] = datetime.now(timezone.utc).isoformat()
        watchlist.append(entry)
        logger.info(f"User {user.id} added {item.media_type} {item.id} to watchlist")

        # Reassign so the JSON column is flagged dirty
        user.watchlist = watchlist
        db.commit()
        db.refresh(user)
        return user.watchlist

    @staticmethod
    def remove_from_watchlist(db: Session, user: User, item_id: int,
                             media_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Drop ``(item_id, media_type)``; without a media type every entry with that id goes."""
        user.watchlist = [
            entry for entry in (user.watchlist or [])
            if not UserService._same_item(entry, item_id, media_type)
        ]
        db.commit()
        db.refresh(user)
        return user.watchlist
