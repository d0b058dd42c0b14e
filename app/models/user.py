from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from app.database import Base


class User(Base):
    """
    One account document: credentials plus the per-user lists.
    ``favorites`` holds catalog ids; ``watchlist`` holds entry dicts
    (id, title, poster_path, media_type, date_added).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, default=True)
    favorites = Column(JSON, nullable=False, default=lambda: [])
    watchlist = Column(JSON, nullable=False, default=lambda: [])
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
