"""Stored Spotify user profiles."""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from tunematch.db.session import Base


class UserProfile(Base):
    """One record per Spotify user who has logged in."""
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True)
    spotify_id = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    top_artists = Column(JSON, nullable=False, default=list)  # ordered by Spotify rank

    # Cached Spotify credentials
    access_token = Column(String(2000))
    refresh_token = Column(String(2000))
    token_expires_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UserProfile(spotify_id={self.spotify_id}, display_name={self.display_name})>"
