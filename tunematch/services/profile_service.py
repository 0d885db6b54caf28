"""Profile persistence."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
import logging

import pytz
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.errors import PersistenceError
from tunematch.models.user import UserProfile

logger = logging.getLogger(__name__)


async def upsert_profile(
    db: AsyncSession,
    spotify_id: str,
    display_name: Optional[str],
    top_artists: Sequence[str],
    credentials: Dict[str, Any]
) -> UserProfile:
    """
    Create the profile for a Spotify user or replace all of its mutable fields.

    Args:
        db: Database session
        spotify_id: Spotify user id
        display_name: Name reported by Spotify, falls back to the id
        top_artists: Artist names in rank order
        credentials: Spotify token response (access_token, refresh_token, expires_in)

    Returns:
        The stored profile
    """
    expires_in = credentials.get("expires_in")
    token_expires_at = (
        datetime.now(pytz.UTC) + timedelta(seconds=int(expires_in))
        if expires_in is not None else None
    )
    fields = {
        "display_name": display_name or spotify_id,
        "top_artists": list(top_artists),
        "access_token": credentials.get("access_token"),
        "refresh_token": credentials.get("refresh_token"),
        "token_expires_at": token_expires_at,
    }

    try:
        result = await db.execute(
            select(UserProfile).filter_by(spotify_id=spotify_id)
        )
        profile = result.scalar_one_or_none()

        if profile:
            for key, value in fields.items():
                setattr(profile, key, value)
        else:
            profile = UserProfile(spotify_id=spotify_id, **fields)
            db.add(profile)

        await db.commit()
        await db.refresh(profile)
    except SQLAlchemyError as e:
        logger.error(f"Error saving profile for {spotify_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise PersistenceError(f"Could not save profile for {spotify_id}") from e

    logger.info(f"User saved to DB: {profile.display_name} ({len(profile.top_artists)} artists)")
    return profile


async def get_profile(db: AsyncSession, user_id: Optional[int]) -> Optional[UserProfile]:
    if user_id is None:
        return None
    try:
        return await db.get(UserProfile, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading profile {user_id}: {str(e)}", exc_info=True)
        raise PersistenceError(f"Could not load profile {user_id}") from e


async def get_profile_by_spotify_id(db: AsyncSession, spotify_id: str) -> Optional[UserProfile]:
    try:
        result = await db.execute(
            select(UserProfile).filter_by(spotify_id=spotify_id)
        )
        return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Error loading profile {spotify_id}: {str(e)}", exc_info=True)
        raise PersistenceError(f"Could not load profile {spotify_id}") from e


async def find_other_profiles(db: AsyncSession, excluding_user_id: int) -> List[UserProfile]:
    """All profiles except one, ordered by id so match tie-breaks are stable."""
    try:
        result = await db.execute(
            select(UserProfile)
            .where(UserProfile.id != excluding_user_id)
            .order_by(UserProfile.id)
        )
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Error listing profiles: {str(e)}", exc_info=True)
        raise PersistenceError("Could not list profiles") from e
