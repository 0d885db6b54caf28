"""Spotify login flow."""

from typing import Optional, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.auth import create_access_token
from tunematch.errors import UpstreamServiceError
from tunematch.models.user import UserProfile
from tunematch.services.profile_service import upsert_profile
from tunematch.utils.logging import mask_secret
from tunematch.utils.spotify import SpotifyClient

logger = logging.getLogger(__name__)


def get_spotify_auth_url(client: Optional[SpotifyClient] = None) -> str:
    """
    Get Spotify OAuth authorization URL.

    Raises:
        ValueError: If the Spotify client is not configured
    """
    return (client or SpotifyClient()).authorize_url()


async def process_spotify_callback(
    code: str,
    db: AsyncSession,
    client: Optional[SpotifyClient] = None
) -> Tuple[UserProfile, str]:
    """
    Complete a Spotify login.

    Exchanges the code for credentials, fetches the user's profile and top
    artists, upserts the stored profile and issues a session token.

    Args:
        code: Authorization code from the callback
        db: Database session
        client: Spotify client override

    Returns:
        The stored profile and its session token

    Raises:
        UpstreamServiceError: If Spotify rejects any of the calls
        PersistenceError: If the profile cannot be saved
    """
    spotify = client or SpotifyClient()
    token_info = await spotify.exchange_code(code)

    access_token = token_info.get("access_token")
    if not access_token:
        logger.error("Spotify token response carried no access token")
        raise UpstreamServiceError("Spotify token response carried no access token")
    logger.debug(f"Exchanged code for Spotify token {mask_secret(access_token)}")

    user_info = await spotify.get_current_user(access_token)
    spotify_id = user_info.get("id")
    if not spotify_id:
        logger.error("Spotify profile response carried no id")
        raise UpstreamServiceError("Spotify profile response carried no id")

    top_artists = await spotify.get_top_artist_names(access_token)

    profile = await upsert_profile(
        db,
        spotify_id=spotify_id,
        display_name=user_info.get("display_name"),
        top_artists=top_artists,
        credentials=token_info
    )
    return profile, create_access_token(profile.id, profile.spotify_id)
