from typing import Optional
from urllib.parse import urlencode
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.core.config import settings
from tunematch.db.session import get_async_db
from tunematch.errors import PersistenceError, UpstreamServiceError
from tunematch.services.auth_service import get_spotify_auth_url, process_spotify_callback

logger = logging.getLogger(__name__)

router = APIRouter()


def frontend_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.FRONTEND_URL}/?{urlencode(params)}",
        status_code=303
    )


@router.get("/login")
async def login_handler():
    """Send the user to Spotify's authorization page."""
    try:
        auth_url = get_spotify_auth_url()
    except ValueError as e:
        logger.error(f"Error initiating Spotify auth: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail="Spotify client is not configured"
        )
    return RedirectResponse(url=auth_url)


@router.get("/callback")
async def callback_handler(
    code: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db)
):
    """Handle Spotify OAuth callback."""
    if error:
        logger.warning(f"Spotify authorization error: {error}")
        return frontend_redirect(error=error)

    if not code:
        logger.warning("Spotify callback without authorization code")
        return frontend_redirect(error="invalid_request")

    try:
        profile, session_token = await process_spotify_callback(code, db)
    except (UpstreamServiceError, PersistenceError, ValueError) as e:
        logger.error(f"Error in /callback: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Authentication failed."
        )

    logger.info(f"Logged in {profile.spotify_id}, redirecting to frontend")
    return frontend_redirect(token=session_token)
