import asyncio
import logging
from base64 import b64encode
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from tunematch.core.config import settings
from tunematch.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE_URL = "https://api.spotify.com/v1"


class SpotifyClient:
    """Client for interacting with Spotify Web API."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.client_id = client_id or settings.SPOTIFY_CLIENT_ID
        self.client_secret = client_secret or settings.SPOTIFY_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.SPOTIFY_REDIRECT_URI
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.SPOTIFY_TIMEOUT_SECONDS)

        if not all([self.client_id, self.client_secret, self.redirect_uri]):
            raise ValueError("Missing required Spotify credentials")

        # Create Basic auth header
        credentials = f"{self.client_id}:{self.client_secret}"
        self.auth_header = b64encode(credentials.encode()).decode()

    def authorize_url(self, scope: Optional[str] = None) -> str:
        """Build the authorization URL the user is redirected to."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": scope or settings.SPOTIFY_SCOPES,
            "redirect_uri": self.redirect_uri,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for access token."""
        return await self._request(
            "POST",
            TOKEN_URL,
            headers={
                "Authorization": f"Basic {self.auth_header}",
                "Content-Type": "application/x-www-form-urlencoded"
            },
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri
            }
        )

    async def get_current_user(self, access_token: str) -> Dict[str, Any]:
        """Fetch the profile of the user owning the access token."""
        return await self._request(
            "GET",
            f"{API_BASE_URL}/me",
            headers={"Authorization": f"Bearer {access_token}"}
        )

    async def get_top_artist_names(
        self,
        access_token: str,
        limit: Optional[int] = None,
        time_range: Optional[str] = None
    ) -> List[str]:
        """Fetch the user's top artists, in rank order, as plain names."""
        data = await self._request(
            "GET",
            f"{API_BASE_URL}/me/top/artists",
            headers={"Authorization": f"Bearer {access_token}"},
            params={
                "time_range": time_range or settings.SPOTIFY_TOP_ARTISTS_TIME_RANGE,
                "limit": limit or settings.SPOTIFY_TOP_ARTISTS_LIMIT
            }
        )
        return [item["name"] for item in data.get("items", []) if item.get("name")]

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status != 200:
                        error_data = await response.text()
                        logger.error(f"Spotify {method} {url} failed with {response.status}: {error_data}")
                        raise UpstreamServiceError(
                            f"Spotify request failed with status {response.status}",
                            status=response.status
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Spotify {method} {url} unreachable: {e}")
            raise UpstreamServiceError(f"Spotify request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Spotify {method} {url} timed out")
            raise UpstreamServiceError("Spotify request timed out") from e
