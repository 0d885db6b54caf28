"""Error types shared across services."""
from typing import Optional


class TuneMatchError(Exception):
    """Base class for application errors."""


class AuthenticationError(TuneMatchError):
    """Missing, malformed, tampered or expired session token."""


class UpstreamServiceError(TuneMatchError):
    """Spotify rejected a request or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(TuneMatchError):
    """The requested record does not exist."""


class PersistenceError(TuneMatchError):
    """The database was unreachable or rejected a write."""


class ChatPermissionError(TuneMatchError):
    """The acting user is not a participant of the conversation."""
