"""Response schemas."""
from tunematch.schemas.match import MatchResponse, TopArtistsResponse
from tunematch.schemas.chat import ChatMessageOut, ChatHistoryResponse

__all__ = [
    'MatchResponse',
    'TopArtistsResponse',
    'ChatMessageOut',
    'ChatHistoryResponse'
]
