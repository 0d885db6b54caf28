import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.auth import TokenPayload, get_current_user
from tunematch.core.config import settings
from tunematch.db.session import get_async_db
from tunematch.errors import PersistenceError
from tunematch.schemas.chat import ChatHistoryResponse, ChatMessageOut
from tunematch.schemas.match import MatchResponse, TopArtistsResponse
from tunematch.services.chat_service import get_conversation, list_messages
from tunematch.services.matching import NO_MATCH_MESSAGE, find_best_match
from tunematch.services.profile_service import find_other_profiles, get_profile

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/match", response_model=MatchResponse, response_model_exclude_none=True)
async def match_handler(
    user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Find the stored user sharing the most top artists with the caller."""
    try:
        current = await get_profile(db, user.user_id)
        if not current or not current.top_artists:
            raise HTTPException(
                status_code=404,
                detail="Current user not found or no top artists"
            )

        candidates = await find_other_profiles(db, current.id)
    except PersistenceError as e:
        logger.error(f"Error in /match: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to find a match.")

    best = find_best_match(current.top_artists, candidates)
    if best is None:
        logger.info(f"No match for {current.spotify_id} among {len(candidates)} users")
        return MatchResponse(match=NO_MATCH_MESSAGE)

    logger.info(f"Matched {current.spotify_id} with {best.profile.spotify_id} (score {best.score})")
    return MatchResponse(
        match=best.profile.display_name,
        match_id=best.profile.spotify_id,
        match_top_artists=list(best.profile.top_artists),
        shared_artists=best.shared_artists
    )


@router.get("/spotify/top-artists", response_model=TopArtistsResponse)
async def top_artists_handler(
    user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Top artists cached on the caller's profile at login."""
    try:
        profile = await get_profile(db, user.user_id)
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to load top artists.")

    if not profile:
        raise HTTPException(status_code=404, detail="Current user not found")
    return TopArtistsResponse(items=list(profile.top_artists or []))


@router.get("/chat/{chat_id}/messages", response_model=ChatHistoryResponse)
async def chat_history_handler(
    chat_id: str,
    user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Stored messages of a conversation the caller takes part in."""
    try:
        conversation = await get_conversation(db, chat_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail="Chat not found")
        if not conversation.has_participant(user.spotify_id):
            logger.warning(f"{user.spotify_id} requested history of chat {chat_id} without being a participant")
            raise HTTPException(status_code=403, detail="Not a participant of this chat")

        messages = await list_messages(db, conversation, limit=settings.CHAT_HISTORY_LIMIT)
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to load chat history.")

    return ChatHistoryResponse(
        chat_id=conversation.chat_id,
        participants=list(conversation.participants),
        messages=[
            ChatMessageOut(sender_id=m.sender_id, message=m.body, timestamp=m.created_at)
            for m in messages
        ]
    )
