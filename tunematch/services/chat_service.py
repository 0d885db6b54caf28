"""Conversation and message persistence."""

from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.errors import ChatPermissionError, PersistenceError
from tunematch.models.chat import ChatMessage, Conversation, participant_key

logger = logging.getLogger(__name__)


async def find_conversation_by_participants(
    db: AsyncSession,
    first: str,
    second: str
) -> Optional[Conversation]:
    """Look up the conversation for an unordered participant pair."""
    low, high = participant_key(first, second)
    result = await db.execute(
        select(Conversation).filter_by(participant_low=low, participant_high=high)
    )
    return result.scalar_one_or_none()


async def find_or_create_conversation(db: AsyncSession, first: str, second: str) -> Conversation:
    """
    Return the conversation for a pair, creating it if absent.

    Concurrent creators race on the unique pair constraint; the loser
    rolls back and reads the winner's row.

    Raises:
        ValueError: If both participants are the same user
        PersistenceError: If the store fails
    """
    if not first or not second:
        raise ValueError("Both participants are required")
    if first == second:
        raise ValueError("A conversation needs two different participants")

    try:
        conversation = await find_conversation_by_participants(db, first, second)
        if conversation:
            return conversation

        low, high = participant_key(first, second)
        conversation = Conversation(participant_low=low, participant_high=high)
        db.add(conversation)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info(f"Conversation for {low}/{high} created concurrently, reusing it")
            conversation = await find_conversation_by_participants(db, first, second)
            if conversation is None:
                raise PersistenceError(f"Conversation for {low}/{high} vanished after conflict")
            return conversation

        await db.refresh(conversation)
        logger.info(f"Created conversation {conversation.id} for {low}/{high}")
        return conversation
    except SQLAlchemyError as e:
        logger.error(f"Error finding conversation: {str(e)}", exc_info=True)
        await db.rollback()
        raise PersistenceError("Could not find or create conversation") from e


async def get_conversation(db: AsyncSession, chat_id: str) -> Optional[Conversation]:
    try:
        conversation_id = int(chat_id)
    except (TypeError, ValueError):
        return None

    try:
        return await db.get(Conversation, conversation_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading conversation {chat_id}: {str(e)}", exc_info=True)
        raise PersistenceError(f"Could not load conversation {chat_id}") from e


async def append_message(
    db: AsyncSession,
    conversation: Conversation,
    sender_id: str,
    body: str
) -> ChatMessage:
    """
    Append a message to a conversation and commit it.

    Raises:
        ChatPermissionError: If the sender is not a participant
        ValueError: If the body is empty
        PersistenceError: If the write fails
    """
    # Rollback expires the instance, keep the id for error reporting
    conversation_id = conversation.id
    if not conversation.has_participant(sender_id):
        raise ChatPermissionError(f"{sender_id} is not part of conversation {conversation_id}")
    if not body or not body.strip():
        raise ValueError("Message body is empty")

    message = ChatMessage(conversation_id=conversation_id, sender_id=sender_id, body=body)
    db.add(message)
    try:
        await db.commit()
        await db.refresh(message)
    except SQLAlchemyError as e:
        logger.error(f"Error saving chat message to {conversation_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise PersistenceError(f"Could not save message to conversation {conversation_id}") from e
    return message


async def list_messages(
    db: AsyncSession,
    conversation: Conversation,
    limit: Optional[int] = None
) -> List[ChatMessage]:
    """Most recent messages of a conversation, oldest first."""
    try:
        stmt = (
            select(ChatMessage)
            .filter_by(conversation_id=conversation.id)
            .order_by(ChatMessage.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(reversed(result.scalars().all()))
    except SQLAlchemyError as e:
        logger.error(f"Error listing messages of {conversation.id}: {str(e)}", exc_info=True)
        raise PersistenceError(f"Could not list messages of conversation {conversation.id}") from e
