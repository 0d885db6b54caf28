"""Models package initialization."""

from tunematch.db.session import Base
from tunematch.models.user import UserProfile
from tunematch.models.chat import Conversation, ChatMessage

# Ensure all models are registered with Base
__all__ = [
    'Base',
    'UserProfile',
    'Conversation',
    'ChatMessage'
]
