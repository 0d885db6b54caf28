from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, ConfigDict


class ChatMessageOut(BaseModel):
    sender_id: str = Field(..., alias="senderId")
    message: str
    timestamp: datetime

    model_config = ConfigDict(populate_by_name=True)


class ChatHistoryResponse(BaseModel):
    chat_id: str = Field(..., alias="chatId")
    participants: List[str]
    messages: List[ChatMessageOut] = []

    model_config = ConfigDict(populate_by_name=True)
