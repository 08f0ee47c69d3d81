"""Message schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MessageRead(BaseModel):
    """Serialized chat message."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    is_bot: bool
    created_at: datetime
    conversation_id: str | None = None
    user_id: str | None = None


class ConversationSummary(BaseModel):
    """Sidebar entry derived from the latest message of a conversation."""

    conversation_id: str
    last_message_at: datetime
    last_message_snippet: str
