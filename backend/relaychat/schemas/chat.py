"""Schemas for chat session endpoints."""

from pydantic import BaseModel, Field

from relaychat.schemas.message import ConversationSummary, MessageRead


class SendMessageRequest(BaseModel):
    """Request payload for one chat turn."""

    content: str


class SearchRequest(BaseModel):
    """Search filter over the displayed messages."""

    query: str


class SelectConversationRequest(BaseModel):
    """Conversation to switch to; null starts a new conversation."""

    conversation_id: str | None = None


class QuickActionRead(BaseModel):
    """Canned prompt shown above the input box."""

    id: str
    label: str
    message: str


class SessionState(BaseModel):
    """Everything a client needs to render one chat session."""

    session_id: str
    user_id: str
    conversation_id: str
    sending: bool
    search_query: str | None = None
    persistence_enabled: bool
    messages: list[MessageRead] = Field(default_factory=list)
    conversations: list[ConversationSummary] = Field(default_factory=list)


class SendMessageResult(BaseModel):
    """Outcome of a send request."""

    sent: bool
    session: SessionState
