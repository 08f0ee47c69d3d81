"""Message persistence and retrieval services.

Every function accepts ``db=None`` for the non-persistent mode and degrades to
an empty result instead of raising.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from relaychat.models.message import Message
from relaychat.schemas.message import ConversationSummary

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 40
EMPTY_SNIPPET = "(no messages)"
# Rows per requested conversation fetched before de-duplication.
CONVERSATION_ROW_FACTOR = 5


def save_message(
    db: Session | None,
    *,
    content: str,
    is_bot: bool,
    created_at: datetime | None = None,
    conversation_id: str | None = None,
    user_id: str | None = None,
) -> Message | None:
    """Persist one message and return the stored row."""

    if db is None:
        logger.debug("Store not configured; message not saved.")
        return None

    message = Message(
        content=content,
        is_bot=is_bot,
        created_at=created_at or datetime.now(timezone.utc),
        conversation_id=conversation_id or None,
        user_id=user_id or None,
    )
    try:
        db.add(message)
        db.commit()
        db.refresh(message)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save message for conversation %s", conversation_id)
        return None
    return message


def load_messages(
    db: Session | None,
    *,
    limit: int = 100,
    conversation_id: str | None = None,
    user_id: str | None = None,
) -> list[Message]:
    """Return messages oldest first, filtered by conversation and user when given."""

    if db is None:
        return []

    stmt = select(Message).order_by(Message.created_at.asc(), Message.id.asc()).limit(limit)
    if conversation_id:
        stmt = stmt.where(Message.conversation_id == conversation_id)
    if user_id:
        stmt = stmt.where(Message.user_id == user_id)
    try:
        return list(db.scalars(stmt).all())
    except SQLAlchemyError:
        logger.exception("Failed to load messages for conversation %s", conversation_id)
        return []


def load_conversations(
    db: Session | None,
    user_id: str,
    *,
    limit: int = 20,
) -> list[ConversationSummary]:
    """Return the user's conversations, most recently active first."""

    if db is None:
        return []

    stmt = (
        select(Message.conversation_id, Message.content, Message.created_at)
        .where(Message.user_id == user_id)
        .where(Message.conversation_id.is_not(None))
        .order_by(Message.created_at.desc())
        .limit(limit * CONVERSATION_ROW_FACTOR)
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError:
        logger.exception("Failed to load conversations for user %s", user_id)
        return []

    latest: dict[str, ConversationSummary] = {}
    for conversation_id, content, created_at in rows:
        if not conversation_id or conversation_id in latest:
            continue
        latest[conversation_id] = ConversationSummary(
            conversation_id=conversation_id,
            last_message_at=created_at,
            last_message_snippet=snippet(content),
        )
    return list(latest.values())[:limit]


def snippet(content: str | None) -> str:
    if not content:
        return EMPTY_SNIPPET
    return content[:SNIPPET_LENGTH]
