"""Shared router dependencies."""

from functools import lru_cache

from fastapi import Depends, HTTPException, Path

from relaychat.config import get_settings
from relaychat.db.dependencies import get_session_factory
from relaychat.services.chat_session import ChatSession, SessionRegistry


@lru_cache
def get_registry() -> SessionRegistry:
    """Return the process-wide session registry."""

    settings = get_settings()
    return SessionRegistry(
        session_factory=get_session_factory(),
        history_limit=settings.message_history_limit,
        conversation_limit=settings.conversation_list_limit,
        idle_timeout_seconds=settings.session_idle_timeout_seconds,
    )


def get_chat_session(
    session_id: str = Path(..., min_length=1),
    registry: SessionRegistry = Depends(get_registry),
) -> ChatSession:
    """Resolve the path session id or answer 404."""

    try:
        return registry.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from exc
