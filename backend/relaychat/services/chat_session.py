"""Server-side state of one chat client: messages, sidebar, search and busy flag."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import Session

from relaychat.db.dependencies import SessionFactory
from relaychat.models.base import new_message_id
from relaychat.schemas.chat import SessionState
from relaychat.schemas.message import ConversationSummary, MessageRead
from relaychat.services.chat_api import ChatApiError, ChatClient, get_default_chat_client
from relaychat.services.messages import load_conversations, load_messages, save_message

logger = logging.getLogger(__name__)

ERROR_PREFIX = "An error occurred: "

ChatClientFactory = Callable[[], ChatClient]


class SessionBusyError(RuntimeError):
    """Raised when a send is attempted while another one is in flight."""


def new_user_id() -> str:
    return f"web-user-{int(time.time() * 1000)}"


class ChatSession:
    """UI state for one client, driven by chat API and message store calls."""

    def __init__(
        self,
        user_id: str,
        *,
        session_id: str | None = None,
        chat_client_factory: ChatClientFactory = get_default_chat_client,
        session_factory: SessionFactory | None = None,
        history_limit: int = 100,
        conversation_limit: int = 20,
    ) -> None:
        self.session_id = session_id or uuid4().hex
        self.user_id = user_id
        self.messages: list[MessageRead] = []
        self.conversations: list[ConversationSummary] = []
        self.conversation_id = ""
        self.search_query: str | None = None
        self.sending = False
        self._chat_client_factory = chat_client_factory
        self._session_factory = session_factory
        self._history_limit = history_limit
        self._conversation_limit = conversation_limit
        self._busy_lock = threading.Lock()

    @property
    def persistence_enabled(self) -> bool:
        return self._session_factory is not None

    @contextmanager
    def _store(self) -> Iterator[Session | None]:
        if self._session_factory is None:
            yield None
            return
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    def send_message(self, content: str) -> bool:
        """Run one chat turn. Returns False when there was nothing to send."""

        text = content.strip()
        if not text:
            return False

        with self._busy_lock:
            if self.sending:
                raise SessionBusyError("A message is already being sent.")
            self.sending = True

        try:
            user_message = _local_message(text, is_bot=False, user_id=self.user_id)
            self.messages.append(user_message)

            answer = self._ask(text)
            if self.conversation_id:
                user_message.conversation_id = self.conversation_id
            bot_message = _local_message(answer, is_bot=True, user_id=self.user_id)
            bot_message.conversation_id = self.conversation_id or None
            self.messages.append(bot_message)

            if self.persistence_enabled:
                self._persist_turn(user_message, bot_message)
        finally:
            self.sending = False
        return True

    def _ask(self, text: str) -> str:
        try:
            reply = self._chat_client_factory().send(text, self.user_id, self.conversation_id or None)
        except ChatApiError as exc:
            logger.exception("Chat API call failed for session %s", self.session_id)
            return f"{ERROR_PREFIX}{exc}"

        if reply.conversation_id:
            self.conversation_id = reply.conversation_id
        logger.info(
            "Chat turn completed: session=%s conversation=%s answer_chars=%s",
            self.session_id,
            self.conversation_id,
            len(reply.answer),
        )
        return reply.answer

    def _persist_turn(self, user_message: MessageRead, bot_message: MessageRead) -> None:
        with self._store() as db:
            for local in (user_message, bot_message):
                stored = save_message(
                    db,
                    content=local.content,
                    is_bot=local.is_bot,
                    created_at=local.created_at,
                    conversation_id=self.conversation_id or None,
                    user_id=self.user_id,
                )
                if stored is None:
                    continue
                for index, shown in enumerate(self.messages):
                    if shown.id == local.id:
                        self.messages[index] = MessageRead.model_validate(stored)
                        break
            self.conversations = load_conversations(db, self.user_id, limit=self._conversation_limit)

    def visible_messages(self) -> list[MessageRead]:
        """Messages to display, narrowed by the active search."""

        if not self.search_query:
            return list(self.messages)
        needle = self.search_query.lower()
        return [message for message in self.messages if needle in message.content.lower()]

    def search(self, query: str) -> None:
        term = query.strip()
        if term:
            self.search_query = term

    def clear_search(self) -> None:
        self.search_query = None

    def select_conversation(self, conversation_id: str | None) -> None:
        """Replace the displayed messages with a stored conversation."""

        if not conversation_id:
            self.new_conversation()
            return
        with self._store() as db:
            rows = load_messages(
                db,
                limit=self._history_limit,
                conversation_id=conversation_id,
                user_id=self.user_id,
            )
        self.conversation_id = conversation_id
        self.messages = [MessageRead.model_validate(row) for row in rows]
        self.search_query = None

    def new_conversation(self) -> None:
        self.conversation_id = ""
        self.messages = []
        self.search_query = None

    def refresh_conversations(self) -> list[ConversationSummary]:
        with self._store() as db:
            self.conversations = load_conversations(db, self.user_id, limit=self._conversation_limit)
        return self.conversations

    def snapshot(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            user_id=self.user_id,
            conversation_id=self.conversation_id,
            sending=self.sending,
            search_query=self.search_query,
            persistence_enabled=self.persistence_enabled,
            messages=self.visible_messages(),
            conversations=list(self.conversations),
        )


class SessionRegistry:
    """In-memory lookup of chat sessions by id.

    Sessions idle for longer than ``idle_timeout_seconds`` are dropped the next
    time the registry is touched. A session with a send in flight is never
    dropped.
    """

    def __init__(
        self,
        *,
        chat_client_factory: ChatClientFactory = get_default_chat_client,
        session_factory: SessionFactory | None = None,
        history_limit: int = 100,
        conversation_limit: int = 20,
        idle_timeout_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()
        self._chat_client_factory = chat_client_factory
        self._session_factory = session_factory
        self._history_limit = history_limit
        self._conversation_limit = conversation_limit
        self._idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, user_id: str | None = None) -> ChatSession:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            session = ChatSession(
                user_id or self._unique_user_id(new_user_id()),
                chat_client_factory=self._chat_client_factory,
                session_factory=self._session_factory,
                history_limit=self._history_limit,
                conversation_limit=self._conversation_limit,
            )
            self._sessions[session.session_id] = session
            self._last_seen[session.session_id] = now
        return session

    def get(self, session_id: str) -> ChatSession:
        """Return the session or raise KeyError."""

        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            session = self._sessions[session_id]
            self._last_seen[session_id] = now
            return session

    def remove(self, session_id: str) -> None:
        """Forget a session or raise KeyError."""

        with self._lock:
            del self._sessions[session_id]
            self._last_seen.pop(session_id, None)

    def _evict_idle(self, now: float) -> None:
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if now - seen > self._idle_timeout_seconds and not self._sessions[session_id].sending
        ]
        for session_id in expired:
            del self._sessions[session_id]
            del self._last_seen[session_id]
        if expired:
            logger.info("Evicted %s idle chat sessions", len(expired))

    def _unique_user_id(self, candidate: str) -> str:
        taken = {session.user_id for session in self._sessions.values()}
        if candidate not in taken:
            return candidate
        suffix = 2
        while f"{candidate}-{suffix}" in taken:
            suffix += 1
        return f"{candidate}-{suffix}"


def _local_message(content: str, *, is_bot: bool, user_id: str) -> MessageRead:
    return MessageRead(
        id=new_message_id(),
        content=content,
        is_bot=is_bot,
        created_at=datetime.now(timezone.utc),
        user_id=user_id,
    )
