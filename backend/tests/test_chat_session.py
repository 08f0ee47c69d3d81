"""Tests for chat session state handling."""

from __future__ import annotations

import threading
import unittest
from datetime import datetime, timedelta, timezone
from http import client as http_client
from unittest.mock import MagicMock, patch

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from relaychat.models.base import Base
from relaychat.models.message import Message
from relaychat.services.chat_api import ChatApiClient, ChatApiError, ChatReply
from relaychat.services.chat_session import ChatSession, SessionBusyError, SessionRegistry
from relaychat.services.messages import load_messages, save_message


class _StubChatClient:
    def __init__(self, *replies: ChatReply) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, str, str | None]] = []

    def send(self, query: str, user: str, conversation_id: str | None = None) -> ChatReply:
        self.calls.append((query, user, conversation_id))
        return self.replies.pop(0)


class _BlockingChatClient:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def send(self, query: str, user: str, conversation_id: str | None = None) -> ChatReply:
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        return ChatReply(answer="done", conversation_id="conv-1")


class _FailingChatClient:
    def __init__(self) -> None:
        self.calls = 0

    def send(self, query: str, user: str, conversation_id: str | None = None) -> ChatReply:
        self.calls += 1
        raise ChatApiError("Chat API error: 500 Internal Server Error")


class NonPersistentSessionTests(unittest.TestCase):
    def test_whitespace_message_makes_no_call(self) -> None:
        client = _StubChatClient()
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)

        self.assertFalse(session.send_message("   \n\t"))

        self.assertEqual(client.calls, [])
        self.assertEqual(session.messages, [])

    def test_send_without_store_shows_both_messages(self) -> None:
        client = _StubChatClient(ChatReply(answer="Hello back", conversation_id="conv-1"))
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)

        self.assertTrue(session.send_message("  Hello  "))

        self.assertFalse(session.persistence_enabled)
        self.assertEqual([m.content for m in session.messages], ["Hello", "Hello back"])
        self.assertEqual([m.is_bot for m in session.messages], [False, True])
        self.assertTrue(all(m.id for m in session.messages))
        self.assertNotEqual(session.messages[0].id, session.messages[1].id)
        self.assertEqual(client.calls, [("Hello", "web-user-1", None)])
        self.assertFalse(session.sending)

    def test_conversation_id_is_reused_on_next_send(self) -> None:
        client = _StubChatClient(
            ChatReply(answer="first", conversation_id="conv-1"),
            ChatReply(answer="second", conversation_id="conv-1"),
        )
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)

        session.send_message("one")
        self.assertEqual(session.conversation_id, "conv-1")
        session.send_message("two")

        self.assertEqual(client.calls[1], ("two", "web-user-1", "conv-1"))

    def test_chat_api_error_becomes_bot_message(self) -> None:
        client = _FailingChatClient()
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)

        with self.assertLogs("relaychat.services.chat_session", level="ERROR"):
            session.send_message("Hello")

        self.assertEqual(len(session.messages), 2)
        self.assertTrue(session.messages[1].is_bot)
        self.assertEqual(
            session.messages[1].content,
            "An error occurred: Chat API error: 500 Internal Server Error",
        )
        self.assertEqual(session.conversation_id, "")
        self.assertFalse(session.sending)

    def test_missing_client_configuration_becomes_bot_message(self) -> None:
        def factory():
            raise ChatApiError("CHAT_API_KEY is not set.")

        session = ChatSession("web-user-1", chat_client_factory=factory)

        with self.assertLogs("relaychat.services.chat_session", level="ERROR"):
            session.send_message("Hello")

        self.assertIn("CHAT_API_KEY is not set.", session.messages[-1].content)

    def test_send_while_busy_is_rejected(self) -> None:
        client = _StubChatClient()
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)
        session.sending = True

        with self.assertRaises(SessionBusyError):
            session.send_message("Hello")
        self.assertEqual(client.calls, [])

    def test_concurrent_send_is_rejected_while_first_is_in_flight(self) -> None:
        client = _BlockingChatClient()
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)
        worker = threading.Thread(target=session.send_message, args=("first",))
        worker.start()
        try:
            self.assertTrue(client.entered.wait(timeout=5))
            self.assertTrue(session.sending)

            with self.assertRaises(SessionBusyError):
                session.send_message("second")
        finally:
            client.release.set()
            worker.join(timeout=5)

        self.assertFalse(worker.is_alive())
        self.assertFalse(session.sending)
        self.assertEqual(client.calls, 1)
        self.assertEqual([m.content for m in session.messages], ["first", "done"])

    @patch("relaychat.services.chat_api.urllib_request.urlopen")
    def test_dropped_connection_becomes_bot_message(self, urlopen: MagicMock) -> None:
        urlopen.side_effect = http_client.RemoteDisconnected("Remote end closed connection without response")
        session = ChatSession("web-user-1", chat_client_factory=lambda: ChatApiClient(api_key="key"))

        with self.assertLogs("relaychat.services.chat_session", level="ERROR"):
            self.assertTrue(session.send_message("Hello"))

        self.assertEqual(len(session.messages), 2)
        self.assertTrue(session.messages[1].is_bot)
        self.assertTrue(session.messages[1].content.startswith("An error occurred: "))
        self.assertIn("Remote end closed connection", session.messages[1].content)
        self.assertFalse(session.sending)

    def test_search_filters_case_insensitively_and_clears(self) -> None:
        client = _StubChatClient(
            ChatReply(answer="Apples are red", conversation_id="c"),
            ChatReply(answer="Bananas are yellow", conversation_id="c"),
        )
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)
        session.send_message("Tell me about APPLES")
        session.send_message("And bananas?")

        session.search("  apple ")

        self.assertEqual(
            [m.content for m in session.visible_messages()],
            ["Tell me about APPLES", "Apples are red"],
        )
        self.assertEqual(session.snapshot().messages, session.visible_messages())

        session.clear_search()

        self.assertEqual(len(session.visible_messages()), 4)

    def test_blank_search_is_ignored(self) -> None:
        session = ChatSession("web-user-1", chat_client_factory=_StubChatClient)

        session.search("   ")

        self.assertIsNone(session.search_query)

    def test_new_conversation_resets_state(self) -> None:
        client = _StubChatClient(ChatReply(answer="hi", conversation_id="conv-1"))
        session = ChatSession("web-user-1", chat_client_factory=lambda: client)
        session.send_message("hello")
        session.search("hi")

        session.new_conversation()

        self.assertEqual(session.messages, [])
        self.assertEqual(session.conversation_id, "")
        self.assertIsNone(session.search_query)

    def test_conversations_are_empty_without_store(self) -> None:
        session = ChatSession("web-user-1", chat_client_factory=_StubChatClient)

        self.assertEqual(session.refresh_conversations(), [])


class PersistentSessionTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        with self.SessionLocal() as db:
            db.execute(delete(Message))
            db.commit()

    def test_send_persists_turn_and_refreshes_sidebar(self) -> None:
        client = _StubChatClient(ChatReply(answer="Stored answer", conversation_id="conv-9"))
        session = ChatSession(
            "web-user-1",
            chat_client_factory=lambda: client,
            session_factory=self.SessionLocal,
        )

        session.send_message("Stored question")

        with self.SessionLocal() as db:
            rows = load_messages(db, conversation_id="conv-9", user_id="web-user-1")
        self.assertEqual({row.content for row in rows}, {"Stored question", "Stored answer"})
        self.assertEqual({m.id for m in session.messages}, {row.id for row in rows})
        self.assertEqual([c.conversation_id for c in session.conversations], ["conv-9"])

    def test_select_conversation_replaces_messages_in_time_order(self) -> None:
        base = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        with self.SessionLocal() as db:
            for minutes, content, conversation_id, is_bot in [
                (2, "b-answer", "conv-b", True),
                (0, "b-question", "conv-b", False),
                (1, "a-question", "conv-a", False),
            ]:
                save_message(
                    db,
                    content=content,
                    is_bot=is_bot,
                    created_at=base + timedelta(minutes=minutes),
                    conversation_id=conversation_id,
                    user_id="web-user-1",
                )
        client = _StubChatClient(ChatReply(answer="fresh", conversation_id="conv-new"))
        session = ChatSession(
            "web-user-1",
            chat_client_factory=lambda: client,
            session_factory=self.SessionLocal,
        )
        session.send_message("unrelated")
        session.search("fresh")

        session.select_conversation("conv-b")

        self.assertEqual(session.conversation_id, "conv-b")
        self.assertEqual([m.content for m in session.messages], ["b-question", "b-answer"])
        self.assertIsNone(session.search_query)

    def test_select_none_starts_new_conversation(self) -> None:
        session = ChatSession("web-user-1", chat_client_factory=_StubChatClient, session_factory=self.SessionLocal)
        session.conversation_id = "conv-a"

        session.select_conversation(None)

        self.assertEqual(session.conversation_id, "")
        self.assertEqual(session.messages, [])


class SessionRegistryTests(unittest.TestCase):
    def test_created_sessions_get_web_user_ids(self) -> None:
        registry = SessionRegistry(chat_client_factory=_StubChatClient)

        session = registry.create()

        self.assertTrue(session.user_id.startswith("web-user-"))
        self.assertIs(registry.get(session.session_id), session)

    def test_unknown_session_raises_key_error(self) -> None:
        registry = SessionRegistry(chat_client_factory=_StubChatClient)

        with self.assertRaises(KeyError):
            registry.get("missing")

    def test_idle_sessions_are_evicted(self) -> None:
        now = [1000.0]
        registry = SessionRegistry(
            chat_client_factory=_StubChatClient,
            idle_timeout_seconds=60,
            clock=lambda: now[0],
        )
        stale = registry.create()
        now[0] += 30
        active = registry.create()
        now[0] += 40

        registry.get(active.session_id)

        self.assertEqual(len(registry), 1)
        with self.assertRaises(KeyError):
            registry.get(stale.session_id)

    def test_access_keeps_session_alive(self) -> None:
        now = [0.0]
        registry = SessionRegistry(
            chat_client_factory=_StubChatClient,
            idle_timeout_seconds=60,
            clock=lambda: now[0],
        )
        session = registry.create()
        for _ in range(3):
            now[0] += 50
            self.assertIs(registry.get(session.session_id), session)

    def test_session_sending_is_not_evicted(self) -> None:
        now = [0.0]
        registry = SessionRegistry(
            chat_client_factory=_StubChatClient,
            idle_timeout_seconds=60,
            clock=lambda: now[0],
        )
        busy = registry.create()
        busy.sending = True
        now[0] += 120

        registry.create()

        self.assertIs(registry.get(busy.session_id), busy)

    def test_remove_forgets_session(self) -> None:
        registry = SessionRegistry(chat_client_factory=_StubChatClient)
        session = registry.create()

        registry.remove(session.session_id)

        self.assertEqual(len(registry), 0)
        with self.assertRaises(KeyError):
            registry.remove(session.session_id)

    @patch("relaychat.services.chat_session.new_user_id", return_value="web-user-1700000000000")
    def test_same_millisecond_sessions_get_distinct_user_ids(self, _new_user_id: MagicMock) -> None:
        registry = SessionRegistry(chat_client_factory=_StubChatClient)

        user_ids = [registry.create().user_id for _ in range(3)]

        self.assertEqual(
            user_ids,
            ["web-user-1700000000000", "web-user-1700000000000-2", "web-user-1700000000000-3"],
        )


if __name__ == "__main__":
    unittest.main()
