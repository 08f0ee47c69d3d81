"""Client for the hosted chat-messages API."""

from __future__ import annotations

import json
from dataclasses import dataclass
from http import client as http_client
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from relaychat.config import get_settings

FALLBACK_ANSWER = "Could not get a response."


class ChatApiError(RuntimeError):
    """Raised when the chat API call fails."""


@dataclass(slots=True)
class ChatReply:
    """Answer returned by the chat API for one query."""

    answer: str
    conversation_id: str
    metadata: dict[str, Any] | None = None


class ChatClient(Protocol):
    """Protocol for chat providers."""

    def send(self, query: str, user: str, conversation_id: str | None = None) -> ChatReply:
        """Return the reply to ``query`` within ``conversation_id``."""


@dataclass(slots=True)
class ChatApiClient:
    """Blocking-mode client for a ``/chat-messages`` endpoint."""

    api_key: str
    base_url: str = "https://api.dify.ai/v1"
    timeout_seconds: int = 60

    def build_payload(self, query: str, user: str, conversation_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "inputs": {},
            "query": query,
            "response_mode": "blocking",
            "user": user,
        }
        # An empty conversation id starts a new conversation upstream.
        if conversation_id:
            payload["conversation_id"] = conversation_id
        return payload

    def send(self, query: str, user: str, conversation_id: str | None = None) -> ChatReply:
        payload = self.build_payload(query, user, conversation_id)
        url = f"{self.base_url.rstrip('/')}/chat-messages"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = _error_detail(exc.read().decode("utf-8", errors="replace")) or exc.reason
            raise ChatApiError(f"Chat API error: {exc.code} {detail}") from exc
        except urllib_error.URLError as exc:
            raise ChatApiError(f"Chat API request failed: {exc.reason}") from exc
        except (OSError, http_client.HTTPException) as exc:
            raise ChatApiError(f"Chat API connection failed: {str(exc) or type(exc).__name__}") from exc
        except UnicodeDecodeError as exc:
            raise ChatApiError("Chat API returned a response that is not UTF-8") from exc

        return parse_reply(raw, conversation_id)


def parse_reply(raw: str, conversation_id: str | None = None) -> ChatReply:
    """Decode a blocking-mode response body."""

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ChatApiError("Chat API returned a response that is not JSON") from exc
    if not isinstance(decoded, dict):
        raise ChatApiError("Chat API returned an unexpected response")

    answer = decoded.get("answer")
    if not isinstance(answer, str) or not answer:
        answer = FALLBACK_ANSWER
    reply_conversation = decoded.get("conversation_id")
    if not isinstance(reply_conversation, str) or not reply_conversation:
        reply_conversation = conversation_id or ""
    metadata = decoded.get("metadata")
    return ChatReply(
        answer=answer,
        conversation_id=reply_conversation,
        metadata=metadata if isinstance(metadata, dict) else None,
    )


def _error_detail(body: str) -> str | None:
    try:
        decoded = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(decoded, dict):
        return None
    detail = decoded.get("message") or decoded.get("error")
    return str(detail) if detail else None


def get_default_chat_client() -> ChatClient:
    """Return the configured chat client."""

    settings = get_settings()
    if not settings.chat_api_key:
        raise ChatApiError("CHAT_API_KEY is not set. Add it to backend/.env before chatting.")
    return ChatApiClient(
        api_key=settings.chat_api_key,
        base_url=settings.chat_api_url,
        timeout_seconds=settings.chat_api_timeout_seconds,
    )
