"""Chat session routes."""

from fastapi import APIRouter, Depends, HTTPException, Path

from relaychat.routers.dependencies import get_chat_session, get_registry
from relaychat.schemas.chat import (
    SearchRequest,
    SelectConversationRequest,
    SendMessageRequest,
    SendMessageResult,
    SessionState,
)
from relaychat.schemas.common import ApiResponse
from relaychat.schemas.message import ConversationSummary
from relaychat.services.chat_session import ChatSession, SessionBusyError, SessionRegistry
from relaychat.services.quick_actions import get_quick_action


router = APIRouter(prefix="/sessions")


@router.post("", response_model=ApiResponse[SessionState], status_code=201)
def create_session(registry: SessionRegistry = Depends(get_registry)) -> ApiResponse[SessionState]:
    """Open a new chat session with a fresh user id."""

    session = registry.create()
    session.refresh_conversations()
    return ApiResponse(data=session.snapshot())


@router.get("/{session_id}", response_model=ApiResponse[SessionState])
def get_session(session: ChatSession = Depends(get_chat_session)) -> ApiResponse[SessionState]:
    return ApiResponse(data=session.snapshot())


@router.delete("/{session_id}", status_code=204)
def delete_session(
    session_id: str = Path(..., min_length=1),
    registry: SessionRegistry = Depends(get_registry),
) -> None:
    """Forget a session and its in-memory messages."""

    try:
        registry.remove(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from exc


@router.post("/{session_id}/messages", response_model=ApiResponse[SendMessageResult])
def send_message(
    payload: SendMessageRequest,
    session: ChatSession = Depends(get_chat_session),
) -> ApiResponse[SendMessageResult]:
    """Send one message and return the updated session."""

    return ApiResponse(data=_send(session, payload.content))


@router.post("/{session_id}/quick-actions/{action_id}", response_model=ApiResponse[SendMessageResult])
def send_quick_action(
    action_id: str = Path(..., min_length=1),
    session: ChatSession = Depends(get_chat_session),
) -> ApiResponse[SendMessageResult]:
    """Send the canned prompt of a quick action."""

    try:
        action = get_quick_action(action_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown quick action {action_id}") from exc
    return ApiResponse(data=_send(session, action.message))


@router.post("/{session_id}/search", response_model=ApiResponse[SessionState])
def search_messages(
    payload: SearchRequest,
    session: ChatSession = Depends(get_chat_session),
) -> ApiResponse[SessionState]:
    session.search(payload.query)
    return ApiResponse(data=session.snapshot())


@router.delete("/{session_id}/search", response_model=ApiResponse[SessionState])
def clear_search(session: ChatSession = Depends(get_chat_session)) -> ApiResponse[SessionState]:
    session.clear_search()
    return ApiResponse(data=session.snapshot())


@router.get("/{session_id}/conversations", response_model=ApiResponse[list[ConversationSummary]])
def list_conversations(
    session: ChatSession = Depends(get_chat_session),
) -> ApiResponse[list[ConversationSummary]]:
    """Reload the conversation sidebar for the session's user."""

    return ApiResponse(data=session.refresh_conversations())


@router.post("/{session_id}/conversations/select", response_model=ApiResponse[SessionState])
def select_conversation(
    payload: SelectConversationRequest,
    session: ChatSession = Depends(get_chat_session),
) -> ApiResponse[SessionState]:
    session.select_conversation(payload.conversation_id)
    return ApiResponse(data=session.snapshot())


@router.post("/{session_id}/conversations/new", response_model=ApiResponse[SessionState])
def new_conversation(session: ChatSession = Depends(get_chat_session)) -> ApiResponse[SessionState]:
    session.new_conversation()
    return ApiResponse(data=session.snapshot())


def _send(session: ChatSession, content: str) -> SendMessageResult:
    try:
        sent = session.send_message(content)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SendMessageResult(sent=sent, session=session.snapshot())
