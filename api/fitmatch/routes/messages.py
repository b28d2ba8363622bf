from typing import Any

from fastapi import APIRouter, Depends, Response

from ..auth.deps import get_current_user_id
from ..deps import get_conversation_gate, get_push_channel
from ..schemas import SendMessageRequest, TypingRequest
from ..services.conversations import ConversationGate, MessagePage, serialize_message
from ..services.events import PushChannel, dispatch_events

router = APIRouter()


def _page_body(page: MessagePage) -> dict[str, Any]:
    return {
        "messages": [serialize_message(m) for m in page.items],
        "pagination": {"page": page.page, "limit": page.limit, "total": page.total},
    }


@router.post("/messages")
def send_message(
    payload: SendMessageRequest,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, Any]:
    result = gate.send_message(user_id, payload.recipient_id, payload.match_id, payload.content)
    dispatch_events(channel, result.events)
    response.status_code = 201
    return {"message": serialize_message(result.value)}


@router.get("/messages/conversations")
def get_conversations(
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
) -> dict[str, Any]:
    conversations = []
    for c in gate.get_conversations(user_id):
        conversations.append(
            {
                **c,
                "last_message": serialize_message(c["last_message"]) if c["last_message"] else None,
                "last_activity_at": c["last_activity_at"].isoformat(),
            }
        )
    return {"conversations": conversations}


@router.get("/messages/unread-count")
def get_unread_count(
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
) -> dict[str, int]:
    return {"unread_count": gate.get_unread_count(user_id)}


@router.get("/messages/search")
def search_messages(
    q: str = "",
    page: int = 1,
    limit: int = 20,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
) -> dict[str, Any]:
    return _page_body(gate.search_messages(user_id, q, page=page, limit=limit))


@router.put("/messages/conversations/{match_id}/read")
def mark_conversation_as_read(
    match_id: str,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, int]:
    result = gate.mark_conversation_as_read(match_id, user_id)
    dispatch_events(channel, result.events)
    return {"marked_read": result.value}


@router.get("/messages/{match_id}")
def get_messages(
    match_id: str,
    page: int = 1,
    limit: int = 50,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
) -> dict[str, Any]:
    return _page_body(gate.get_messages(match_id, user_id, page=page, limit=limit))


@router.post("/messages/{match_id}/typing")
def typing(
    match_id: str,
    payload: TypingRequest,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, bool]:
    result = gate.typing_event(match_id, user_id, payload.is_typing)
    dispatch_events(channel, result.events)
    return {"delivered": bool(result.value)}


@router.put("/messages/{message_id}/read")
def mark_as_read(
    message_id: str,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, Any]:
    result = gate.mark_as_read(message_id, user_id)
    dispatch_events(channel, result.events)
    return {"message": serialize_message(result.value)}


@router.delete("/messages/{message_id}")
def delete_message(
    message_id: str,
    user_id: str = Depends(get_current_user_id),
    gate: ConversationGate = Depends(get_conversation_gate),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, Any]:
    result = gate.delete_message(message_id, user_id)
    dispatch_events(channel, result.events)
    return {"message": serialize_message(result.value)}
