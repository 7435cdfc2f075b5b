import json
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from starlette.concurrency import run_in_threadpool
from supabase import Client

from app.core.dependencies import decode_access_token, get_current_user, load_user
from app.core.rate_limit import rate_limiter
from app.core.responses import ApiResponse, ok
from app.core.supabase_client import get_realtime_client, get_supabase
from app.utils.validation import is_valid_uuid

from . import services
from .access import assert_participant
from .presentation import group_messages
from .realtime import ChatThreadSync, TypingDebouncer
from .schemas import (
    ChatData,
    ChatDetailData,
    ChatListItem,
    CreateChatModel,
    MarkReadData,
    MarkReadModel,
    MessageData,
    SendMessageModel,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[ChatData],
    status_code=201,
    dependencies=[Depends(rate_limiter)],
)
def create_chat(
    data: CreateChatModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Find or create the chat between the caller (as traveler) and a local.

    Used when a traveler clicks "Message" on a local expert's card. An active
    chat between the two is returned as-is; otherwise one is created together
    with both participant rows.

    **Input**
    - `local_id`: UUID of the local expert's profile
    - `city`: City the conversation is about

    **Returns**
    - The chat record

    **Errors**
    - 400: Missing city, or messaging yourself
    - 401: Unauthorized
    - 404: Local expert or traveler not found
    - 500: Database error
    """
    chat = services.find_or_create_chat(supabase, user["id"], str(data.local_id), data.city)
    return ok(chat)


@router.get("", response_model=ApiResponse[List[ChatListItem]], status_code=200)
def list_chats(
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Active chats for the authenticated user, most recent activity first.

    Each item carries the other participant, the caller's role, the latest
    message and the number of unread messages from the other side.
    """
    return ok(services.get_user_chats(supabase, user["id"]))


@router.get("/{chat_id}", response_model=ApiResponse[ChatDetailData], status_code=200)
def get_chat(
    chat_id: uuid.UUID,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Chat record plus its participants and their public profiles.

    **Errors**
    - 403: Caller is not a participant
    - 404: Chat not found
    """
    return ok(services.get_chat_details(supabase, str(chat_id), user["id"]))


@router.delete("/{chat_id}", response_model=ApiResponse[bool], status_code=200)
def archive_chat(
    chat_id: uuid.UUID,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """Archive a chat. It drops out of both participants' inboxes."""
    services.archive_chat(supabase, str(chat_id), user["id"])
    return ok(True, message="Chat archived")


@router.get(
    "/{chat_id}/messages",
    response_model=ApiResponse[List[MessageData]],
    status_code=200,
)
def get_messages(
    chat_id: uuid.UUID,
    page: int = Query(1),
    limit: int = Query(services.DEFAULT_MESSAGE_LIMIT),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Paginated messages of a chat.

    Newest first by default (`order=desc`); the thread view asks for
    `order=asc`. `page` is clamped to >= 1 and `limit` to 1..100.

    **Returns**
    - `data`: list of messages with their sender's name and avatar
    - `pagination`: `{page, limit, total, pages}`

    **Errors**
    - 403: Caller is not a participant
    - 500: Database error
    """
    messages, pagination = services.get_chat_messages(
        supabase, str(chat_id), user["id"], page, limit, ascending=order == "asc"
    )
    return ok(messages, pagination=pagination)


@router.post(
    "/{chat_id}/messages",
    response_model=ApiResponse[MessageData],
    status_code=201,
    dependencies=[Depends(rate_limiter)],
)
def send_message(
    chat_id: uuid.UUID,
    data: SendMessageModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Send a message to a chat the caller participates in.

    **Input**
    - `content`: 1..1000 characters, not only whitespace
    - `message_type`: `text` (default), `image` or `location`
    - `id`: optional client-generated UUID for the new message

    **Errors**
    - 400: Empty or too long content
    - 403: Caller is not a participant
    - 500: Database error
    """
    message = services.send_message(
        supabase,
        str(chat_id),
        user["id"],
        data.content,
        data.message_type,
        str(data.id) if data.id else None,
    )
    return ok(message)


@router.put("/{chat_id}/read", response_model=ApiResponse[MarkReadData], status_code=200)
def mark_as_read(
    chat_id: uuid.UUID,
    data: MarkReadModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Mark messages as read. The caller's own messages are never touched.
    """
    updated = services.mark_messages_as_read(supabase, str(chat_id), user["id"], data.message_ids)
    return ok({"updated": updated})


class ChatRoomManager:
    """Open thread sockets per chat, used to relay composer typing state."""

    def __init__(self):
        self.rooms: Dict[str, Dict[str, WebSocket]] = {}

    def join(self, chat_id: str, user_id: str, websocket: WebSocket):
        self.rooms.setdefault(chat_id, {})[user_id] = websocket
        logger.info(f"[CHAT] user {user_id} joined chat {chat_id}")

    def leave(self, chat_id: str, user_id: str, websocket: WebSocket):
        room = self.rooms.get(chat_id, {})
        if room.get(user_id) is websocket:
            del room[user_id]
        if not room:
            self.rooms.pop(chat_id, None)
        logger.info(f"[CHAT] user {user_id} left chat {chat_id}")

    async def broadcast(self, chat_id: str, message: dict, exclude: str | None = None):
        for user_id, websocket in list(self.rooms.get(chat_id, {}).items()):
            if user_id == exclude:
                continue
            await _send(websocket, message)


rooms = ChatRoomManager()


async def _send(websocket: WebSocket, message: dict):
    try:
        await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError):
        logger.debug("Dropped message for a closed socket")


@router.websocket("/ws/{chat_id}")
async def chat_thread_socket(
    websocket: WebSocket,
    chat_id: str,
    token: str | None = Query(None),
    supabase: Client = Depends(get_supabase),
    realtime_client=Depends(get_realtime_client),
):
    """
    Live thread for one chat.

    Server -> client events:
    - `{"type": "thread", "messages": [...]}` grouped for display
    - `{"type": "typing", "is_typing": bool, "synthetic": bool}`
    - `{"type": "error", "error": str}`

    Client -> server events:
    - `{"type": "send", "content": str, "message_type"?: str, "id"?: uuid}`
    - `{"type": "typing", "text": str}` composer contents on each keystroke
    - `{"type": "read", "message_ids": [uuid]}`
    - `{"type": "refresh"}`
    """
    try:
        if not token:
            raise HTTPException(status_code=401, detail="Access token required")
        user = await run_in_threadpool(load_user, supabase, decode_access_token(token))
        await run_in_threadpool(assert_participant, supabase, chat_id, user["id"])
    except HTTPException as e:
        logger.info(f"Rejected thread socket for chat {chat_id}: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = user["id"]
    await websocket.accept()
    rooms.join(chat_id, user_id, websocket)

    async def push_thread(messages):
        await _send(websocket, {"type": "thread", "messages": group_messages(messages, user_id)})

    async def push_synthetic_typing(is_typing):
        await _send(websocket, {"type": "typing", "is_typing": is_typing, "synthetic": True})

    async def relay_typing(is_typing):
        await rooms.broadcast(
            chat_id,
            {"type": "typing", "user_id": user_id, "is_typing": is_typing, "synthetic": False},
            exclude=user_id,
        )

    sync = ChatThreadSync(
        realtime_client,
        chat_id,
        user_id,
        fetch_messages=lambda: run_in_threadpool(services.fetch_thread, supabase, chat_id),
        on_change=push_thread,
        on_typing=push_synthetic_typing,
        resolve_sender=lambda record: run_in_threadpool(services.attach_sender, supabase, record),
    )
    debouncer = TypingDebouncer(relay_typing)

    try:
        await sync.start()

        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            raw = frame.get("text")
            if raw is None:
                await _send(websocket, {"type": "error", "error": "Binary frames are not supported"})
                continue

            try:
                event = json.loads(raw)
            except ValueError:
                await _send(websocket, {"type": "error", "error": "Invalid JSON"})
                continue

            kind = event.get("type") if isinstance(event, dict) else None

            if kind == "send":
                await _handle_send(supabase, sync, debouncer, websocket, chat_id, user_id, event)
            elif kind == "typing":
                await debouncer.keystroke(str(event.get("text", "")))
            elif kind == "read":
                try:
                    await run_in_threadpool(
                        services.mark_messages_as_read,
                        supabase,
                        chat_id,
                        user_id,
                        event.get("message_ids") or [],
                    )
                except HTTPException as e:
                    await _send(websocket, {"type": "error", "error": e.detail})
            elif kind == "refresh":
                await sync.refresh()
            else:
                await _send(websocket, {"type": "error", "error": "Unknown event type"})

    except WebSocketDisconnect:
        logger.info(f"[CHAT] socket closed for user {user_id} on chat {chat_id}")
    finally:
        debouncer.cancel()
        await sync.stop()
        rooms.leave(chat_id, user_id, websocket)


async def _handle_send(supabase, sync, debouncer, websocket, chat_id, user_id, event):
    message_type = event.get("message_type", "text")
    try:
        content = services.validate_message_content(str(event.get("content", "")), message_type)
    except HTTPException as e:
        await _send(websocket, {"type": "error", "error": e.detail})
        return

    message_id = event.get("id")
    if message_id is None:
        message_id = str(uuid.uuid4())
    elif not is_valid_uuid(message_id):
        await _send(websocket, {"type": "error", "error": "Invalid message id"})
        return
    else:
        message_id = str(uuid.UUID(str(message_id)))

    # an echo must never shadow a row that is already in the thread
    if message_id in sync.thread:
        await _send(websocket, {"type": "error", "error": "Message id already in use"})
        return

    await sync.echo(
        {
            "id": message_id,
            "chat_id": chat_id,
            "sender_id": user_id,
            "content": content,
            "message_type": message_type,
            "is_read": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    await debouncer.stop()

    try:
        message = await run_in_threadpool(
            services.send_message, supabase, chat_id, user_id, content, message_type, message_id
        )
    except HTTPException as e:
        await sync.retract(message_id)
        await _send(websocket, {"type": "error", "error": e.detail})
        return

    try:
        message = await run_in_threadpool(services.attach_sender, supabase, message)
    except Exception:
        logger.warning(f"Failed to resolve sender for message {message_id}", exc_info=True)

    await sync.apply(message)
