import logging
from collections import defaultdict

from fastapi import HTTPException
from supabase import Client

from app.core.responses import Pagination, build_pagination, clamp_pagination, page_range
from app.utils.profiles import get_profile_summaries
from app.utils.validation import MAX_MESSAGE_LENGTH, normalize_whitespace, sanitize_string

from .access import assert_participant

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("text", "image", "location")
MESSAGE_COLUMNS = "id, chat_id, sender_id, content, message_type, is_read, created_at"
DEFAULT_MESSAGE_LIMIT = 50


def _pair_filter(user_a: str, user_b: str) -> str:
    # both orderings of the pair
    return (
        f"and(traveler_id.eq.{user_a},local_id.eq.{user_b}),"
        f"and(traveler_id.eq.{user_b},local_id.eq.{user_a})"
    )


def find_active_chat(supabase: Client, traveler_id: str, local_id: str) -> dict | None:
    existing = (
        supabase.table("chats")
        .select("*")
        .or_(_pair_filter(traveler_id, local_id))
        .eq("status", "active")
        .limit(1)
        .execute()
    )
    return existing.data[0] if existing.data else None


def find_or_create_chat(supabase: Client, traveler_id: str, local_id: str, city: str) -> dict:
    """
    Return the active chat between a traveler and a local, creating it on
    first contact.

    The chat row and both participant rows are written by the
    `create_chat_with_participants` database function in a single
    transaction, which also resolves concurrent first contact to one chat.
    """
    traveler_id, local_id = str(traveler_id), str(local_id)

    if traveler_id == local_id:
        raise HTTPException(status_code=400, detail="Cannot start a chat with yourself")

    if not city or not city.strip():
        raise HTTPException(status_code=400, detail="Local ID and city are required")

    try:
        existing = find_active_chat(supabase, traveler_id, local_id)
        if existing:
            return existing

        local_user = (
            supabase.table("profiles")
            .select("id, is_local")
            .eq("id", local_id)
            .eq("is_local", True)
            .limit(1)
            .execute()
        )
        if not local_user.data:
            raise HTTPException(status_code=404, detail="Local expert not found")

        traveler = (
            supabase.table("profiles")
            .select("id")
            .eq("id", traveler_id)
            .limit(1)
            .execute()
        )
        if not traveler.data:
            raise HTTPException(status_code=404, detail="Traveler not found")

        try:
            created = supabase.rpc(
                "create_chat_with_participants",
                {
                    "p_traveler_id": traveler_id,
                    "p_local_id": local_id,
                    "p_city": sanitize_string(city),
                },
            ).execute()
        except Exception:
            logger.exception("Chat creation error")
            raise HTTPException(status_code=500, detail="Failed to create chat")

        if not created.data:
            logger.error(f"Chat creation returned no row traveler={traveler_id} local={local_id}")
            raise HTTPException(status_code=500, detail="Failed to create chat")

        chat = created.data[0]
        logger.info(
            f"Chat ready between traveler {traveler_id} and local {local_id} "
            f"chat_id={chat['id']} city={chat.get('city')}"
        )
        return chat

    except HTTPException:
        raise
    except Exception:
        logger.exception("Find or create chat service error")
        raise HTTPException(status_code=500, detail="Internal server error")


def get_user_chats(supabase: Client, user_id: str) -> list[dict]:
    """Active chats for the inbox, most recent activity first."""
    user_id = str(user_id)

    try:
        chats = (
            supabase.table("chats")
            .select("id, traveler_id, local_id, city, status, last_message_at, created_at")
            .or_(f"traveler_id.eq.{user_id},local_id.eq.{user_id}")
            .eq("status", "active")
            .order("last_message_at", desc=True)
            .execute()
        ).data or []

        if not chats:
            return []

        messages = (
            supabase.table("messages")
            .select("id, chat_id, content, sender_id, created_at, is_read")
            .in_("chat_id", [chat["id"] for chat in chats])
            .order("created_at", desc=True)
            .execute()
        ).data or []

        by_chat = defaultdict(list)
        for message in messages:
            by_chat[message["chat_id"]].append(message)

        other_ids = [
            chat["local_id"] if chat["traveler_id"] == user_id else chat["traveler_id"]
            for chat in chats
        ]
        profiles = get_profile_summaries(supabase, other_ids)

        results = []
        for chat in chats:
            is_traveler = chat["traveler_id"] == user_id
            other_id = chat["local_id"] if is_traveler else chat["traveler_id"]
            chat_messages = by_chat.get(chat["id"], [])
            last = chat_messages[0] if chat_messages else None

            results.append(
                {
                    "id": chat["id"],
                    "city": chat["city"],
                    "status": chat["status"],
                    "last_message_at": chat.get("last_message_at"),
                    "created_at": chat.get("created_at"),
                    "other_user": profiles.get(other_id, {"id": other_id, "full_name": ""}),
                    "user_role": "traveler" if is_traveler else "local",
                    "last_message": (
                        {
                            "id": last["id"],
                            "content": last["content"],
                            "sender_id": last["sender_id"],
                            "created_at": last["created_at"],
                            "is_from_user": last["sender_id"] == user_id,
                        }
                        if last
                        else None
                    ),
                    "unread_count": sum(
                        1
                        for m in chat_messages
                        if not m.get("is_read") and m["sender_id"] != user_id
                    ),
                }
            )

        return results

    except HTTPException:
        raise
    except Exception:
        logger.exception("Get user chats service error")
        raise HTTPException(status_code=500, detail="Failed to fetch chats")


def get_chat_details(supabase: Client, chat_id: str, user_id: str) -> dict:
    assert_participant(supabase, chat_id, user_id)

    try:
        chat = (
            supabase.table("chats").select("*").eq("id", str(chat_id)).limit(1).execute()
        )
        if not chat.data:
            raise HTTPException(status_code=404, detail="Chat not found")

        participants = (
            supabase.table("chat_participants")
            .select("user_id, role, joined_at")
            .eq("chat_id", str(chat_id))
            .execute()
        ).data or []

        profiles = get_profile_summaries(supabase, [p["user_id"] for p in participants])

        return {
            **chat.data[0],
            "participants": [
                {**p, "user": profiles.get(p["user_id"])} for p in participants
            ],
        }

    except HTTPException:
        raise
    except Exception:
        logger.exception("Get chat details service error")
        raise HTTPException(status_code=500, detail="Internal server error")


def _attach_senders(supabase: Client, messages: list[dict]) -> list[dict]:
    profiles = get_profile_summaries(supabase, [m["sender_id"] for m in messages])
    return [{**m, "sender": profiles.get(m["sender_id"])} for m in messages]


def attach_sender(supabase: Client, message: dict) -> dict:
    """Single-row variant for change-feed records and send results."""
    return _attach_senders(supabase, [message])[0]


def get_chat_messages(
    supabase: Client,
    chat_id: str,
    user_id: str,
    page=1,
    limit=DEFAULT_MESSAGE_LIMIT,
    ascending: bool = False,
) -> tuple[list[dict], Pagination]:
    """One page of a chat's messages, newest first unless `ascending`."""
    assert_participant(supabase, chat_id, user_id)

    page, limit = clamp_pagination(page, limit, default_limit=DEFAULT_MESSAGE_LIMIT)
    start, end = page_range(page, limit)

    try:
        res = (
            supabase.table("messages")
            .select(MESSAGE_COLUMNS, count="exact")
            .eq("chat_id", str(chat_id))
            .order("created_at", desc=not ascending)
            .range(start, end)
            .execute()
        )
    except Exception:
        logger.exception("Get chat messages error")
        raise HTTPException(status_code=500, detail="Failed to fetch messages")

    messages = _attach_senders(supabase, res.data or [])
    return messages, build_pagination(page, limit, res.count)


def fetch_thread(supabase: Client, chat_id: str) -> list[dict]:
    """Whole thread oldest first, for the live view. Caller checks access."""
    res = (
        supabase.table("messages")
        .select(MESSAGE_COLUMNS)
        .eq("chat_id", str(chat_id))
        .order("created_at", desc=False)
        .execute()
    )
    return _attach_senders(supabase, res.data or [])


def validate_message_content(content: str | None, message_type: str = "text") -> str:
    """
    Return the content as it will be stored: trimmed, whitespace collapsed,
    not HTML-escaped. The length limit applies to that stored form.
    """
    if message_type not in MESSAGE_TYPES:
        raise HTTPException(status_code=400, detail="Invalid message type")

    if not content or not content.strip():
        raise HTTPException(status_code=400, detail="Message content cannot be empty")

    normalized = normalize_whitespace(content)
    if len(normalized) > MAX_MESSAGE_LENGTH:
        raise HTTPException(status_code=400, detail="Message content too long")

    return normalized


def send_message(
    supabase: Client,
    chat_id: str,
    sender_id: str,
    content: str,
    message_type: str = "text",
    message_id: str | None = None,
) -> dict:
    """
    Store a message and bump the chat's `last_message_at`.

    `message_id` lets a client pick the id up front so its optimistic echo
    is replaced in place when the stored row comes back.
    """
    assert_participant(supabase, chat_id, sender_id)
    content = validate_message_content(content, message_type)

    row = {
        "chat_id": str(chat_id),
        "sender_id": str(sender_id),
        # stored as plain text, clients escape when rendering
        "content": content,
        "message_type": message_type,
        "is_read": False,
    }
    if message_id:
        row["id"] = str(message_id)

    try:
        inserted = supabase.table("messages").insert(row).execute()
    except Exception:
        logger.exception(f"Send message error chat={chat_id}")
        raise HTTPException(status_code=500, detail="Failed to send message")

    if not inserted.data:
        raise HTTPException(status_code=500, detail="Failed to send message")

    message = inserted.data[0]

    # A stale inbox sort order is not worth failing the send over
    try:
        supabase.table("chats").update(
            {"last_message_at": message.get("created_at")}
        ).eq("id", str(chat_id)).execute()
    except Exception:
        logger.warning(f"Failed to update last_message_at for chat {chat_id}", exc_info=True)

    logger.info(f"Message sent in chat {chat_id} by user {sender_id}")
    return message


def mark_messages_as_read(supabase: Client, chat_id: str, user_id: str, message_ids: list) -> int:
    """Flip is_read on other participants' messages. Returns rows updated."""
    assert_participant(supabase, chat_id, user_id)

    ids = [str(mid) for mid in message_ids]
    if not ids:
        return 0

    try:
        updated = (
            supabase.table("messages")
            .update({"is_read": True})
            .eq("chat_id", str(chat_id))
            .neq("sender_id", str(user_id))
            .in_("id", ids)
            .execute()
        )
    except Exception:
        logger.exception("Mark messages as read error")
        raise HTTPException(status_code=500, detail="Failed to mark messages as read")

    return len(updated.data or [])


def archive_chat(supabase: Client, chat_id: str, user_id: str) -> None:
    assert_participant(supabase, chat_id, user_id)

    try:
        supabase.table("chats").update({"status": "archived"}).eq("id", str(chat_id)).execute()
    except Exception:
        logger.exception("Archive chat error")
        raise HTTPException(status_code=500, detail="Failed to archive chat")

    logger.info(f"Chat {chat_id} archived by user {user_id}")
