import logging

from fastapi import HTTPException
from supabase import Client

logger = logging.getLogger(__name__)


def assert_participant(supabase: Client, chat_id: str, user_id: str) -> dict:
    """
    Ensure `user_id` belongs to `chat_id` and return the participant row.

    Every chat operation goes through here, so a non-member always gets the
    same 403 regardless of whether the chat exists.
    """
    try:
        membership = (
            supabase.table("chat_participants")
            .select("chat_id, user_id, role")
            .eq("chat_id", str(chat_id))
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception(f"Participant lookup failed chat={chat_id} user={user_id}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if not membership.data:
        logger.info(f"Access denied chat={chat_id} user={user_id}")
        raise HTTPException(status_code=403, detail="Access denied to this chat")

    return membership.data[0]
