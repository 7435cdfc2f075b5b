from fastapi import HTTPException
from supabase import Client

PROFILE_SUMMARY_COLUMNS = "id, full_name, avatar_url, last_active_at"


def get_profile_summaries(supabase: Client, user_ids) -> dict[str, dict]:
    """Map user ids to their public profile fields."""
    ids = sorted({str(uid) for uid in user_ids if uid})
    if not ids:
        return {}

    try:
        response = (
            supabase.table("profiles")
            .select(PROFILE_SUMMARY_COLUMNS)
            .in_("id", ids)
            .execute()
        )
    except Exception:
        raise HTTPException(500, detail="Database error while looking up profiles.")

    return {
        row["id"]: {
            "id": row["id"],
            "full_name": row.get("full_name") or "",
            "avatar_url": row.get("avatar_url"),
            "last_active_at": row.get("last_active_at"),
        }
        for row in response.data or []
    }
