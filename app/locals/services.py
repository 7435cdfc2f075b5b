import logging
from collections import Counter
from datetime import datetime, timezone

from fastapi import HTTPException
from supabase import Client

from app.core.responses import Pagination, build_pagination, clamp_pagination, page_range
from app.utils.profiles import get_profile_summaries
from app.utils.validation import sanitize_string

logger = logging.getLogger(__name__)

LOCAL_COLUMNS = (
    "id, user_id, city, country, bio, tags, languages, is_verified, "
    "rating, total_connections, created_at, updated_at"
)
DEFAULT_LANGUAGES = ["English"]
NEARBY_LIMIT = 5
CITY_SUGGESTION_LIMIT = 10


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _mirror_to_profile(supabase: Client, user_id: str, fields: dict):
    """Copy city/country/bio/tags onto the user's profile, best effort."""
    mirrored = {k: v for k, v in fields.items() if k in ("city", "country", "bio", "tags", "is_local")}
    if not mirrored:
        return

    try:
        supabase.table("profiles").update(mirrored).eq("id", user_id).execute()
    except Exception:
        logger.warning(f"Failed to mirror local profile fields onto profile {user_id}", exc_info=True)


def _sync_local_tags(supabase: Client, local_id: str, tags: list[str]):
    """Point local_tags at the catalogue entries matching `tags`."""
    try:
        known = supabase.table("tags").select("id, name").in_("name", tags).execute().data or []
        supabase.table("local_tags").delete().eq("local_id", local_id).execute()
        if known:
            supabase.table("local_tags").insert(
                [{"local_id": local_id, "tag_id": tag["id"]} for tag in known]
            ).execute()
    except Exception:
        logger.warning(f"Failed to sync catalogue tags for local {local_id}", exc_info=True)


def _search_result(local: dict, profiles: dict) -> dict:
    profile = profiles.get(local["user_id"], {})
    return {
        "id": local["id"],
        "user_id": local["user_id"],
        "city": local["city"],
        "country": local["country"],
        "bio": local["bio"],
        "tags": local.get("tags") or [],
        "languages": local.get("languages"),
        "rating": local.get("rating") or 0,
        "total_connections": local.get("total_connections") or 0,
        "user": {
            "full_name": profile.get("full_name") or "",
            "avatar_url": profile.get("avatar_url"),
            "last_active_at": profile.get("last_active_at"),
        },
    }


def create_local_profile(supabase: Client, user_id: str, data: dict) -> dict:
    """Turn a user into a local expert. New locals start unverified."""
    user_id = str(user_id)

    try:
        existing = supabase.table("locals").select("id").eq("user_id", user_id).limit(1).execute()
        if existing.data:
            raise HTTPException(status_code=409, detail="Local expert profile already exists")

        row = {
            "user_id": user_id,
            "city": sanitize_string(data["city"]),
            "country": sanitize_string(data["country"]),
            "bio": sanitize_string(data["bio"]),
            "tags": [sanitize_string(tag) for tag in data["tags"]],
            "languages": data.get("languages") or DEFAULT_LANGUAGES,
            "is_verified": False,
            "rating": 0,
            "total_connections": 0,
        }

        try:
            created = supabase.table("locals").insert(row).execute()
        except Exception:
            logger.exception("Local profile creation error")
            raise HTTPException(status_code=500, detail="Failed to create local expert profile")

        if not created.data:
            raise HTTPException(status_code=500, detail="Failed to create local expert profile")

        local = created.data[0]
        _mirror_to_profile(supabase, user_id, {**row, "is_local": True})
        _sync_local_tags(supabase, local["id"], row["tags"])

        logger.info(f"Local expert profile created for user: {user_id} city={row['city']} country={row['country']}")
        return local

    except HTTPException:
        raise
    except Exception:
        logger.exception("Create local profile service error")
        raise HTTPException(status_code=500, detail="Internal server error")


def update_local_profile(supabase: Client, user_id: str, updates: dict) -> dict:
    user_id = str(user_id)
    changes = {"updated_at": _now()}

    for field in ("city", "country", "bio"):
        if updates.get(field):
            changes[field] = sanitize_string(updates[field])
    if updates.get("tags"):
        changes["tags"] = [sanitize_string(tag) for tag in updates["tags"]]
    if updates.get("languages"):
        changes["languages"] = updates["languages"]

    try:
        res = supabase.table("locals").update(changes).eq("user_id", user_id).execute()
    except Exception:
        logger.exception("Local profile update error")
        raise HTTPException(status_code=500, detail="Failed to update local expert profile")

    if not res.data:
        raise HTTPException(status_code=404, detail="Local expert profile not found")

    local = res.data[0]
    _mirror_to_profile(supabase, user_id, changes)
    if "tags" in changes:
        _sync_local_tags(supabase, local["id"], changes["tags"])

    logger.info(f"Local expert profile updated for user: {user_id}")
    return local


def search_local_experts(
    supabase: Client,
    city: str | None = None,
    country: str | None = None,
    tags: list[str] | None = None,
    page=1,
    limit=20,
) -> tuple[list[dict], Pagination]:
    """
    Verified locals matching the filters, best rated first.

    City and country match case-insensitively anywhere in the name; tags
    match when the local shares at least one of them.
    """
    page, limit = clamp_pagination(page, limit)
    start, end = page_range(page, limit)

    try:
        query = (
            supabase.table("locals")
            .select(LOCAL_COLUMNS, count="exact")
            .eq("is_verified", True)
        )
        if city:
            query = query.ilike("city", f"%{city.strip()}%")
        if country:
            query = query.ilike("country", f"%{country.strip()}%")
        if tags:
            query = query.ov("tags", tags)

        res = (
            query.order("rating", desc=True)
            .order("total_connections", desc=True)
            .range(start, end)
            .execute()
        )

        locals_ = res.data or []
        profiles = get_profile_summaries(supabase, [local["user_id"] for local in locals_])

        results = [_search_result(local, profiles) for local in locals_]
        return results, build_pagination(page, limit, res.count)

    except HTTPException:
        raise
    except Exception:
        logger.exception("Local experts search error")
        raise HTTPException(status_code=500, detail="Failed to search local experts")


def log_search(supabase: Client, user_id: str | None, filters: dict, results_count: int):
    """Record a search for analytics. Never fails the search itself."""
    row = {
        "user_id": user_id,
        "query": filters.get("location") or filters.get("city") or "",
        "location": filters.get("location"),
        "city": filters.get("city"),
        "country": filters.get("country"),
        "dates": filters.get("dates"),
        "tags": filters.get("tags") or None,
        "results_count": results_count,
    }

    try:
        supabase.table("searches").insert(row).execute()
    except Exception:
        logger.warning("Failed to log search", exc_info=True)


def get_local_expert(supabase: Client, local_id: str) -> dict:
    try:
        res = supabase.table("locals").select(LOCAL_COLUMNS).eq("id", str(local_id)).limit(1).execute()
    except Exception:
        logger.exception("Get local expert service error")
        raise HTTPException(status_code=500, detail="Internal server error")

    if not res.data:
        raise HTTPException(status_code=404, detail="Local expert not found")

    local = res.data[0]
    return _search_result(local, get_profile_summaries(supabase, [local["user_id"]]))


def get_nearby_locals(supabase: Client, city: str, country: str) -> list[dict]:
    """Other cities in the same country with verified locals, busiest first."""
    try:
        res = (
            supabase.table("locals")
            .select("city, country")
            .neq("city", city)
            .eq("country", country)
            .eq("is_verified", True)
            .execute()
        )
    except Exception:
        logger.exception("Nearby locals search error")
        raise HTTPException(status_code=500, detail="Failed to find nearby locals")

    counts = Counter((row["city"], row["country"]) for row in res.data or [])
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0][0]))

    return [
        {"city": c, "country": k, "locals_count": n}
        for (c, k), n in ranked[:NEARBY_LIMIT]
    ]


def get_cities(supabase: Client, q: str | None = None) -> list[dict]:
    """Distinct cities that have verified locals, for location autocomplete."""
    try:
        query = supabase.table("locals").select("city, country").eq("is_verified", True)
        if q:
            query = query.ilike("city", f"%{q.strip()}%")
        rows = query.order("city").execute().data or []
    except Exception:
        logger.exception("City lookup error")
        raise HTTPException(status_code=500, detail="Failed to fetch cities")

    seen = []
    for row in rows:
        entry = {"city": row["city"], "country": row["country"]}
        if entry not in seen:
            seen.append(entry)
    return seen[:CITY_SUGGESTION_LIMIT]


def list_tags(supabase: Client) -> list[dict]:
    try:
        return supabase.table("tags").select("id, name, category").order("name").execute().data or []
    except Exception:
        logger.exception("Tag catalogue lookup error")
        raise HTTPException(status_code=500, detail="Failed to fetch tags")
