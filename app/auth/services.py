import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from supabase import AuthApiError, Client

from app.core import config
from app.utils.validation import (
    is_valid_email,
    is_valid_name,
    sanitize_string,
    validate_password,
)

logger = logging.getLogger(__name__)

PROFILE_WRITE_ATTEMPTS = 3
PROFILE_TEXT_FIELDS = ("full_name", "bio", "city", "country")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _auth_user(user, full_name: str | None) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": full_name,
        "created_at": getattr(user, "created_at", None),
    }


def _write_profile(supabase: Client, row: dict) -> dict | None:
    """Upsert keyed on id, so a retry after a lost response is harmless."""
    for attempt in range(1, PROFILE_WRITE_ATTEMPTS + 1):
        try:
            res = supabase.table("profiles").upsert(row, on_conflict="id").execute()
            if res.data:
                return res.data[0]
        except Exception:
            logger.warning(
                f"Profile write attempt {attempt}/{PROFILE_WRITE_ATTEMPTS} failed for user {row['id']}",
                exc_info=True,
            )
    return None


def signup(supabase: Client, auth_client: Client, email: str, password: str, full_name: str) -> dict:
    """
    Create the Supabase Auth user and its profile row.

    The profile write is retried; if it never lands the auth user is
    deleted again so no account exists without a profile.
    """
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if not is_valid_name(full_name):
        raise HTTPException(status_code=400, detail="Full name must be between 2 and 100 characters")
    password_errors = validate_password(password)
    if password_errors:
        raise HTTPException(status_code=400, detail=", ".join(password_errors))

    try:
        existing = supabase.table("profiles").select("id").eq("email", email).limit(1).execute()
    except Exception:
        logger.exception("Signup email lookup failed")
        raise HTTPException(status_code=500, detail="Internal server error")

    if existing.data:
        raise HTTPException(status_code=409, detail="User with this email already exists")

    try:
        res = auth_client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"full_name": full_name}},
            }
        )
    except AuthApiError as error:
        logger.error(f"supabase_error={error}")
        raise HTTPException(status_code=409, detail=str(error))

    if not res.user:
        raise HTTPException(status_code=400, detail="Failed to create user account")

    user_id = str(res.user.id)
    profile = _write_profile(
        supabase,
        {
            "id": user_id,
            "email": email,
            "full_name": sanitize_string(full_name),
            "is_local": False,
            "is_traveler": True,
            "last_active_at": _now(),
        },
    )

    if profile is None:
        logger.error(f"Profile creation failed for user {user_id}, removing auth user")
        try:
            supabase.auth.admin.delete_user(user_id)
        except Exception:
            logger.warning(f"Orphaned auth user {user_id}: cleanup delete failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create user profile")

    logger.info(f"User registered successfully: {email} user_id={user_id}")

    return {
        "user": _auth_user(res.user, full_name),
        "profile": profile,
        "token": res.session.access_token if res.session else None,
        "expires_in": config.TOKEN_EXPIRES_IN,
    }


def login(supabase: Client, auth_client: Client, email: str, password: str) -> dict:
    """Returns the auth payload plus `refresh_token` for the cookie."""
    if not password:
        raise HTTPException(status_code=400, detail="Password is required")

    try:
        res = auth_client.auth.sign_in_with_password({"email": email, "password": password})
    except AuthApiError as error:
        logger.warning(f"Login attempt failed for email: {email} ({error.message})")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not res.user or not res.session:
        raise HTTPException(
            status_code=500,
            detail="Supabase authentication returned an unexpected response.",
        )

    user_id = str(res.user.id)

    try:
        profile_res = supabase.table("profiles").select("*").eq("id", user_id).limit(1).execute()
    except Exception:
        logger.exception("Profile fetch error during login")
        raise HTTPException(status_code=500, detail="Internal server error")

    if not profile_res.data:
        logger.error(f"Profile missing for authenticated user {user_id}")
        raise HTTPException(status_code=404, detail="User profile not found")

    profile = profile_res.data[0]

    try:
        supabase.table("profiles").update({"last_active_at": _now()}).eq("id", user_id).execute()
    except Exception:
        logger.warning(f"Failed to touch last_active_at for {user_id}", exc_info=True)

    logger.info(f"user_login_success email={email}")

    return {
        "user": _auth_user(res.user, profile.get("full_name")),
        "profile": profile,
        "token": res.session.access_token,
        "expires_in": res.session.expires_in or config.TOKEN_EXPIRES_IN,
        "refresh_token": res.session.refresh_token,
    }


def refresh_session(auth_client: Client, refresh_token: str) -> dict:
    session = auth_client.auth.refresh_session(refresh_token)
    return {
        "access_token": session.session.access_token,
        "refresh_token": session.session.refresh_token,
        "expires_in": session.session.expires_in,
    }


def get_profile(supabase: Client, user_id: str) -> dict:
    try:
        res = supabase.table("profiles").select("*").eq("id", str(user_id)).limit(1).execute()
    except Exception:
        logger.exception("Get profile service error")
        raise HTTPException(status_code=500, detail="Internal server error")

    if not res.data:
        raise HTTPException(status_code=404, detail="Profile not found")
    return res.data[0]


def update_profile(supabase: Client, user_id: str, updates: dict) -> dict:
    """Apply the provided fields, sanitizing free text. Validation is done by the schema."""
    changes = {"updated_at": _now()}

    for field in PROFILE_TEXT_FIELDS:
        if updates.get(field):
            changes[field] = sanitize_string(updates[field])

    if updates.get("tags") is not None:
        changes["tags"] = [sanitize_string(tag) for tag in updates["tags"]]

    if updates.get("avatar_url") is not None:
        changes["avatar_url"] = updates["avatar_url"]

    try:
        res = supabase.table("profiles").update(changes).eq("id", str(user_id)).execute()
    except Exception:
        logger.exception("Profile update error")
        raise HTTPException(status_code=500, detail="Failed to update profile")

    if not res.data:
        raise HTTPException(status_code=404, detail="Profile not found")

    logger.info(f"Profile updated for user: {user_id}")
    return res.data[0]


def get_me(supabase: Client, user: dict) -> dict:
    profile = user["profile"]
    local = None

    if profile.get("is_local"):
        try:
            res = (
                supabase.table("locals")
                .select("id, city, country, is_verified, rating, total_connections")
                .eq("user_id", user["id"])
                .limit(1)
                .execute()
            )
        except Exception:
            logger.exception("Local profile lookup failed for /auth/me")
            raise HTTPException(status_code=500, detail="Internal server error")
        local = res.data[0] if res.data else None

    return {
        "user": {
            "id": user["id"],
            "email": user.get("email") or profile.get("email") or "",
            "full_name": profile.get("full_name"),
            "created_at": profile.get("created_at"),
        },
        "profile": profile,
        "local": local,
    }
