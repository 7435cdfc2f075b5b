import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client

from app.core import config
from app.core.supabase_client import get_supabase

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """Verify a Supabase access token and return its claims."""
    try:
        return jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            issuer=f"{config.SUPABASE_URL}/auth/v1",
            options={"verify_aud": False},
            leeway=60,
        )

    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")

    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")


def verify_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access token required")

    return decode_access_token(credentials.credentials)


def load_user(supabase: Client, payload: dict) -> dict:
    """Resolve token claims into the caller's profile row."""
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        res = supabase.table("profiles").select("*").eq("id", user_id).limit(1).execute()
    except Exception:
        logger.exception("Profile lookup failed during authentication")
        raise HTTPException(status_code=401, detail="Invalid token or user not found")

    if not res.data:
        logger.warning(f"Authentication failed for user id={user_id}")
        raise HTTPException(status_code=401, detail="Invalid token or user not found")

    profile = res.data[0]
    return {
        "id": profile["id"],
        "email": profile.get("email") or payload.get("email"),
        "full_name": profile.get("full_name"),
        "profile": profile,
    }


def get_current_user(
    payload: dict = Depends(verify_token),
    supabase: Client = Depends(get_supabase),
) -> dict:
    return load_user(supabase, payload)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    supabase: Client = Depends(get_supabase),
) -> dict | None:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    if credentials is None or not credentials.credentials:
        return None

    try:
        return load_user(supabase, decode_access_token(credentials.credentials))
    except HTTPException:
        return None
