import logging

from fastapi.responses import JSONResponse
from fastapi import APIRouter, status, HTTPException, Request, Response, Depends
from supabase import Client

from app.core import config
from app.core.dependencies import get_current_user
from app.core.rate_limit import rate_limiter
from app.core.responses import ApiResponse, ok
from app.core.supabase_client import get_supabase, get_supabase_auth
from app.utils.env_helper import env_bool, env_none_or_str

from . import services
from .schemas import (
    AccessTokenData,
    AuthData,
    LoginModel,
    MeData,
    ProfileData,
    ProfileUpdateModel,
    SignupModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


def _set_refresh_cookie(response: Response, refresh_token: str):
    response.set_cookie(
        key=config.REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=env_bool("HTTPONLY", default=True),
        secure=env_bool("SECURE", default=False),
        samesite=env_none_or_str("SAMESITE", "lax"),
        domain=env_none_or_str("COOKIE_DOMAIN", None),
        max_age=config.TOKEN_EXPIRES_IN,
        path=config.REFRESH_COOKIE_PATH,
    )


def _clear_refresh_cookie(response: Response):
    response.delete_cookie(
        key=config.REFRESH_COOKIE_NAME,
        path=config.REFRESH_COOKIE_PATH,  # must match set_cookie()
        domain=env_none_or_str("COOKIE_DOMAIN", None),
    )


@router.post(
    "/signup",
    response_model=ApiResponse[AuthData],
    status_code=201,
    dependencies=[Depends(rate_limiter)],
)
def signup(
    data: SignupModel,
    supabase: Client = Depends(get_supabase),
    auth_client: Client = Depends(get_supabase_auth),
):
    """
    Register a new traveler account.

    Creates the Supabase Auth user and the matching `profiles` row. Every
    new account starts as a traveler; becoming a local is a separate step
    (`POST /locals/profile`).

    **Input Fields**
    - **email**: A valid email not registered yet.
    - **full_name**: 2–100 characters.
    - **password**: Minimum 8 characters with at least one lowercase letter,
      one uppercase letter, one number and one special character.

    **Returns**
    - `user`, `profile`, `token` (when the project does not require email
      confirmation) and `expires_in`

    **Errors**
    - 400: Invalid input
    - 409: Email already registered
    - 500: Profile could not be created
    """
    result = services.signup(
        supabase, auth_client, data.email, data.password.get_secret_value(), data.full_name
    )
    return ok(result, message="Account created")


@router.post(
    "/login",
    response_model=ApiResponse[AuthData],
    status_code=200,
    dependencies=[Depends(rate_limiter)],
)
def login(
    data: LoginModel,
    response: Response,
    supabase: Client = Depends(get_supabase),
    auth_client: Client = Depends(get_supabase_auth),
):
    """
    Authenticate with email and password.

    Returns a short-lived access token and the user's profile. The refresh
    token is set in an HttpOnly cookie scoped to `/auth/access`.

    **Errors**
    - 400: Invalid input
    - 401: Invalid email or password
    - 404: Profile missing for the account
    """
    result = services.login(supabase, auth_client, data.email, data.password.get_secret_value())
    _set_refresh_cookie(response, result.pop("refresh_token"))
    return ok(result)


@router.get("/access", response_model=ApiResponse[AccessTokenData], status_code=200)
def get_new_access(
    request: Request,
    response: Response,
    auth_client: Client = Depends(get_supabase_auth),
):
    """
    Issue a new access token using the refresh token stored in an HttpOnly cookie.

    If Supabase rotates the refresh token, the cookie is updated as well.

    **Errors**
    - 401: Missing, expired, revoked, or invalid refresh token
    """
    refresh_token = request.cookies.get(config.REFRESH_COOKIE_NAME)

    if not refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No refresh token provided.",
        )

    try:
        session = services.refresh_session(auth_client, refresh_token)
    except Exception:
        logger.info("Refresh token rejected", exc_info=True)
        # exception handler builds its own response, so clear the cookie on a fresh one
        body = {"success": False, "error": "Refresh token invalid or expired. Please log in again."}
        failed = JSONResponse(body, status_code=status.HTTP_401_UNAUTHORIZED)
        _clear_refresh_cookie(failed)
        return failed

    _set_refresh_cookie(response, session["refresh_token"])
    return ok({"access_token": session["access_token"], "expires_in": session["expires_in"]})


@router.post("/logout", response_model=ApiResponse[bool], status_code=200)
def logout():
    """
    Clear the refresh token cookie.

    Access tokens are stateless JWTs and cannot be revoked early, so logout
    only removes the refresh cookie; the client drops its access token.
    """
    response = JSONResponse({"success": True, "data": True, "message": "Logged out successfully"})
    _clear_refresh_cookie(response)
    return response


@router.get("/profile", response_model=ApiResponse[ProfileData], status_code=200)
def get_profile(
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """Current user's profile."""
    return ok(services.get_profile(supabase, user["id"]))


@router.put("/profile", response_model=ApiResponse[ProfileData], status_code=200)
def update_profile(
    data: ProfileUpdateModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Update the current user's profile.

    Only the provided fields change. `bio` is limited to 500 characters,
    `tags` to 10 entries.
    """
    updates = data.model_dump(exclude_unset=True)
    return ok(services.update_profile(supabase, user["id"], updates))


@router.get("/me", response_model=ApiResponse[MeData], status_code=200)
def get_me(
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Authenticated user, their profile and, for locals, the local expert
    summary (city, verification, rating, connections).
    """
    return ok(services.get_me(supabase, user))
