import uuid
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.core.dependencies import get_current_user, get_optional_user
from app.core.rate_limit import rate_limiter
from app.core.responses import ApiResponse, ok
from app.core.supabase_client import get_supabase

from . import services
from .schemas import (
    CityData,
    LocalExpertData,
    LocalProfileCreateModel,
    LocalProfileUpdateModel,
    NearbyCityData,
    SearchResultData,
    TagData,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/profile",
    response_model=ApiResponse[LocalExpertData],
    status_code=201,
    dependencies=[Depends(rate_limiter)],
)
def create_profile(
    data: LocalProfileCreateModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Become a local expert.

    Creates the `locals` row and flags the profile `is_local`. New locals are
    unverified and do not show up in search until verified.

    **Input Fields**
    - **city**, **country**: 2–100 letters and common punctuation
    - **bio**: 50–1000 characters
    - **tags**: 1–10 expertise tags
    - **languages**: up to 5, defaults to English

    **Errors**
    - 400: Invalid input
    - 409: The user is already a local expert
    """
    return ok(services.create_local_profile(supabase, user["id"], data.model_dump()))


@router.put(
    "/profile",
    response_model=ApiResponse[LocalExpertData],
    status_code=200,
    dependencies=[Depends(rate_limiter)],
)
def update_profile(
    data: LocalProfileUpdateModel,
    user=Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """Edit the caller's local expert profile. Only provided fields change."""
    updates = data.model_dump(exclude_unset=True)
    return ok(services.update_local_profile(supabase, user["id"], updates))


@router.get("/search", response_model=ApiResponse[List[SearchResultData]], status_code=200)
def search(
    location: Optional[str] = None,
    city: Optional[str] = None,
    country: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma separated tag names"),
    dates: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    user=Depends(get_optional_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Search verified local experts.

    `location` is used as the city filter when `city` is not given. Results
    are ordered by rating, then by number of connections.
    """
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()] if tags else []
    city = city or location

    results, pagination = services.search_local_experts(
        supabase, city=city, country=country, tags=tag_list, page=page, limit=limit
    )

    services.log_search(
        supabase,
        user["id"] if user else None,
        {"location": location, "city": city, "country": country, "dates": dates, "tags": tag_list},
        pagination.total,
    )

    return ok(results, pagination=pagination)


@router.get("/nearby", response_model=ApiResponse[List[NearbyCityData]], status_code=200)
def nearby(
    city: str,
    country: str,
    supabase: Client = Depends(get_supabase),
):
    """Up to five other cities in `country` that have verified locals."""
    return ok(services.get_nearby_locals(supabase, city, country))


@router.get("/cities", response_model=ApiResponse[List[CityData]], status_code=200)
def cities(
    q: Optional[str] = None,
    supabase: Client = Depends(get_supabase),
):
    """City suggestions for the search box."""
    return ok(services.get_cities(supabase, q))


@router.get("/tags", response_model=ApiResponse[List[TagData]], status_code=200)
def tags(supabase: Client = Depends(get_supabase)):
    """Expertise tag catalogue."""
    return ok(services.list_tags(supabase))


@router.get("/{local_id}", response_model=ApiResponse[SearchResultData], status_code=200)
def get_local(
    local_id: uuid.UUID,
    supabase: Client = Depends(get_supabase),
):
    """Public card of one local expert."""
    return ok(services.get_local_expert(supabase, str(local_id)))
