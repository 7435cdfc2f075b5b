import logging

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from app.core.rate_limit import rate_limiter
from app.core.responses import ApiResponse, ok
from app.core.supabase_client import get_supabase
from app.utils.validation import sanitize_string

from .schemas import FeedbackData, FeedbackModel

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[FeedbackData],
    status_code=201,
    dependencies=[Depends(rate_limiter)],
)
def submit_feedback(data: FeedbackModel, supabase: Client = Depends(get_supabase)):
    """
    Store feedback from the site's feedback form. No account needed.

    **Errors**
    - 400: Invalid name, email or comment
    - 500: Database error
    """
    try:
        res = (
            supabase.table("feedback")
            .insert(
                {
                    "name": sanitize_string(data.name),
                    "email": data.email,
                    "comment": sanitize_string(data.comment),
                }
            )
            .execute()
        )
    except Exception:
        logger.exception("Feedback insert failed")
        raise HTTPException(status_code=500, detail="Failed to submit feedback")

    if not res.data:
        raise HTTPException(status_code=500, detail="Failed to submit feedback")

    logger.info(f"Feedback received from {data.email}")
    return ok(res.data[0], message="Thanks for your feedback!")
