from pydantic import BaseModel, field_validator
from uuid import UUID
from datetime import datetime
from typing import Optional

from app.utils.validation import is_valid_email, is_valid_name

MAX_COMMENT_LENGTH = 2000


class FeedbackModel(BaseModel):
    name: str
    email: str
    comment: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, name: str) -> str:
        if not is_valid_name(name):
            raise ValueError("Name must be between 2 and 100 characters")
        return name

    @field_validator("email")
    @classmethod
    def validate_email(cls, email: str) -> str:
        email = email.strip().lower()
        if not is_valid_email(email):
            raise ValueError("Please provide a valid email address")
        return email

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, comment: str) -> str:
        if not comment.strip():
            raise ValueError("Comment cannot be empty")
        if len(comment) > MAX_COMMENT_LENGTH:
            raise ValueError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")
        return comment


class FeedbackData(BaseModel):
    id: UUID
    name: str
    email: str
    comment: str
    created_at: Optional[datetime] = None
