from pydantic import BaseModel, SecretStr, field_validator
from typing import List, Optional
from datetime import datetime

from app.utils.validation import (
    MAX_PROFILE_BIO_LENGTH,
    is_valid_city,
    is_valid_country,
    is_valid_email,
    is_valid_name,
    validate_password,
    validate_tags,
)


def _check_email(email: str) -> str:
    email = email.strip().lower()
    if not is_valid_email(email):
        raise ValueError("Please provide a valid email address")
    return email


"""
auth/signup
"""


class SignupModel(BaseModel):
    email: str
    password: SecretStr
    full_name: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, email: str) -> str:
        return _check_email(email)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, full_name: str) -> str:
        if not is_valid_name(full_name):
            raise ValueError("Full name must be between 2 and 100 characters")
        return full_name

    @field_validator("password")
    @classmethod
    def check_password(cls, password: SecretStr) -> SecretStr:
        errors = validate_password(password.get_secret_value())
        if errors:
            raise ValueError(", ".join(errors))
        return password


class AuthUser(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileData(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    is_local: bool = False
    is_traveler: bool = True
    tags: Optional[List[str]] = None
    last_active_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthData(BaseModel):
    user: AuthUser
    profile: ProfileData
    token: Optional[str] = None
    expires_in: int


"""
auth/login
"""


class LoginModel(BaseModel):
    email: str
    password: SecretStr

    @field_validator("email")
    @classmethod
    def validate_email(cls, email: str) -> str:
        return _check_email(email)

    @field_validator("password")
    @classmethod
    def check_password(cls, password: SecretStr) -> SecretStr:
        if not password.get_secret_value():
            raise ValueError("Password is required")
        return password


"""
auth/access
"""


class AccessTokenData(BaseModel):
    access_token: str
    expires_in: Optional[int] = None


"""
auth/profile
"""


class ProfileUpdateModel(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, full_name: Optional[str]) -> Optional[str]:
        if full_name is not None and not is_valid_name(full_name):
            raise ValueError("Full name must be between 2 and 100 characters")
        return full_name

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, bio: Optional[str]) -> Optional[str]:
        if bio is not None and len(bio) > MAX_PROFILE_BIO_LENGTH:
            raise ValueError(f"Bio must be less than {MAX_PROFILE_BIO_LENGTH} characters")
        return bio

    @field_validator("city")
    @classmethod
    def validate_city(cls, city: Optional[str]) -> Optional[str]:
        if city and not is_valid_city(city):
            raise ValueError("Invalid city name")
        return city

    @field_validator("country")
    @classmethod
    def validate_country(cls, country: Optional[str]) -> Optional[str]:
        if country and not is_valid_country(country):
            raise ValueError("Invalid country name")
        return country

    @field_validator("tags")
    @classmethod
    def check_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        if tags is not None and not validate_tags(tags):
            raise ValueError("Tags must be at most 10 items of 2-50 letters, numbers, spaces, - or _")
        return tags


"""
auth/me
"""


class LocalSummary(BaseModel):
    id: str
    city: str
    country: str
    is_verified: bool = False
    rating: float = 0
    total_connections: int = 0


class MeData(BaseModel):
    user: AuthUser
    profile: ProfileData
    local: Optional[LocalSummary] = None
