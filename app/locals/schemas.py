from pydantic import BaseModel, field_validator
from uuid import UUID
from datetime import datetime
from typing import List, Optional

from app.utils.validation import (
    LOCAL_BIO_MAX_LENGTH,
    LOCAL_BIO_MIN_LENGTH,
    MAX_LANGUAGES,
    is_valid_bio,
    is_valid_city,
    is_valid_country,
    validate_tags,
)

BIO_ERROR = f"Bio must be between {LOCAL_BIO_MIN_LENGTH} and {LOCAL_BIO_MAX_LENGTH} characters"
TAGS_ERROR = "Please select 1-10 expertise tags of 2-50 letters, numbers, spaces, - or _"


def _languages(languages: Optional[List[str]]) -> Optional[List[str]]:
    if languages is not None and len(languages) > MAX_LANGUAGES:
        raise ValueError(f"At most {MAX_LANGUAGES} languages")
    return languages


# Become a local
class LocalProfileCreateModel(BaseModel):
    city: str
    country: str
    bio: str
    tags: List[str]
    languages: Optional[List[str]] = None

    @field_validator("city")
    @classmethod
    def validate_city(cls, city: str) -> str:
        if not is_valid_city(city):
            raise ValueError("Invalid city name")
        return city

    @field_validator("country")
    @classmethod
    def validate_country(cls, country: str) -> str:
        if not is_valid_country(country):
            raise ValueError("Invalid country name")
        return country

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, bio: str) -> str:
        if not is_valid_bio(bio):
            raise ValueError(BIO_ERROR)
        return bio

    @field_validator("tags")
    @classmethod
    def check_tags(cls, tags: List[str]) -> List[str]:
        if not tags or not validate_tags(tags):
            raise ValueError(TAGS_ERROR)
        return tags

    @field_validator("languages")
    @classmethod
    def validate_languages(cls, languages: Optional[List[str]]) -> Optional[List[str]]:
        return _languages(languages)


# Edit local profile
class LocalProfileUpdateModel(BaseModel):
    city: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    tags: Optional[List[str]] = None
    languages: Optional[List[str]] = None

    @field_validator("city")
    @classmethod
    def validate_city(cls, city: Optional[str]) -> Optional[str]:
        if city is not None and not is_valid_city(city):
            raise ValueError("Invalid city name")
        return city

    @field_validator("country")
    @classmethod
    def validate_country(cls, country: Optional[str]) -> Optional[str]:
        if country is not None and not is_valid_country(country):
            raise ValueError("Invalid country name")
        return country

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, bio: Optional[str]) -> Optional[str]:
        if bio is not None and not is_valid_bio(bio):
            raise ValueError(BIO_ERROR)
        return bio

    @field_validator("tags")
    @classmethod
    def check_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        if tags is not None and (not tags or not validate_tags(tags)):
            raise ValueError(TAGS_ERROR)
        return tags

    @field_validator("languages")
    @classmethod
    def validate_languages(cls, languages: Optional[List[str]]) -> Optional[List[str]]:
        return _languages(languages)


class LocalExpertData(BaseModel):
    id: UUID
    user_id: UUID
    city: str
    country: str
    bio: str
    tags: List[str] = []
    languages: Optional[List[str]] = None
    is_verified: bool = False
    rating: float = 0
    total_connections: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Search
class LocalUserInfo(BaseModel):
    full_name: str = ""
    avatar_url: Optional[str] = None
    last_active_at: Optional[datetime] = None


class SearchResultData(BaseModel):
    id: UUID
    user_id: UUID
    city: str
    country: str
    bio: str
    tags: List[str] = []
    languages: Optional[List[str]] = None
    rating: float = 0
    total_connections: int = 0
    user: LocalUserInfo


# Nearby / cities / tags
class NearbyCityData(BaseModel):
    city: str
    country: str
    locals_count: int


class CityData(BaseModel):
    city: str
    country: str


class TagData(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
