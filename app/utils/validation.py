"""Field validators and the input sanitizer shared by the services."""

import html
import re
from uuid import UUID

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PLACE_REGEX = re.compile(r"^[a-zA-Z\s\-',.]+$")
TAG_REGEX = re.compile(r"^[a-zA-Z0-9\s\-_]+$")
SPECIAL_CHAR_REGEX = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

MAX_TAGS = 10
MAX_LANGUAGES = 5
MAX_MESSAGE_LENGTH = 1000
MAX_PROFILE_BIO_LENGTH = 500
LOCAL_BIO_MIN_LENGTH = 50
LOCAL_BIO_MAX_LENGTH = 1000


def is_valid_email(email: str) -> bool:
    return bool(email) and bool(EMAIL_REGEX.match(email))


def validate_password(password: str) -> list[str]:
    """Return every rule the password breaks, empty when it is acceptable."""
    errors = []

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not SPECIAL_CHAR_REGEX.search(password):
        errors.append("Password must contain at least one special character")

    return errors


def is_valid_name(name: str) -> bool:
    return 2 <= len(name.strip()) <= 100


def normalize_whitespace(value: str) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    return re.sub(r"\s+", " ", value.strip())


def sanitize_string(value: str) -> str:
    """normalize_whitespace, then HTML-escape."""
    return html.escape(normalize_whitespace(value), quote=True)


def is_valid_city(city: str) -> bool:
    return 2 <= len(city) <= 100 and bool(PLACE_REGEX.match(city))


def is_valid_country(country: str) -> bool:
    return 2 <= len(country) <= 100 and bool(PLACE_REGEX.match(country))


def validate_tags(tags: list[str]) -> bool:
    if len(tags) > MAX_TAGS:
        return False

    return all(2 <= len(tag) <= 50 and TAG_REGEX.match(tag) for tag in tags)


def is_valid_bio(bio: str, minimum: int = LOCAL_BIO_MIN_LENGTH, maximum: int = LOCAL_BIO_MAX_LENGTH) -> bool:
    return minimum <= len(bio) <= maximum


def is_valid_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True
