import os
from dotenv import load_dotenv

from app.utils.env_helper import env_bool, env_float, env_int, env_list

load_dotenv()


APP_ENV = os.getenv("APP_ENV", "development")

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")

# Access tokens are Supabase session JWTs, refresh cookie lives 7 days
TOKEN_EXPIRES_IN = 7 * 24 * 60 * 60
REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/auth/access"

# CORS
CORS_ORIGINS = env_list(
    "CORS_ORIGINS", default=["http://localhost:3000", "http://localhost:5173"]
)

# Rate limiting
RATE_LIMIT_ENABLED = env_bool("RATE_LIMIT_ENABLED", default=True)
RATE_LIMIT_WINDOW_SECONDS = env_int("RATE_LIMIT_WINDOW_SECONDS", 900)
RATE_LIMIT_MAX_REQUESTS = env_int("RATE_LIMIT_MAX_REQUESTS", 100)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "default")

# Chat realtime
CHAT_POLL_INTERVAL_SECONDS = env_float("CHAT_POLL_INTERVAL_SECONDS", 3.0)
CHAT_TYPING_DELAY_SECONDS = env_float("CHAT_TYPING_DELAY_SECONDS", 2.0)
CHAT_TYPING_TIMEOUT_SECONDS = env_float("CHAT_TYPING_TIMEOUT_SECONDS", 1.0)

REQUIRED_ENV_VARS = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_JWT_SECRET",
]


def is_production() -> bool:
    return APP_ENV == "production"


def validate_config():
    missing = [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]

    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Check your .env file."
        )
