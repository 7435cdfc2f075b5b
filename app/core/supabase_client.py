import asyncio
import logging
from functools import lru_cache

from supabase import AsyncClient, Client, acreate_client, create_client

from app.core import config

logger = logging.getLogger(__name__)

_async_client: AsyncClient | None = None
_async_lock = asyncio.Lock()


@lru_cache
def get_supabase() -> Client:
    """Service-role client for table access, used as a FastAPI dependency."""
    return create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def get_supabase_auth() -> Client:
    """Anon-key client for user sign up / sign in."""
    return create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)


async def get_realtime_client() -> AsyncClient:
    """Async client, the only one that speaks realtime channels."""
    global _async_client

    async with _async_lock:
        if _async_client is None:
            logger.info("Creating async Supabase client for realtime")
            _async_client = await acreate_client(
                config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY
            )
    return _async_client
