import os

# settings are read at import time
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "1000")

import pytest
from fastapi.testclient import TestClient

from app.core.rate_limit import limiter
from app.core.supabase_client import get_realtime_client, get_supabase, get_supabase_auth
from app.main import app

from fake_supabase import FakeRealtimeClient, FakeSupabase, make_token

LOCAL_BIO = "Born and raised here, I know every taco truck and live music venue in town."


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def realtime_client():
    return FakeRealtimeClient()


@pytest.fixture
def client(db, realtime_client):
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_supabase_auth] = lambda: db
    app.dependency_overrides[get_realtime_client] = lambda: realtime_client
    limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.reset()


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def add_profile(db, full_name="Test User", is_local=False, **fields) -> dict:
    return db.add(
        "profiles",
        {
            "full_name": full_name,
            "email": f"{full_name.lower().replace(' ', '.')}@example.com",
            "is_local": is_local,
            **fields,
        },
    )


def add_local(db, full_name="Local Expert", city="Austin", country="USA", verified=True, **fields):
    profile = add_profile(db, full_name, is_local=True, city=city, country=country)
    local = db.add(
        "locals",
        {
            "user_id": profile["id"],
            "city": city,
            "country": country,
            "bio": LOCAL_BIO,
            "tags": ["food", "music"],
            "is_verified": verified,
            **fields,
        },
    )
    return profile, local


@pytest.fixture
def traveler(db):
    return add_profile(db, "Tina Traveler")


@pytest.fixture
def local_expert(db):
    profile, _ = add_local(db, "Leo Local")
    return profile
