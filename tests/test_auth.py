from app.core import config

from conftest import add_local, auth_headers
from fake_supabase import make_token

PASSWORD = "Str0ng!pass"


def signup(client, email="tina@example.com", full_name="Tina Traveler", password=PASSWORD):
    return client.post("/auth/signup", json={"email": email, "password": password, "full_name": full_name})


def test_signup_creates_user_and_profile(client, db):
    res = signup(client, email="  Tina@Example.com ")

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "tina@example.com"
    assert body["data"]["profile"]["is_traveler"] is True
    assert body["data"]["profile"]["is_local"] is False
    assert body["data"]["token"]

    profiles = db.rows("profiles", email="tina@example.com")
    assert len(profiles) == 1
    assert profiles[0]["id"] == body["data"]["user"]["id"]


def test_signup_duplicate_email(client):
    signup(client)
    res = signup(client)

    assert res.status_code == 409
    assert res.json() == {"success": False, "error": "User with this email already exists"}


def test_signup_validation_errors(client):
    res = signup(client, email="nope", password="weak", full_name="T")

    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "Validation failed"
    fields = {err["field"] for err in body["data"]}
    assert fields == {"email", "password", "full_name"}


def test_signup_retries_profile_write(client, db):
    db.fail("profiles", "upsert", times=2)

    res = signup(client)

    assert res.status_code == 201
    assert len(db.rows("profiles")) == 1


def test_signup_rolls_back_auth_user_when_profile_never_lands(client, db):
    db.fail("profiles", "upsert", times=3)

    res = signup(client)

    assert res.status_code == 500
    assert res.json()["error"] == "Failed to create user profile"
    assert db.rows("profiles") == []
    assert len(db.auth.deleted_users) == 1
    # the email is free again
    assert signup(client).status_code == 201


def test_login_sets_refresh_cookie(client):
    signup(client)

    res = client.post("/auth/login", json={"email": "tina@example.com", "password": PASSWORD})

    assert res.status_code == 200
    assert res.json()["data"]["token"]
    assert "refresh_token" not in res.json()["data"]
    cookie = res.headers["set-cookie"]
    assert f"{config.REFRESH_COOKIE_NAME}=" in cookie
    assert "HttpOnly" in cookie
    assert f"Path={config.REFRESH_COOKIE_PATH}" in cookie


def test_login_wrong_password(client):
    signup(client)

    res = client.post("/auth/login", json={"email": "tina@example.com", "password": "Wr0ng!pass"})

    assert res.status_code == 401
    assert res.json()["error"] == "Invalid email or password"


def test_refresh_access_token(client):
    signup(client)
    login = client.post("/auth/login", json={"email": "tina@example.com", "password": PASSWORD})
    refresh_token = login.cookies.get(config.REFRESH_COOKIE_NAME)

    res = client.get("/auth/access", headers={"Cookie": f"{config.REFRESH_COOKIE_NAME}={refresh_token}"})

    assert res.status_code == 200
    assert res.json()["data"]["access_token"]
    # refresh tokens rotate
    assert res.cookies.get(config.REFRESH_COOKIE_NAME) != refresh_token


def test_refresh_without_cookie(client):
    res = client.get("/auth/access")

    assert res.status_code == 401
    assert res.json()["error"] == "No refresh token provided."


def test_refresh_with_revoked_cookie(client):
    res = client.get("/auth/access", headers={"Cookie": f"{config.REFRESH_COOKIE_NAME}=stale"})

    assert res.status_code == 401
    assert res.json()["success"] is False


def test_logout_clears_cookie(client):
    res = client.post("/auth/logout")

    assert res.status_code == 200
    assert res.json()["success"] is True
    assert f"{config.REFRESH_COOKIE_NAME}=" in res.headers["set-cookie"]


def test_protected_routes_need_a_valid_token(client, traveler):
    assert client.get("/auth/profile").json()["error"] == "Access token required"

    res = client.get("/auth/profile", headers={"Authorization": "Bearer not.a.jwt"})
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid token"

    expired = make_token(traveler["id"], expires_in=-3600)
    res = client.get("/auth/profile", headers={"Authorization": f"Bearer {expired}"})
    assert res.json()["error"] == "Token expired"

    res = client.get("/auth/profile", headers=auth_headers("00000000-0000-0000-0000-000000000000"))
    assert res.json()["error"] == "Invalid token or user not found"


def test_profile_read_and_update(client, traveler):
    headers = auth_headers(traveler["id"])

    assert client.get("/auth/profile", headers=headers).json()["data"]["full_name"] == "Tina Traveler"

    res = client.put(
        "/auth/profile",
        headers=headers,
        json={"bio": "I love <b>food</b>", "city": "Austin", "tags": ["food"]},
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["bio"] == "I love &lt;b&gt;food&lt;/b&gt;"
    assert data["city"] == "Austin"
    assert data["tags"] == ["food"]

    res = client.put("/auth/profile", headers=headers, json={"bio": "x" * 501})
    assert res.status_code == 400


def test_me_includes_local_summary(client, db, traveler):
    assert client.get("/auth/me", headers=auth_headers(traveler["id"])).json()["data"]["local"] is None

    profile, local = add_local(db, "Leo Local")
    data = client.get("/auth/me", headers=auth_headers(profile["id"])).json()["data"]

    assert data["user"]["id"] == profile["id"]
    assert data["local"]["id"] == local["id"]
    assert data["local"]["city"] == "Austin"
