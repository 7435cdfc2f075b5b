import pytest

from conftest import LOCAL_BIO, add_local, auth_headers


@pytest.fixture
def tag_catalogue(db):
    for tag_id, name, category in [(1, "food", "Food & Drink"), (2, "music", "Culture"), (3, "hiking", "Outdoors")]:
        db.add("tags", {"id": tag_id, "name": name, "category": category})


@pytest.fixture
def city_locals(db):
    add_local(db, "Ana Austin", city="Austin", country="USA", rating=4.9, total_connections=10)
    add_local(db, "Ben Austin", city="Austin", country="USA", rating=4.9, total_connections=30, tags=["hiking"])
    add_local(db, "Cal Austin", city="Austin", country="USA", rating=3.0)
    add_local(db, "Dee Pending", city="Austin", country="USA", verified=False, rating=5.0)
    add_local(db, "Eve Dallas", city="Dallas", country="USA")
    add_local(db, "Fay Houston", city="Houston", country="USA")
    add_local(db, "Gus Houston", city="Houston", country="USA")
    add_local(db, "Hal Lisbon", city="Lisbon", country="Portugal")


def become_local(client, user_id, **overrides):
    payload = {"city": "Austin", "country": "USA", "bio": LOCAL_BIO, "tags": ["food", "bbq"], **overrides}
    return client.post("/locals/profile", headers=auth_headers(user_id), json=payload)


def test_become_local(client, db, traveler, tag_catalogue):
    res = become_local(client, traveler["id"])

    assert res.status_code == 201
    local = res.json()["data"]
    assert local["is_verified"] is False
    assert local["languages"] == ["English"]

    profile = db.rows("profiles", id=traveler["id"])[0]
    assert profile["is_local"] is True
    assert profile["city"] == "Austin"
    # only catalogue tags get linked
    assert [row["tag_id"] for row in db.rows("local_tags", local_id=local["id"])] == [1]


def test_become_local_twice(client, traveler):
    become_local(client, traveler["id"])

    res = become_local(client, traveler["id"])

    assert res.status_code == 409
    assert res.json()["error"] == "Local expert profile already exists"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"bio": "Too short"}, "bio"),
        ({"city": "4ustin"}, "city"),
        ({"tags": []}, "tags"),
        ({"tags": [f"tag{i}" for i in range(11)]}, "tags"),
        ({"languages": ["en", "es", "fr", "de", "it", "pt"]}, "languages"),
    ],
)
def test_become_local_validation(client, traveler, overrides, field):
    res = become_local(client, traveler["id"], **overrides)

    assert res.status_code == 400
    assert [err["field"] for err in res.json()["data"]] == [field]


def test_update_local_profile(client, db, local_expert):
    res = client.put("/locals/profile", headers=auth_headers(local_expert["id"]), json={"city": "Round Rock"})

    assert res.status_code == 200
    assert res.json()["data"]["city"] == "Round Rock"
    assert db.rows("profiles", id=local_expert["id"])[0]["city"] == "Round Rock"


def test_update_without_local_profile(client, traveler):
    res = client.put("/locals/profile", headers=auth_headers(traveler["id"]), json={"city": "Austin"})

    assert res.status_code == 404


def test_search_only_returns_verified_best_first(client, city_locals):
    res = client.get("/locals/search", params={"city": "austin"})

    assert res.status_code == 200
    body = res.json()
    assert [r["user"]["full_name"] for r in body["data"]] == ["Ben Austin", "Ana Austin", "Cal Austin"]
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}


def test_search_location_tags_and_paging(client, city_locals):
    res = client.get("/locals/search", params={"location": "Austin", "tags": "hiking, bbq", "limit": 1})
    body = res.json()
    assert [r["user"]["full_name"] for r in body["data"]] == ["Ben Austin"]
    assert body["pagination"]["total"] == 1

    res = client.get("/locals/search", params={"country": "usa", "page": 2, "limit": 2})
    assert res.json()["pagination"] == {"page": 2, "limit": 2, "total": 6, "pages": 3}
    assert len(res.json()["data"]) == 2


def test_search_is_logged(client, db, traveler, city_locals):
    client.get("/locals/search", params={"location": "Austin", "dates": "2026-11-01"}, headers=auth_headers(traveler["id"]))
    client.get("/locals/search", params={"city": "Nowhere"})

    logged, anonymous = db.rows("searches")
    assert logged["user_id"] == traveler["id"]
    assert logged["query"] == "Austin"
    assert logged["results_count"] == 3
    assert anonymous["user_id"] is None
    assert anonymous["results_count"] == 0


def test_search_log_failure_does_not_fail_search(client, db, city_locals):
    db.fail("searches", "insert")

    res = client.get("/locals/search", params={"city": "Austin"})

    assert res.status_code == 200
    assert len(res.json()["data"]) == 3


def test_nearby_cities(client, city_locals):
    res = client.get("/locals/nearby", params={"city": "Austin", "country": "USA"})

    assert res.json()["data"] == [
        {"city": "Houston", "country": "USA", "locals_count": 2},
        {"city": "Dallas", "country": "USA", "locals_count": 1},
    ]


def test_city_suggestions(client, city_locals):
    res = client.get("/locals/cities", params={"q": "o"})

    assert res.json()["data"] == [
        {"city": "Houston", "country": "USA"},
        {"city": "Lisbon", "country": "Portugal"},
    ]


def test_tag_catalogue(client, tag_catalogue):
    names = [tag["name"] for tag in client.get("/locals/tags").json()["data"]]
    assert names == ["food", "hiking", "music"]


def test_get_local_card(client, db):
    _, local = add_local(db, "Leo Local")

    res = client.get(f"/locals/{local['id']}")
    assert res.status_code == 200
    assert res.json()["data"]["user"]["full_name"] == "Leo Local"

    missing = client.get("/locals/7c9e6679-7425-40de-944b-e07fc1f90ae7")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Local expert not found"
