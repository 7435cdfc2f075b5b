import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import add_profile, auth_headers
from fake_supabase import make_token


@pytest.fixture
def chat(client, traveler, local_expert):
    res = client.post(
        "/chats",
        headers=auth_headers(traveler["id"]),
        json={"local_id": local_expert["id"], "city": "Austin"},
    )
    assert res.status_code == 201
    return res.json()["data"]


def test_create_chat_twice_returns_same_chat(client, db, traveler, local_expert, chat):
    res = client.post(
        "/chats",
        headers=auth_headers(traveler["id"]),
        json={"local_id": local_expert["id"], "city": "Austin"},
    )

    assert res.json()["data"]["id"] == chat["id"]
    assert len(db.rows("chats")) == 1


def test_create_chat_requires_auth_and_valid_body(client, local_expert, traveler):
    res = client.post("/chats", json={"local_id": local_expert["id"], "city": "Austin"})
    assert res.status_code == 401

    res = client.post("/chats", headers=auth_headers(traveler["id"]), json={"local_id": "nope"})
    assert res.status_code == 400
    assert {err["field"] for err in res.json()["data"]} == {"local_id", "city"}


def test_inbox_details_and_archive(client, traveler, local_expert, chat):
    headers = auth_headers(traveler["id"])
    client.post(f"/chats/{chat['id']}/messages", headers=auth_headers(local_expert["id"]), json={"content": "Howdy"})

    inbox = client.get("/chats", headers=headers).json()["data"]
    assert len(inbox) == 1
    assert inbox[0]["other_user"]["full_name"] == "Leo Local"
    assert inbox[0]["unread_count"] == 1
    assert inbox[0]["last_message"]["content"] == "Howdy"

    details = client.get(f"/chats/{chat['id']}", headers=headers).json()["data"]
    assert {p["role"] for p in details["participants"]} == {"traveler", "local"}

    res = client.delete(f"/chats/{chat['id']}", headers=headers)
    assert res.json() == {"success": True, "data": True, "message": "Chat archived", "error": None, "pagination": None}
    assert client.get("/chats", headers=headers).json()["data"] == []


def test_outsider_is_forbidden(client, db, chat):
    outsider = add_profile(db, "Olly Outsider")
    headers = auth_headers(outsider["id"])

    for res in (
        client.get(f"/chats/{chat['id']}", headers=headers),
        client.get(f"/chats/{chat['id']}/messages", headers=headers),
        client.post(f"/chats/{chat['id']}/messages", headers=headers, json={"content": "hi"}),
        client.put(f"/chats/{chat['id']}/read", headers=headers, json={"message_ids": []}),
        client.delete(f"/chats/{chat['id']}", headers=headers),
    ):
        assert res.status_code == 403
        assert res.json() == {"success": False, "error": "Access denied to this chat"}


def test_send_list_and_read(client, traveler, local_expert, chat):
    traveler_headers = auth_headers(traveler["id"])
    local_headers = auth_headers(local_expert["id"])

    sent = client.post(f"/chats/{chat['id']}/messages", headers=traveler_headers, json={"content": "Hi!"})
    assert sent.status_code == 201
    assert sent.json()["data"]["is_read"] is False

    reply = client.post(f"/chats/{chat['id']}/messages", headers=local_headers, json={"content": "Hello"})

    res = client.get(f"/chats/{chat['id']}/messages", headers=traveler_headers, params={"order": "asc"})
    body = res.json()
    assert [m["content"] for m in body["data"]] == ["Hi!", "Hello"]
    assert body["data"][1]["sender"]["full_name"] == "Leo Local"
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 2, "pages": 1}

    res = client.put(
        f"/chats/{chat['id']}/read",
        headers=traveler_headers,
        json={"message_ids": [sent.json()["data"]["id"], reply.json()["data"]["id"]]},
    )
    assert res.json()["data"] == {"updated": 1}


def test_send_rejects_blank_and_long_content(client, traveler, chat):
    headers = auth_headers(traveler["id"])

    res = client.post(f"/chats/{chat['id']}/messages", headers=headers, json={"content": "   "})
    assert res.status_code == 400
    assert res.json()["error"] == "Message content cannot be empty"

    res = client.post(f"/chats/{chat['id']}/messages", headers=headers, json={"content": "x" * 1001})
    assert res.json()["error"] == "Message content too long"

    res = client.post(
        f"/chats/{chat['id']}/messages", headers=headers, json={"content": "hi", "message_type": "video"}
    )
    assert res.status_code == 400


def test_message_list_limit_is_clamped(client, db, traveler, chat):
    for i in range(3):
        db.add("messages", {"chat_id": chat["id"], "sender_id": traveler["id"], "content": str(i)})

    res = client.get(
        f"/chats/{chat['id']}/messages", headers=auth_headers(traveler["id"]), params={"page": 0, "limit": 500}
    )

    assert res.json()["pagination"] == {"page": 1, "limit": 100, "total": 3, "pages": 1}


def test_thread_socket_rejects_missing_token_and_outsiders(client, db, chat):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/chats/ws/{chat['id']}") as ws:
            ws.receive_json()

    outsider = add_profile(db, "Olly Outsider")
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/chats/ws/{chat['id']}?token={make_token(outsider['id'])}") as ws:
            ws.receive_json()


def test_thread_socket_send_flow(client, db, realtime_client, traveler, chat):
    token = make_token(traveler["id"])

    with client.websocket_connect(f"/chats/ws/{chat['id']}?token={token}") as ws:
        initial = ws.receive_json()
        assert initial == {"type": "thread", "messages": []}

        ws.send_json({"type": "send", "content": "Hello"})

        echo = ws.receive_json()
        assert echo["messages"][0]["pending"] is True
        assert echo["messages"][0]["is_own"] is True

        stored = ws.receive_json()
        message = stored["messages"][0]
        assert "pending" not in message
        assert message["id"] == echo["messages"][0]["id"]
        assert message["show_delivered"] is True
        assert message["sender"]["full_name"] == "Tina Traveler"

        # invalid content is refused before any echo
        ws.send_json({"type": "send", "content": "   "})
        assert ws.receive_json() == {"type": "error", "error": "Message content cannot be empty"}

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "error": "Invalid JSON"}

        ws.send_json({"type": "dance"})
        assert ws.receive_json() == {"type": "error", "error": "Unknown event type"}

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"type": "error", "error": "Binary frames are not supported"}

    assert len(db.rows("messages")) == 1
    assert realtime_client.channels[0].name == f"messages:{chat['id']}"
    assert realtime_client.removed == realtime_client.channels


def test_thread_socket_echo_is_withdrawn_when_send_fails(client, db, traveler, chat):
    token = make_token(traveler["id"])

    with client.websocket_connect(f"/chats/ws/{chat['id']}?token={token}") as ws:
        assert ws.receive_json()["messages"] == []

        db.fail("messages", "insert")
        ws.send_json({"type": "send", "content": "  Hello \n there "})

        echo = ws.receive_json()["messages"]
        assert len(echo) == 1
        assert echo[0]["pending"] is True
        assert echo[0]["content"] == "Hello there"

        assert ws.receive_json() == {"type": "thread", "messages": []}
        assert ws.receive_json() == {"type": "error", "error": "Failed to send message"}

    assert db.rows("messages") == []


def test_thread_socket_refuses_a_colliding_message_id(client, db, traveler, local_expert, chat):
    existing = db.add(
        "messages",
        {"chat_id": chat["id"], "sender_id": local_expert["id"], "content": "Welcome to Austin"},
    )
    token = make_token(traveler["id"])

    with client.websocket_connect(f"/chats/ws/{chat['id']}?token={token}") as ws:
        initial = ws.receive_json()["messages"]
        assert [m["id"] for m in initial] == [existing["id"]]

        ws.send_json({"type": "send", "content": "Hijack", "id": existing["id"]})
        assert ws.receive_json() == {"type": "error", "error": "Message id already in use"}

        ws.send_json({"type": "send", "content": "Hi", "id": "not-a-uuid"})
        assert ws.receive_json() == {"type": "error", "error": "Invalid message id"}

        # the thread is untouched, the next push still holds the original row
        ws.send_json({"type": "refresh"})
        thread = ws.receive_json()["messages"]
        assert [(m["id"], m["content"]) for m in thread] == [(existing["id"], "Welcome to Austin")]

    assert len(db.rows("messages")) == 1
