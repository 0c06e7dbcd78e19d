"""Group API: end-to-end scenarios over HTTP.

Invariants:
    - Error bodies carry a stable kind and a message, nothing else internal
    - Identity comes from X-User-Id / X-User-Name
"""

import pytest


def _as(user_id, name=None):
    headers = {"X-User-Id": user_id}
    if name:
        headers["X-User-Name"] = name
    return headers


def _create(client, name, user_id="A", password=None):
    body = {"name": name}
    if password is not None:
        body["password"] = password
    res = client.post("/api/groups", json=body, headers=_as(user_id, f"User {user_id}"))
    assert res.status_code == 201, res.text
    return res.json()["group_id"]


def test_full_lifecycle(client):
    group_id = _create(client, "Winter24", "A")
    for user_id in ("B", "C", "D"):
        res = client.post(f"/api/groups/{group_id}/join", json={}, headers=_as(user_id, f"User {user_id}"))
        assert res.status_code == 200, res.text
        assert res.json()["member"]["role"] == "MEMBER"

    res = client.post(f"/api/groups/{group_id}/assign", headers=_as("A"))
    assert res.status_code == 200
    assert res.json() == {"success": True}

    group = client.get(f"/api/groups/{group_id}", headers=_as("B")).json()["group"]
    assert group["state"] == "ASSIGNED"
    assert group["is_revealed"] is False
    own = {m["user_id"]: m["recipient_id"] for m in group["members"]}
    assert own["B"] not in (None, "B")
    assert own["A"] is None and own["C"] is None and own["D"] is None

    res = client.post(f"/api/groups/{group_id}/reveal", headers=_as("A"))
    assert res.status_code == 200

    group = client.get(f"/api/groups/{group_id}").json()["group"]
    assert group["is_revealed"] is True
    assert group["state"] == "REVEALED"
    recipients = {m["user_id"]: m["recipient_id"] for m in group["members"]}
    assert set(recipients) == {"A", "B", "C", "D"}
    assert sorted(recipients.values()) == ["A", "B", "C", "D"]
    assert all(giver != recipient for giver, recipient in recipients.items())
    names = {m["user_id"]: m["name"] for m in group["members"]}
    assert names["C"] == "User C"

    res = client.delete(f"/api/groups/{group_id}", headers=_as("A"))
    assert res.status_code == 200

    res = client.get(f"/api/groups/{group_id}")
    assert res.status_code == 404
    assert res.json()["error"]["kind"] == "not_found"


def test_join_with_secret(client):
    group_id = _create(client, "Secret", "A", password="xyz")

    res = client.post(f"/api/groups/{group_id}/join", json={"password": "nope"}, headers=_as("B"))
    assert res.status_code == 403
    assert res.json()["error"]["kind"] == "forbidden"

    res = client.post(f"/api/groups/{group_id}/join", json={"password": "xyz"}, headers=_as("B"))
    assert res.status_code == 200

    res = client.post(f"/api/groups/{group_id}/join", json={"password": "xyz"}, headers=_as("B"))
    assert res.status_code == 409
    assert res.json()["error"]["kind"] == "conflict"


def test_join_without_body(client):
    group_id = _create(client, "Open", "A")
    res = client.post(f"/api/groups/{group_id}/join", headers=_as("B"))
    assert res.status_code == 200


def test_join_unknown_group(client):
    res = client.post("/api/groups/does-not-exist/join", json={}, headers=_as("B"))
    assert res.status_code == 404
    assert res.json() == {
        "success": False,
        "error": {"kind": "not_found", "message": "Group not found"},
    }


def test_create_validation(client):
    res = client.post("/api/groups", json={"name": "   "}, headers=_as("A"))
    assert res.status_code == 400
    assert res.json()["error"]["kind"] == "invalid_input"

    res = client.post("/api/groups", json={}, headers=_as("A"))
    assert res.status_code == 400


def test_create_requires_identity(client):
    res = client.post("/api/groups", json={"name": "Nobody"})
    assert res.status_code == 403
    assert res.json()["error"]["kind"] == "forbidden"


def test_create_duplicate_name(client):
    _create(client, "Winter24", "A")
    res = client.post("/api/groups", json={"name": "Winter24"}, headers=_as("B"))
    assert res.status_code == 409
    assert res.json()["error"]["kind"] == "conflict"


def test_assign_guards(client):
    group_id = _create(client, "Small", "A")

    res = client.post(f"/api/groups/{group_id}/assign", headers=_as("A"))
    assert res.status_code == 412
    assert res.json()["error"]["kind"] == "precondition_failed"

    client.post(f"/api/groups/{group_id}/join", json={}, headers=_as("B"))

    res = client.post(f"/api/groups/{group_id}/assign", headers=_as("B"))
    assert res.status_code == 403

    assert client.post(f"/api/groups/{group_id}/assign", headers=_as("A")).status_code == 200

    res = client.post(f"/api/groups/{group_id}/assign", headers=_as("A"))
    assert res.status_code == 409
    assert res.json()["error"]["message"] == "Manito is already assigned"

    res = client.post(f"/api/groups/{group_id}/join", json={}, headers=_as("C"))
    assert res.status_code == 412


@pytest.mark.parametrize("path,method", [
    ("/api/groups/missing/assign", "post"),
    ("/api/groups/missing/reveal", "post"),
    ("/api/groups/missing", "delete"),
])
def test_transitions_on_unknown_group(client, path, method):
    res = getattr(client, method)(path, headers=_as("A"))
    assert res.status_code == 404


def test_reveal_and_retire_guards(client):
    group_id = _create(client, "Guards", "A")
    client.post(f"/api/groups/{group_id}/join", json={}, headers=_as("B"))

    res = client.post(f"/api/groups/{group_id}/reveal", headers=_as("A"))
    assert res.status_code == 412

    res = client.delete(f"/api/groups/{group_id}", headers=_as("A"))
    assert res.status_code == 412
    assert res.json()["error"]["message"].startswith("Manito must be revealed")


def test_list_groups(client):
    open_id = _create(client, "Open", "A")
    _create(client, "Locked", "C", password="pw")
    client.post(f"/api/groups/{open_id}/join", json={}, headers=_as("B"))

    groups = client.get("/api/groups", params={"type": "all"}, headers=_as("B")).json()["groups"]
    by_name = {g["name"]: g for g in groups}
    assert by_name["Open"]["is_joined"] is True
    assert by_name["Locked"]["has_password"] is True
    assert by_name["Locked"]["is_joined"] is False

    joined = client.get("/api/groups", params={"type": "joined"}, headers=_as("B")).json()["groups"]
    assert [(g["name"], g["role"]) for g in joined] == [("Open", "MEMBER")]

    res = client.get("/api/groups", params={"type": "joined"})
    assert res.status_code == 400

    res = client.get("/api/groups", params={"type": "bogus"})
    assert res.status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
