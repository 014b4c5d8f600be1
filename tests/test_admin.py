import logging

from conftest import login, moderate, submit
from core.log_buffer import log_buffer


def _put(client, user_id, **body):
    return client.put(f"/api/admin/users/{user_id}", json=body)


def test_list_users_paging_and_filters(client, users):
    login(client, users["admin"])
    body = client.get("/api/admin/users", params={"limit": 2}).json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
    assert len(body["users"]) == 2

    names = [u["username"] for u in client.get("/api/admin/users", params={"search": "ali"}).json()["users"]]
    assert names == ["alice"]
    roles = {u["role"] for u in client.get("/api/admin/users", params={"role": "moderator"}).json()["users"]}
    assert roles == {"moderator"}


def test_user_admin_requires_admin(client, users):
    login(client, users["mod"])
    assert client.get("/api/admin/users").status_code == 403
    assert _put(client, users["alice"].id, status="suspended").status_code == 403


def test_admin_can_promote_to_moderator_and_ban(client, db, users):
    login(client, users["admin"])
    res = _put(client, users["alice"].id, role="moderator", reason="helpful")
    assert res.status_code == 200, res.text
    assert res.json()["user"]["role"] == "moderator"

    res = _put(client, users["bob"].id, status="blocked")
    assert res.json()["user"]["status"] == "banned"
    banned = client.get("/api/admin/users", params={"status": "blocked"}).json()["users"]
    assert [u["username"] for u in banned] == ["bob"]

    entries = db.list_moderation_log()
    assert [e["target_user_id"] for e in entries] == [users["bob"].id, users["alice"].id]
    assert entries[1]["reason"] == "helpful"
    assert entries[1]["details"]["role"] == "moderator"


def test_only_owner_manages_admins(client, users):
    login(client, users["admin"])
    assert _put(client, users["alice"].id, role="admin").status_code == 403
    assert _put(client, users["owner"].id, status="suspended").status_code == 403

    login(client, users["owner"])
    assert _put(client, users["alice"].id, role="admin").json()["user"]["role"] == "admin"
    assert _put(client, users["admin"].id, role="user").json()["user"]["role"] == "user"


def test_nobody_changes_own_role(client, users):
    login(client, users["owner"])
    assert _put(client, users["owner"].id, role="user").status_code == 403


def test_user_update_validation(client, users):
    login(client, users["admin"])
    assert _put(client, users["alice"].id, role="emperor").status_code == 400
    assert _put(client, users["alice"].id, status="sleeping").status_code == 400
    assert _put(client, users["alice"].id).status_code == 400
    assert _put(client, 99999, status="active").status_code == 404


def test_stats_counts(client, users):
    login(client, users["alice"])
    ids = [submit(client, title=f"R{i}")["id"] for i in range(3)]
    login(client, users["admin"])
    moderate(client, ids[0], "approve")
    moderate(client, ids[1], "reject", notes="spam")

    stats = client.get("/api/admin/stats").json()["stats"]
    assert stats["totalUsers"] == 5
    assert stats["newUsers"] == 5
    assert stats["totalRecipes"] == 2
    assert stats["pendingRecipes"] == 1
    assert stats["approvedRecipes"] == 1
    assert stats["publishedRecipes"] == 1
    assert stats["rejectedRecipes"] == 1
    assert stats["flaggedComments"] == 0
    assert stats["flaggedUsers"] == 0
    assert {a["description"] for a in stats["recentActivity"]} == {"R0", "R2"}


def test_logs_endpoint_serves_ring_buffer(client, users):
    log_buffer.clear()
    logging.getLogger("tests.admin").warning("something to see")

    login(client, users["admin"])
    logs = client.get("/api/admin/logs", params={"level": "warning"}).json()["logs"]
    assert any(e["message"] == "something to see" for e in logs)

    login(client, users["alice"])
    assert client.get("/api/admin/logs").status_code == 403


def _verify(client, user_id, action):
    return client.post("/api/admin/users/verify", json={"userId": user_id, "action": action})


def test_admin_verifies_and_unverifies_users(client, db, users):
    login(client, users["admin"])
    res = _verify(client, users["alice"].id, "verify")
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "User verified successfully"
    assert res.json()["user"]["is_verified"] is True
    assert db.get_user_by_id(users["alice"].id).is_verified is True

    res = _verify(client, users["alice"].id, "unverify")
    assert res.json()["message"] == "User unverified successfully"
    assert db.get_user_by_id(users["alice"].id).is_verified is False

    actions = [e["action"] for e in db.list_moderation_log()]
    assert actions == ["unverify", "verify"]


def test_verify_rules(client, users):
    login(client, users["mod"])
    assert _verify(client, users["alice"].id, "verify").status_code == 403

    login(client, users["admin"])
    assert _verify(client, users["alice"].id, "crown").status_code == 400
    assert client.post("/api/admin/users/verify", json={"action": "verify"}).status_code == 400
    assert _verify(client, 99999, "verify").status_code == 404


def test_moderator_flags_user(client, db, users):
    login(client, users["mod"])
    res = client.post("/api/users/flag", json={"userId": users["bob"].id, "reason": "spam links"})
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "User flagged successfully"
    assert res.json()["user"]["is_flagged"] is True

    res = client.post("/api/users/flag", json={"userId": users["alice"].id})
    assert res.status_code == 200
    flagged = db.get_user_by_id(users["alice"].id)
    assert flagged.flag_reason == "Flagged by moderator"
    assert flagged.flagged_by == users["mod"].id

    login(client, users["admin"])
    names = [u["username"] for u in client.get("/api/admin/users", params={"flagged": "true"}).json()["users"]]
    assert sorted(names) == ["alice", "bob"]
    assert client.get("/api/admin/stats").json()["stats"]["flaggedUsers"] == 2
    assert db.list_moderation_log()[-1]["reason"] == "spam links"


def test_flag_user_rules(client, users):
    login(client, users["alice"])
    assert client.post("/api/users/flag", json={"userId": users["bob"].id}).status_code == 403

    login(client, users["mod"])
    res = client.post("/api/users/flag", json={"userId": users["mod"].id})
    assert res.status_code == 400
    assert res.json()["error"] == "You cannot flag yourself"
    assert client.post("/api/users/flag", json={}).status_code == 400
    assert client.post("/api/users/flag", json={"userId": 99999}).status_code == 404


def test_manage_lists_all_live_recipes_with_filters(client, users):
    login(client, users["alice"])
    ids = [submit(client, title=f"Cake {i}")["id"] for i in range(3)]
    login(client, users["bob"])
    bread = submit(client, title="Bread", description="crusty loaf")

    login(client, users["admin"])
    moderate(client, ids[0], "approve")
    moderate(client, ids[1], "reject")

    login(client, users["alice"])
    assert client.get("/api/admin/recipes/manage").status_code == 403

    login(client, users["mod"])
    body = client.get("/api/admin/recipes/manage").json()
    assert body["success"] is True
    assert {r["id"] for r in body["recipes"]} == {ids[0], ids[2], bread["id"]}
    assert body["filters"] == {"status": "all", "search": "", "author": ""}

    approved = client.get("/api/admin/recipes/manage", params={"status": "approved"}).json()["recipes"]
    assert [r["id"] for r in approved] == [ids[0]]
    pending = client.get("/api/admin/recipes/manage", params={"status": "pending"}).json()["recipes"]
    assert {r["id"] for r in pending} == {ids[2], bread["id"]}
    assert client.get("/api/admin/recipes/manage", params={"status": "rejected"}).json()["recipes"] == []

    found = client.get("/api/admin/recipes/manage", params={"search": "crusty"}).json()["recipes"]
    assert [r["id"] for r in found] == [bread["id"]]
    by_alice = client.get("/api/admin/recipes/manage", params={"author": "ali"}).json()["recipes"]
    assert {r["id"] for r in by_alice} == {ids[0], ids[2]}

    page = client.get("/api/admin/recipes/manage", params={"limit": 2, "page": 2}).json()
    assert len(page["recipes"]) == 1
    assert page["pagination"] == {
        "page": 2, "limit": 2, "total": 3, "totalPages": 2, "hasNext": False, "hasPrev": True,
    }


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
