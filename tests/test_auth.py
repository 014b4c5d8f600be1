from jose import jwt

from conftest import PASSWORD, login, make_user
from core.auth import create_access_token
from core.config import ALGORITHM, COOKIE_NAME, SECRET_KEY


def test_register_sets_cookie_and_me_works(client):
    res = client.post("/api/auth/register", json={"username": "carol", "email": "Carol@Example.com", "password": "secret99"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["user"]["email"] == "carol@example.com"
    assert body["user"]["role"] == "user"
    assert "hashed_password" not in body["user"]
    assert COOKIE_NAME in res.cookies

    payload = jwt.decode(res.cookies[COOKIE_NAME], SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["sub"] == str(body["user"]["id"])

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "carol"


def test_register_conflicts(client, users):
    res = client.post("/api/auth/register", json={"username": "other", "email": "alice@example.com", "password": "secret99"})
    assert res.status_code == 409
    res = client.post("/api/auth/register", json={"username": "ALICE", "email": "new@example.com", "password": "secret99"})
    assert res.status_code == 409


def test_register_validation(client):
    res = client.post("/api/auth/register", json={"username": "x", "email": "not-an-email", "password": "1"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_login_wrong_password(client, users):
    res = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Incorrect email or password"}


def test_login_records_last_login(client, db, users):
    assert db.get_user_by_id(users["alice"].id).last_login_at is None
    login(client, users["alice"])
    assert db.get_user_by_id(users["alice"].id).last_login_at is not None


def test_suspended_and_banned_accounts(client, db):
    for status in ("suspended", "banned"):
        user = make_user(db, f"u_{status}", status=status)
        res = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert res.status_code == 403
        assert status in res.json()["error"]


def test_token_of_banned_user_is_ignored(client, db, users):
    login(client, users["alice"])
    assert client.get("/api/auth/me").status_code == 200
    with db.get_connection() as conn:
        conn.execute("UPDATE users SET status = 'banned' WHERE id = ?", (users["alice"].id,))
    assert client.get("/api/auth/me").status_code == 401


def test_garbage_and_foreign_tokens(client, users):
    client.cookies.set(COOKIE_NAME, "not-a-jwt")
    assert client.get("/api/auth/me").status_code == 401
    client.cookies.set(COOKIE_NAME, create_access_token({"sub": "99999"}))
    assert client.get("/api/auth/me").status_code == 401


def test_logout_clears_cookie(client, users):
    login(client, users["alice"])
    res = client.post("/api/auth/logout")
    assert res.status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_update_profile(client, db, users):
    login(client, users["alice"])
    res = client.put("/api/users/me", json={"bio": "I bake", "location": "Lund", "password": "newpass1"})
    assert res.status_code == 200, res.text
    assert res.json()["user"]["bio"] == "I bake"

    client.cookies.clear()
    res = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "newpass1"})
    assert res.status_code == 200

    assert client.put("/api/users/me", json={"username": "bob"}).status_code == 409
    assert client.put("/api/users/me", json={"email": "bob@example.com"}).status_code == 409
    assert client.put("/api/users/me", json={"username": "alice2"}).json()["user"]["username"] == "alice2"
