import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be in place before core.config is imported anywhere
os.environ["DATABASE_PATH"] = str(Path(tempfile.mkdtemp()) / "bootstrap.db")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FILE"] = ""

import pytest
from fastapi.testclient import TestClient

from core.database import DatabaseManager, get_db
from models.types import UserCreate

PASSWORD = "password123"

SAMPLE_RECIPE = {
    "title": "Test",
    "category": "dessert",
    "difficulty": "easy",
    "ingredients": ["flour"],
    "instructions": ["bake"],
}


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(tmp_path / "test.db")


@pytest.fixture
def client(db):
    from main import app
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username, role="user", status="active"):
    user = db.create_user(UserCreate(username=username, email=f"{username}@example.com", password=PASSWORD), role=role)
    if status != "active":
        with db.get_connection() as conn:
            conn.execute("UPDATE users SET status = ? WHERE id = ?", (status, user.id))
        user = db.get_user_by_id(user.id)
    return user


@pytest.fixture
def users(db):
    return {
        "alice": make_user(db, "alice"),
        "bob": make_user(db, "bob"),
        "mod": make_user(db, "mod", role="moderator"),
        "admin": make_user(db, "admin", role="admin"),
        "owner": make_user(db, "owner", role="owner"),
    }


def login(client, user):
    client.cookies.clear()
    res = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert res.status_code == 200, res.text
    return res


def submit(client, **overrides):
    body = dict(SAMPLE_RECIPE)
    body.update(overrides)
    res = client.post("/api/recipes", json=body)
    assert res.status_code == 200, res.text
    return res.json()["recipe"]


def moderate(client, recipe_id, action, **extra):
    body = {"recipeId": recipe_id, "action": action}
    body.update(extra)
    return client.post("/api/admin/recipes/moderate", json=body)
