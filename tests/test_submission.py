import pytest

from conftest import SAMPLE_RECIPE, login, submit
from core.database import DatabaseManager


def _recipe_count(db):
    with db.get_connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM recipes").fetchone()[0]


def test_submitted_recipe_is_pending_and_unpublished(client, users):
    login(client, users["alice"])
    recipe = submit(client)

    assert recipe["id"].startswith("recipe_")
    assert recipe["moderation_status"] == "pending"
    assert recipe["is_published"] is False
    assert recipe["author_id"] == users["alice"].id
    assert recipe["author_username"] == "alice"
    assert recipe["ingredients"] == [{"text": "flour", "amount": "", "unit": ""}]
    assert recipe["instructions"] == [{"text": "bake", "step": 1}]


def test_submission_requires_session(client, db, users):
    res = client.post("/api/recipes", json=SAMPLE_RECIPE)
    assert res.status_code == 401
    assert res.json()["success"] is False
    assert _recipe_count(db) == 0


@pytest.mark.parametrize("field", ["ingredients", "instructions"])
def test_empty_collections_are_rejected_before_writing(client, db, users, field):
    login(client, users["alice"])
    body = dict(SAMPLE_RECIPE, **{field: []})
    res = client.post("/api/recipes", json=body)

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert _recipe_count(db) == 0
    with db.get_connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM recipe_ingredients").fetchone()[0] == 0


def test_blank_items_do_not_count_as_ingredients(client, db, users):
    login(client, users["alice"])
    res = client.post("/api/recipes", json=dict(SAMPLE_RECIPE, ingredients=["  ", ""]))
    assert res.status_code == 400
    assert _recipe_count(db) == 0


@pytest.mark.parametrize("field", ["title", "category", "difficulty"])
def test_missing_required_field(client, db, users, field):
    login(client, users["alice"])
    body = dict(SAMPLE_RECIPE)
    body.pop(field)
    res = client.post("/api/recipes", json=body)
    assert res.status_code == 400
    assert field in res.json()["details"]
    assert _recipe_count(db) == 0


def test_bad_field_type_maps_to_400(client, users):
    login(client, users["alice"])
    res = client.post("/api/recipes", json=dict(SAMPLE_RECIPE, servings="lots"))
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid request"


def test_json_string_collections_are_accepted(client, db, users):
    login(client, users["alice"])
    recipe = submit(client, ingredients='["flour", "milk"]', instructions="mix it", tags="Quick, Sweet")

    assert [i["text"] for i in recipe["ingredients"]] == ["flour", "milk"]
    assert recipe["instructions"] == [{"text": "mix it", "step": 1}]
    assert sorted(recipe["tags"]) == ["quick", "sweet"]


def test_child_rows_written_with_recipe(client, db, users):
    login(client, users["alice"])
    recipe = submit(client, ingredients=["flour", {"text": "sugar", "amount": "2", "unit": "tbsp"}],
                    instructions=["mix", "bake"], tags=["Cake"])

    children = db.get_recipe_children(recipe["id"])
    assert children["ingredients"] == [
        {"text": "flour", "amount": "", "unit": ""},
        {"text": "sugar", "amount": "2", "unit": "tbsp"},
    ]
    assert children["instructions"] == [{"step": 1, "text": "mix"}, {"step": 2, "text": "bake"}]
    assert children["tags"] == ["cake"]


def test_pending_recipe_hidden_from_public(client, users):
    login(client, users["alice"])
    recipe = submit(client)

    assert client.get(f"/api/recipes/{recipe['id']}").status_code == 200
    assert client.get("/api/recipes").json()["recipes"] == []

    login(client, users["bob"])
    assert client.get(f"/api/recipes/{recipe['id']}").status_code == 404

    client.cookies.clear()
    assert client.get(f"/api/recipes/{recipe['id']}").status_code == 404

    login(client, users["mod"])
    assert client.get(f"/api/recipes/{recipe['id']}").status_code == 200


def test_unknown_recipe_is_404(client):
    res = client.get("/api/recipes/recipe_0_missing")
    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Recipe not found"}


def test_failed_child_write_leaves_nothing_behind(client, db, users, monkeypatch):
    def broken_write(self, cursor, recipe_id, fields):
        cursor.execute(
            "INSERT INTO recipe_ingredients (recipe_id, position, text, amount, unit) VALUES (?, 1, ?, '', '')",
            (recipe_id, fields["ingredients"][0]["text"]),
        )
        raise RuntimeError("disk went away")

    monkeypatch.setattr(DatabaseManager, "_write_collections", broken_write)
    login(client, users["alice"])
    res = client.post("/api/recipes", json=SAMPLE_RECIPE)

    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Could not save recipe", "details": "disk went away"}
    assert _recipe_count(db) == 0
    with db.get_connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM recipe_ingredients").fetchone()[0] == 0
