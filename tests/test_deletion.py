from conftest import login, moderate, submit


def _delete(client, recipe_id, reason=None):
    body = {"recipeId": recipe_id}
    if reason:
        body["reason"] = reason
    return client.request("DELETE", "/api/admin/recipes/delete", json=body)


def _count(db, table, recipe_id, column="recipe_id"):
    with db.get_connection() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (recipe_id,)).fetchone()[0]


def test_delete_removes_recipe_and_dependents(client, db, users):
    login(client, users["alice"])
    recipe_id = submit(client, tags=["cake"])["id"]
    login(client, users["admin"])
    moderate(client, recipe_id, "approve")

    login(client, users["bob"])
    client.post("/api/comments", json={"recipeId": recipe_id, "content": "Tasty"})
    client.post("/api/ratings", json={"recipe_id": recipe_id, "rating": 5})

    login(client, users["mod"])
    res = _delete(client, recipe_id, reason="duplicate")
    assert res.status_code == 200, res.text
    assert res.json()["success"] is True

    assert db.get_recipe(recipe_id) is None
    for table in ("comments", "ratings", "recipe_ingredients", "recipe_instructions", "recipe_tags", "rejected_recipes"):
        assert _count(db, table, recipe_id) == 0, table
    # Deletion is not a rejection
    assert db.list_rejected_recipes() == []


def test_author_can_delete_own_pending_recipe(client, db, users):
    login(client, users["alice"])
    recipe_id = submit(client)["id"]
    assert _delete(client, recipe_id).status_code == 200
    assert db.get_recipe(recipe_id) is None


def test_other_user_cannot_delete(client, db, users):
    login(client, users["alice"])
    recipe_id = submit(client)["id"]
    login(client, users["bob"])
    assert _delete(client, recipe_id).status_code == 403
    assert db.get_recipe(recipe_id) is not None


def test_delete_errors(client, users):
    assert _delete(client, "recipe_0_x").status_code == 401
    login(client, users["admin"])
    assert _delete(client, "recipe_0_x").status_code == 404
    assert client.request("DELETE", "/api/admin/recipes/delete", json={}).status_code == 400
