from conftest import login, moderate, submit


def _rate(client, recipe_id, value):
    return client.post("/api/ratings", json={"recipe_id": recipe_id, "rating": value})


def test_rating_upsert_and_average(client, db, users):
    login(client, users["alice"])
    recipe_id = submit(client)["id"]
    login(client, users["admin"])
    moderate(client, recipe_id, "approve")

    body = _rate(client, recipe_id, 4).json()
    assert body == {"success": True, "newAverageRating": 4.0, "newReviewCount": 1, "userRating": 4}

    login(client, users["bob"])
    _rate(client, recipe_id, 1)
    body = _rate(client, recipe_id, 3).json()
    assert body["newAverageRating"] == 3.5
    assert body["newReviewCount"] == 2

    assert client.get(f"/api/ratings/{recipe_id}/user").json()["rating"] == 3
    stored = db.get_recipe(recipe_id)
    assert (stored.rating, stored.rating_count) == (3.5, 2)


def test_rating_rules(client, users):
    login(client, users["alice"])
    recipe_id = submit(client)["id"]

    assert _rate(client, recipe_id, 5).status_code == 404
    assert _rate(client, recipe_id, 6).status_code == 400
    assert client.get(f"/api/ratings/{recipe_id}/user").json()["rating"] is None

    client.cookies.clear()
    assert _rate(client, recipe_id, 3).status_code == 401
