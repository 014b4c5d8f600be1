#!/usr/bin/env python3
import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
import argparse
import logging
from core.database import DatabaseManager
from logic.comments import create_comment
from logic.moderation import moderate_recipe, submit_recipe
from models.types import ModerateRecipeRequest, RecipeSubmission, UserCreate

logger = logging.getLogger("tools.seed_database")

DEMO_USERS = [
    ("admin", "admin@example.com", "admin"),
    ("moderator", "moderator@example.com", "moderator"),
    ("alice", "alice@example.com", "user"),
    ("bob", "bob@example.com", "user"),
]

DEMO_RECIPES = [
    {
        "title": "Classic Pancakes",
        "description": "Fluffy weekend pancakes.",
        "category": "breakfast",
        "difficulty": "easy",
        "prep_time_minutes": 10,
        "cook_time_minutes": 15,
        "servings": 4,
        "ingredients": ["2 cups flour", "2 eggs", "1.5 cups milk", "2 tbsp sugar"],
        "instructions": ["Whisk the dry ingredients", "Add eggs and milk", "Fry on a hot griddle"],
        "tags": ["breakfast", "sweet"],
    },
    {
        "title": "Tomato Soup",
        "description": "Simple soup from roasted tomatoes.",
        "category": "soup",
        "difficulty": "easy",
        "prep_time_minutes": 15,
        "cook_time_minutes": 40,
        "servings": 4,
        "ingredients": ["1 kg tomatoes", "1 onion", "2 cloves garlic", "500 ml stock"],
        "instructions": ["Roast tomatoes, onion and garlic", "Simmer with stock", "Blend until smooth"],
        "tags": ["vegetarian"],
    },
    {
        "title": "Beef Wellington",
        "description": "A showpiece for special occasions.",
        "category": "main",
        "difficulty": "hard",
        "prep_time_minutes": 60,
        "cook_time_minutes": 45,
        "servings": 6,
        "ingredients": ["1 kg beef fillet", "500 g mushrooms", "puff pastry", "prosciutto"],
        "instructions": ["Sear the beef", "Wrap in duxelles and prosciutto", "Wrap in pastry and bake"],
        "tags": ["dinner", "festive"],
    },
]


def seed(db: DatabaseManager, password: str = "password123", approve: int = 2) -> dict:
    users = {}
    for username, email, role in DEMO_USERS:
        user = db.get_user_by_email(email)
        if user is None:
            user = db.create_user(UserCreate(username=username, email=email, password=password),
                                  role=role, is_verified=True)
        users[username] = user

    admin = users["admin"]
    authors = [users["alice"], users["bob"]]
    existing_titles = {r.title for r in db.list_user_recipes(users["alice"].id) + db.list_user_recipes(users["bob"].id)}

    created = []
    for idx, data in enumerate(DEMO_RECIPES):
        if data["title"] in existing_titles:
            continue
        recipe = submit_recipe(db, authors[idx % len(authors)], RecipeSubmission(**data))
        created.append(recipe)

    approved = []
    for recipe in created[:approve]:
        moderate_recipe(db, admin, ModerateRecipeRequest(recipeId=recipe.id, action="approve", notes="Seed data"))
        approved.append(recipe.id)

    for recipe_id in approved:
        create_comment(db, users["bob"], recipe_id, "Made this last night, turned out great.")

    return {"users": len(users), "recipes": len(created), "approved": len(approved)}


def main(argv=None):
    parser = argparse.ArgumentParser(description='Seed the database with demo users, recipes and comments')
    parser.add_argument('--db', type=str, default=None, help='Path to the SQLite database (defaults to DATABASE_PATH)')
    parser.add_argument('--password', type=str, default='password123', help='Password for every demo user')
    parser.add_argument('--approve', type=int, default=2, help='How many of the new recipes to approve')
    args = parser.parse_args(argv)

    summary = seed(DatabaseManager(args.db), password=args.password, approve=args.approve)
    print(f"Seeded {summary['users']} users, {summary['recipes']} recipes ({summary['approved']} approved)")
    return 0


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s')
    sys.exit(main())
