import logging
from typing import Optional

from core.database import DatabaseManager
from core.errors import NotFoundError, ValidationError
from models.types import User

logger = logging.getLogger(__name__)


def rate_recipe(db: DatabaseManager, user: User, recipe_id: Optional[str], value: Optional[int]) -> dict:
    recipe_id = (recipe_id or "").strip()
    if not recipe_id or value is None:
        raise ValidationError("Recipe ID and rating are required")
    if not 1 <= int(value) <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    recipe = db.get_recipe(recipe_id)
    if recipe is None or not (recipe.moderation_status == "approved" and recipe.is_published):
        raise NotFoundError("Recipe not found")

    summary = db.upsert_rating(recipe_id, user.id, int(value))
    logger.info(f"[RATING] User {user.id} rated {recipe_id} {value}; average now {summary['average']} ({summary['count']})")
    return {
        "newAverageRating": summary["average"],
        "newReviewCount": summary["count"],
        "userRating": int(value),
    }
