"""
Recipe lifecycle: submission, moderator decisions and hard deletion.

A recipe is created pending and unpublished. An admin either approves it
(optionally rewriting fields first) which publishes it, or rejects it, which
copies the stored row into the rejected archive and removes it from the live
table. Deletion is a separate, non-archiving removal.
"""
import logging
from typing import Optional, Tuple

from core.auth import MODERATOR_ROLES
from core.database import DatabaseManager
from core.errors import AuthorizationError, NotFoundError, PersistenceError, ValidationError
from logic.recipe_fields import merge_recipe_edits, normalize_ingredients, normalize_instructions, normalize_tags
from models.types import ModerateRecipeRequest, Recipe, RecipeSubmission, RejectedRecipe, User

logger = logging.getLogger(__name__)

MODERATION_ACTIONS = ("approve", "reject")
DEFAULT_REJECTION_REASON = "No reason provided"


def _required_text(value: Optional[str]) -> str:
    return (value or "").strip()


def submit_recipe(db: DatabaseManager, author: User, submission: RecipeSubmission) -> Recipe:
    title = _required_text(submission.title)
    category = _required_text(submission.category)
    difficulty = _required_text(submission.difficulty)
    missing = [name for name, value in (("title", title), ("category", category), ("difficulty", difficulty)) if not value]
    if missing:
        raise ValidationError("Missing required fields", details=", ".join(missing))

    # Blank items are dropped before the emptiness check; no placeholder on intake
    ingredients = normalize_ingredients(submission.ingredients, placeholder=False)
    instructions = normalize_instructions(submission.instructions, placeholder=False)
    if not ingredients:
        raise ValidationError("At least one ingredient is required")
    if not instructions:
        raise ValidationError("At least one instruction is required")

    fields = {
        "title": title,
        "description": (submission.description or "").strip() or None,
        "category": category,
        "difficulty": difficulty,
        "prep_time_minutes": submission.prep_time_minutes or 0,
        "cook_time_minutes": submission.cook_time_minutes or 0,
        "servings": submission.servings or 1,
        "image_url": (submission.image_url or "").strip() or None,
        "ingredients": ingredients,
        "instructions": instructions,
        "tags": normalize_tags(submission.tags),
    }
    recipe = db.create_recipe(author, fields)
    logger.info(f"[SUBMIT] Recipe {recipe.id} '{recipe.title}' submitted by user {author.id}; awaiting moderation")
    return recipe


def moderate_recipe(db: DatabaseManager, moderator: User,
                    payload: ModerateRecipeRequest) -> Tuple[str, Optional[Recipe], Optional[RejectedRecipe]]:
    """
    Apply an admin decision. Returns (message, recipe, archive row). The
    recipe is the approved row, or on reject the row as it stood before
    removal; the archive row is set only on reject.
    """
    recipe_id = (payload.recipe_id or "").strip()
    action = (payload.action or "").strip().lower()
    if not recipe_id or not action:
        raise ValidationError("Missing required fields", details="recipeId and action are required")
    if action not in MODERATION_ACTIONS:
        raise ValidationError("Invalid action", details=f"Expected one of {', '.join(MODERATION_ACTIONS)}")

    current = db.get_recipe(recipe_id)
    if current is None:
        raise NotFoundError("Recipe not found")

    if action == "approve":
        return "Recipe approved successfully", _approve(db, moderator, current, payload), None
    return "Recipe rejected successfully", current, _reject(db, moderator, current, payload.notes)


def _approve(db: DatabaseManager, moderator: User, current: Recipe, payload: ModerateRecipeRequest) -> Recipe:
    fields = None
    if payload.updated_recipe:
        fields = merge_recipe_edits(current.model_dump(), payload.updated_recipe)
        logger.info(f"[MODERATE] Applying edits to {current.id}: {sorted(payload.updated_recipe.keys())}")

    updated = db.approve_recipe(current.id, moderator.id, payload.notes, fields)
    if updated == 0:
        # Removed between the read and the update
        raise NotFoundError("Recipe not found")

    stored = db.get_recipe(current.id)
    if stored is None or stored.moderation_status != "approved" or not stored.is_published:
        logger.error(f"[MODERATE] Verification failed for {current.id} after approval")
        raise PersistenceError("Recipe approval could not be verified")

    logger.info(f"[MODERATE] Recipe {current.id} approved by user {moderator.id}")
    return stored


def _reject(db: DatabaseManager, moderator: User, current: Recipe, notes: Optional[str]) -> RejectedRecipe:
    reason = (notes or "").strip() or DEFAULT_REJECTION_REASON
    archived = db.reject_recipe(current.id, moderator.id, reason)
    if archived is None:
        raise NotFoundError("Recipe not found")
    if db.get_recipe(current.id) is not None:
        logger.error(f"[MODERATE] Recipe {current.id} still live after rejection")
        raise PersistenceError("Recipe rejection could not be verified")

    logger.info(f"[MODERATE] Recipe {current.id} rejected by user {moderator.id}: {reason}")
    return archived


def can_delete(user: User, recipe: Recipe) -> bool:
    return recipe.author_id == user.id or user.role in MODERATOR_ROLES


def delete_recipe(db: DatabaseManager, user: User, recipe_id: Optional[str], reason: Optional[str] = None) -> Recipe:
    recipe_id = (recipe_id or "").strip()
    if not recipe_id:
        raise ValidationError("Recipe ID is required")

    recipe = db.get_recipe(recipe_id)
    if recipe is None:
        raise NotFoundError("Recipe not found")
    if not can_delete(user, recipe):
        raise AuthorizationError("You can only delete your own recipes")

    db.delete_recipe(recipe_id)
    if db.get_recipe(recipe_id) is not None:
        logger.error(f"[DELETE-RECIPE] Recipe {recipe_id} survived deletion")
        raise PersistenceError("Recipe deletion could not be verified")

    logger.info(
        f"[DELETE-RECIPE] Recipe {recipe_id} '{recipe.title}' deleted by user {user.id} ({user.role})"
        f"{': ' + reason if reason else ''}"
    )
    return recipe


def is_visible_to(recipe: Recipe, user: Optional[User]) -> bool:
    """Published recipes are public; anything else only to its author and moderators."""
    if recipe.moderation_status == "approved" and recipe.is_published:
        return True
    if user is None:
        return False
    return recipe.author_id == user.id or user.role in MODERATOR_ROLES
