import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from core.auth import get_current_active_user, require_user
from core.database import DatabaseManager, get_db
from core.errors import AppError, NotFoundError, PersistenceError, ValidationError
from core.limiter import limiter
from logic import comments as comment_logic
from logic.moderation import is_visible_to, submit_recipe
from logic.ratings import rate_recipe
from models.types import CommentCreate, FlagCommentRequest, RatingRequest, RecipeSubmission, User

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Recipes ---
@router.post("/recipes", tags=["Recipes"])
@limiter.limit("10/minute")
async def create_recipe(request: Request, payload: RecipeSubmission,
                        current_user: User = Depends(require_user),
                        db: DatabaseManager = Depends(get_db)):
    try:
        recipe = submit_recipe(db, current_user, payload)
        return {
            "success": True,
            "message": "Recipe submitted for moderation",
            "recipe": recipe.model_dump(mode="json"),
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create recipe for user {current_user.id}: {e}")
        raise PersistenceError("Could not save recipe", details=str(e))


@router.get("/recipes", tags=["Recipes"])
@limiter.limit("120/minute")
async def list_recipes(request: Request, q: Optional[str] = None, category: Optional[str] = None,
                       difficulty: Optional[str] = None, db: DatabaseManager = Depends(get_db)):
    try:
        recipes = db.list_published_recipes(q=q, category=category, difficulty=difficulty)
        return {"success": True, "recipes": [r.model_dump(mode="json") for r in recipes]}
    except Exception as e:
        logger.error(f"Failed to list recipes: {e}")
        raise PersistenceError("Could not fetch recipes", details=str(e))


@router.get("/recipes/{recipe_id}", tags=["Recipes"])
@limiter.limit("120/minute")
async def get_recipe(request: Request, recipe_id: str,
                     current_user: Optional[User] = Depends(get_current_active_user),
                     db: DatabaseManager = Depends(get_db)):
    try:
        recipe = db.get_recipe(recipe_id)
        # Unpublished recipes are indistinguishable from missing ones to outsiders
        if recipe is None or not is_visible_to(recipe, current_user):
            raise NotFoundError("Recipe not found")
        if recipe.is_published:
            db.increment_view_count(recipe_id)
        return {"success": True, "recipe": recipe.model_dump(mode="json")}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to get recipe {recipe_id}: {e}")
        raise PersistenceError("Could not fetch recipe", details=str(e))


# --- Comments ---
@router.get("/comments", tags=["Comments"])
@limiter.limit("120/minute")
async def list_comments(request: Request, recipeId: Optional[str] = None, db: DatabaseManager = Depends(get_db)):
    if not recipeId:
        raise ValidationError("Recipe ID required")
    try:
        comments = db.list_visible_comments(recipeId)
        return {"success": True, "comments": [c.model_dump(mode="json") for c in comments]}
    except Exception as e:
        logger.error(f"Failed to list comments for {recipeId}: {e}")
        raise PersistenceError("Failed to get comments", details=str(e))


@router.post("/comments", tags=["Comments"])
@limiter.limit("20/minute")
async def post_comment(request: Request, payload: CommentCreate,
                       current_user: User = Depends(require_user),
                       db: DatabaseManager = Depends(get_db)):
    try:
        comment = comment_logic.create_comment(db, current_user, payload.recipe_id, payload.content)
        if comment.moderation_status != "approved":
            return {"success": True, "message": "Comment submitted for moderation review"}
        return {"success": True, "comment": comment.model_dump(mode="json"), "message": "Comment posted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create comment for user {current_user.id}: {e}")
        raise PersistenceError("Failed to create comment", details=str(e))


@router.post("/comments/flag", tags=["Comments"])
@limiter.limit("20/minute")
async def flag_comment(request: Request, payload: FlagCommentRequest,
                       current_user: User = Depends(require_user),
                       db: DatabaseManager = Depends(get_db)):
    try:
        comment_logic.flag_comment(db, current_user, payload.comment_id, payload.reason)
        return {"success": True, "message": "Comment flagged successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to flag comment {payload.comment_id}: {e}")
        raise PersistenceError("Failed to flag comment", details=str(e))


# --- Ratings ---
@router.post("/ratings", tags=["Ratings"])
@limiter.limit("30/minute")
async def post_rating(request: Request, payload: RatingRequest,
                      current_user: User = Depends(require_user),
                      db: DatabaseManager = Depends(get_db)):
    try:
        result = rate_recipe(db, current_user, payload.recipe_id, payload.rating)
        return {"success": True, **result}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to rate recipe {payload.recipe_id}: {e}")
        raise PersistenceError("Failed to submit rating", details=str(e))


@router.get("/ratings/{recipe_id}/user", tags=["Ratings"])
@limiter.limit("120/minute")
async def get_user_rating(request: Request, recipe_id: str,
                          current_user: User = Depends(require_user),
                          db: DatabaseManager = Depends(get_db)):
    try:
        return {"success": True, "rating": db.get_user_rating(recipe_id, current_user.id)}
    except Exception as e:
        logger.error(f"Failed to get rating of user {current_user.id} for {recipe_id}: {e}")
        raise PersistenceError("Failed to get rating", details=str(e))
