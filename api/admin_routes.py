import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from core.auth import require_admin, require_moderator, require_user
from core.database import DatabaseManager, get_db
from core.errors import AppError, PersistenceError
from core.limiter import limiter
from core.log_buffer import log_buffer
from logic import comments as comment_logic
from logic.moderation import delete_recipe, moderate_recipe
from logic.users import admin_update_user, normalize_status, set_verification
from models.types import (DeleteRecipeRequest, ModerateCommentRequest, ModerateRecipeRequest, User,
                          UserAdminUpdate, VerifyUserRequest)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Recipe moderation ---
@router.post("/recipes/moderate")
@limiter.limit("60/minute")
async def moderate(request: Request, payload: ModerateRecipeRequest,
                   current_user: User = Depends(require_admin),
                   db: DatabaseManager = Depends(get_db)):
    try:
        message, recipe, archived = moderate_recipe(db, current_user, payload)
        body = {"success": True, "message": message, "recipe": recipe.model_dump(mode="json")}
        if archived is not None:
            body["rejected"] = archived.model_dump(mode="json")
        return body
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[MODERATE] Failed to moderate {payload.recipe_id}: {e}")
        raise PersistenceError("Failed to moderate recipe", details=str(e))


@router.get("/recipes/pending")
@limiter.limit("60/minute")
async def pending_recipes(request: Request, current_user: User = Depends(require_admin),
                          db: DatabaseManager = Depends(get_db)):
    try:
        recipes = db.list_pending_recipes()
        return {"success": True, "recipes": [r.model_dump(mode="json") for r in recipes], "count": len(recipes)}
    except Exception as e:
        logger.error(f"Failed to list pending recipes: {e}")
        raise PersistenceError("Failed to get pending recipes", details=str(e))


@router.get("/recipes/rejected")
@limiter.limit("60/minute")
async def rejected_recipes(request: Request, recipeId: Optional[str] = None,
                           current_user: User = Depends(require_admin),
                           db: DatabaseManager = Depends(get_db)):
    try:
        recipes = db.list_rejected_recipes(recipe_id=recipeId)
        return {"success": True, "recipes": [r.model_dump(mode="json") for r in recipes], "count": len(recipes)}
    except Exception as e:
        logger.error(f"Failed to list rejected recipes: {e}")
        raise PersistenceError("Failed to get rejected recipes", details=str(e))


@router.get("/recipes/manage")
@limiter.limit("60/minute")
async def manage_recipes(request: Request,
                         page: int = Query(1, ge=1),
                         limit: int = Query(20, ge=1, le=100),
                         status: Optional[str] = None,
                         search: Optional[str] = None,
                         author: Optional[str] = None,
                         current_user: User = Depends(require_moderator),
                         db: DatabaseManager = Depends(get_db)):
    """All live recipes regardless of status; rejected ones are in the archive instead."""
    status = (status or "").strip().lower()
    if status == "all":
        status = ""
    try:
        recipes, total = db.list_all_recipes(page=page, limit=limit, status=status or None,
                                             search=search or None, author=author or None)
        total_pages = math.ceil(total / limit) if total else 0
        return {
            "success": True,
            "recipes": [r.model_dump(mode="json") for r in recipes],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
            "filters": {"status": status or "all", "search": search or "", "author": author or ""},
        }
    except Exception as e:
        logger.error(f"Failed to list recipes for management: {e}")
        raise PersistenceError("Failed to get recipes", details=str(e))


@router.delete("/recipes/delete")
@limiter.limit("30/minute")
async def delete(request: Request, payload: DeleteRecipeRequest,
                 current_user: User = Depends(require_user),
                 db: DatabaseManager = Depends(get_db)):
    try:
        recipe = delete_recipe(db, current_user, payload.recipe_id, payload.reason)
        return {"success": True, "message": f"Recipe '{recipe.title}' deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[DELETE-RECIPE] Failed to delete {payload.recipe_id}: {e}")
        raise PersistenceError("Failed to delete recipe", details=str(e))


# --- Comment moderation ---
@router.get("/comments")
@limiter.limit("60/minute")
async def comment_queue(request: Request, current_user: User = Depends(require_moderator),
                        db: DatabaseManager = Depends(get_db)):
    try:
        comments = db.list_comment_queue()
        return {"success": True, "comments": [c.model_dump(mode="json") for c in comments]}
    except Exception as e:
        logger.error(f"Failed to list comment queue: {e}")
        raise PersistenceError("Failed to get comments", details=str(e))


@router.post("/comments")
@limiter.limit("60/minute")
async def moderate_comment(request: Request, payload: ModerateCommentRequest,
                           current_user: User = Depends(require_admin),
                           db: DatabaseManager = Depends(get_db)):
    try:
        message = comment_logic.moderate_comment(db, current_user, payload.comment_id, payload.action, payload.reason)
        return {"success": True, "message": message}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[COMMENT-MODERATE] Failed on comment {payload.comment_id}: {e}")
        raise PersistenceError("Failed to moderate comment", details=str(e))


# --- Users ---
@router.get("/users")
@limiter.limit("60/minute")
async def list_users(request: Request,
                     page: int = Query(1, ge=1),
                     limit: int = Query(20, ge=1, le=100),
                     search: Optional[str] = None,
                     role: Optional[str] = None,
                     status: Optional[str] = None,
                     flagged: Optional[bool] = None,
                     current_user: User = Depends(require_admin),
                     db: DatabaseManager = Depends(get_db)):
    try:
        users, total = db.list_users(page=page, limit=limit, search=search, role=role,
                                     status=normalize_status(status), flagged=flagged)
        return {
            "success": True,
            "users": [u.model_dump(mode="json") for u in users],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }
    except Exception as e:
        logger.error(f"Failed to list users: {e}")
        raise PersistenceError("Failed to get users", details=str(e))


@router.put("/users/{user_id}")
@limiter.limit("30/minute")
async def update_user(request: Request, user_id: int, payload: UserAdminUpdate,
                      current_user: User = Depends(require_admin),
                      db: DatabaseManager = Depends(get_db)):
    try:
        user = admin_update_user(db, current_user, user_id, payload)
        return {"success": True, "user": user.model_dump(mode="json")}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[USER-ADMIN] Failed to update user {user_id}: {e}")
        raise PersistenceError("Failed to update user", details=str(e))


@router.post("/users/verify")
@limiter.limit("30/minute")
async def verify_user(request: Request, payload: VerifyUserRequest,
                      current_user: User = Depends(require_admin),
                      db: DatabaseManager = Depends(get_db)):
    try:
        user = set_verification(db, current_user, payload.user_id, payload.action)
        return {
            "success": True,
            "message": f"User {payload.action.strip().lower()}ed successfully",
            "user": user.model_dump(mode="json"),
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[USER-ADMIN] Failed to change verification of user {payload.user_id}: {e}")
        raise PersistenceError("Failed to update user verification", details=str(e))


# --- Dashboard ---
@router.get("/stats")
@limiter.limit("60/minute")
async def stats(request: Request, current_user: User = Depends(require_admin),
                db: DatabaseManager = Depends(get_db)):
    try:
        return {"success": True, "stats": db.get_admin_stats()}
    except Exception as e:
        logger.error(f"Failed to compute admin stats: {e}")
        raise PersistenceError("Failed to get stats", details=str(e))


@router.get("/logs")
@limiter.limit("60/minute")
async def logs(request: Request, limit: int = Query(100, ge=1, le=1000), level: Optional[str] = None,
               current_user: User = Depends(require_admin)):
    return {"success": True, "logs": log_buffer.entries(limit=limit, level=level)}


@router.get("/moderation-log")
@limiter.limit("60/minute")
async def moderation_log(request: Request, limit: int = Query(50, ge=1, le=500),
                         current_user: User = Depends(require_admin),
                         db: DatabaseManager = Depends(get_db)):
    try:
        return {"success": True, "entries": db.list_moderation_log(limit=limit)}
    except Exception as e:
        logger.error(f"Failed to read moderation log: {e}")
        raise PersistenceError("Failed to get moderation log", details=str(e))
