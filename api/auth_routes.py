from fastapi import APIRouter, Depends, Request, Response
from core.auth import clear_auth_cookie, require_moderator, require_user, set_auth_cookie
from core.database import DatabaseManager, get_db
from core.errors import AppError, AuthenticationError, AuthorizationError, PersistenceError
from core.limiter import limiter
from logic.users import flag_user, register_user, update_profile
from models.types import FlagUserRequest, ProfileUpdate, User, UserCreate, UserLogin
import logging

logger = logging.getLogger(__name__)

router = APIRouter()
users_router = APIRouter()


@router.post("/register")
@limiter.limit("5/minute")
async def register(request: Request, user_data: UserCreate, response: Response,
                   db: DatabaseManager = Depends(get_db)):
    """Register a new user and log them in by setting a cookie."""
    try:
        user = register_user(db, user_data)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to register {user_data.email}: {e}")
        raise PersistenceError("Failed to create user", details=str(e))

    set_auth_cookie(response, user)
    return {"success": True, "message": "Registration successful", "user": user.model_dump(mode="json")}


@router.post("/login")
@limiter.limit("10/minute")
async def login(request: Request, user_data: UserLogin, response: Response,
                db: DatabaseManager = Depends(get_db)):
    """Login user and set access_token cookie"""
    user = db.authenticate_user(user_data.email, user_data.password)
    if not user:
        logger.warning(f"[AUTH] Failed login for {user_data.email}")
        raise AuthenticationError("Incorrect email or password")
    if not user.is_active:
        logger.warning(f"[AUTH] Login refused for {user.status} account {user.id}")
        raise AuthorizationError(f"Account is {user.status}")

    set_auth_cookie(response, user)
    logger.info(f"[AUTH] User logged in: {user.id}")
    return {"success": True, "message": "Login successful", "user": user.model_dump(mode="json")}


@router.post("/logout")
async def logout(response: Response):
    """Logs out the user by clearing the access token cookie."""
    clear_auth_cookie(response)
    return {"success": True, "message": "Successfully logged out"}


@router.get("/me")
async def me(current_user: User = Depends(require_user)):
    return {"success": True, "user": current_user.model_dump(mode="json")}


@users_router.put("/me")
@limiter.limit("20/minute")
async def update_me(request: Request, payload: ProfileUpdate,
                    current_user: User = Depends(require_user),
                    db: DatabaseManager = Depends(get_db)):
    try:
        user = update_profile(db, current_user, payload)
        return {"success": True, "user": user.model_dump(mode="json")}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[PROFILE] Failed to update user {current_user.id}: {e}")
        raise PersistenceError("Failed to update profile", details=str(e))


@users_router.post("/flag")
@limiter.limit("30/minute")
async def flag(request: Request, payload: FlagUserRequest,
               current_user: User = Depends(require_moderator),
               db: DatabaseManager = Depends(get_db)):
    """Mark an account for admin attention."""
    try:
        user = flag_user(db, current_user, payload.user_id, payload.reason)
        return {"success": True, "message": "User flagged successfully", "user": user.model_dump(mode="json")}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[USER-FLAG] Failed to flag user {payload.user_id}: {e}")
        raise PersistenceError("Failed to flag user", details=str(e))
