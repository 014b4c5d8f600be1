from fastapi import Depends, Request
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from models.types import User
from core.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, COOKIE_NAME, COOKIE_SECURE, SECRET_KEY
from core.database import DatabaseManager, get_db
from core.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

MODERATOR_ROLES = ("moderator", "admin", "owner")
ADMIN_ROLES = ("admin", "owner")


# --- Token creation ---
def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def set_auth_cookie(response, user: User):
    token = create_access_token(data={"sub": str(user.id)})
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def clear_auth_cookie(response):
    response.delete_cookie(COOKIE_NAME)


# --- Current user dependencies ---
async def get_current_active_user(request: Request, db: DatabaseManager = Depends(get_db)) -> Optional[User]:
    """
    Resolve the logged-in user from the JWT stored in the session cookie.
    Returns None for anonymous requests, bad or expired tokens, and accounts
    that no longer exist or are not active.
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            return None
        user_id = int(subject)
    except (JWTError, ValueError):
        return None

    user = db.get_user_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def require_user(current_user: Optional[User] = Depends(get_current_active_user)) -> User:
    if not current_user:
        raise AuthenticationError("Not authenticated")
    return current_user


def require_roles(*allowed: str):
    """Dependency factory: an authenticated user holding one of the given roles."""
    async def dependency(current_user: User = Depends(require_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(f"[AUTHZ] User {current_user.id} ({current_user.role}) denied; needs one of {allowed}")
            raise AuthorizationError("Insufficient permissions")
        return current_user
    return dependency


require_moderator = require_roles(*MODERATOR_ROLES)
require_admin = require_roles(*ADMIN_ROLES)
