import logging
from typing import Optional

from core.auth import ADMIN_ROLES
from core.database import DatabaseManager
from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from core.password import get_password_hash
from models.types import ROLES, USER_STATUSES, ProfileUpdate, User, UserAdminUpdate, UserCreate

logger = logging.getLogger(__name__)

STATUS_ALIASES = {"blocked": "banned"}


def register_user(db: DatabaseManager, user_data: UserCreate) -> User:
    if db.get_user_by_email(user_data.email):
        raise ConflictError("Email already registered")
    if db.get_user_by_username(user_data.username):
        raise ConflictError("Username already taken")
    user = db.create_user(user_data)
    logger.info(f"[AUTH] New user registered: {user.id} ({user.username})")
    return user


def update_profile(db: DatabaseManager, user: User, payload: ProfileUpdate) -> User:
    changes = payload.model_dump(exclude_unset=True)
    password = changes.pop("password", None)

    if changes.get("username"):
        changes["username"] = changes["username"].strip()
        other = db.get_user_by_username(changes["username"])
        if other and other.id != user.id:
            raise ConflictError("Username already taken")
    elif "username" in changes:
        changes.pop("username")

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        other = db.get_user_by_email(changes["email"])
        if other and other.id != user.id:
            raise ConflictError("Email already registered")
    elif "email" in changes:
        changes.pop("email")

    if password:
        db.update_password(user.id, get_password_hash(password))
    updated = db.update_profile(user.id, changes)
    logger.info(f"[PROFILE] User {user.id} updated {sorted(changes.keys()) + (['password'] if password else [])}")
    return updated


def normalize_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    value = status.strip().lower()
    return STATUS_ALIASES.get(value, value)


def admin_update_user(db: DatabaseManager, actor: User, user_id: int, payload: UserAdminUpdate) -> User:
    """
    Change a user's role and/or status.

    Only an owner may grant admin/owner or touch an existing admin/owner, and
    nobody may change their own role or status.
    """
    if actor.role not in ADMIN_ROLES:
        raise AuthorizationError("Insufficient permissions")

    role = payload.role.strip().lower() if payload.role else None
    status = normalize_status(payload.status)
    if role is None and not status:
        raise ValidationError("Nothing to update", details="Provide role and/or status")
    if role is not None and role not in ROLES:
        raise ValidationError("Invalid role", details=f"Expected one of {', '.join(ROLES)}")
    if status and status not in USER_STATUSES:
        raise ValidationError("Invalid status", details=f"Expected one of {', '.join(USER_STATUSES)}")

    target = db.get_user_by_id(user_id)
    if target is None:
        raise NotFoundError("User not found")
    if target.id == actor.id:
        raise AuthorizationError("You cannot change your own role or status")
    if actor.role != "owner":
        if target.role in ADMIN_ROLES:
            raise AuthorizationError("Only the owner can modify administrators")
        if role in ADMIN_ROLES:
            raise AuthorizationError("Only the owner can grant administrator roles")

    updated = db.update_user_admin(user_id, actor.id, role=role, status=status, reason=payload.reason)
    logger.info(
        f"[USER-ADMIN] User {user_id} updated by {actor.id}: role {target.role}->{updated.role}, "
        f"status {target.status}->{updated.status}"
    )
    return updated


VERIFY_ACTIONS = ("verify", "unverify")
DEFAULT_USER_FLAG_REASON = "Flagged by moderator"


def set_verification(db: DatabaseManager, actor: User, user_id: Optional[int], action: Optional[str]) -> User:
    if actor.role not in ADMIN_ROLES:
        raise AuthorizationError("Admin access required")
    action = (action or "").strip().lower()
    if not user_id or not action:
        raise ValidationError("User ID and action are required")
    if action not in VERIFY_ACTIONS:
        raise ValidationError("Invalid action", details="Must be 'verify' or 'unverify'")

    if db.set_user_verified(user_id, action == "verify", actor.id) == 0:
        raise NotFoundError("User not found")
    logger.info(f"[USER-ADMIN] User {user_id} {action} by {actor.id}")
    return db.get_user_by_id(user_id)


def flag_user(db: DatabaseManager, actor: User, user_id: Optional[int], reason: Optional[str]) -> User:
    if not user_id:
        raise ValidationError("User ID is required")
    if user_id == actor.id:
        raise ValidationError("You cannot flag yourself")
    reason = (reason or "").strip() or DEFAULT_USER_FLAG_REASON
    if db.flag_user(user_id, actor.id, reason) == 0:
        raise NotFoundError("User not found")
    logger.info(f"[USER-FLAG] User {user_id} flagged by {actor.id}: {reason}")
    return db.get_user_by_id(user_id)
