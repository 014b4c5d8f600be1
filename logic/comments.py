import re
import logging
from typing import Optional

from core.auth import ADMIN_ROLES
from core.database import DatabaseManager
from core.errors import AuthorizationError, NotFoundError, ValidationError
from models.types import Comment, User

logger = logging.getLogger(__name__)

COMMENT_ACTIONS = ("approve", "reject", "remove")
AUTO_FLAG_REASON = "Automatic language filter"
DEFAULT_FLAG_REASON = "Flagged by user"
MAX_COMMENT_LENGTH = 2000

BAD_WORDS = (
    "damn", "hell", "stupid", "idiot", "hate", "suck", "sucks", "crap",
    "shit", "fuck", "bitch", "ass", "asshole",
)
_BAD_WORDS_RE = re.compile(r"\b(" + "|".join(re.escape(w) for w in BAD_WORDS) + r")\b", re.IGNORECASE)


def contains_bad_language(text: str) -> bool:
    # Whole words only, so "hello" or "class" pass
    return bool(_BAD_WORDS_RE.search(text or ""))


def create_comment(db: DatabaseManager, user: User, recipe_id: Optional[str], content: Optional[str]) -> Comment:
    recipe_id = (recipe_id or "").strip()
    content = (content or "").strip()
    if not recipe_id or not content:
        raise ValidationError("Recipe ID and content required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")

    recipe = db.get_recipe(recipe_id)
    if recipe is None or not (recipe.moderation_status == "approved" and recipe.is_published):
        raise NotFoundError("Recipe not found")

    if contains_bad_language(content):
        comment = db.create_comment(recipe_id, user, content, status="pending", flag_reason=AUTO_FLAG_REASON)
        logger.info(f"[COMMENT] Comment {comment.id} on {recipe_id} held for review (language filter)")
    else:
        comment = db.create_comment(recipe_id, user, content)
        logger.info(f"[COMMENT] Comment {comment.id} posted on {recipe_id} by user {user.id}")
    return comment


def flag_comment(db: DatabaseManager, user: User, comment_id: Optional[int], reason: Optional[str]) -> None:
    if not comment_id:
        raise ValidationError("Comment ID is required")
    reason = (reason or "").strip() or DEFAULT_FLAG_REASON
    if db.flag_comment(comment_id, user.id, reason) == 0:
        raise NotFoundError("Comment not found")
    logger.info(f"[COMMENT] Comment {comment_id} flagged by user {user.id}: {reason}")


def moderate_comment(db: DatabaseManager, moderator: User, comment_id: Optional[int],
                     action: Optional[str], reason: Optional[str] = None) -> str:
    """
    approve: clear the flag and show the comment.
    reject:  keep the row, marked rejected with the reason; hidden from readers.
    remove:  delete the row.
    """
    if moderator.role not in ADMIN_ROLES:
        raise AuthorizationError("Insufficient permissions")
    action = (action or "").strip().lower()
    if not comment_id or not action:
        raise ValidationError("Comment ID and action are required")
    if action not in COMMENT_ACTIONS:
        raise ValidationError("Invalid action", details=f"Expected one of {', '.join(COMMENT_ACTIONS)}")

    if db.get_comment(comment_id) is None:
        raise NotFoundError("Comment not found")

    reason = (reason or "").strip() or None
    if action == "remove":
        changed = db.delete_comment(comment_id)
    else:
        status = "approved" if action == "approve" else "rejected"
        changed = db.resolve_comment(comment_id, status, moderator.id, reason)
    if changed == 0:
        raise NotFoundError("Comment not found")

    logger.info(f"[COMMENT-MODERATE] Comment {comment_id} {action} by user {moderator.id}")
    past = {"approve": "approved", "reject": "rejected", "remove": "removed"}[action]
    return f"Comment {past} successfully"
