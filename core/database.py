import sqlite3
import json
import time
import secrets
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.config import DATABASE_PATH, DB_TIMEOUT_SECONDS
from core.password import verify_password, get_password_hash, needs_rehash
from logic.recipe_fields import normalize_ingredients, normalize_instructions, normalize_tags
from models.types import Comment, Recipe, RejectedRecipe, User, UserCreate, UserInDB

logger = logging.getLogger(__name__)

RECIPE_CONTENT_COLUMNS = (
    "title", "description", "category", "difficulty", "prep_time_minutes",
    "cook_time_minutes", "servings", "image_url",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def new_recipe_id() -> str:
    return f"recipe_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class DatabaseManager:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = str(db_path or DATABASE_PATH)
        self.init_database()

    @contextmanager
    def get_connection(self):
        """One connection per unit of work: committed on success, rolled back on error."""
        conn = sqlite3.connect(self.db_path, timeout=DB_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self):
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    hashed_password TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user'
                        CHECK(role IN ('user','moderator','admin','owner')),
                    status TEXT NOT NULL DEFAULT 'active'
                        CHECK(status IN ('active','suspended','banned')),
                    is_verified BOOLEAN DEFAULT 0,
                    bio TEXT,
                    location TEXT,
                    website TEXT,
                    avatar_url TEXT,
                    is_flagged BOOLEAN NOT NULL DEFAULT 0,
                    flag_reason TEXT,
                    flagged_by INTEGER,
                    flagged_at TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    last_login_at TEXT
                )
            """)
            # Migrate user tables created before user flagging existed
            cursor.execute("PRAGMA table_info(users)")
            user_columns = [col[1] for col in cursor.fetchall()]
            for column, ddl in (
                ("is_flagged", "BOOLEAN NOT NULL DEFAULT 0"),
                ("flag_reason", "TEXT"),
                ("flagged_by", "INTEGER"),
                ("flagged_at", "TEXT"),
            ):
                if column not in user_columns:
                    logger.info(f"Adding '{column}' column to users table...")
                    cursor.execute(f"ALTER TABLE users ADD COLUMN {column} {ddl}")
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipes (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    category TEXT,
                    difficulty TEXT,
                    prep_time_minutes INTEGER DEFAULT 0,
                    cook_time_minutes INTEGER DEFAULT 0,
                    servings INTEGER DEFAULT 1,
                    image_url TEXT,
                    ingredients TEXT NOT NULL DEFAULT '[]',
                    instructions TEXT NOT NULL DEFAULT '[]',
                    tags TEXT NOT NULL DEFAULT '[]',
                    author_id INTEGER NOT NULL,
                    author_username TEXT,
                    moderation_status TEXT NOT NULL DEFAULT 'pending'
                        CHECK(moderation_status IN ('pending','approved','rejected')),
                    moderation_notes TEXT,
                    moderated_by INTEGER,
                    moderated_at TEXT,
                    is_published BOOLEAN NOT NULL DEFAULT 0,
                    rating REAL DEFAULT 0,
                    rating_count INTEGER DEFAULT 0,
                    view_count INTEGER DEFAULT 0,
                    created_at TEXT,
                    updated_at TEXT,
                    FOREIGN KEY (author_id) REFERENCES users (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_recipes_status ON recipes(moderation_status, is_published)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_recipes_author ON recipes(author_id)")

            # Child rows mirroring the JSON collections
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipe_ingredients (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    amount TEXT,
                    unit TEXT,
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id) ON DELETE CASCADE
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipe_instructions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id TEXT NOT NULL,
                    step_number INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id) ON DELETE CASCADE
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipe_tags (
                    recipe_id TEXT NOT NULL,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (recipe_id, tag),
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id) ON DELETE CASCADE
                )
            """)

            # Archive of rejected submissions; never updated
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS rejected_recipes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    category TEXT,
                    difficulty TEXT,
                    prep_time_minutes INTEGER,
                    cook_time_minutes INTEGER,
                    servings INTEGER,
                    image_url TEXT,
                    ingredients TEXT NOT NULL,
                    instructions TEXT NOT NULL,
                    tags TEXT NOT NULL,
                    author_id INTEGER NOT NULL,
                    author_username TEXT,
                    rejection_reason TEXT NOT NULL,
                    rejected_by INTEGER NOT NULL,
                    rejected_at TEXT NOT NULL,
                    original_created_at TEXT
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_rejected_recipe_id ON rejected_recipes(recipe_id)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id TEXT NOT NULL,
                    user_id INTEGER NOT NULL,
                    author_username TEXT,
                    content TEXT NOT NULL,
                    moderation_status TEXT NOT NULL DEFAULT 'approved'
                        CHECK(moderation_status IN ('pending','approved','rejected')),
                    is_flagged BOOLEAN NOT NULL DEFAULT 0,
                    flag_reason TEXT,
                    flagged_by INTEGER,
                    flagged_at TEXT,
                    moderation_reason TEXT,
                    moderated_by INTEGER,
                    moderated_at TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id) ON DELETE CASCADE,
                    FOREIGN KEY (user_id) REFERENCES users (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_comments_recipe_created ON comments(recipe_id, created_at DESC, id DESC)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ratings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id TEXT NOT NULL,
                    user_id INTEGER NOT NULL,
                    value INTEGER NOT NULL CHECK(value >= 1 AND value <= 5),
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE(recipe_id, user_id),
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id) ON DELETE CASCADE,
                    FOREIGN KEY (user_id) REFERENCES users (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_ratings_recipe_id ON ratings(recipe_id)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS moderation_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    moderator_id INTEGER,
                    target_user_id INTEGER,
                    action TEXT NOT NULL,
                    reason TEXT,
                    details TEXT,
                    created_at TEXT
                )
            """)

    # ---------------------- Users ----------------------
    def _row_to_user(self, row, in_db: bool = False):
        user_dict = dict(row)
        user_dict['is_verified'] = bool(user_dict.get('is_verified'))
        user_dict['is_flagged'] = bool(user_dict.get('is_flagged'))
        if in_db:
            return UserInDB(**user_dict)
        user_dict.pop('hashed_password', None)
        return User(**user_dict)

    def create_user(self, user_data: UserCreate, role: str = "user", is_verified: bool = False) -> User:
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO users (username, email, hashed_password, role, is_verified, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (user_data.username.strip(), user_data.email.lower(), get_password_hash(user_data.password),
                 role, int(is_verified), now, now)
            )
            user_id = cursor.lastrowid
        logger.info(f"Created user {user_id} ({user_data.username}) with role '{role}'")
        return self.get_user_by_id(user_id)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            return None

        if needs_rehash(user.hashed_password):
            self.update_password(user.id, get_password_hash(password))

        if user.is_active:
            with self.get_connection() as conn:
                conn.execute("UPDATE users SET last_login_at = ? WHERE id = ?", (_now(), user.id))
        return self.get_user_by_id(user.id)

    def get_user_by_email(self, email: str) -> Optional[UserInDB]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM users WHERE email = ?", ((email or '').lower(),))
            row = cursor.fetchone()
        return self._row_to_user(row, in_db=True) if row else None

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cursor.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        if not username:
            return None
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM users WHERE LOWER(username) = LOWER(?)", (username.strip(),))
            row = cursor.fetchone()
        return self._row_to_user(row) if row else None

    def update_password(self, user_id: int, new_hashed_password: str):
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE users SET hashed_password = ?, updated_at = ? WHERE id = ?",
                (new_hashed_password, _now(), user_id)
            )
        logger.info(f"Password for user {user_id} has been updated.")

    def update_profile(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]:
        allowed = ("username", "email", "bio", "location", "website", "avatar_url")
        updates = {k: v for k, v in fields.items() if k in allowed}
        if updates:
            set_clause = ", ".join(f"{k} = ?" for k in updates)
            with self.get_connection() as conn:
                conn.execute(
                    f"UPDATE users SET {set_clause}, updated_at = ? WHERE id = ?",
                    (*updates.values(), _now(), user_id)
                )
        return self.get_user_by_id(user_id)

    def list_users(self, page: int = 1, limit: int = 20, search: Optional[str] = None,
                   role: Optional[str] = None, status: Optional[str] = None,
                   flagged: Optional[bool] = None) -> Tuple[List[User], int]:
        where = []
        params: List[Any] = []
        if search:
            where.append("(username LIKE ? OR email LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        if role:
            where.append("role = ?")
            params.append(role)
        if status:
            where.append("status = ?")
            params.append(status)
        if flagged is not None:
            where.append("is_flagged = ?")
            params.append(int(flagged))
        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        offset = (page - 1) * limit
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) FROM users {where_clause}", tuple(params))
            total = int(cursor.fetchone()[0] or 0)
            cursor.execute(
                f"SELECT * FROM users {where_clause} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset)
            )
            rows = cursor.fetchall()
        return [self._row_to_user(r) for r in rows], total

    def update_user_admin(self, user_id: int, moderator_id: int, role: Optional[str] = None,
                          status: Optional[str] = None, reason: Optional[str] = None) -> Optional[User]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            now = _now()
            if role:
                cursor.execute("UPDATE users SET role = ?, updated_at = ? WHERE id = ?", (role, now, user_id))
            if status:
                cursor.execute("UPDATE users SET status = ?, updated_at = ? WHERE id = ?", (status, now, user_id))
            self.log_moderation(
                cursor, moderator_id, "user_update", target_user_id=user_id, reason=reason,
                details={"role": role, "status": status}
            )
        return self.get_user_by_id(user_id)

    def set_user_verified(self, user_id: int, verified: bool, moderator_id: int) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE users SET is_verified = ?, updated_at = ? WHERE id = ?",
                (int(verified), _now(), user_id)
            )
            updated = cursor.rowcount
            if updated:
                self.log_moderation(cursor, moderator_id, "verify" if verified else "unverify", target_user_id=user_id)
        return updated

    def flag_user(self, user_id: int, moderator_id: int, reason: str) -> int:
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE users SET is_flagged = 1, flag_reason = ?, flagged_by = ?, flagged_at = ?, "
                "updated_at = ? WHERE id = ?",
                (reason, moderator_id, now, now, user_id)
            )
            updated = cursor.rowcount
            if updated:
                self.log_moderation(cursor, moderator_id, "flag_user", target_user_id=user_id, reason=reason)
        return updated

    def log_moderation(self, cursor, moderator_id: int, action: str, target_user_id: Optional[int] = None,
                       reason: Optional[str] = None, details: Optional[dict] = None):
        cursor.execute(
            "INSERT INTO moderation_log (moderator_id, target_user_id, action, reason, details, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (moderator_id, target_user_id, action, reason, json.dumps(details or {}), _now())
        )

    def list_moderation_log(self, limit: int = 50) -> List[dict]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM moderation_log ORDER BY id DESC LIMIT ?", (limit,))
            rows = cursor.fetchall()
        items = []
        for row in rows:
            item = dict(row)
            item['details'] = json.loads(item['details'] or '{}')
            items.append(item)
        return items

    # ---------------------- Recipes ----------------------
    def _row_to_recipe(self, row) -> Recipe:
        data = dict(row)
        data['ingredients'] = normalize_ingredients(data.get('ingredients'), placeholder=False)
        data['instructions'] = normalize_instructions(data.get('instructions'), placeholder=False)
        data['tags'] = normalize_tags(data.get('tags'))
        data['is_published'] = bool(data.get('is_published'))
        data['rating'] = float(data.get('rating') or 0)
        data['rating_count'] = int(data.get('rating_count') or 0)
        data['view_count'] = int(data.get('view_count') or 0)
        for key, default in (('prep_time_minutes', 0), ('cook_time_minutes', 0), ('servings', 1)):
            if data.get(key) is None:
                data[key] = default
        return Recipe(**data)

    def _write_collections(self, cursor, recipe_id: str, fields: Dict[str, Any]):
        """Rewrite the child rows of a recipe from its normalized collections."""
        cursor.execute("DELETE FROM recipe_ingredients WHERE recipe_id = ?", (recipe_id,))
        cursor.execute("DELETE FROM recipe_instructions WHERE recipe_id = ?", (recipe_id,))
        cursor.execute("DELETE FROM recipe_tags WHERE recipe_id = ?", (recipe_id,))
        cursor.executemany(
            "INSERT INTO recipe_ingredients (recipe_id, position, text, amount, unit) VALUES (?, ?, ?, ?, ?)",
            [(recipe_id, pos, i['text'], i['amount'], i['unit'])
             for pos, i in enumerate(fields['ingredients'], start=1)]
        )
        cursor.executemany(
            "INSERT INTO recipe_instructions (recipe_id, step_number, text) VALUES (?, ?, ?)",
            [(recipe_id, s['step'], s['text']) for s in fields['instructions']]
        )
        cursor.executemany(
            "INSERT INTO recipe_tags (recipe_id, tag) VALUES (?, ?)",
            [(recipe_id, t) for t in fields['tags']]
        )

    def create_recipe(self, author: User, fields: Dict[str, Any]) -> Recipe:
        """Insert a pending recipe and its child rows in a single transaction."""
        recipe_id = new_recipe_id()
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO recipes (
                    id, title, description, category, difficulty, prep_time_minutes, cook_time_minutes,
                    servings, image_url, ingredients, instructions, tags, author_id, author_username,
                    moderation_status, is_published, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', 0, ?, ?)
                """,
                (recipe_id, fields['title'], fields.get('description'), fields['category'], fields['difficulty'],
                 fields.get('prep_time_minutes') or 0, fields.get('cook_time_minutes') or 0,
                 fields.get('servings') or 1, fields.get('image_url'),
                 json.dumps(fields['ingredients']), json.dumps(fields['instructions']), json.dumps(fields['tags']),
                 author.id, author.username, now, now)
            )
            self._write_collections(cursor, recipe_id, fields)
        return self.get_recipe(recipe_id)

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,))
            row = cursor.fetchone()
        return self._row_to_recipe(row) if row else None

    def get_recipe_children(self, recipe_id: str) -> dict:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT text, amount, unit FROM recipe_ingredients WHERE recipe_id = ? ORDER BY position",
                (recipe_id,)
            )
            ingredients = [dict(r) for r in cursor.fetchall()]
            cursor.execute(
                "SELECT step_number AS step, text FROM recipe_instructions WHERE recipe_id = ? ORDER BY step_number",
                (recipe_id,)
            )
            instructions = [dict(r) for r in cursor.fetchall()]
            cursor.execute("SELECT tag FROM recipe_tags WHERE recipe_id = ? ORDER BY tag", (recipe_id,))
            tags = [r[0] for r in cursor.fetchall()]
        return {"ingredients": ingredients, "instructions": instructions, "tags": tags}

    def increment_view_count(self, recipe_id: str):
        with self.get_connection() as conn:
            conn.execute("UPDATE recipes SET view_count = COALESCE(view_count, 0) + 1 WHERE id = ?", (recipe_id,))

    def list_published_recipes(self, q: Optional[str] = None, category: Optional[str] = None,
                               difficulty: Optional[str] = None) -> List[Recipe]:
        where = ["moderation_status = 'approved'", "is_published = 1"]
        params: List[Any] = []
        if q:
            where.append("(title LIKE ? OR description LIKE ?)")
            params.extend([f"%{q}%", f"%{q}%"])
        if category:
            where.append("LOWER(category) = LOWER(?)")
            params.append(category)
        if difficulty:
            where.append("LOWER(difficulty) = LOWER(?)")
            params.append(difficulty)
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM recipes WHERE {' AND '.join(where)} ORDER BY created_at DESC, id DESC",
                tuple(params)
            )
            rows = cursor.fetchall()
        return [self._row_to_recipe(r) for r in rows]

    def list_pending_recipes(self) -> List[Recipe]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM recipes WHERE moderation_status = 'pending' ORDER BY created_at ASC, id ASC")
            rows = cursor.fetchall()
        return [self._row_to_recipe(r) for r in rows]

    def list_all_recipes(self, page: int = 1, limit: int = 20, status: Optional[str] = None,
                         search: Optional[str] = None, author: Optional[str] = None) -> Tuple[List[Recipe], int]:
        """Every live recipe regardless of moderation state, newest first, for the manage view."""
        where = []
        params: List[Any] = []
        if status:
            where.append("moderation_status = ?")
            params.append(status)
        if search:
            where.append("(title LIKE ? OR description LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        if author:
            where.append("author_username LIKE ?")
            params.append(f"%{author}%")
        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        offset = (page - 1) * limit
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) FROM recipes {where_clause}", tuple(params))
            total = int(cursor.fetchone()[0] or 0)
            cursor.execute(
                f"SELECT * FROM recipes {where_clause} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset)
            )
            rows = cursor.fetchall()
        return [self._row_to_recipe(r) for r in rows], total

    def list_user_recipes(self, author_id: int) -> List[Recipe]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM recipes WHERE author_id = ? ORDER BY created_at DESC, id DESC", (author_id,))
            rows = cursor.fetchall()
        return [self._row_to_recipe(r) for r in rows]

    def approve_recipe(self, recipe_id: str, moderator_id: int, notes: Optional[str],
                       fields: Optional[Dict[str, Any]] = None) -> int:
        """
        Mark a recipe approved and published, optionally rewriting its content.
        Returns the number of rows updated (0 when the recipe no longer exists).
        """
        now = _now()
        assignments = [
            "moderation_status = 'approved'", "is_published = 1", "moderation_notes = ?",
            "moderated_by = ?", "moderated_at = ?", "updated_at = ?",
        ]
        params: List[Any] = [notes, moderator_id, now, now]
        if fields:
            for column in RECIPE_CONTENT_COLUMNS:
                assignments.append(f"{column} = ?")
                params.append(fields.get(column))
            for column in ("ingredients", "instructions", "tags"):
                assignments.append(f"{column} = ?")
                params.append(json.dumps(fields[column]))
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"UPDATE recipes SET {', '.join(assignments)} WHERE id = ?", (*params, recipe_id))
            updated = cursor.rowcount
            if updated and fields:
                self._write_collections(cursor, recipe_id, fields)
        return updated

    def reject_recipe(self, recipe_id: str, moderator_id: int, reason: str) -> Optional[RejectedRecipe]:
        """
        Move a recipe into the rejected archive. The live row is deleted and
        the archive row written in the same transaction; nothing is archived
        when the row is already gone.
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            cursor.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,))
            row = cursor.fetchone()
            if not row:
                return None
            cursor.execute("DELETE FROM recipes WHERE id = ?", (recipe_id,))
            if cursor.rowcount == 0:
                return None
            cursor.execute(
                """
                INSERT INTO rejected_recipes (
                    recipe_id, title, description, category, difficulty, prep_time_minutes,
                    cook_time_minutes, servings, image_url, ingredients, instructions, tags,
                    author_id, author_username, rejection_reason, rejected_by, rejected_at,
                    original_created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (row['id'], row['title'], row['description'], row['category'], row['difficulty'],
                 row['prep_time_minutes'], row['cook_time_minutes'], row['servings'], row['image_url'],
                 row['ingredients'], row['instructions'], row['tags'], row['author_id'],
                 row['author_username'], reason, moderator_id, _now(), row['created_at'])
            )
            archive_id = cursor.lastrowid
        return self.get_rejected_recipe(archive_id)

    def _row_to_rejected(self, row) -> RejectedRecipe:
        data = dict(row)
        data['ingredients'] = normalize_ingredients(data.get('ingredients'), placeholder=False)
        data['instructions'] = normalize_instructions(data.get('instructions'), placeholder=False)
        data['tags'] = normalize_tags(data.get('tags'))
        for key, default in (('prep_time_minutes', 0), ('cook_time_minutes', 0), ('servings', 1)):
            if data.get(key) is None:
                data[key] = default
        return RejectedRecipe(**data)

    def get_rejected_recipe(self, archive_id: int) -> Optional[RejectedRecipe]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM rejected_recipes WHERE id = ?", (archive_id,))
            row = cursor.fetchone()
        return self._row_to_rejected(row) if row else None

    def list_rejected_recipes(self, recipe_id: Optional[str] = None) -> List[RejectedRecipe]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            if recipe_id:
                cursor.execute("SELECT * FROM rejected_recipes WHERE recipe_id = ? ORDER BY id DESC", (recipe_id,))
            else:
                cursor.execute("SELECT * FROM rejected_recipes ORDER BY id DESC")
            rows = cursor.fetchall()
        return [self._row_to_rejected(r) for r in rows]

    def delete_recipe(self, recipe_id: str) -> int:
        """Hard delete of a recipe and everything that hangs off it. No archive copy."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM ratings WHERE recipe_id = ?", (recipe_id,))
            ratings = cursor.rowcount
            cursor.execute("DELETE FROM comments WHERE recipe_id = ?", (recipe_id,))
            comments = cursor.rowcount
            cursor.execute("DELETE FROM rejected_recipes WHERE recipe_id = ?", (recipe_id,))
            cursor.execute("DELETE FROM recipe_ingredients WHERE recipe_id = ?", (recipe_id,))
            cursor.execute("DELETE FROM recipe_instructions WHERE recipe_id = ?", (recipe_id,))
            cursor.execute("DELETE FROM recipe_tags WHERE recipe_id = ?", (recipe_id,))
            cursor.execute("DELETE FROM recipes WHERE id = ?", (recipe_id,))
            deleted = cursor.rowcount
        logger.info(f"[DELETE-RECIPE] {recipe_id}: recipe={deleted} ratings={ratings} comments={comments}")
        return deleted

    # ---------------------- Comments ----------------------
    def _row_to_comment(self, row) -> Comment:
        data = dict(row)
        data['is_flagged'] = bool(data.get('is_flagged'))
        return Comment(**data)

    def create_comment(self, recipe_id: str, user: User, content: str, status: str = "approved",
                       flag_reason: Optional[str] = None) -> Comment:
        now = _now()
        flagged = flag_reason is not None
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO comments (recipe_id, user_id, author_username, content, moderation_status, "
                "is_flagged, flag_reason, flagged_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (recipe_id, user.id, user.username, content, status, int(flagged), flag_reason,
                 now if flagged else None, now, now)
            )
            comment_id = cursor.lastrowid
        return self.get_comment(comment_id)

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM comments WHERE id = ?", (comment_id,))
            row = cursor.fetchone()
        return self._row_to_comment(row) if row else None

    def list_visible_comments(self, recipe_id: str) -> List[Comment]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM comments WHERE recipe_id = ? AND moderation_status = 'approved' "
                "AND is_flagged = 0 ORDER BY created_at DESC, id DESC",
                (recipe_id,)
            )
            rows = cursor.fetchall()
        return [self._row_to_comment(r) for r in rows]

    def list_comment_queue(self) -> List[Comment]:
        """Comments waiting on a moderator: flagged, or held back as pending."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM comments WHERE is_flagged = 1 OR moderation_status = 'pending' "
                "ORDER BY created_at ASC, id ASC"
            )
            rows = cursor.fetchall()
        return [self._row_to_comment(r) for r in rows]

    def flag_comment(self, comment_id: int, flagged_by: int, reason: str) -> int:
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE comments SET is_flagged = 1, flag_reason = ?, flagged_by = ?, flagged_at = ?, "
                "updated_at = ? WHERE id = ?",
                (reason, flagged_by, now, now, comment_id)
            )
            return cursor.rowcount

    def resolve_comment(self, comment_id: int, status: str, moderator_id: int, reason: Optional[str]) -> int:
        """Record a moderator decision and clear the flag."""
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE comments SET moderation_status = ?, is_flagged = 0, moderation_reason = ?, "
                "moderated_by = ?, moderated_at = ?, updated_at = ? WHERE id = ?",
                (status, reason, moderator_id, now, now, comment_id)
            )
            return cursor.rowcount

    def delete_comment(self, comment_id: int) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
            return cursor.rowcount

    # ---------------------- Ratings ----------------------
    def upsert_rating(self, recipe_id: str, user_id: int, value: int) -> dict:
        now = _now()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO ratings (recipe_id, user_id, value, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(recipe_id, user_id) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (recipe_id, user_id, value, now, now)
            )
            cursor.execute("SELECT AVG(value), COUNT(*) FROM ratings WHERE recipe_id = ?", (recipe_id,))
            avg, count = cursor.fetchone()
            average = round(float(avg or 0), 2)
            count = int(count or 0)
            cursor.execute(
                "UPDATE recipes SET rating = ?, rating_count = ?, updated_at = ? WHERE id = ?",
                (average, count, now, recipe_id)
            )
        return {"average": average, "count": count}

    def get_user_rating(self, recipe_id: str, user_id: int) -> Optional[int]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM ratings WHERE recipe_id = ? AND user_id = ?", (recipe_id, user_id))
            row = cursor.fetchone()
        return int(row[0]) if row else None

    # ---------------------- Admin statistics ----------------------
    def get_admin_stats(self) -> dict:
        now = datetime.now(timezone.utc)
        month_ago = (now - timedelta(days=30)).isoformat(timespec="seconds")
        week_ago = (now - timedelta(days=7)).isoformat(timespec="seconds")
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*), SUM(CASE WHEN created_at > ? THEN 1 ELSE 0 END), "
                "SUM(CASE WHEN is_flagged = 1 THEN 1 ELSE 0 END) FROM users",
                (month_ago,)
            )
            total_users, new_users, flagged_users = cursor.fetchone()
            cursor.execute("""
                SELECT
                    COUNT(*),
                    SUM(CASE WHEN moderation_status = 'pending' THEN 1 ELSE 0 END),
                    SUM(CASE WHEN moderation_status = 'approved' THEN 1 ELSE 0 END),
                    SUM(CASE WHEN moderation_status = 'approved' AND is_published = 1 THEN 1 ELSE 0 END)
                FROM recipes
            """)
            total_recipes, pending, approved, published = cursor.fetchone()
            cursor.execute("SELECT COUNT(*) FROM rejected_recipes")
            rejected = cursor.fetchone()[0]
            cursor.execute("SELECT COUNT(*), SUM(CASE WHEN is_flagged = 1 THEN 1 ELSE 0 END) FROM comments")
            total_comments, flagged = cursor.fetchone()
            cursor.execute(
                """
                SELECT title, created_at, author_username, moderation_status FROM recipes
                WHERE created_at > ? ORDER BY created_at DESC LIMIT 10
                """,
                (week_ago,)
            )
            recent = [
                {"type": "recipe_submitted", "description": r['title'], "timestamp": r['created_at'],
                 "userName": r['author_username'], "status": r['moderation_status']}
                for r in cursor.fetchall()
            ]
        return {
            "totalUsers": int(total_users or 0),
            "newUsers": int(new_users or 0),
            "flaggedUsers": int(flagged_users or 0),
            "totalRecipes": int(total_recipes or 0),
            "pendingRecipes": int(pending or 0),
            "approvedRecipes": int(approved or 0),
            "publishedRecipes": int(published or 0),
            "rejectedRecipes": int(rejected or 0),
            "totalComments": int(total_comments or 0),
            "flaggedComments": int(flagged or 0),
            "recentActivity": recent,
        }


db = DatabaseManager()


def get_db() -> DatabaseManager:
    """FastAPI dependency; tests override it with a database on a temporary path."""
    return db
