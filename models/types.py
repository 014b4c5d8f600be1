from pydantic import AliasChoices, BaseModel, ConfigDict, Field, EmailStr
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

# Ascending privilege
ROLES = ("user", "moderator", "admin", "owner")
USER_STATUSES = ("active", "suspended", "banned")


class Ingredient(BaseModel):
    text: str
    amount: str = ""
    unit: str = ""


class Instruction(BaseModel):
    text: str
    step: int


class Recipe(BaseModel):
    id: str = Field(..., description="Opaque recipe id (timestamp + random suffix)")
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    servings: int = 1
    image_url: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[Instruction] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    author_id: int
    author_username: Optional[str] = None
    moderation_status: str = Field("pending", description="pending, approved or rejected")
    moderation_notes: Optional[str] = None
    moderated_by: Optional[int] = None
    moderated_at: Optional[datetime] = None
    is_published: bool = False
    rating: float = 0.0
    rating_count: int = 0
    view_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RejectedRecipe(BaseModel):
    """Archived copy of a recipe that a moderator rejected."""
    id: int
    recipe_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    servings: int = 1
    image_url: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[Instruction] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    author_id: int
    author_username: Optional[str] = None
    rejection_reason: str
    rejected_by: int
    rejected_at: datetime
    original_created_at: Optional[datetime] = None


class Comment(BaseModel):
    id: int
    recipe_id: str
    user_id: int
    author_username: Optional[str] = None
    content: str
    moderation_status: str = "approved"
    is_flagged: bool = False
    flag_reason: Optional[str] = None
    flagged_by: Optional[int] = None
    flagged_at: Optional[datetime] = None
    moderation_reason: Optional[str] = None
    moderated_by: Optional[int] = None
    moderated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Request payloads ---
RawItem = Union[str, Dict[str, Any]]


class RecipeSubmission(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    prep_time_minutes: Optional[int] = Field(None, ge=0)
    cook_time_minutes: Optional[int] = Field(None, ge=0)
    servings: Optional[int] = Field(None, ge=1)
    image_url: Optional[str] = None
    ingredients: Optional[Union[List[RawItem], str]] = None
    instructions: Optional[Union[List[RawItem], str]] = None
    tags: Optional[Union[List[str], str]] = None


class ModerateRecipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_id: Optional[str] = Field(None, alias="recipeId")
    action: Optional[str] = None
    notes: Optional[str] = None
    # Raw field values; collections may arrive as arrays, JSON strings or scalars
    updated_recipe: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("updatedRecipe", "updated_recipe", "edits")
    )


class DeleteRecipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_id: Optional[str] = Field(None, alias="recipeId")
    reason: Optional[str] = None


class CommentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_id: Optional[str] = Field(None, alias="recipeId")
    content: Optional[str] = None


class FlagCommentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment_id: Optional[int] = Field(None, alias="commentId")
    reason: Optional[str] = None


class ModerateCommentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment_id: Optional[int] = Field(None, alias="commentId")
    action: Optional[str] = None
    reason: Optional[str] = None


class RatingRequest(BaseModel):
    recipe_id: Optional[str] = None
    rating: Optional[int] = None


# --- User Authentication Models ---
class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, description="Public username")
    email: EmailStr = Field(..., description="User's email address")


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, description="User's password (minimum 6 characters)")


class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., description="User's password")


class User(UserBase):
    id: int = Field(..., description="Unique user ID")
    role: str = Field("user", description="user, moderator, admin or owner")
    status: str = Field("active", description="active, suspended or banned")
    is_verified: bool = False
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    is_flagged: bool = False
    flag_reason: Optional[str] = None
    flagged_by: Optional[int] = None
    flagged_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class UserInDB(User):
    hashed_password: str = Field(..., description="Hashed password stored in database")


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=255)
    avatar_url: Optional[str] = None


class UserAdminUpdate(BaseModel):
    role: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None


class VerifyUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(None, alias="userId")
    action: Optional[str] = Field(None, description="verify or unverify")


class FlagUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(None, alias="userId")
    reason: Optional[str] = None
