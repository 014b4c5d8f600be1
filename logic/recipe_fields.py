"""
Normalization of the collection fields of a recipe.

Ingredients, instructions and tags reach the service in several shapes:
a proper array, a JSON-encoded array (older clients and edit forms send
these), or a single scalar. Everything that stores or updates a recipe goes
through the functions below so the persisted shape is always the same:

    ingredients  -> [{"text": str, "amount": str, "unit": str}, ...]
    instructions -> [{"text": str, "step": int}, ...]   (steps numbered 1..n)
    tags         -> [str, ...]                           (lower-case, unique)
"""
import json
import logging
from typing import Any, Dict, List, Optional

from core.errors import ValidationError

logger = logging.getLogger(__name__)

PLACEHOLDER_INGREDIENT = "No ingredients specified"
PLACEHOLDER_INSTRUCTION = "No instructions provided"

TEXT_FIELDS = ("title", "description", "category", "difficulty", "image_url")
INT_FIELDS = ("prep_time_minutes", "cook_time_minutes", "servings")
COLLECTION_FIELDS = ("ingredients", "instructions", "tags")
EDITABLE_FIELDS = TEXT_FIELDS + INT_FIELDS + COLLECTION_FIELDS


def coerce_list(raw: Any) -> List[Any]:
    """Turn an array, a JSON-encoded array or a scalar into a list."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
            logger.debug(f"[FIELDS] Value looked like JSON but did not parse as a list: {text[:60]!r}")
        return [text]
    return [raw]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_ingredients(raw: Any, placeholder: bool = True) -> List[Dict[str, str]]:
    items = []
    for item in coerce_list(raw):
        if isinstance(item, dict):
            text = _clean(item.get("text") or item.get("name") or item.get("ingredient"))
            amount = _clean(item.get("amount") or item.get("quantity"))
            unit = _clean(item.get("unit"))
        else:
            text, amount, unit = _clean(item), "", ""
        if not text:
            continue
        items.append({"text": text, "amount": amount, "unit": unit})
    if not items and placeholder:
        items = [{"text": PLACEHOLDER_INGREDIENT, "amount": "", "unit": ""}]
    return items


def normalize_instructions(raw: Any, placeholder: bool = True) -> List[Dict[str, Any]]:
    texts = []
    for item in coerce_list(raw):
        if isinstance(item, dict):
            text = _clean(item.get("text") or item.get("description") or item.get("instruction"))
        else:
            text = _clean(item)
        if text:
            texts.append(text)
    if not texts and placeholder:
        texts = [PLACEHOLDER_INSTRUCTION]
    return [{"text": text, "step": idx} for idx, text in enumerate(texts, start=1)]


def normalize_tags(raw: Any) -> List[str]:
    values = coerce_list(raw)
    # A single plain string may carry a comma separated list
    if len(values) == 1 and isinstance(values[0], str) and "," in values[0]:
        values = values[0].split(",")
    tags = []
    for value in values:
        tag = _clean(value).lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _coerce_int(field: str, value: Any) -> int:
    # int() would take True as 1 and truncate 2.9 to 2
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Field '{field}' must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Field '{field}' must be a whole number")
    if number < 0:
        raise ValidationError(f"Field '{field}' must not be negative")
    return number


def merge_recipe_edits(current: Dict[str, Any], edits: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Overlay moderator edits on the stored recipe, field by field.

    Text and numeric fields fall back to the stored value when the edit is
    missing, null or blank. Collections fall back only when missing or null;
    an explicit empty collection is normalized (and gets the placeholder).
    """
    edits = edits or {}
    merged: Dict[str, Any] = {}
    for field in TEXT_FIELDS:
        value = edits.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            merged[field] = current.get(field)
        else:
            merged[field] = str(value).strip()
    for field in INT_FIELDS:
        value = edits.get(field)
        if value is None or value == "":
            merged[field] = current.get(field)
        else:
            merged[field] = _coerce_int(field, value)
    if merged["servings"] is not None and merged["servings"] < 1:
        raise ValidationError("Field 'servings' must be at least 1")

    ingredients = edits.get("ingredients")
    instructions = edits.get("instructions")
    tags = edits.get("tags")
    merged["ingredients"] = normalize_ingredients(current.get("ingredients") if ingredients is None else ingredients)
    merged["instructions"] = normalize_instructions(current.get("instructions") if instructions is None else instructions)
    merged["tags"] = normalize_tags(current.get("tags") if tags is None else tags)
    return merged
