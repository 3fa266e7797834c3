"""
Candidate recipe validation and cleanup.

Turns a raw model candidate into a Recipe, or raises InvalidRecipeError
with a message that can be shown to the user as-is.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from baratie.models import Recipe, FlatList, to_item_list, is_empty

logger = logging.getLogger(__name__)

DEFAULT_SERVINGS = 4
INVALID_RECIPE_MESSAGE = (
    "I couldn't extract a valid recipe from that. "
    "Try pasting the recipe text directly or sharing a different link."
)


class InvalidRecipeError(Exception):
    """Raised when a candidate recipe fails validation."""
    pass


# ── Title cleanup ─────────────────────────────────────────────────────

_APOLOGY_PATTERN = re.compile(
    r"^\s*(i'?m sorry|i am sorry|sorry\b|i cannot|i can'?t|i could not|i couldn'?t|"
    r"i was unable|i'?m unable|unable to|no recipe found|no recipe\b|"
    r"not a recipe|cannot extract|could not extract)",
    re.IGNORECASE,
)
_MARKDOWN_EMPHASIS = re.compile(r"[*_`#~]+")


def sanitize_title(title: Optional[str]) -> str:
    """Strip markdown emphasis characters and collapse whitespace."""
    if not title:
        return ""
    cleaned = _MARKDOWN_EMPHASIS.sub("", str(title))
    return re.sub(r"\s+", " ", cleaned).strip()


def is_apology_title(title: str) -> bool:
    """True for refusal-style titles like "I'm sorry, ..." or "No recipe found"."""
    normalized = title.replace("’", "'")
    return bool(_APOLOGY_PATTERN.match(normalized))


# ── Instruction cleanup ───────────────────────────────────────────────

_SECTION_HEADING = re.compile(r"^to\s+(make|serve|store|prepare|assemble|finish|garnish|plate)", re.IGNORECASE)
_TITLE_CASE_HEADING = re.compile(r"^[A-Z][a-z]+(\s+[A-Z][a-z]+)*$")


def is_heading_line(line: str) -> bool:
    stripped = line.strip()
    if _SECTION_HEADING.match(stripped) and len(stripped) < 50:
        return True
    if len(stripped) < 20 and _TITLE_CASE_HEADING.match(stripped):
        return True
    return False


def filter_instruction_headings(instructions: List[str]) -> List[str]:
    """
    Drop lines that are sub-recipe headings ("To make the sauce") rather than steps.

    Keeps the original list if filtering would remove everything.
    """
    kept = [line for line in instructions if not is_heading_line(line)]
    return kept or list(instructions)


# ── Candidate validation ──────────────────────────────────────────────

def _coerce_servings(value: Any) -> int:
    try:
        servings = int(round(float(value)))
    except (TypeError, ValueError):
        return DEFAULT_SERVINGS
    return servings if servings > 0 else DEFAULT_SERVINGS


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_candidate(candidate: Optional[Dict[str, Any]], source: Optional[str] = None) -> Recipe:
    """
    Validate a raw candidate and build a Recipe.

    Raises:
        InvalidRecipeError: empty title, empty ingredients or an apology-style title
    """
    if not candidate or not isinstance(candidate, dict):
        raise InvalidRecipeError(INVALID_RECIPE_MESSAGE)

    title = sanitize_title(candidate.get("title"))
    if not title:
        logger.info("Rejected candidate: empty title")
        raise InvalidRecipeError(INVALID_RECIPE_MESSAGE)
    if is_apology_title(title):
        logger.info(f"Rejected candidate: apology title '{title[:60]}'")
        raise InvalidRecipeError(INVALID_RECIPE_MESSAGE)

    ingredients = to_item_list(candidate.get("ingredients"))
    if is_empty(ingredients):
        logger.info(f"Rejected candidate '{title}': no ingredients")
        raise InvalidRecipeError(INVALID_RECIPE_MESSAGE)

    instructions = to_item_list(candidate.get("instructions"))
    if instructions.kind == "flat":
        instructions = FlatList(items=filter_instruction_headings(instructions.items))

    return Recipe(
        title=title,
        ingredients=ingredients,
        instructions=instructions,
        servings=_coerce_servings(candidate.get("servings")),
        prep_time=_optional_text(candidate.get("prepTime")),
        cook_time=_optional_text(candidate.get("cookTime")),
        source=source,
    )
