"""
Chat intent resolution.

The classifier in input_service proposes an intent; the rules here have
the final word: a URL always means extraction, and modify_recipe needs an
active recipe.
"""
import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ChatIntent(str, Enum):
    ANSWER_QUESTION = "answer_question"
    SUGGEST_RECIPES = "suggest_recipes"
    MODIFY_RECIPE = "modify_recipe"
    EXTRACT_RECIPE = "extract_recipe"


# ── URL detection ─────────────────────────────────────────────────────

_URL_PATTERN = re.compile(r"\b(?:https?://|www\.)[^\s<>\"']+", re.IGNORECASE)


def find_url(text: str) -> Optional[str]:
    """First URL-looking token in text, with trailing punctuation removed."""
    match = _URL_PATTERN.search(text or "")
    if not match:
        return None
    url = match.group(0).rstrip(".,;:!?)]}")
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url
    return url


def contains_url(text: str) -> bool:
    return find_url(text) is not None


# ── Resolution ────────────────────────────────────────────────────────

def coerce_intent(value: Optional[str]) -> ChatIntent:
    """Unknown or missing classifier output falls back to answer_question."""
    try:
        return ChatIntent(value)
    except ValueError:
        return ChatIntent.ANSWER_QUESTION


def resolve_intent(
    classified: Optional[ChatIntent],
    user_message: str,
    recipe_active: bool,
) -> ChatIntent:
    """
    Final intent for a turn.

    Priority:
    1. URL in the message → EXTRACT_RECIPE (overrides the classifier)
    2. MODIFY_RECIPE without an active recipe → ANSWER_QUESTION
    3. Classifier output, or ANSWER_QUESTION when there is none
    """
    if contains_url(user_message):
        if classified != ChatIntent.EXTRACT_RECIPE:
            logger.info(f"[INTENT] URL in message, overriding {classified} → extract_recipe")
        return ChatIntent.EXTRACT_RECIPE

    intent = classified or ChatIntent.ANSWER_QUESTION
    if intent == ChatIntent.MODIFY_RECIPE and not recipe_active:
        logger.info("[INTENT] modify_recipe without active recipe → answer_question")
        return ChatIntent.ANSWER_QUESTION
    return intent
