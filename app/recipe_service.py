"""
Conversational recipe agents: answer, suggest, modify, generate.
"""
import logging
from typing import List, Optional, Tuple

from app.ai_proxy import AIProxyClient, MalformedResponseError
from app.clients import ai_client
from app.prompt_builder import (
    build_prompt_answer,
    build_prompt_validate_message,
    build_prompt_suggest,
    build_prompt_modify,
    build_prompt_generate,
)
from baratie.models import Recipe, RecipeSuggestion, FlatList, to_item_list, is_empty
from baratie.parsing import extract_json_object, parse_recipe_text
from baratie.validation import (
    InvalidRecipeError,
    sanitize_title,
    is_apology_title,
    filter_instruction_headings,
    validate_candidate,
)

logger = logging.getLogger(__name__)

SUGGESTION_COUNT = 4
OFF_TOPIC_MESSAGE = (
    "I'm your cooking assistant, so I can only help with recipes, ingredients "
    "and kitchen questions. Share a recipe or ask me what to cook!"
)
MODIFY_FAILED_MESSAGE = "I couldn't apply that change to the recipe. Try rephrasing the request."


# ── Questions ─────────────────────────────────────────────────────────

async def validate_cooking_message(message: str, ai: Optional[AIProxyClient] = None) -> bool:
    """True if the message is cooking related. Fails open: errors count as valid."""
    ai = ai or ai_client
    try:
        raw = await ai.generate_json(build_prompt_validate_message(message))
    except Exception as e:
        logger.warning(f"[VALIDATE] Cooking check failed (allowing message): {e}")
        return True
    return bool(raw.get("isValid", True))


async def answer_question(
    question: str,
    recipe: Optional[Recipe] = None,
    history: str = "",
    ai: Optional[AIProxyClient] = None,
) -> str:
    """
    Free-form answer. Without an active recipe the question is first checked
    for being cooking related.
    """
    ai = ai or ai_client
    if recipe is None and not await validate_cooking_message(question, ai=ai):
        return OFF_TOPIC_MESSAGE

    text = await ai.generate(build_prompt_answer(question, recipe, history))
    return text.strip() or "I'm not sure how to answer that. Could you rephrase?"


# ── Suggestions ───────────────────────────────────────────────────────

async def suggest_recipes(
    request: str,
    history: str = "",
    ai: Optional[AIProxyClient] = None,
) -> Tuple[str, List[RecipeSuggestion]]:
    """
    Four lite suggestions (title + description) and an intro line.

    Raises:
        AIRequestError / MalformedResponseError: upstream failure
    """
    ai = ai or ai_client
    raw = await ai.generate_json(build_prompt_suggest(request, history))

    suggestions = []
    for entry in raw.get("suggestions") or []:
        if not isinstance(entry, dict):
            continue
        title = sanitize_title(entry.get("title"))
        if not title or is_apology_title(title):
            continue
        suggestions.append(RecipeSuggestion(
            title=title,
            description=str(entry.get("description") or "").strip(),
            ingredients=[str(i) for i in entry.get("ingredients") or []],
            instructions=[str(i) for i in entry.get("instructions") or []],
        ))

    if not suggestions:
        raise MalformedResponseError("No usable suggestions in model reply")
    intro = str(raw.get("text") or "Here are a few ideas:").strip()
    return intro, suggestions[:SUGGESTION_COUNT]


async def generate_recipe(
    suggestion: RecipeSuggestion,
    history: str = "",
    ai: Optional[AIProxyClient] = None,
) -> Recipe:
    """
    Full recipe for a suggestion. Suggestions that already carry ingredients
    are converted without a model call.
    """
    if not suggestion.is_lite:
        return validate_candidate({
            "title": suggestion.title,
            "ingredients": suggestion.ingredients,
            "instructions": suggestion.instructions,
        })

    ai = ai or ai_client
    text = await ai.generate(build_prompt_generate(suggestion.title, suggestion.description, history))
    candidate = extract_json_object(text) or parse_recipe_text(text)
    return validate_candidate(candidate)


# ── Modification ──────────────────────────────────────────────────────

async def modify_recipe(
    recipe: Recipe,
    request: str,
    history: str = "",
    ai: Optional[AIProxyClient] = None,
) -> Tuple[Recipe, str]:
    """
    Apply a change request. Returns (updated recipe, changes description).

    Title, ingredients and instructions are replaced together; the caller
    commits them in one step.

    Raises:
        InvalidRecipeError: the model returned an unusable recipe
    """
    ai = ai or ai_client
    raw = await ai.generate_json(build_prompt_modify(recipe, request, history))

    title = sanitize_title(raw.get("title")) or recipe.title
    if is_apology_title(title):
        raise InvalidRecipeError(MODIFY_FAILED_MESSAGE)

    ingredients = to_item_list(raw.get("ingredients"))
    instructions = to_item_list(raw.get("instructions"))
    if is_empty(ingredients) or is_empty(instructions):
        raise InvalidRecipeError(MODIFY_FAILED_MESSAGE)
    if instructions.kind == "flat":
        instructions = FlatList(items=filter_instruction_headings(instructions.items))

    updated = recipe.model_copy(update={
        "title": title,
        "ingredients": ingredients,
        "instructions": instructions,
        "nutrition": None,
    })
    changes = str(raw.get("changesDescription") or "").strip() or f"Updated the recipe: {request}"
    return updated, changes
