"""
Conversation / recipe state machine.

handle_turn() runs one chat turn against a RecipeSession:
append the user message → show one loading placeholder → resolve the
intent → run the agent → replace the placeholder with the outcome.
The placeholder is removed on every path, including failures.
"""
import logging
from typing import List, Optional, Set

from app.ai_proxy import AIRequestError, MalformedResponseError
from app.chat_modes import ChatIntent, find_url
from app.clients import LAST_N
from app.extraction_service import extract_recipe
from app.input_service import determine_intent
from app.nutrition_service import NutritionScheduler
from app.recipe_service import answer_question, suggest_recipes, modify_recipe, generate_recipe
from app.section_service import add_sections
from app.session_state import RecipeSession
from app.vision_service import VisionAnalysisError
from app.youtube_service import PlatformRequestError
from baratie.captions import CaptionsUnavailableError
from baratie.formatter import format_history
from baratie.models import AttachedFile, ChatMessage, MessageType, Recipe
from baratie.validation import InvalidRecipeError

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = "Sorry, something went wrong while processing your message. Please try again."

LOADING_TEXT = {
    ChatIntent.EXTRACT_RECIPE: "Extracting the recipe...",
    ChatIntent.MODIFY_RECIPE: "Updating the recipe...",
    ChatIntent.SUGGEST_RECIPES: "Finding recipe ideas...",
    ChatIntent.ANSWER_QUESTION: "Thinking...",
}

nutrition_scheduler = NutritionScheduler()

# Sessions with a turn in flight. Turns on one session are never interleaved.
_in_flight: Set[str] = set()


class SessionBusyError(Exception):
    """Raised when a turn is started while another turn on the session is running."""
    pass


class SuggestionNotFoundError(Exception):
    """Raised when a selected suggestion does not exist."""
    pass


def is_busy(session_id: str) -> bool:
    """True while a turn or suggestion selection is running for the session."""
    return session_id in _in_flight


def user_facing_error(error: Exception) -> str:
    """Message shown in place of a failed agent call. Never a stack trace."""
    if isinstance(error, (InvalidRecipeError, VisionAnalysisError)):
        return str(error)
    if isinstance(error, CaptionsUnavailableError):
        return f"I couldn't read that video: {error}"
    if isinstance(error, PlatformRequestError):
        status = f" (HTTP {error.status_code})" if error.status_code else ""
        return f"I couldn't load that content{status}. Check the link and try again."
    if isinstance(error, (AIRequestError, MalformedResponseError)):
        return "The recipe assistant is having trouble right now. Please try again in a moment."
    return GENERIC_APOLOGY


# ── Turn handlers ─────────────────────────────────────────────────────

async def _activate_recipe(
    session: RecipeSession,
    recipe: Recipe,
    text: str,
    scheduler: NutritionScheduler,
) -> None:
    session.clear_loading()
    session.set_recipe(recipe)
    session.add_message(ChatMessage(type=MessageType.RECIPE_PREVIEW, text=text, recipe=session.recipe))
    scheduler.schedule(session)


async def _handle_extract(
    session: RecipeSession,
    user_message: str,
    files: List[AttachedFile],
    scheduler: NutritionScheduler,
) -> None:
    outcome = await extract_recipe(user_message, files, url=find_url(user_message))
    if outcome.recipe is None:
        session.clear_loading()
        session.add_system_message(outcome.answer or GENERIC_APOLOGY)
        return

    recipe = await add_sections(outcome.recipe)
    await _activate_recipe(session, recipe, f"Here's the recipe for {recipe.title}.", scheduler)


async def _handle_modify(
    session: RecipeSession,
    user_message: str,
    history: str,
    scheduler: NutritionScheduler,
) -> None:
    updated, changes = await modify_recipe(session.recipe, user_message, history)
    updated = await add_sections(updated)

    session.clear_loading()
    session.replace_recipe_content(updated.title, updated.ingredients, updated.instructions)
    session.add_message(ChatMessage(type=MessageType.RECIPE_PREVIEW, text=changes, recipe=session.recipe))
    scheduler.schedule(session)


async def _handle_suggest(session: RecipeSession, user_message: str, history: str) -> None:
    intro, suggestions = await suggest_recipes(user_message, history)
    session.clear_loading()
    session.add_message(ChatMessage(type=MessageType.RECIPE_SUGGESTION, text=intro, suggestions=suggestions))


async def _handle_answer(session: RecipeSession, user_message: str, history: str) -> None:
    answer = await answer_question(user_message, session.recipe, history)
    session.clear_loading()
    session.add_system_message(answer)


# ── Main entry point ──────────────────────────────────────────────────

async def handle_turn(
    session: RecipeSession,
    user_message: str,
    files: Optional[List[AttachedFile]] = None,
    scheduler: Optional[NutritionScheduler] = None,
) -> List[ChatMessage]:
    """
    Run one chat turn. Returns the messages appended during the turn.

    Agent failures never propagate: they become a system message.

    Raises:
        SessionBusyError: another turn on this session is still running
    """
    if session.id in _in_flight:
        raise SessionBusyError(f"A message is already being processed for session {session.id}")
    _in_flight.add(session.id)
    scheduler = scheduler or nutrition_scheduler

    try:
        start = len(session.messages)
        files = list(files or []) + session.take_files()
        history = format_history(session.messages, last_n=LAST_N)
        session.add_message(ChatMessage(
            type=MessageType.USER,
            text=user_message,
            attached_files=files or None,
        ))
        session.show_loading(LOADING_TEXT[ChatIntent.ANSWER_QUESTION])

        try:
            intent = await determine_intent(user_message, bool(files), session.recipe is not None)
            # attached files always go through the image agent's relevance gate
            if files and intent == ChatIntent.ANSWER_QUESTION:
                intent = ChatIntent.EXTRACT_RECIPE
            logger.info(f"[CHAT] {session.id}: intent={intent.value} files={len(files)}")
            session.show_loading(LOADING_TEXT[intent])

            if intent == ChatIntent.EXTRACT_RECIPE:
                await _handle_extract(session, user_message, files, scheduler)
            elif intent == ChatIntent.MODIFY_RECIPE:
                await _handle_modify(session, user_message, history, scheduler)
            elif intent == ChatIntent.SUGGEST_RECIPES:
                await _handle_suggest(session, user_message, history)
            else:
                await _handle_answer(session, user_message, history)
        except Exception as e:
            logger.warning(f"[CHAT] {session.id}: turn failed: {type(e).__name__}: {e}")
            session.clear_loading()
            session.add_system_message(user_facing_error(e))
        finally:
            session.clear_loading()

        return session.messages[start:]
    finally:
        _in_flight.discard(session.id)


async def select_suggestion(
    session: RecipeSession,
    message_id: str,
    index: int,
    scheduler: Optional[NutritionScheduler] = None,
) -> Optional[Recipe]:
    """
    Activate a suggestion from a recipe-suggestion message.

    Lite suggestions are turned into a full recipe first, using the
    suggestion's title plus recent conversation. Returns the active recipe,
    or None if generation failed (a system message explains why).

    Raises:
        SuggestionNotFoundError: unknown message or index
        SessionBusyError: another turn on this session is still running
    """
    message = session.find_message(message_id)
    if message is None or not message.suggestions or not 0 <= index < len(message.suggestions):
        raise SuggestionNotFoundError(f"No suggestion {index} in message {message_id}")
    if session.id in _in_flight:
        raise SessionBusyError(f"A message is already being processed for session {session.id}")
    _in_flight.add(session.id)
    scheduler = scheduler or nutrition_scheduler
    suggestion = message.suggestions[index]

    try:
        session.show_loading(f"Writing the full recipe for {suggestion.title}...")
        try:
            history = format_history(session.messages, last_n=LAST_N)
            recipe = await generate_recipe(suggestion, history)
            recipe = await add_sections(recipe)
            await _activate_recipe(session, recipe, f"Here's the recipe for {recipe.title}.", scheduler)
        except Exception as e:
            logger.warning(f"[CHAT] {session.id}: suggestion generation failed: {e}")
            session.clear_loading()
            session.add_system_message(user_facing_error(e))
            return None
        finally:
            session.clear_loading()
        return session.recipe
    finally:
        _in_flight.discard(session.id)
