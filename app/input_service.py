"""
Input processing service.

Intent classification for a chat turn, via OpenAI tool-calling: the
model must call exactly one of four functions and the function name is
the intent.
"""
import logging
from typing import Optional, Any

from app.clients import openai_client, OPENAI_MODEL, INTENT_TIMEOUT
from app.chat_modes import ChatIntent, coerce_intent, resolve_intent
from app.prompt_builder import INTENT_SYSTEM_PROMPT, INTENT_TOOLS, build_intent_user_message

logger = logging.getLogger(__name__)


# ── Intent classifier ─────────────────────────────────────────────────

async def classify_intent(
    user_message: str,
    has_files: bool,
    recipe_active: bool,
    client: Optional[Any] = None,
) -> ChatIntent:
    """
    Raw classifier output. On any error: ANSWER_QUESTION (non-destructive path).

    Args:
        user_message: current chat text
        has_files: whether files are attached to this turn
        recipe_active: whether a recipe is currently active
        client: AsyncOpenAI-compatible client (defaults to the app singleton)
    """
    client = client or openai_client
    try:
        response = await client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": INTENT_SYSTEM_PROMPT},
                {"role": "user", "content": build_intent_user_message(user_message, has_files, recipe_active)},
            ],
            tools=INTENT_TOOLS,
            tool_choice="required",
            temperature=0.0,
            timeout=INTENT_TIMEOUT,
        )
        tool_calls = response.choices[0].message.tool_calls or []
        if not tool_calls:
            logger.warning("[INTENT] classifier returned no tool call, defaulting to answer_question")
            return ChatIntent.ANSWER_QUESTION
        intent = coerce_intent(tool_calls[0].function.name)
        logger.info(f"[INTENT] classify_intent → {intent.value}")
        return intent
    except Exception as e:
        logger.warning(f"[INTENT] classify_intent failed (non-fatal): {e}")
        return ChatIntent.ANSWER_QUESTION


async def determine_intent(
    user_message: str,
    has_files: bool,
    recipe_active: bool,
    client: Optional[Any] = None,
) -> ChatIntent:
    """
    Final intent for a turn: classifier output with the URL override and
    the no-recipe demotion applied.
    """
    classified = await classify_intent(user_message, has_files, recipe_active, client=client)
    return resolve_intent(classified, user_message, recipe_active)
