"""
Nutrition estimation agent and its debounced background scheduler.

Estimates are whole-recipe totals. They run as a cancellable asyncio task
per session, started after a quiet period following the last recipe
change, and are discarded if the recipe changed while the call was in
flight.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from app.ai_proxy import AIProxyClient
from app.clients import ai_client, NUTRITION_DEBOUNCE_SECONDS
from app.prompt_builder import build_prompt_nutrition
from baratie.models import ItemList, NutritionInfo, Recipe, flatten
from baratie.nutrition import parse_nutrition

logger = logging.getLogger(__name__)


async def calculate_nutrition(
    title: str,
    ingredients: ItemList,
    ai: Optional[AIProxyClient] = None,
) -> Optional[NutritionInfo]:
    """
    Whole-recipe nutrition estimate, or None.

    Sectioned ingredients are flattened first. Empty ingredient lists and
    any failure return None without raising.
    """
    items = flatten(ingredients)
    if not items:
        return None

    ai = ai or ai_client
    try:
        raw = await ai.generate_json(build_prompt_nutrition(title, items))
    except Exception as e:
        logger.warning(f"[NUTRITION] Estimate failed for '{title}': {e}")
        return None
    return parse_nutrition(raw)


async def ensure_nutrition(recipe: Recipe, ai: Optional[AIProxyClient] = None) -> Optional[NutritionInfo]:
    """Existing nutrition is returned as-is without a model call."""
    if recipe.nutrition is not None:
        return recipe.nutrition
    return await calculate_nutrition(recipe.title, recipe.ingredients, ai=ai)


Calculator = Callable[[str, ItemList], Awaitable[Optional[NutritionInfo]]]


class NutritionScheduler:
    """
    One pending estimate per session.

    schedule() cancels whatever is pending for the session and starts a new
    debounced task keyed by the recipe's identity. The result is applied
    only if the session still holds a recipe with the same title and
    identity when it arrives.
    """

    def __init__(self, delay: float = NUTRITION_DEBOUNCE_SECONDS, calculate: Optional[Calculator] = None):
        self.delay = delay
        self._calculate = calculate or calculate_nutrition
        self._tasks: Dict[str, asyncio.Task] = {}
        self._keys: Dict[str, tuple] = {}

    def pending_key(self, session_id: str) -> Optional[tuple]:
        task = self._tasks.get(session_id)
        if task is None or task.done():
            return None
        return self._keys.get(session_id)

    def schedule(self, session) -> Optional[asyncio.Task]:
        """
        (Re)start the estimate for session.recipe. Requires a running event loop.

        Returns the task, or None when there is nothing to compute.
        """
        self.cancel(session.id)
        recipe = session.recipe
        if recipe is None or recipe.nutrition is not None:
            return None

        key = recipe.identity()
        task = asyncio.create_task(self._run(session, recipe, key))
        self._tasks[session.id] = task
        self._keys[session.id] = key
        task.add_done_callback(lambda t, sid=session.id: self._forget(sid, t))
        return task

    def cancel(self, session_id: str) -> bool:
        """Cancel the pending estimate for a session. Returns True if one was pending."""
        task = self._tasks.pop(session_id, None)
        self._keys.pop(session_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"[NUTRITION] Cancelled pending estimate for session {session_id}")
        return True

    def cancel_all(self) -> None:
        for session_id in list(self._tasks):
            self.cancel(session_id)

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            self._tasks.pop(session_id, None)
            self._keys.pop(session_id, None)

    async def _run(self, session, recipe: Recipe, key: tuple) -> Optional[NutritionInfo]:
        await asyncio.sleep(self.delay)
        nutrition = await self._calculate(recipe.title, recipe.ingredients)
        if nutrition is None:
            return None

        session.reload()
        current = session.recipe
        if current is None or current.title != recipe.title or current.identity() != key:
            logger.info(f"[NUTRITION] Discarding stale estimate for '{recipe.title}'")
            return None
        if current.nutrition is not None:
            return current.nutrition

        session.set_nutrition(nutrition)
        logger.info(f"[NUTRITION] '{recipe.title}': {nutrition.calories} kcal total")
        return nutrition
