"""
Section detection agent.

Groups flat ingredient/instruction lists into named sub-recipes. Never
raises: any failure means "no sections".
"""
import logging
from typing import List, Optional

from app.ai_proxy import AIProxyClient
from app.clients import ai_client
from app.prompt_builder import build_prompt_sections
from baratie.models import Recipe, SectionDetectionResult
from baratie.sections import should_detect_sections, build_section_result, apply_sections

logger = logging.getLogger(__name__)


async def detect_sections(
    ingredients: List[str],
    instructions: List[str],
    ai: Optional[AIProxyClient] = None,
) -> SectionDetectionResult:
    """
    Ask the model for sections. Lists with fewer than 5 items each skip the
    call entirely.
    """
    if not should_detect_sections(ingredients, instructions):
        return SectionDetectionResult(has_sections=False)

    ai = ai or ai_client
    try:
        raw = await ai.generate_json(build_prompt_sections(ingredients, instructions))
        result = build_section_result(raw, ingredients, instructions)
    except Exception as e:
        logger.warning(f"[SECTIONS] Detection failed (non-fatal): {e}")
        return SectionDetectionResult(has_sections=False)

    if result.has_sections:
        logger.info(
            f"[SECTIONS] {len(result.ingredient_sections)} ingredient / "
            f"{len(result.instruction_sections)} instruction sections"
        )
    return result


async def add_sections(recipe: Recipe, ai: Optional[AIProxyClient] = None) -> Recipe:
    """Section a freshly extracted recipe whose lists are still flat."""
    if recipe.ingredients.kind != "flat" or recipe.instructions.kind != "flat":
        return recipe
    result = await detect_sections(recipe.ingredients.items, recipe.instructions.items, ai=ai)
    return apply_sections(recipe, result)
