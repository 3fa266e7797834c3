"""
Image/PDF recipe agent.

Every upload first passes a relevance gate ({isCooking, isRecipe}):
- not cooking related  → short answer saying what the file shows
- cooking, no recipe   → ingredient identification answer
- recipe               → full extraction
"""
import logging
from typing import Dict, List, Optional

from app.ai_proxy import AIProxyClient, MalformedResponseError
from app.clients import ai_client
from app.prompt_builder import (
    IMAGE_RELEVANCE_PROMPT,
    build_prompt_extract_files,
    build_prompt_identify_ingredient,
)
from baratie.models import AgentOutcome, AttachedFile
from baratie.parsing import extract_json_object, parse_recipe_text
from baratie.validation import validate_candidate

logger = logging.getLogger(__name__)

NOT_COOKING_MESSAGE = (
    "That doesn't look like food or a recipe{detail}. "
    "Share a photo of a recipe or an ingredient, a link, or paste the recipe text."
)


class VisionAnalysisError(Exception):
    """Raised when vision analysis fails."""
    pass


async def classify_files(files: List[AttachedFile], ai: Optional[AIProxyClient] = None) -> Dict:
    """
    Relevance gate.

    Returns:
        {"isCooking": bool, "isRecipe": bool, "message": str}

    Raises:
        VisionAnalysisError: if the gate call fails
    """
    ai = ai or ai_client
    try:
        raw = await ai.generate_json(IMAGE_RELEVANCE_PROMPT, files=files)
    except Exception as e:
        raise VisionAnalysisError(f"Could not analyze the attached file: {e}") from e

    result = {
        "isCooking": bool(raw.get("isCooking")),
        "isRecipe": bool(raw.get("isRecipe")),
        "message": str(raw.get("message") or ""),
    }
    # a recipe is always cooking related
    if result["isRecipe"]:
        result["isCooking"] = True
    logger.info(f"[VISION] gate → cooking={result['isCooking']} recipe={result['isRecipe']}")
    return result


async def identify_ingredient(
    files: List[AttachedFile],
    user_message: str = "",
    ai: Optional[AIProxyClient] = None,
) -> str:
    ai = ai or ai_client
    text = await ai.generate(build_prompt_identify_ingredient(user_message), files=files)
    return text.strip() or "I couldn't identify the ingredient in that image."


async def extract_recipe_from_files(
    files: List[AttachedFile],
    user_message: str = "",
    ai: Optional[AIProxyClient] = None,
) -> AgentOutcome:
    """
    Run the gate, then either answer or extract.

    Raises:
        VisionAnalysisError: gate failure
        AIRequestError: extraction call failure
        InvalidRecipeError: extracted candidate failed validation
    """
    ai = ai or ai_client
    gate = await classify_files(files, ai=ai)

    if not gate["isCooking"]:
        detail = f" ({gate['message']})" if gate["message"] else ""
        return AgentOutcome(answer=NOT_COOKING_MESSAGE.format(detail=detail))

    if not gate["isRecipe"]:
        return AgentOutcome(answer=await identify_ingredient(files, user_message, ai=ai))

    text = await ai.generate(build_prompt_extract_files(user_message), files=files)
    candidate = extract_json_object(text)
    if candidate is None:
        if not text.strip():
            raise MalformedResponseError("Empty reply from recipe extraction")
        candidate = parse_recipe_text(text)
    return AgentOutcome(recipe=validate_candidate(candidate))
