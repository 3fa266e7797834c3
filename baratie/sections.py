"""
Section detection rules.

Decides when grouping is worth asking the model for, canonicalizes the
section titles it returns and applies an accepted grouping to a recipe.
No LLM calls here; see app.section_service for the agent.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from baratie.models import (
    Recipe,
    Section,
    SectionedList,
    SectionDetectionResult,
)

logger = logging.getLogger(__name__)

MIN_ITEMS_FOR_SECTIONS = 5

_LEADING_WORDS = re.compile(r"^\s*(for|the|to make)\b\s*", re.IGNORECASE)
_TRAILING_PUNCT = re.compile(r"\s*[:\-–—]+\s*$")


def should_detect_sections(ingredients: List[str], instructions: List[str]) -> bool:
    """Short recipes are never split; the model is not consulted for them."""
    return len(ingredients) >= MIN_ITEMS_FOR_SECTIONS or len(instructions) >= MIN_ITEMS_FOR_SECTIONS


def canonicalize_section_title(title: str) -> str:
    """
    "For Marination:" → "Marination", "To make the Curry -" → "Curry".

    Leading "For" / "The" / "To make" are stripped repeatedly so that
    "For the Sauce" also reduces to "Sauce".
    """
    text = str(title or "").strip()
    previous = None
    while text != previous:
        previous = text
        text = _LEADING_WORDS.sub("", text)
        text = _TRAILING_PUNCT.sub("", text).strip()
    return text


def _parse_sections(raw: Any) -> List[Section]:
    if not isinstance(raw, list):
        return []
    sections = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        items = [str(i).strip() for i in entry.get("items") or [] if str(i).strip()]
        if not items:
            continue
        sections.append(Section(title=canonicalize_section_title(entry.get("title", "")), items=items))
    return sections


def preserves_items(sections: List[Section], original: List[str]) -> bool:
    """True if the sections hold exactly the original items in the original order."""
    flattened = [item for section in sections for item in section.items]
    return flattened == [item.strip() for item in original if item.strip()]


def build_section_result(
    raw: Optional[Dict[str, Any]],
    ingredients: Optional[List[str]] = None,
    instructions: Optional[List[str]] = None,
) -> SectionDetectionResult:
    """
    Shape a model reply into a SectionDetectionResult.

    Sections are only adopted when both the ingredient and the instruction
    lists come back non-empty. When the original lists are given, the
    sections must also reproduce them exactly (nothing dropped, duplicated
    or reordered).
    """
    if not raw or not raw.get("hasSections"):
        return SectionDetectionResult(has_sections=False)

    ingredient_sections = _parse_sections(raw.get("ingredientSections"))
    instruction_sections = _parse_sections(raw.get("instructionSections"))
    if not ingredient_sections or not instruction_sections:
        logger.info("Partial section response, keeping flat lists")
        return SectionDetectionResult(has_sections=False)

    if ingredients is not None and not preserves_items(ingredient_sections, ingredients):
        logger.info("Ingredient sections do not match the original list, keeping flat lists")
        return SectionDetectionResult(has_sections=False)
    if instructions is not None and not preserves_items(instruction_sections, instructions):
        logger.info("Instruction sections do not match the original list, keeping flat lists")
        return SectionDetectionResult(has_sections=False)

    return SectionDetectionResult(
        has_sections=True,
        ingredient_sections=ingredient_sections,
        instruction_sections=instruction_sections,
    )


def apply_sections(recipe: Recipe, result: SectionDetectionResult) -> Recipe:
    """Return a copy of recipe using the detected sections, or recipe unchanged."""
    if not result.has_sections:
        return recipe
    return recipe.model_copy(update={
        "ingredients": SectionedList(sections=result.ingredient_sections),
        "instructions": SectionedList(sections=result.instruction_sections),
    })
