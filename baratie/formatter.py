"""
Recipe and conversation formatters.

Transforms Recipe / ChatMessage objects into text for LLM prompts.
"""
from typing import List, Optional

from baratie.models import ChatMessage, ItemList, MessageType, Recipe, flatten


def format_item_list(items: ItemList, numbered: bool = False) -> str:
    """Render a flat or sectioned list, one item per line."""
    def _render(entries: List[str]) -> List[str]:
        if numbered:
            return [f"{i}. {entry}" for i, entry in enumerate(entries, 1)]
        return [f"- {entry}" for entry in entries]

    if items.kind == "sectioned":
        lines = []
        for section in items.sections:
            if section.title:
                lines.append(f"{section.title}:")
            lines.extend(_render(section.items))
        return "\n".join(lines)
    return "\n".join(_render(items.items))


def format_recipe_for_llm(recipe: Optional[Recipe]) -> str:
    if recipe is None:
        return "(no active recipe)"

    parts = [f"TITLE: {recipe.title}"]
    if recipe.servings:
        parts.append(f"SERVINGS: {recipe.servings}")
    parts.append("INGREDIENTS:\n" + format_item_list(recipe.ingredients))
    parts.append("INSTRUCTIONS:\n" + format_item_list(recipe.instructions, numbered=True))
    return "\n".join(parts)


def recipe_to_json_payload(recipe: Recipe) -> dict:
    """Flat {title, ingredients, instructions} dict used inside prompts."""
    return {
        "title": recipe.title,
        "ingredients": flatten(recipe.ingredients),
        "instructions": flatten(recipe.instructions),
    }


_ROLE_LABELS = {
    MessageType.USER: "User",
    MessageType.SYSTEM: "Assistant",
    MessageType.RECIPE_PREVIEW: "Assistant",
    MessageType.RECIPE_SUGGESTION: "Assistant",
}


def format_history(messages: List[ChatMessage], last_n: int = 6, max_chars: int = 300) -> str:
    """Last N user/assistant turns as "Role: text" lines. Loading placeholders are skipped."""
    lines = []
    for msg in messages:
        role = _ROLE_LABELS.get(msg.type)
        if role is None:
            continue
        text = msg.text or ""
        if msg.recipe is not None:
            text = f"{text} [recipe: {msg.recipe.title}]".strip()
        if msg.suggestions:
            titles = ", ".join(s.title for s in msg.suggestions)
            text = f"{text} [suggested: {titles}]".strip()
        if text:
            lines.append(f"{role}: {text[:max_chars]}")
    return "\n".join(lines[-last_n:])
