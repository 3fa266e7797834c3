"""
Prompt builder for the recipe agents.

Every agent prompt lives here. Agents that need structured output ask for
JSON only; the reply is still scanned for the first JSON object because
models wrap it in prose or code fences anyway.
"""
import json
from typing import List, Optional

from baratie.models import Recipe
from baratie.formatter import format_recipe_for_llm, recipe_to_json_payload


RECIPE_JSON_SHAPE = """{
  "title": "Recipe name",
  "servings": 4,
  "prepTime": "15 minutes",
  "cookTime": "30 minutes",
  "ingredients": ["2 cups all-purpose flour", "1 tsp salt"],
  "instructions": ["Preheat the oven to 180°C.", "Mix the flour and salt."]
}"""

EXTRACTION_RULES = """RULES:
- Respond with ONLY a JSON object in the shape shown, no commentary.
- Keep ingredient quantities and units exactly as written.
- "instructions" holds only real steps, each a complete sentence. Do NOT include
  sub-recipe headings like "To Make the Sauce", "To Serve" or "To Store" as steps.
- Combine ingredients and steps from all parts of the recipe into single arrays,
  in the order they appear.
- If servings are not stated, infer a reasonable integer (2-8).
- If there is no recipe in the content, respond with {"title": "", "ingredients": [], "instructions": []}."""


# ── Intent ────────────────────────────────────────────────────────────

INTENT_SYSTEM_PROMPT = """You route messages for a cooking assistant. Call exactly one function:
- extract_recipe: the user shares recipe content (pasted recipe text, a link, an image or PDF of a recipe) and wants it turned into a recipe.
- modify_recipe: the user wants to change the active recipe (scale, substitute, make it spicier, vegan, ...). Only possible when a recipe is active.
- suggest_recipes: the user asks for ideas or recommendations of what to cook.
- answer_question: anything else, including cooking questions, technique questions and small talk."""

INTENT_TOOLS = [
    {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": {}},
        },
    }
    for name, description in [
        ("answer_question", "Answer a cooking question or chat about the current recipe."),
        ("suggest_recipes", "Suggest recipes the user could cook."),
        ("modify_recipe", "Modify the currently active recipe."),
        ("extract_recipe", "Extract a structured recipe from text, a link or attached files."),
    ]
]


def build_intent_user_message(user_message: str, has_files: bool, recipe_active: bool) -> str:
    return (
        f"Context: {'Recipe Active' if recipe_active else 'No Recipe'}\n"
        f"Has File: {'yes' if has_files else 'no'}\n"
        f"Message: {user_message}"
    )


# ── Extraction ────────────────────────────────────────────────────────

def build_prompt_extract_text(text: str) -> str:
    return f"""Extract the recipe from the following text.

TEXT:
{text}

Return JSON in this shape:
{RECIPE_JSON_SHAPE}

{EXTRACTION_RULES}"""


def build_prompt_extract_webpage(url: str, page_text: str, user_message: str = "") -> str:
    request = f"\nUSER REQUEST: {user_message}\n" if user_message else ""
    return f"""Extract the recipe from this webpage ({url}).
{request}
PAGE CONTENT:
{page_text}

Return JSON in this shape:
{RECIPE_JSON_SHAPE}

{EXTRACTION_RULES}"""


def build_prompt_extract_video(
    title: str,
    channel: str,
    transcript: Optional[str] = None,
    description: Optional[str] = None,
    pinned_comment: Optional[str] = None,
) -> str:
    parts = [f"YOUTUBE VIDEO: {title}", f"CHANNEL: {channel}"]
    if transcript:
        parts.append(f"TRANSCRIPT:\n{transcript}")
    if description:
        parts.append(f"VIDEO DESCRIPTION:\n{description}")
    if pinned_comment:
        parts.append(f"PINNED COMMENT:\n{pinned_comment}")
    content = "\n\n".join(parts)
    return f"""Extract the recipe from this YouTube video content. The recipe may be spoken in
the transcript, written in the description or posted in a pinned comment.

{content}

Return JSON in this shape:
{RECIPE_JSON_SHAPE}

{EXTRACTION_RULES}"""


# ── Images / PDFs ─────────────────────────────────────────────────────

IMAGE_RELEVANCE_PROMPT = """Analyze the attached file and determine:
1. Is it cooking or food related?
2. Does it contain a recipe (ingredient list and/or steps)?

Respond with ONLY JSON:
{
  "isCooking": true,
  "isRecipe": false,
  "message": "brief description of what you see"
}

Examples:
- Recipe card, cookbook page, recipe screenshot → isCooking: true, isRecipe: true
- Photo of an ingredient or a dish → isCooking: true, isRecipe: false
- Anything else → isCooking: false, isRecipe: false"""


def build_prompt_extract_files(user_message: str = "") -> str:
    request = f"\nUSER REQUEST: {user_message}\n" if user_message else ""
    return f"""Extract the complete recipe from the attached file(s). Read all text, including
handwritten notes. If the recipe spans several files, combine them in order.
{request}
Return JSON in this shape:
{RECIPE_JSON_SHAPE}

{EXTRACTION_RULES}"""


def build_prompt_identify_ingredient(user_message: str = "") -> str:
    question = f"\nThe user asks: {user_message}\n" if user_message else ""
    return f"""What food item or ingredient is shown in this image?
{question}
Give a brief, helpful answer (under 120 words) covering:
- What it is
- How it is typically used in cooking
- One or two dishes it works well in"""


# ── Enrichment ────────────────────────────────────────────────────────

def build_prompt_sections(ingredients: List[str], instructions: List[str]) -> str:
    ing = "\n".join(f"{i}. {item}" for i, item in enumerate(ingredients, 1))
    steps = "\n".join(f"{i}. {item}" for i, item in enumerate(instructions, 1))
    return f"""Analyze this recipe and determine whether it has distinct preparation sections.

INGREDIENTS:
{ing}

INSTRUCTIONS:
{steps}

Typical sections: Marinade, Base / Gravy / Sauce, Main dish / Curry, Garnish / Topping,
Dough / Batter, Filling / Stuffing, Dressing / Glaze.

Respond with ONLY JSON:
{{
  "hasSections": true,
  "ingredientSections": [{{"title": "Marination", "items": ["..."]}}],
  "instructionSections": [{{"title": "Marination", "items": ["..."]}}]
}}

If there are no clear sections, set "hasSections" to false with empty arrays.
Every original ingredient and instruction must appear exactly once, unchanged and in
the original order."""


def build_prompt_nutrition(title: str, ingredients: List[str]) -> str:
    lines = "\n".join(f"- {item}" for item in ingredients)
    return f"""Estimate the nutrition for this recipe. Give TOTALS for the ENTIRE recipe,
not per serving.

RECIPE: {title}
INGREDIENTS:
{lines}

Respond with ONLY JSON (numbers only, grams for macros):
{{
  "calories": 2400,
  "protein": 120,
  "carbs": 250,
  "fat": 90,
  "fiber": 20
}}"""


# ── Conversation ──────────────────────────────────────────────────────

def build_prompt_answer(question: str, recipe: Optional[Recipe], history: str = "") -> str:
    context = f"CURRENT RECIPE:\n{format_recipe_for_llm(recipe)}\n\n" if recipe else ""
    past = f"CONVERSATION SO FAR:\n{history}\n\n" if history else ""
    return f"""You are a friendly, practical cooking assistant.

{context}{past}QUESTION: {question}

Answer concisely (under 150 words). If the question is about the current recipe,
refer to its actual ingredients and steps."""


def build_prompt_validate_message(message: str) -> str:
    return f"""Is the following message related to cooking, food, recipes, ingredients,
kitchen techniques or nutrition?

MESSAGE: {message}

Respond with ONLY JSON: {{"isValid": true}} or {{"isValid": false}}"""


def build_prompt_suggest(request: str, history: str = "") -> str:
    past = f"CONVERSATION SO FAR:\n{history}\n\n" if history else ""
    return f"""You suggest recipes for a home cook.

{past}REQUEST: {request}

Suggest exactly 4 different dishes. Respond with ONLY JSON:
{{
  "text": "one friendly sentence introducing the ideas",
  "suggestions": [
    {{"title": "Dish name", "description": "one sentence on why it fits"}}
  ]
}}"""


def build_prompt_modify(recipe: Recipe, request: str, history: str = "") -> str:
    past = f"CONVERSATION SO FAR:\n{history}\n\n" if history else ""
    current = json.dumps(recipe_to_json_payload(recipe), ensure_ascii=False, indent=2)
    return f"""Modify this recipe as requested.

CURRENT RECIPE:
{current}

{past}REQUESTED CHANGE: {request}

Return the COMPLETE updated recipe. Respond with ONLY JSON:
{{
  "title": "...",
  "ingredients": ["..."],
  "instructions": ["..."],
  "changesDescription": "one or two sentences describing what changed"
}}"""


def build_prompt_generate(title: str, description: str = "", history: str = "") -> str:
    details = f"\nDESCRIPTION: {description}" if description else ""
    past = f"\n\nCONVERSATION CONTEXT:\n{history}" if history else ""
    return f"""Write a complete, detailed recipe for "{title}".{details}{past}

Return JSON in this shape:
{RECIPE_JSON_SHAPE}

{EXTRACTION_RULES}"""
