"""
Parsing of free-text model replies.

Models wrap their JSON in prose or code fences, so replies are scanned for
the first balanced {...} object instead of being parsed whole. When no JSON
is present at all, parse_recipe_text() recovers a recipe from headed plain
text ("Ingredients:" / "Instructions:").
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def iter_brace_objects(text: str):
    """Yield every balanced top-level {...} substring, left to right."""
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Return the first balanced brace-delimited object in text that parses as JSON.

    Returns None if the text contains no such object.
    """
    if not text:
        return None
    for candidate in iter_brace_objects(text):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    return None


# ── Plain-text fallback ───────────────────────────────────────────────

_TITLE_LINE = re.compile(r"^(?:recipe|title)\s*:\s*(.+)$", re.IGNORECASE)
_INGREDIENTS_HEADING = re.compile(r"^\W*ingredients?\b", re.IGNORECASE)
_INSTRUCTIONS_HEADING = re.compile(r"^\W*(instructions?|directions?|steps?|method)\b", re.IGNORECASE)
_BULLET = re.compile(r"^[-•*]\s*")
_STEP_NUMBER = re.compile(r"^(\d+)[.)]\s*(.+)")
_METADATA_LINE = re.compile(r"^(ingredients?|instructions?|directions?|steps?|title|recipe)\s*:", re.IGNORECASE)


def parse_recipe_text(text: str) -> Dict[str, Any]:
    """
    Heuristic recipe parser for replies that contain no JSON.

    Returns a raw candidate dict {title, ingredients, instructions} that
    still has to go through validation.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    title = ""
    for line in lines:
        match = _TITLE_LINE.match(line)
        if match:
            title = match.group(1).strip()
            break
    if not title and lines and not _INGREDIENTS_HEADING.match(lines[0]):
        title = lines[0]

    ing_start = next((i for i, l in enumerate(lines) if _INGREDIENTS_HEADING.match(l)), -1)
    inst_start = next(
        (i for i, l in enumerate(lines) if i > ing_start and _INSTRUCTIONS_HEADING.match(l)),
        -1,
    )

    ingredients: List[str] = []
    if ing_start != -1:
        end = inst_start if inst_start != -1 else len(lines)
        for line in lines[ing_start + 1:end]:
            item = _BULLET.sub("", line).strip()
            if item:
                ingredients.append(item)

    instructions: List[str] = []
    if inst_start != -1:
        current = ""
        for line in lines[inst_start + 1:]:
            step = _STEP_NUMBER.match(line)
            if step:
                if current:
                    instructions.append(current.strip())
                current = step.group(2)
            elif current:
                # continuation of a multi-line step
                current += " " + _BULLET.sub("", line)
            elif not _METADATA_LINE.match(line):
                current = _BULLET.sub("", line)
        if current.strip():
            instructions.append(current.strip())

    return {"title": title, "ingredients": ingredients, "instructions": instructions}
