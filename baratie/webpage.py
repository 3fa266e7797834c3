"""
Webpage cleanup for recipe extraction.

Reduces raw HTML to bounded plain text for the model, and reads a
schema.org Recipe from JSON-LD when the page publishes one.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 15000
STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "form", "svg", "iframe"]


def clean_html(html: str, max_chars: int = MAX_PAGE_CHARS) -> str:
    """
    Visible page text with page chrome removed, whitespace collapsed and
    truncated to max_chars.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    text = soup.get_text(separator="\n")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    text = "\n".join(line.strip() for line in text.split("\n")).strip()
    text = re.sub(r"\n{3,}", "\n\n", text)

    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def page_title(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


# ── JSON-LD ───────────────────────────────────────────────────────────

def _is_recipe_type(value: Any) -> bool:
    types = value if isinstance(value, list) else [value]
    return any(t in ("Recipe", "https://schema.org/Recipe", "http://schema.org/Recipe") for t in types)


def _iter_ld_nodes(data: Any):
    if isinstance(data, list):
        for entry in data:
            yield from _iter_ld_nodes(entry)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _iter_ld_nodes(data["@graph"])


def _step_text(step: Any) -> str:
    if isinstance(step, str):
        return BeautifulSoup(step, "html.parser").get_text(" ").strip()
    if isinstance(step, dict):
        return str(step.get("text") or step.get("name") or "").strip()
    return ""


def _instructions(raw: Any) -> List[Any]:
    """
    Flat list of step strings, or a list of {title, items} sections when the
    page groups its steps with HowToSection.
    """
    if isinstance(raw, str):
        return [line.strip() for line in raw.split("\n") if line.strip()]
    if not isinstance(raw, list):
        return []

    if any(isinstance(s, dict) and s.get("@type") == "HowToSection" for s in raw):
        sections = []
        for entry in raw:
            if isinstance(entry, dict) and entry.get("@type") == "HowToSection":
                items = [_step_text(s) for s in entry.get("itemListElement") or []]
                sections.append({"title": entry.get("name", ""), "items": [i for i in items if i]})
            else:
                text = _step_text(entry)
                if text:
                    sections.append({"title": "", "items": [text]})
        return sections

    return [text for text in (_step_text(s) for s in raw) if text]


def _servings(raw: Any) -> Optional[int]:
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if raw is None:
        return None
    match = re.search(r"\d+", str(raw))
    return int(match.group()) if match else None


def find_json_ld_recipe(html: str) -> Optional[Dict[str, Any]]:
    """
    Raw candidate {title, ingredients, instructions, servings, prepTime,
    cookTime} from the first JSON-LD Recipe node, or None.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue

        for node in _iter_ld_nodes(data):
            if not _is_recipe_type(node.get("@type")):
                continue
            ingredients = [str(i).strip() for i in node.get("recipeIngredient") or [] if str(i).strip()]
            if not node.get("name") or not ingredients:
                continue
            return {
                "title": node.get("name"),
                "ingredients": ingredients,
                "instructions": _instructions(node.get("recipeInstructions")),
                "servings": _servings(node.get("recipeYield")),
                "prepTime": node.get("prepTime"),
                "cookTime": node.get("cookTime") or node.get("totalTime"),
            }
    return None
