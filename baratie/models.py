"""
Pydantic data models for recipes, chat messages and session state.
"""
from __future__ import annotations
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union, Literal, Any, Annotated
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ── Stage & message types ──────────────────────────────────────────────

class Stage(str, Enum):
    """Coarse conversational phase of a session."""
    CAPTURE = "capture"      # No recipe yet, collecting input
    PREVIEW = "preview"      # Recipe extracted or chosen, shown for review
    COOKING = "cooking"      # Step-by-step cooking (requires a recipe)
    COMPLETE = "complete"    # Cooking finished


class MessageType(str, Enum):
    USER = "user"
    SYSTEM = "system"
    LOADING = "loading"                        # Placeholder while an agent call is in flight
    RECIPE_PREVIEW = "recipe-preview"
    RECIPE_SUGGESTION = "recipe-suggestion"


# ── Ingredient / instruction lists ─────────────────────────────────────

class Section(BaseModel):
    """A named sub-group of ingredients or instructions."""
    title: str
    items: List[str] = Field(default_factory=list)


class FlatList(BaseModel):
    kind: Literal["flat"] = "flat"
    items: List[str] = Field(default_factory=list)


class SectionedList(BaseModel):
    kind: Literal["sectioned"] = "sectioned"
    sections: List[Section] = Field(default_factory=list)


ItemList = Annotated[Union[FlatList, SectionedList], Field(discriminator="kind")]


def flatten(items: ItemList) -> List[str]:
    """All items in order; sectioned lists are concatenated in section order."""
    if items.kind == "sectioned":
        return [item for section in items.sections for item in section.items]
    return list(items.items)


def is_empty(items: ItemList) -> bool:
    return not flatten(items)


def to_item_list(raw: Any) -> ItemList:
    """
    Build an ItemList from untrusted JSON.

    Accepts a list of strings (flat) or a list of {title, items} objects
    (sectioned). Anything else yields an empty flat list.
    """
    if isinstance(raw, (FlatList, SectionedList)):
        return raw
    if not isinstance(raw, list):
        return FlatList()

    if raw and all(isinstance(entry, dict) and "items" in entry for entry in raw):
        sections = []
        for entry in raw:
            items = [str(i).strip() for i in entry.get("items") or [] if str(i).strip()]
            sections.append(Section(title=str(entry.get("title") or "").strip(), items=items))
        return SectionedList(sections=sections)

    items = []
    for entry in raw:
        if isinstance(entry, dict):
            # {"text": "2 cups flour", ...} style ingredient objects
            entry = entry.get("text") or entry.get("name") or ""
        text = str(entry).strip()
        if text:
            items.append(text)
    return FlatList(items=items)


# ── Recipe ─────────────────────────────────────────────────────────────

class NutritionInfo(BaseModel):
    """Whole-recipe totals, never per serving."""
    calories: int = Field(ge=0)
    protein: int = Field(ge=0)
    carbs: int = Field(ge=0)
    fat: int = Field(ge=0)
    fiber: int = Field(default=0, ge=0)


class Recipe(BaseModel):
    title: str
    ingredients: ItemList = Field(default_factory=FlatList)
    instructions: ItemList = Field(default_factory=FlatList)
    servings: Optional[int] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    nutrition: Optional[NutritionInfo] = None   # None = not yet computed
    source: Optional[str] = None                # URL the recipe came from

    def identity(self) -> tuple:
        """Key used to tell whether two recipe snapshots are the same recipe."""
        return (self.title, tuple(flatten(self.ingredients)))


class RecipeSuggestion(BaseModel):
    """A suggested dish; "lite" suggestions only carry title and description."""
    title: str
    description: str = ""
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)

    @property
    def is_lite(self) -> bool:
        return not self.ingredients


# ── Chat ───────────────────────────────────────────────────────────────

class AttachedFile(BaseModel):
    name: str
    mime_type: str
    data: str                              # base64 payload
    preview: Optional[str] = None          # Path of a transient preview file


class ChatMessage(BaseModel):
    id: str = Field(default_factory=_new_id)
    type: MessageType
    text: Optional[str] = None
    recipe: Optional[Recipe] = None
    suggestions: Optional[List[RecipeSuggestion]] = None
    attached_files: Optional[List[AttachedFile]] = None
    timestamp: str = Field(default_factory=_now)


class SessionState(BaseModel):
    """Everything persisted for one session."""
    id: str = Field(default_factory=_new_id)
    stage: Stage = Stage.CAPTURE
    recipe: Optional[Recipe] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    attached_files: List[AttachedFile] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)

    @model_validator(mode="after")
    def _recover_stage(self) -> "SessionState":
        if self.stage == Stage.COOKING and self.recipe is None:
            logger.warning(f"Session {self.id} was cooking without a recipe, resetting to capture")
            self.stage = Stage.CAPTURE
        return self


# ── Agent outputs ──────────────────────────────────────────────────────

class AgentOutcome(BaseModel):
    """Either a validated recipe or a plain-text answer."""
    recipe: Optional[Recipe] = None
    answer: Optional[str] = None


class SectionDetectionResult(BaseModel):
    has_sections: bool = False
    ingredient_sections: List[Section] = Field(default_factory=list)
    instruction_sections: List[Section] = Field(default_factory=list)


class TranscriptEntry(BaseModel):
    text: str
    start: float = 0.0
    duration: float = 0.0


class CaptionResult(BaseModel):
    video_id: str
    language: Optional[str] = None             # Language actually served
    requested_language: Optional[str] = None
    transcript: List[TranscriptEntry] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(e.text.strip() for e in self.transcript if e.text.strip())


class VideoDetails(BaseModel):
    video_id: str
    title: str = ""
    description: str = ""
    channel_title: str = ""
    channel_id: Optional[str] = None


class VideoComment(BaseModel):
    text: str
    author: str = ""
    author_channel_id: Optional[str] = None
    like_count: int = 0
