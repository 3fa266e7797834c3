"""
Explicit session-state object for the conversation state machine.

RecipeSession owns one SessionState and saves it after every mutation.
Lifecycle: load on start (SessionStore.load), save on every mutation,
reset on clear.
"""
import logging
from typing import List, Optional

from baratie.models import (
    AttachedFile,
    ChatMessage,
    ItemList,
    MessageType,
    NutritionInfo,
    Recipe,
    SessionState,
    Stage,
)

logger = logging.getLogger(__name__)


class InvalidStageTransition(Exception):
    """Raised when a stage change is not allowed from the current stage."""
    pass


def _keep_nutrition(recipe: Optional[Recipe], stored: Optional[Recipe]) -> Optional[Recipe]:
    """Carry a stored estimate over to a snapshot of the same recipe that lacks one."""
    if recipe is None or recipe.nutrition is not None:
        return recipe
    if stored is None or stored.nutrition is None or stored.identity() != recipe.identity():
        return recipe
    return recipe.model_copy(update={"nutrition": stored.nutrition})


class RecipeSession:
    def __init__(self, state: Optional[SessionState] = None, store=None):
        self.state = state or SessionState()
        self.store = store

    # ── Persistence ───────────────────────────────────────────────────

    def persist(self, *fields: str) -> None:
        """
        Save this handle's state.

        With field names, only those fields are written over the stored
        row, so writes made through another handle in the meantime (a
        nutrition estimate, a stage change, a new attachment) survive and
        are picked up here. Without field names the whole state is written.
        """
        if self.store is None:
            return
        if fields:
            stored = self.store.load(self.state.id)
            if stored is not None:
                update = {name: getattr(self.state, name) for name in fields}
                if "recipe" in update:
                    update["recipe"] = _keep_nutrition(update["recipe"], stored.recipe)
                self.state = stored.model_copy(update=update)
        self.store.save(self.state)

    def reload(self) -> None:
        """Pick up writes made through another handle on the same session."""
        if self.store is None:
            return
        fresh = self.store.load(self.state.id)
        if fresh is not None:
            self.state = fresh

    # ── Read access ───────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def recipe(self) -> Optional[Recipe]:
        return self.state.recipe

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def messages(self) -> List[ChatMessage]:
        return self.state.messages

    @property
    def attached_files(self) -> List[AttachedFile]:
        return self.state.attached_files

    # ── Messages ──────────────────────────────────────────────────────

    def add_message(self, message: ChatMessage) -> ChatMessage:
        self.state.messages.append(message)
        self.persist("messages")
        return message

    def add_system_message(self, text: str) -> ChatMessage:
        return self.add_message(ChatMessage(type=MessageType.SYSTEM, text=text))

    def show_loading(self, text: str = "Working on it...") -> ChatMessage:
        """Show the loading placeholder, replacing any existing one."""
        self.state.messages = [m for m in self.state.messages if m.type != MessageType.LOADING]
        return self.add_message(ChatMessage(type=MessageType.LOADING, text=text))

    def clear_loading(self) -> bool:
        before = len(self.state.messages)
        self.state.messages = [m for m in self.state.messages if m.type != MessageType.LOADING]
        removed = len(self.state.messages) != before
        if removed:
            self.persist("messages")
        return removed

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in self.state.messages:
            if message.id == message_id:
                return message
        return None

    # ── Recipe ────────────────────────────────────────────────────────

    def set_recipe(self, recipe: Recipe) -> None:
        """Activate a recipe (extraction or suggestion success) and move to preview."""
        self.state.recipe = recipe
        self.state.stage = Stage.PREVIEW
        self.persist("recipe", "stage")
        logger.info(f"[SESSION] {self.id}: active recipe '{recipe.title}'")

    def replace_recipe_content(self, title: str, ingredients: ItemList, instructions: ItemList) -> Recipe:
        """Swap title, ingredients and instructions in one step. Nutrition is recomputed later."""
        if self.state.recipe is None:
            raise ValueError("No active recipe to modify")
        self.state.recipe = self.state.recipe.model_copy(update={
            "title": title,
            "ingredients": ingredients,
            "instructions": instructions,
            "nutrition": None,
        })
        self.persist("recipe")
        return self.state.recipe

    def set_nutrition(self, nutrition: NutritionInfo) -> None:
        if self.state.recipe is None:
            return
        self.state.recipe = self.state.recipe.model_copy(update={"nutrition": nutrition})
        self.persist("recipe")

    def set_servings(self, servings: int) -> Recipe:
        if self.state.recipe is None:
            raise ValueError("No active recipe")
        if servings < 1:
            raise ValueError("Servings must be at least 1")
        self.state.recipe = self.state.recipe.model_copy(update={"servings": servings})
        self.persist("recipe")
        return self.state.recipe

    # ── Stage ─────────────────────────────────────────────────────────

    def transition(self, target: Stage) -> Stage:
        """
        User-initiated stage change.

        capture / preview: always allowed
        cooking: only from preview, with an active recipe
        complete: only from cooking
        """
        current = self.state.stage
        if target == Stage.COOKING:
            if current != Stage.PREVIEW and current != Stage.COOKING:
                raise InvalidStageTransition(f"Cannot start cooking from {current.value}")
            if self.state.recipe is None:
                raise InvalidStageTransition("Cannot start cooking without a recipe")
        elif target == Stage.COMPLETE:
            if current != Stage.COOKING and current != Stage.COMPLETE:
                raise InvalidStageTransition(f"Cannot complete from {current.value}")

        self.state.stage = target
        self.persist("stage")
        return target

    # ── Attachments ───────────────────────────────────────────────────

    def add_file(self, file: AttachedFile) -> None:
        self.state.attached_files.append(file)
        self.persist("attached_files")

    def remove_file(self, name: str) -> Optional[AttachedFile]:
        """Detach a pending file. The caller releases its preview."""
        for i, file in enumerate(self.state.attached_files):
            if file.name == name:
                removed = self.state.attached_files.pop(i)
                self.persist("attached_files")
                return removed
        return None

    def take_files(self) -> List[AttachedFile]:
        """Hand pending files to the current turn and clear the pending list."""
        files = list(self.state.attached_files)
        if files:
            self.state.attached_files = []
            self.persist("attached_files")
        return files

    # ── Reset ─────────────────────────────────────────────────────────

    def reset(self) -> List[AttachedFile]:
        """
        Clear recipe, messages, files and stage.

        Returns every attachment that was owned by the session so the
        caller can release preview resources.
        """
        owned = list(self.state.attached_files)
        for message in self.state.messages:
            owned.extend(message.attached_files or [])

        self.state.recipe = None
        self.state.messages = []
        self.state.attached_files = []
        self.state.stage = Stage.CAPTURE
        self.persist()
        logger.info(f"[SESSION] {self.id}: reset")
        return owned
