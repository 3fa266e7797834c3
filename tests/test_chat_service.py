"""
Tests for the conversation state machine (app.chat_service).

Agents are replaced with monkeypatched coroutines so the turn pipeline
is tested on its own: loading placeholder, dispatch, error surfacing and
recipe activation.

Usage:
  pytest tests/test_chat_service.py -v
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import app.chat_service as chat_service
from app.ai_proxy import AIRequestError
from app.chat_modes import ChatIntent
from app.chat_service import (
    GENERIC_APOLOGY,
    SessionBusyError,
    SuggestionNotFoundError,
    handle_turn,
    select_suggestion,
    user_facing_error,
)
from app.session_state import RecipeSession
from baratie.captions import CaptionsUnavailableError
from baratie.models import (
    AgentOutcome,
    AttachedFile,
    ChatMessage,
    FlatList,
    MessageType,
    Recipe,
    RecipeSuggestion,
    Stage,
)
from baratie.validation import INVALID_RECIPE_MESSAGE, InvalidRecipeError
from conftest import RecordingScheduler


def _recipe(title="Shakshuka"):
    return Recipe(
        title=title,
        ingredients=FlatList(items=["4 eggs", "1 can tomatoes", "1 pepper"]),
        instructions=FlatList(items=["Simmer the sauce.", "Crack in the eggs."]),
    )


def _intent(value):
    async def determine(user_message, has_files, recipe_active):
        return value
    return determine


async def _no_sections(recipe):
    return recipe


@pytest.fixture
def pipeline(monkeypatch):
    """Patch section detection out; tests patch the agent they need."""
    monkeypatch.setattr(chat_service, "add_sections", _no_sections)
    return monkeypatch


def _types(messages):
    return [m.type for m in messages]


# ═══════════════════════════════════════════════════════════════════════
# EXTRACTION TURNS
# ═══════════════════════════════════════════════════════════════════════

class TestExtractTurn:
    @pytest.mark.asyncio
    async def test_recipe_activated(self, pipeline):
        seen = {}

        async def extract(user_message, files, url=None):
            seen["url"] = url
            return AgentOutcome(recipe=_recipe())

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.EXTRACT_RECIPE))
        pipeline.setattr(chat_service, "extract_recipe", extract)
        session = RecipeSession()
        scheduler = RecordingScheduler()

        added = await handle_turn(session, "see www.example.com/shakshuka", scheduler=scheduler)

        assert _types(added) == [MessageType.USER, MessageType.RECIPE_PREVIEW]
        assert added[1].recipe.title == "Shakshuka"
        assert session.stage == Stage.PREVIEW
        assert session.recipe.title == "Shakshuka"
        assert seen["url"] == "https://www.example.com/shakshuka"
        assert [r.title for r in scheduler.scheduled] == ["Shakshuka"]

    @pytest.mark.asyncio
    async def test_invalid_recipe_message_shown(self, pipeline):
        async def extract(user_message, files, url=None):
            raise InvalidRecipeError(INVALID_RECIPE_MESSAGE)

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.EXTRACT_RECIPE))
        pipeline.setattr(chat_service, "extract_recipe", extract)
        session = RecipeSession()

        added = await handle_turn(session, "random words", scheduler=RecordingScheduler())

        assert _types(added) == [MessageType.USER, MessageType.SYSTEM]
        assert added[1].text == INVALID_RECIPE_MESSAGE
        assert session.recipe is None
        assert session.stage == Stage.CAPTURE

    @pytest.mark.asyncio
    async def test_caption_error_message_reaches_user(self, pipeline):
        async def extract(user_message, files, url=None):
            raise CaptionsUnavailableError("Transcript is disabled on this video")

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.EXTRACT_RECIPE))
        pipeline.setattr(chat_service, "extract_recipe", extract)
        session = RecipeSession()

        added = await handle_turn(session, "https://youtu.be/dQw4w9WgXcQ", scheduler=RecordingScheduler())
        assert "Transcript is disabled on this video" in added[-1].text

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_apology(self, pipeline):
        async def extract(user_message, files, url=None):
            raise RuntimeError("KeyError deep inside")

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.EXTRACT_RECIPE))
        pipeline.setattr(chat_service, "extract_recipe", extract)
        session = RecipeSession()

        added = await handle_turn(session, "pasta recipe...", scheduler=RecordingScheduler())

        assert added[-1].type == MessageType.SYSTEM
        assert added[-1].text == GENERIC_APOLOGY
        assert all(m.type != MessageType.LOADING for m in session.messages)

    @pytest.mark.asyncio
    async def test_files_routed_to_image_agent(self, pipeline):
        seen = {}

        async def extract(user_message, files, url=None):
            seen["files"] = files
            return AgentOutcome(answer="That's a ripe mango.")

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.ANSWER_QUESTION))
        pipeline.setattr(chat_service, "extract_recipe", extract)
        session = RecipeSession()
        session.add_file(AttachedFile(name="mango.jpg", mime_type="image/jpeg", data="/9j/"))

        added = await handle_turn(session, "what is this?", scheduler=RecordingScheduler())

        assert [f.name for f in seen["files"]] == ["mango.jpg"]
        assert [f.name for f in added[0].attached_files] == ["mango.jpg"]
        assert added[-1].text == "That's a ripe mango."
        assert session.attached_files == []
        assert session.recipe is None


# ═══════════════════════════════════════════════════════════════════════
# CONVERSATIONAL TURNS
# ═══════════════════════════════════════════════════════════════════════

class TestConversationTurns:
    @pytest.mark.asyncio
    async def test_answer(self, pipeline):
        async def answer(question, recipe, history):
            return "Boil for 9 minutes."

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.ANSWER_QUESTION))
        pipeline.setattr(chat_service, "answer_question", answer)
        session = RecipeSession()

        added = await handle_turn(session, "how long for hard boiled eggs?", scheduler=RecordingScheduler())
        assert _types(added) == [MessageType.USER, MessageType.SYSTEM]
        assert added[1].text == "Boil for 9 minutes."

    @pytest.mark.asyncio
    async def test_suggestions(self, pipeline):
        async def suggest(request, history):
            return "Here are some ideas:", [
                RecipeSuggestion(title="Leek Soup", description="Creamy and quick"),
                RecipeSuggestion(title="Leek Tart", description="Buttery pastry"),
            ]

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.SUGGEST_RECIPES))
        pipeline.setattr(chat_service, "suggest_recipes", suggest)
        session = RecipeSession()

        added = await handle_turn(session, "ideas for leeks?", scheduler=RecordingScheduler())
        assert added[-1].type == MessageType.RECIPE_SUGGESTION
        assert [s.title for s in added[-1].suggestions] == ["Leek Soup", "Leek Tart"]
        assert session.recipe is None

    @pytest.mark.asyncio
    async def test_modify_replaces_recipe_and_reschedules(self, pipeline):
        async def modify(recipe, request, history):
            updated = recipe.model_copy(update={
                "title": "Spicy Shakshuka",
                "ingredients": FlatList(items=["4 eggs", "1 can tomatoes", "2 chilies"]),
            })
            return updated, "Swapped the pepper for chilies."

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.MODIFY_RECIPE))
        pipeline.setattr(chat_service, "modify_recipe", modify)
        session = RecipeSession()
        session.set_recipe(_recipe())
        scheduler = RecordingScheduler()

        added = await handle_turn(session, "make it spicy", scheduler=scheduler)

        assert added[-1].type == MessageType.RECIPE_PREVIEW
        assert added[-1].text == "Swapped the pepper for chilies."
        assert session.recipe.title == "Spicy Shakshuka"
        assert "2 chilies" in session.recipe.ingredients.items
        assert [r.title for r in scheduler.scheduled] == ["Spicy Shakshuka"]

    @pytest.mark.asyncio
    async def test_modify_failure_keeps_recipe(self, pipeline):
        async def modify(recipe, request, history):
            raise AIRequestError(503, "overloaded")

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.MODIFY_RECIPE))
        pipeline.setattr(chat_service, "modify_recipe", modify)
        session = RecipeSession()
        session.set_recipe(_recipe())

        added = await handle_turn(session, "make it spicy", scheduler=RecordingScheduler())
        assert added[-1].type == MessageType.SYSTEM
        assert session.recipe.title == "Shakshuka"

    @pytest.mark.asyncio
    async def test_history_excludes_current_message(self, pipeline):
        seen = {}

        async def answer(question, recipe, history):
            seen["history"] = history
            return "Sure."

        pipeline.setattr(chat_service, "determine_intent", _intent(ChatIntent.ANSWER_QUESTION))
        pipeline.setattr(chat_service, "answer_question", answer)
        session = RecipeSession()
        session.add_message(ChatMessage(type=MessageType.USER, text="earlier question"))

        await handle_turn(session, "current question", scheduler=RecordingScheduler())
        assert "earlier question" in seen["history"]
        assert "current question" not in seen["history"]

    @pytest.mark.asyncio
    async def test_busy_session_rejected(self, pipeline):
        session = RecipeSession()
        chat_service._in_flight.add(session.id)
        try:
            with pytest.raises(SessionBusyError):
                await handle_turn(session, "hello", scheduler=RecordingScheduler())
        finally:
            chat_service._in_flight.discard(session.id)
        assert session.messages == []


# ═══════════════════════════════════════════════════════════════════════
# SUGGESTION SELECTION
# ═══════════════════════════════════════════════════════════════════════

class TestSelectSuggestion:
    def _session_with_suggestions(self, suggestions):
        session = RecipeSession()
        message = session.add_message(ChatMessage(
            type=MessageType.RECIPE_SUGGESTION, text="Ideas:", suggestions=suggestions,
        ))
        return session, message

    @pytest.mark.asyncio
    async def test_lite_suggestion_generated(self, pipeline):
        seen = {}

        async def generate(suggestion, history):
            seen["title"] = suggestion.title
            return _recipe("Leek Soup")

        pipeline.setattr(chat_service, "generate_recipe", generate)
        session, message = self._session_with_suggestions([RecipeSuggestion(title="Leek Soup", description="Creamy")])
        scheduler = RecordingScheduler()

        recipe = await select_suggestion(session, message.id, 0, scheduler=scheduler)

        assert recipe.title == "Leek Soup"
        assert seen["title"] == "Leek Soup"
        assert session.stage == Stage.PREVIEW
        assert session.messages[-1].type == MessageType.RECIPE_PREVIEW
        assert all(m.type != MessageType.LOADING for m in session.messages)
        assert len(scheduler.scheduled) == 1

    @pytest.mark.asyncio
    async def test_generation_failure(self, pipeline):
        async def generate(suggestion, history):
            raise InvalidRecipeError("Couldn't write that recipe.")

        pipeline.setattr(chat_service, "generate_recipe", generate)
        session, message = self._session_with_suggestions([RecipeSuggestion(title="Leek Soup")])

        assert await select_suggestion(session, message.id, 0, scheduler=RecordingScheduler()) is None
        assert session.messages[-1].text == "Couldn't write that recipe."
        assert session.recipe is None

    @pytest.mark.asyncio
    async def test_unknown_suggestion(self, pipeline):
        session, message = self._session_with_suggestions([RecipeSuggestion(title="Leek Soup")])
        with pytest.raises(SuggestionNotFoundError):
            await select_suggestion(session, message.id, 3, scheduler=RecordingScheduler())
        with pytest.raises(SuggestionNotFoundError):
            await select_suggestion(session, "missing", 0, scheduler=RecordingScheduler())


class TestUserFacingError:
    def test_upstream_errors_never_leak_details(self):
        text = user_facing_error(AIRequestError(500, "Traceback (most recent call last)"))
        assert "Traceback" not in text

    def test_unknown_error(self):
        assert user_facing_error(ValueError("x")) == GENERIC_APOLOGY
