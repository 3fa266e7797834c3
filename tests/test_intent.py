"""
Tests for intent classification and resolution.

The classifier is exercised against a fake AsyncOpenAI client; no network.

Usage:
  pytest tests/test_intent.py -v
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.chat_modes import ChatIntent, coerce_intent, find_url, resolve_intent
from app.input_service import classify_intent, determine_intent
from app.prompt_builder import INTENT_TOOLS, build_intent_user_message
from conftest import FakeOpenAI


# ═══════════════════════════════════════════════════════════════════════
# URL DETECTION
# ═══════════════════════════════════════════════════════════════════════

class TestFindUrl:
    @pytest.mark.parametrize("text,expected", [
        ("https://example.com/soup", "https://example.com/soup"),
        ("try this: https://youtu.be/dQw4w9WgXcQ!", "https://youtu.be/dQw4w9WgXcQ"),
        ("www.bbcgoodfood.com/recipes/lasagne please", "https://www.bbcgoodfood.com/recipes/lasagne"),
        ("found it on https://allrecipes.com/recipe/123.", "https://allrecipes.com/recipe/123"),
    ])
    def test_urls(self, text, expected):
        assert find_url(text) == expected

    @pytest.mark.parametrize("text", [
        "make it vegan",
        "how long do I boil eggs?",
        "add 1.5 cups of sugar",
        "1.Mix everything 2.Cook on a hot pan",
        "What else.Include more salt?",
        "allrecipes.com has a good one",
    ])
    def test_no_url(self, text):
        assert find_url(text) is None


# ═══════════════════════════════════════════════════════════════════════
# RESOLUTION RULES
# ═══════════════════════════════════════════════════════════════════════

class TestResolveIntent:
    def test_url_overrides_classifier(self):
        intent = resolve_intent(ChatIntent.ANSWER_QUESTION, "what about https://example.com/pie", True)
        assert intent == ChatIntent.EXTRACT_RECIPE

    def test_numbered_steps_are_not_urls(self):
        text = "Pancakes\n1.Mix the flour and eggs 2.Cook on a hot pan 3.Serve.Include syrup"
        assert resolve_intent(ChatIntent.ANSWER_QUESTION, text, False) == ChatIntent.ANSWER_QUESTION

    def test_modify_without_recipe_becomes_answer(self):
        assert resolve_intent(ChatIntent.MODIFY_RECIPE, "make it vegan", False) == ChatIntent.ANSWER_QUESTION

    def test_modify_with_recipe(self):
        assert resolve_intent(ChatIntent.MODIFY_RECIPE, "make it vegan", True) == ChatIntent.MODIFY_RECIPE

    def test_missing_classification(self):
        assert resolve_intent(None, "hello", False) == ChatIntent.ANSWER_QUESTION

    def test_coerce_unknown(self):
        assert coerce_intent("order_pizza") == ChatIntent.ANSWER_QUESTION
        assert coerce_intent(None) == ChatIntent.ANSWER_QUESTION
        assert coerce_intent("suggest_recipes") == ChatIntent.SUGGEST_RECIPES


# ═══════════════════════════════════════════════════════════════════════
# CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════

class TestClassifier:
    def test_tools_cover_every_intent(self):
        names = {tool["function"]["name"] for tool in INTENT_TOOLS}
        assert names == {intent.value for intent in ChatIntent}

    def test_user_message_context(self):
        text = build_intent_user_message("make it vegan", has_files=False, recipe_active=True)
        assert "Recipe Active" in text
        assert "make it vegan" in text

    @pytest.mark.asyncio
    async def test_tool_call_is_intent(self):
        client = FakeOpenAI("suggest_recipes")
        intent = await classify_intent("what can I make with leeks?", False, False, client=client)
        assert intent == ChatIntent.SUGGEST_RECIPES
        call = client.calls[0]
        assert call["tool_choice"] == "required"
        assert call["tools"] == INTENT_TOOLS

    @pytest.mark.asyncio
    async def test_error_falls_back_to_answer(self):
        client = FakeOpenAI(error=RuntimeError("timeout"))
        assert await classify_intent("hi", False, False, client=client) == ChatIntent.ANSWER_QUESTION

    @pytest.mark.asyncio
    async def test_no_tool_call_falls_back_to_answer(self):
        client = FakeOpenAI(tool_name=None)
        assert await classify_intent("hi", False, False, client=client) == ChatIntent.ANSWER_QUESTION

    @pytest.mark.asyncio
    async def test_modify_without_recipe(self):
        client = FakeOpenAI("modify_recipe")
        intent = await determine_intent("make it vegan", False, False, client=client)
        assert intent == ChatIntent.ANSWER_QUESTION

    @pytest.mark.asyncio
    async def test_url_wins_over_classifier(self):
        client = FakeOpenAI("answer_question")
        intent = await determine_intent("https://www.allrecipes.com/recipe/1/pie", False, False, client=client)
        assert intent == ChatIntent.EXTRACT_RECIPE
