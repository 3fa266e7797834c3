"""
Tests for model-reply parsing and candidate validation.

Usage:
  pytest tests/test_parsing_validation.py -v
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from baratie.models import (
    FlatList,
    Recipe,
    SectionedList,
    SessionState,
    Stage,
    flatten,
    to_item_list,
)
from baratie.parsing import extract_json_object, parse_recipe_text
from baratie.validation import (
    DEFAULT_SERVINGS,
    INVALID_RECIPE_MESSAGE,
    InvalidRecipeError,
    filter_instruction_headings,
    is_apology_title,
    sanitize_title,
    validate_candidate,
)


# ═══════════════════════════════════════════════════════════════════════
# JSON SCANNING
# ═══════════════════════════════════════════════════════════════════════

class TestExtractJsonObject:
    def test_json_inside_prose_and_fences(self):
        text = 'Sure! Here it is:\n```json\n{"title": "Pancakes", "servings": 2}\n```\nEnjoy.'
        assert extract_json_object(text) == {"title": "Pancakes", "servings": 2}

    def test_braces_inside_strings_do_not_end_the_object(self):
        text = 'Result: {"title": "Soup {spicy}", "note": "use \\"fresh\\" herbs"} trailing }'
        result = extract_json_object(text)
        assert result["title"] == "Soup {spicy}"
        assert result["note"] == 'use "fresh" herbs'

    def test_skips_unparseable_object(self):
        assert extract_json_object('{not json} then {"a": 1}') == {"a": 1}

    def test_nested_objects(self):
        result = extract_json_object('x {"a": {"b": [1, 2]}} y')
        assert result == {"a": {"b": [1, 2]}}

    @pytest.mark.parametrize("text", ["", None, "no braces here", "{ unterminated"])
    def test_no_object(self, text):
        assert extract_json_object(text) is None


# ═══════════════════════════════════════════════════════════════════════
# PLAIN-TEXT FALLBACK
# ═══════════════════════════════════════════════════════════════════════

class TestParseRecipeText:
    def test_headed_text(self):
        text = """Title: Simple Pancakes

Ingredients:
- 1 cup flour
- 1 egg
• 1 cup milk

Instructions:
1. Mix everything
   until smooth.
2. Fry in a buttered pan.
"""
        result = parse_recipe_text(text)
        assert result["title"] == "Simple Pancakes"
        assert result["ingredients"] == ["1 cup flour", "1 egg", "1 cup milk"]
        assert result["instructions"] == ["Mix everything until smooth.", "Fry in a buttered pan."]

    def test_first_line_is_title_without_title_label(self):
        text = "Garlic Bread\nIngredients:\nbread\ngarlic\nMethod:\n1. Toast it."
        result = parse_recipe_text(text)
        assert result["title"] == "Garlic Bread"
        assert result["ingredients"] == ["bread", "garlic"]
        assert result["instructions"] == ["Toast it."]

    def test_no_headings(self):
        result = parse_recipe_text("I could not find anything useful.")
        assert result["ingredients"] == []
        assert result["instructions"] == []


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

class TestTitles:
    def test_markdown_stripped(self):
        assert sanitize_title("**Best  _Pancakes_**") == "Best Pancakes"

    @pytest.mark.parametrize("title", [
        "I'm sorry, I couldn't find a recipe",
        "I’m sorry but this is not a recipe",
        "Sorry, no recipe here",
        "I cannot extract a recipe from this image",
        "Unable to determine the recipe",
        "No recipe found",
        "Not a recipe",
    ])
    def test_apology_titles(self, title):
        assert is_apology_title(title)

    @pytest.mark.parametrize("title", [
        "Very Berry Smoothie",
        "Chicken Curry",
        "Unbelievably Crispy Tofu",
        "The Recipe Everyone Asks For",
    ])
    def test_normal_titles(self, title):
        assert not is_apology_title(title)


class TestInstructionHeadings:
    def test_sub_recipe_headings_removed(self):
        steps = ["To make the sauce", "Whisk the eggs.", "Sauce", "Fry until golden."]
        assert filter_instruction_headings(steps) == ["Whisk the eggs.", "Fry until golden."]

    def test_keeps_everything_if_all_look_like_headings(self):
        steps = ["Prep", "Cook"]
        assert filter_instruction_headings(steps) == steps


class TestValidateCandidate:
    def test_valid_candidate(self):
        recipe = validate_candidate({
            "title": "## Tomato Soup",
            "ingredients": ["4 tomatoes", "1 onion"],
            "instructions": ["Chop everything.", "Simmer for 20 minutes."],
            "servings": "2",
            "prepTime": "10 min",
            "cookTime": "",
        }, source="https://example.com/soup")
        assert recipe.title == "Tomato Soup"
        assert recipe.servings == 2
        assert recipe.prep_time == "10 min"
        assert recipe.cook_time is None
        assert recipe.source == "https://example.com/soup"
        assert recipe.nutrition is None

    def test_apology_title_rejected(self):
        with pytest.raises(InvalidRecipeError) as exc:
            validate_candidate({
                "title": "I'm sorry, I couldn't find a recipe",
                "ingredients": ["something"],
                "instructions": [],
            })
        assert str(exc.value) == INVALID_RECIPE_MESSAGE

    def test_empty_ingredients_rejected(self):
        with pytest.raises(InvalidRecipeError):
            validate_candidate({"title": "Toast", "ingredients": [], "instructions": ["Toast it."]})

    def test_empty_title_rejected(self):
        with pytest.raises(InvalidRecipeError):
            validate_candidate({"title": "  ** ", "ingredients": ["bread"]})

    @pytest.mark.parametrize("candidate", [None, {}, "not a dict"])
    def test_missing_candidate_rejected(self, candidate):
        with pytest.raises(InvalidRecipeError):
            validate_candidate(candidate)

    @pytest.mark.parametrize("servings", [None, "lots", 0, -3])
    def test_servings_default(self, servings):
        recipe = validate_candidate({"title": "Toast", "ingredients": ["bread"], "servings": servings})
        assert recipe.servings == DEFAULT_SERVINGS

    def test_sectioned_ingredients_accepted(self):
        recipe = validate_candidate({
            "title": "Tacos",
            "ingredients": [{"title": "Salsa", "items": ["tomato", "onion"]}],
            "instructions": ["Assemble the tacos."],
        })
        assert recipe.ingredients.kind == "sectioned"
        assert flatten(recipe.ingredients) == ["tomato", "onion"]


# ═══════════════════════════════════════════════════════════════════════
# MODELS
# ═══════════════════════════════════════════════════════════════════════

class TestItemLists:
    def test_flat_from_strings_and_objects(self):
        items = to_item_list(["2 eggs", {"text": "1 cup milk"}, {"name": "salt"}, "  "])
        assert isinstance(items, FlatList)
        assert items.items == ["2 eggs", "1 cup milk", "salt"]

    def test_sectioned(self):
        items = to_item_list([
            {"title": "Dough", "items": ["flour", "water"]},
            {"title": "Filling", "items": ["cheese"]},
        ])
        assert isinstance(items, SectionedList)
        assert flatten(items) == ["flour", "water", "cheese"]

    def test_garbage_is_empty_flat(self):
        assert to_item_list("flour, water") == FlatList()

    def test_identity_tracks_title_and_ingredients(self):
        a = Recipe(title="Soup", ingredients=FlatList(items=["water"]))
        b = a.model_copy(update={"servings": 8})
        c = a.model_copy(update={"ingredients": FlatList(items=["broth"])})
        assert a.identity() == b.identity()
        assert a.identity() != c.identity()


class TestSessionStateRecovery:
    def test_cooking_without_recipe_resets_to_capture(self):
        state = SessionState(stage=Stage.COOKING)
        assert state.stage == Stage.CAPTURE

    def test_sectioned_recipe_survives_json(self):
        recipe = Recipe(
            title="Tacos",
            ingredients=to_item_list([{"title": "Salsa", "items": ["tomato"]}]),
            instructions=FlatList(items=["Assemble."]),
        )
        state = SessionState(stage=Stage.COOKING, recipe=recipe)
        restored = SessionState.model_validate_json(state.model_dump_json())
        assert restored.stage == Stage.COOKING
        assert isinstance(restored.recipe.ingredients, SectionedList)
        assert restored.recipe.ingredients.sections[0].title == "Salsa"
