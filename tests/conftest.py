"""
Shared fakes for the test suite.

FakeAI stands in for AIProxyClient: it replays scripted replies in order
and records every prompt. FakeOpenAI stands in for AsyncOpenAI in the
intent classifier.
"""
import json
import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep app.main's default store and previews out of the working tree
_TMP = Path(tempfile.mkdtemp(prefix="baratie-tests-"))
os.environ.setdefault("DB_PATH", str(_TMP / "sessions.db"))
os.environ.setdefault("UPLOAD_DIR", str(_TMP / "uploads"))

from app.ai_proxy import MalformedResponseError
from baratie.parsing import extract_json_object


class FakeAI:
    """
    Scripted AIProxyClient.

    Each reply is a str (returned as-is), a dict (returned as JSON text)
    or an Exception (raised). Running out of replies fails the test.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def generate(self, prompt, files=None, model=None):
        self.calls.append({"prompt": prompt, "files": files})
        if not self.replies:
            raise AssertionError(f"Unexpected model call: {prompt[:80]!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)

    async def generate_json(self, prompt, files=None, model=None):
        text = await self.generate(prompt, files=files, model=model)
        result = extract_json_object(text)
        if result is None:
            raise MalformedResponseError("Model reply contained no JSON object")
        return result


class FakeOpenAI:
    """AsyncOpenAI look-alike whose classifier always calls `tool_name`."""

    def __init__(self, tool_name=None, error=None):
        self.tool_name = tool_name
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        tool_calls = []
        if self.tool_name:
            tool_calls.append(SimpleNamespace(
                function=SimpleNamespace(name=self.tool_name, arguments="{}")
            ))
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(tool_calls=tool_calls))])


class RecordingScheduler:
    """NutritionScheduler stand-in that only records schedule() calls."""

    def __init__(self):
        self.scheduled = []

    def schedule(self, session):
        self.scheduled.append(session.recipe)
        return None

    def cancel(self, session_id):
        return False


@pytest.fixture
def curry_recipe_data():
    """Two-component recipe: six marinade lines, six curry lines."""
    return {
        "title": "Chicken Curry",
        "ingredients": [
            "500g chicken thighs",
            "1 cup yogurt",
            "1 tsp turmeric",
            "1 tsp chili powder",
            "1 tbsp lemon juice",
            "1 tsp salt",
            "2 onions",
            "3 tomatoes",
            "1 tbsp garam masala",
            "2 cloves garlic",
            "1 inch ginger",
            "2 tbsp oil",
        ],
        "instructions": [
            "Mix the yogurt and turmeric.",
            "Coat the chicken and rest for 1 hour.",
            "Fry the onions until golden.",
            "Add tomatoes and garam masala.",
            "Add the chicken and simmer for 25 minutes.",
        ],
    }
