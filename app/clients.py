"""
Singleton clients and shared configuration for the app.

Import from here to avoid re-initializing clients in multiple modules:
    from app.clients import ai_client, openai_client, youtube_client, caption_client, ...
"""
import os
from dotenv import load_dotenv
from openai import AsyncOpenAI

from app.ai_proxy import AIProxyClient
from app.youtube_service import YouTubeDataClient, CaptionClient

load_dotenv()

# ── Model config ──────────────────────────────────────────────────────
AI_PROXY_URL = os.getenv("AI_PROXY_URL", "http://localhost:3000/api/gemini")
AI_MODEL = os.getenv("AI_MODEL", "gemini-2.0-flash")
AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "60"))
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
INTENT_TIMEOUT = float(os.getenv("INTENT_TIMEOUT", "8"))

# ── Video platform config ─────────────────────────────────────────────
YOUTUBE_API_URL = os.getenv("YOUTUBE_API_URL", "https://www.googleapis.com/youtube/v3")
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY", "")
CAPTION_SERVICE_URL = os.getenv("CAPTION_SERVICE_URL", "http://localhost:3001/api/captions")
DEFAULT_CAPTION_LANGUAGE = os.getenv("DEFAULT_CAPTION_LANGUAGE", "en")

# ── Pipeline config ───────────────────────────────────────────────────
MAX_PAGE_CHARS = int(os.getenv("MAX_PAGE_CHARS", "15000"))
NUTRITION_DEBOUNCE_SECONDS = float(os.getenv("NUTRITION_DEBOUNCE_SECONDS", "1.0"))
LAST_N = int(os.getenv("LAST_N", "6"))

# ── Singleton clients ─────────────────────────────────────────────────
openai_client = AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY", ""))
ai_client = AIProxyClient(AI_PROXY_URL, model=AI_MODEL, timeout=AI_TIMEOUT)
youtube_client = YouTubeDataClient(YOUTUBE_API_URL, api_key=YOUTUBE_API_KEY)
caption_client = CaptionClient(CAPTION_SERVICE_URL)
