"""
YouTube URL and content heuristics.

Video-id extraction, Shorts detection, sparse-description checks, recipe
link classification and the pinned-comment heuristic. The data API only
exposes comments ordered by relevance with no pinned flag, so a long
comment by the channel owner stands in for "the pinned recipe comment".
"""
import html
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from baratie.models import VideoComment

logger = logging.getLogger(__name__)

YOUTUBE_ID_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)
URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

MIN_COMMENT_LENGTH = 50
COMMENT_FETCH_LIMIT = 10
MAX_DESCRIPTION_LINKS = 3

SPARSE_DESCRIPTION_CHARS = 100
SPARSE_KEYWORD_MINIMUM = 3
RECIPE_KEYWORDS = [
    "ingredient", "recipe", "cup", "tablespoon", "teaspoon",
    "tbsp", "tsp", "oz", "grams", "ml", "instructions",
    "step", "cook", "bake", "mix", "add", "servings",
]

RECIPE_SITES = [
    "allrecipes.com", "foodnetwork.com", "bonappetit.com", "epicurious.com",
    "seriouseats.com", "tasty.co", "delish.com", "thekitchn.com", "food52.com",
    "justonecookbook.com", "minimalistbaker.com", "cookieandkate.com",
    "smittenkitchen.com", "pinchofyum.com", "halfbakedharvest.com",
    "damndelicious.net", "gimmesomeoven.com", "budgetbytes.com",
    "bbcgoodfood.com", "nytimes.com/cooking", "cooking.nytimes.com",
]
_RECIPE_PATH = re.compile(r"/(recipes?|rezept|cook|dish)(/|-|$)", re.IGNORECASE)
_NON_RECIPE_HOSTS = (
    "youtube.com", "youtu.be", "instagram.com", "facebook.com", "twitter.com",
    "x.com", "tiktok.com", "amzn.to", "amazon.", "bit.ly", "goo.gl", "patreon.com",
)


# ── URLs ──────────────────────────────────────────────────────────────

def extract_video_id(url: str) -> Optional[str]:
    match = YOUTUBE_ID_PATTERN.search(url or "")
    return match.group(1) if match else None


def is_youtube_url(url: str) -> bool:
    return extract_video_id(url) is not None


def is_shorts_url(url: str) -> bool:
    return "/shorts/" in (url or "")


def find_urls(text: str) -> List[str]:
    return [u.rstrip(".,);!?") for u in URL_PATTERN.findall(text or "")]


def classify_url(url: str) -> str:
    """Return "recipe", "video", "social" or "other" for a link found in a description."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "other"
    host = (parsed.hostname or "").lower()
    path = parsed.path.lower()
    full = host + path

    if is_youtube_url(url):
        return "video"
    if any(site in full for site in RECIPE_SITES):
        return "recipe"
    if any(h in host for h in _NON_RECIPE_HOSTS):
        return "social"
    if _RECIPE_PATH.search(path):
        return "recipe"
    return "other"


def find_recipe_links(description: str, limit: int = MAX_DESCRIPTION_LINKS) -> List[str]:
    links = []
    for url in find_urls(description):
        if classify_url(url) == "recipe" and url not in links:
            links.append(url)
    return links[:limit]


# ── Shorts ────────────────────────────────────────────────────────────

def is_description_sparse(description: Optional[str]) -> bool:
    """A Short's description is sparse if short or barely mentions recipe words."""
    if not description:
        return True
    text = description.strip()
    if len(text) < SPARSE_DESCRIPTION_CHARS:
        return True
    lower = text.lower()
    hits = sum(1 for keyword in RECIPE_KEYWORDS if keyword in lower)
    return hits < SPARSE_KEYWORD_MINIMUM


_SOURCE_VIDEO_PATTERNS = [
    re.compile(r"youtube\.com/watch\?v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
]


def extract_source_video_id(description: Optional[str]) -> Optional[str]:
    """First full-length video linked from a Short's description."""
    if not description:
        return None
    for pattern in _SOURCE_VIDEO_PATTERNS:
        match = pattern.search(description)
        if match:
            return match.group(1)
    return None


# ── Comments ──────────────────────────────────────────────────────────

_TAG = re.compile(r"<[^>]+>")
_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)


def clean_comment_text(text: str) -> str:
    """Strip HTML tags (line breaks kept) and decode entities."""
    without_breaks = _BREAK.sub("\n", text or "")
    stripped = _TAG.sub("", without_breaks)
    return html.unescape(stripped).strip()


def select_pinned_comment(
    comments: List[VideoComment],
    channel_id: Optional[str],
    min_length: int = MIN_COMMENT_LENGTH,
) -> Optional[str]:
    """
    Pick the comment most likely to be the pinned recipe.

    Priority:
    1. First comment by the channel owner longer than min_length
    2. The top comment, if longer than min_length
    3. None
    """
    cleaned = [(c, clean_comment_text(c.text)) for c in comments]

    if channel_id:
        for comment, text in cleaned:
            if comment.author_channel_id == channel_id and len(text) > min_length:
                return text

    if cleaned and len(cleaned[0][1]) > min_length:
        return cleaned[0][1]
    return None
