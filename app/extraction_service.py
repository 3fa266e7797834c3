"""
Source extraction agents: pasted text, webpages and YouTube videos.

Each agent returns an AgentOutcome holding a validated Recipe. Upstream
failures raise (AIRequestError, PlatformRequestError); candidates that
fail validation raise InvalidRecipeError. The chat pipeline turns all of
these into user-visible messages.
"""
import logging
from typing import List, Optional

import httpx

from app.ai_proxy import AIProxyClient, MalformedResponseError
from app.clients import (
    ai_client,
    youtube_client,
    caption_client,
    DEFAULT_CAPTION_LANGUAGE,
    MAX_PAGE_CHARS,
)
from app.prompt_builder import (
    build_prompt_extract_text,
    build_prompt_extract_webpage,
    build_prompt_extract_video,
)
from app.vision_service import extract_recipe_from_files
from app.youtube_service import (
    CaptionClient,
    PlatformRequestError,
    YouTubeDataClient,
    get_captions,
    get_pinned_comment,
)
from baratie.captions import CaptionsUnavailableError
from baratie.models import AgentOutcome, AttachedFile, Recipe, VideoDetails
from baratie.parsing import extract_json_object, parse_recipe_text
from baratie.validation import InvalidRecipeError, validate_candidate
from baratie.webpage import clean_html, find_json_ld_recipe
from baratie.youtube import (
    extract_video_id,
    extract_source_video_id,
    find_recipe_links,
    is_description_sparse,
    is_shorts_url,
)

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
FULL_VIDEO_SUFFIX = " (from full video)"


async def _extract_candidate(prompt: str, ai: AIProxyClient, source: Optional[str] = None) -> Recipe:
    """One model call → scanned JSON (or headed plain text) → validated Recipe."""
    text = await ai.generate(prompt)
    candidate = extract_json_object(text)
    if candidate is None:
        if not text.strip():
            raise MalformedResponseError("Empty reply from recipe extraction")
        logger.info("[EXTRACT] No JSON in reply, falling back to text parsing")
        candidate = parse_recipe_text(text)
    return validate_candidate(candidate, source=source)


# ── Text ──────────────────────────────────────────────────────────────

async def extract_from_text(text: str, ai: Optional[AIProxyClient] = None) -> AgentOutcome:
    ai = ai or ai_client
    recipe = await _extract_candidate(build_prompt_extract_text(text), ai)
    return AgentOutcome(recipe=recipe)


# ── Webpages ──────────────────────────────────────────────────────────

async def fetch_webpage(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """
    Raw HTML of url.

    Raises:
        PlatformRequestError: non-2xx status or network failure
    """
    try:
        async with httpx.AsyncClient(
            timeout=20.0, follow_redirects=True, headers=BROWSER_HEADERS, transport=transport
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise PlatformRequestError(None, str(e), "Webpage") from e
    if response.is_error:
        raise PlatformRequestError(response.status_code, response.text, "Webpage")
    return response.text


async def extract_from_webpage(
    url: str,
    user_message: str = "",
    ai: Optional[AIProxyClient] = None,
    fetch=None,
) -> AgentOutcome:
    """
    JSON-LD Recipe if the page publishes one, otherwise cleaned page text
    through the model.
    """
    ai = ai or ai_client
    html = await (fetch or fetch_webpage)(url)

    structured = find_json_ld_recipe(html)
    if structured:
        try:
            recipe = validate_candidate(structured, source=url)
            logger.info(f"[EXTRACT] JSON-LD recipe on {url}: '{recipe.title}'")
            return AgentOutcome(recipe=recipe)
        except InvalidRecipeError:
            logger.info(f"[EXTRACT] JSON-LD on {url} unusable, using page text")

    page_text = clean_html(html, max_chars=MAX_PAGE_CHARS)
    recipe = await _extract_candidate(build_prompt_extract_webpage(url, page_text, user_message), ai, source=url)
    return AgentOutcome(recipe=recipe)


# ── YouTube ───────────────────────────────────────────────────────────

async def _recipe_from_linked_pages(links: List[str], ai: AIProxyClient, fetch=None) -> Optional[Recipe]:
    for link in links:
        try:
            outcome = await extract_from_webpage(link, ai=ai, fetch=fetch)
            logger.info(f"[EXTRACT] Recipe found via description link {link}")
            return outcome.recipe
        except Exception as e:
            logger.info(f"[EXTRACT] Description link {link} failed: {e}")
    return None


async def _extract_video(
    video: VideoDetails,
    language: Optional[str],
    ai: AIProxyClient,
    youtube: YouTubeDataClient,
    captions: CaptionClient,
    fetch=None,
) -> Recipe:
    """
    Transcript first; only without a usable transcript: recipe links in the
    description, then description plus pinned comment.
    """
    caption_error: Optional[Exception] = None
    try:
        result = await get_captions(video.video_id, language, captions)
        prompt = build_prompt_extract_video(video.title, video.channel_title, transcript=result.text)
        return await _extract_candidate(prompt, ai)
    except CaptionsUnavailableError as e:
        caption_error = e
        logger.info(f"[EXTRACT] No transcript for {video.video_id}: {e}")
    except InvalidRecipeError:
        logger.info(f"[EXTRACT] Transcript of {video.video_id} held no recipe, trying description")

    linked = await _recipe_from_linked_pages(find_recipe_links(video.description), ai, fetch=fetch)
    if linked is not None:
        return linked

    pinned = await get_pinned_comment(video, youtube)
    if not video.description.strip() and not pinned:
        if caption_error is not None:
            raise caption_error
        raise InvalidRecipeError("No recipe content found in the video description or comments.")

    prompt = build_prompt_extract_video(
        video.title,
        video.channel_title,
        description=video.description,
        pinned_comment=pinned,
    )
    return await _extract_candidate(prompt, ai)


async def extract_from_youtube(
    url: str,
    language: Optional[str] = None,
    ai: Optional[AIProxyClient] = None,
    youtube: Optional[YouTubeDataClient] = None,
    captions: Optional[CaptionClient] = None,
    fetch=None,
) -> AgentOutcome:
    """
    Recipe from a YouTube video or Short.

    A Short with a sparse description that links a full-length video is
    extracted from that video instead; if that fails the Short's own content
    is used.
    """
    ai = ai or ai_client
    youtube = youtube or youtube_client
    captions = captions or caption_client
    language = language or DEFAULT_CAPTION_LANGUAGE

    video_id = extract_video_id(url)
    if not video_id:
        raise InvalidRecipeError("I couldn't find a video id in that YouTube link.")

    video = await youtube.get_video(video_id)

    if is_shorts_url(url) and is_description_sparse(video.description):
        source_id = extract_source_video_id(video.description)
        if source_id and source_id != video_id:
            logger.info(f"[EXTRACT] Short {video_id} is sparse, trying source video {source_id}")
            try:
                source_video = await youtube.get_video(source_id)
                recipe = await _extract_video(source_video, language, ai, youtube, captions, fetch=fetch)
                recipe = recipe.model_copy(update={
                    "title": recipe.title + FULL_VIDEO_SUFFIX,
                    "source": url,
                })
                return AgentOutcome(recipe=recipe)
            except Exception as e:
                logger.warning(f"[EXTRACT] Source video {source_id} failed, using the Short: {e}")

    recipe = await _extract_video(video, language, ai, youtube, captions, fetch=fetch)
    return AgentOutcome(recipe=recipe.model_copy(update={"source": url}))


# ── Dispatch ──────────────────────────────────────────────────────────

async def extract_from_url(url: str, user_message: str = "", ai: Optional[AIProxyClient] = None) -> AgentOutcome:
    if extract_video_id(url):
        return await extract_from_youtube(url, ai=ai)
    return await extract_from_webpage(url, user_message=user_message, ai=ai)


async def extract_recipe(
    user_message: str,
    files: List[AttachedFile],
    url: Optional[str] = None,
    ai: Optional[AIProxyClient] = None,
) -> AgentOutcome:
    """Pick the agent for this turn: files, then URL, then pasted text."""
    if files:
        return await extract_recipe_from_files(files, user_message, ai=ai)
    if url:
        return await extract_from_url(url, user_message, ai=ai)
    return await extract_from_text(user_message, ai=ai)
