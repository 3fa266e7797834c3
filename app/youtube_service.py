"""
Video platform access: data API (metadata, comments) and caption service.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from baratie.captions import run_caption_chain, PROFILE_ALTERNATE
from baratie.models import CaptionResult, TranscriptEntry, VideoComment, VideoDetails
from baratie.youtube import COMMENT_FETCH_LIMIT, select_pinned_comment

logger = logging.getLogger(__name__)

# Request profiles for the caption service. Upstream bot detection rejects
# one or the other intermittently.
REQUEST_PROFILES = {
    "default": {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        "Accept-Language": "en-US,en;q=0.9",
    },
    PROFILE_ALTERNATE: {
        "User-Agent": (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
        ),
        "Accept-Language": "en",
    },
}


class PlatformRequestError(Exception):
    """Raised when the video data API, caption service or a webpage returns non-2xx."""

    def __init__(self, status_code: Optional[int], body: str, service: str = "platform"):
        self.status_code = status_code
        self.body = body
        label = f"HTTP {status_code}" if status_code is not None else "network error"
        super().__init__(f"{service} request failed ({label}): {body[:200]}")


async def _get_json(
    url: str,
    params: Dict[str, Any],
    service: str,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 20.0,
) -> Any:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, headers=headers) as client:
            response = await client.get(url, params=params)
    except httpx.HTTPError as e:
        raise PlatformRequestError(None, str(e), service) from e
    if response.is_error:
        raise PlatformRequestError(response.status_code, response.text, service)
    try:
        return response.json()
    except ValueError as e:
        raise PlatformRequestError(response.status_code, f"non-JSON body: {response.text}", service) from e


# ── Data API ──────────────────────────────────────────────────────────

class YouTubeDataClient:
    """Minimal YouTube Data API v3 client ({items: [{snippet: ...}]})."""

    def __init__(self, base_url: str, api_key: str = "", transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport

    async def get_video(self, video_id: str) -> VideoDetails:
        data = await _get_json(
            f"{self.base_url}/videos",
            {"part": "snippet", "id": video_id, "key": self.api_key},
            "YouTube API",
            transport=self._transport,
        )
        items = data.get("items") or []
        if not items:
            raise PlatformRequestError(404, f"Video {video_id} not found or is private", "YouTube API")
        snippet = items[0].get("snippet") or {}
        return VideoDetails(
            video_id=video_id,
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            channel_title=snippet.get("channelTitle", ""),
            channel_id=snippet.get("channelId"),
        )

    async def get_top_comments(self, video_id: str, limit: int = COMMENT_FETCH_LIMIT) -> List[VideoComment]:
        data = await _get_json(
            f"{self.base_url}/commentThreads",
            {
                "part": "snippet",
                "videoId": video_id,
                "order": "relevance",
                "maxResults": limit,
                "key": self.api_key,
            },
            "YouTube API",
            transport=self._transport,
        )
        comments = []
        for item in data.get("items") or []:
            snippet = (item.get("snippet") or {}).get("topLevelComment", {}).get("snippet") or {}
            if not snippet:
                continue
            comments.append(VideoComment(
                text=snippet.get("textDisplay") or snippet.get("textOriginal") or "",
                author=snippet.get("authorDisplayName", ""),
                author_channel_id=(snippet.get("authorChannelId") or {}).get("value"),
                like_count=snippet.get("likeCount") or 0,
            ))
        return comments


async def get_pinned_comment(video: VideoDetails, client: YouTubeDataClient) -> Optional[str]:
    """
    Best-effort pinned recipe comment. Comments being disabled (403) or any
    other failure just means no comment.
    """
    try:
        comments = await client.get_top_comments(video.video_id)
    except Exception as e:
        logger.warning(f"[YOUTUBE] Comments unavailable for {video.video_id}: {e}")
        return None
    return select_pinned_comment(comments, video.channel_id)


# ── Caption service ───────────────────────────────────────────────────

class CaptionClient:
    """Transcript service: GET ?videoId=&lang= → {transcript: [{text, start, duration}]}."""

    def __init__(self, url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._transport = transport

    async def fetch_transcript(self, video_id: str, language: Optional[str], profile: str) -> List[TranscriptEntry]:
        params = {"videoId": video_id}
        if language:
            params["lang"] = language
        data = await _get_json(
            self.url,
            params,
            "Caption service",
            headers=REQUEST_PROFILES.get(profile, REQUEST_PROFILES["default"]),
            transport=self._transport,
        )
        entries = data.get("transcript") if isinstance(data, dict) else data
        return [
            TranscriptEntry(
                text=str(e.get("text", "")),
                start=float(e.get("start") or e.get("offset") or 0),
                duration=float(e.get("duration") or 0),
            )
            for e in entries or []
            if isinstance(e, dict)
        ]


async def get_captions(video_id: str, language: Optional[str], client: CaptionClient) -> CaptionResult:
    """
    Transcript for video_id via the fallback chain.

    Raises:
        CaptionsUnavailableError: every attempt failed (message of the first failure)
    """
    return await run_caption_chain(video_id, language, client.fetch_transcript)
