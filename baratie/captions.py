"""
Caption fallback chain.

The chain is an ordered list of CaptionAttempt(language, profile) values
consumed by a single loop. The loop returns the first non-empty
transcript and, when every attempt fails, raises the first error seen.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from baratie.models import CaptionResult, TranscriptEntry

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGES = ["en", "en-US", "en-GB"]

PROFILE_DEFAULT = "default"
PROFILE_ALTERNATE = "alternate"
PROFILES = [PROFILE_DEFAULT, PROFILE_ALTERNATE]


class CaptionsUnavailableError(Exception):
    """Raised when no caption attempt produced a transcript."""
    pass


class EmptyTranscriptError(Exception):
    """Raised when a fetch succeeds but the transcript has no entries."""
    pass


@dataclass(frozen=True)
class CaptionAttempt:
    language: Optional[str]   # None = let the service choose
    profile: str


def build_caption_attempts(requested_language: Optional[str]) -> List[CaptionAttempt]:
    """
    Requested language (both profiles), then en / en-US / en-GB (both
    profiles, skipping the requested one), then no language hint.
    """
    attempts: List[CaptionAttempt] = []
    languages: List[str] = []
    if requested_language:
        languages.append(requested_language)
    for lang in FALLBACK_LANGUAGES:
        if lang.lower() not in (l.lower() for l in languages):
            languages.append(lang)

    for lang in languages:
        for profile in PROFILES:
            attempts.append(CaptionAttempt(language=lang, profile=profile))
    attempts.append(CaptionAttempt(language=None, profile=PROFILE_DEFAULT))
    return attempts


TranscriptFetcher = Callable[[str, Optional[str], str], Awaitable[List[TranscriptEntry]]]


async def run_caption_chain(
    video_id: str,
    requested_language: Optional[str],
    fetch: TranscriptFetcher,
    attempts: Optional[List[CaptionAttempt]] = None,
) -> CaptionResult:
    """
    Try each attempt in order until one returns a non-empty transcript.

    Args:
        video_id: YouTube video id
        requested_language: language the caller asked for (may be None)
        fetch: async (video_id, language, profile) -> transcript entries
        attempts: override for the default attempt list

    Raises:
        CaptionsUnavailableError: carrying the first attempt's error message
    """
    if attempts is None:
        attempts = build_caption_attempts(requested_language)

    first_error: Optional[Exception] = None
    for attempt in attempts:
        try:
            transcript = await fetch(video_id, attempt.language, attempt.profile)
            if not transcript:
                raise EmptyTranscriptError(
                    f"No captions found for video {video_id} ({attempt.language or 'default'})"
                )
        except Exception as e:
            logger.info(f"[CAPTIONS] {video_id} lang={attempt.language} profile={attempt.profile} failed: {e}")
            if first_error is None:
                first_error = e
            continue

        if attempt.language != requested_language:
            logger.info(
                f"[CAPTIONS] {video_id}: requested {requested_language!r}, "
                f"using {attempt.language or 'default'!r}"
            )
        return CaptionResult(
            video_id=video_id,
            language=attempt.language,
            requested_language=requested_language,
            transcript=transcript,
        )

    message = str(first_error) if first_error else f"No captions available for video {video_id}"
    raise CaptionsUnavailableError(message) from first_error
