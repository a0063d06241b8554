from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from ytt.errors import NotFoundError, RemoteError
from ytt.services.common import as_dict, as_list, coerce_str, execute_request

LOGGER = logging.getLogger("ytt.transcripts")

DEFAULT_FILENAME_MAX_LENGTH = 100
PREFERRED_CAPTION_LANGUAGES: frozenset[str] = frozenset({"en", ""})
RESERVED_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*]')


@dataclass(frozen=True)
class Transcript:
    video_id: str
    title: str
    caption_id: str
    language: str
    content: bytes


class TranscriptService:
    def __init__(self, client: Any) -> None:
        self._client = client

    def fetch_transcript(self, video_id: str) -> Transcript:
        response = execute_request(
            self._client.videos().list(part="snippet", id=video_id),
            context="error retrieving video details",
        )
        items = as_list(response.get("items"))
        if not items:
            raise NotFoundError(f"video {video_id} not found")
        title = coerce_str(as_dict(as_dict(items[0]).get("snippet")).get("title"))

        captions_response = execute_request(
            self._client.captions().list(part="snippet", videoId=video_id),
            context="error retrieving captions list",
        )
        caption_id, language = _select_caption_track(as_list(captions_response.get("items")))
        if caption_id is None:
            raise NotFoundError(f"no captions found for video {video_id}")

        LOGGER.info(
            "downloading transcript video_id=%s caption_id=%s language=%s",
            video_id,
            caption_id,
            language,
        )
        try:
            content = self._client.captions().download(id=caption_id).execute()
        except Exception as exc:
            raise RemoteError("error downloading captions", cause=exc) from exc

        if isinstance(content, str):
            content = content.encode("utf-8")
        return Transcript(
            video_id=video_id,
            title=title,
            caption_id=caption_id,
            language=language,
            content=bytes(content or b""),
        )


def _select_caption_track(items: list[Any]) -> tuple[str | None, str]:
    tracks: list[tuple[str, str]] = []
    for item in items:
        item_dict = as_dict(item)
        caption_id = coerce_str(item_dict.get("id"))
        if not caption_id:
            continue
        language = coerce_str(as_dict(item_dict.get("snippet")).get("language"))
        tracks.append((caption_id, language))

    for caption_id, language in tracks:
        if language in PREFERRED_CAPTION_LANGUAGES:
            return caption_id, language
    if tracks:
        return tracks[0]
    return None, ""


def sanitize_filename(name: str, max_length: int = DEFAULT_FILENAME_MAX_LENGTH) -> str:
    """Make a video title safe to use as part of a filename.

    Reserved characters become `_`, the result is cut to `max_length` and then
    stripped of leading/trailing spaces and periods. Sanitizing twice gives
    the same result as sanitizing once.
    """
    sanitized = RESERVED_FILENAME_PATTERN.sub("_", name)
    sanitized = sanitized[:max_length]
    return sanitized.strip(" .")


def transcript_filename(
    video_id: str,
    title: str,
    *,
    max_length: int = DEFAULT_FILENAME_MAX_LENGTH,
) -> str:
    return f"{video_id}-{sanitize_filename(title, max_length)}.txt"
