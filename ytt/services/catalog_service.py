from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ytt.errors import NotFoundError
from ytt.services.common import (
    as_dict,
    as_list,
    coerce_count,
    coerce_str,
    execute_request,
    extract_string_list,
)
from ytt.services.duration import is_short, parse_duration

LOGGER = logging.getLogger("ytt.catalog")

MAX_PAGE_SIZE = 50
DETAIL_PARTS = "snippet,statistics,contentDetails"


@dataclass(frozen=True)
class VideoSummary:
    video_id: str
    title: str
    view_count: int
    published_at: str


@dataclass(frozen=True)
class VideoDetails:
    video_id: str
    title: str
    description: str
    channel_id: str
    channel_title: str
    duration: str
    view_count: int
    like_count: int
    comment_count: int
    published_at: str
    tags: tuple[str, ...] = ()


class CatalogAggregator:
    """Builds the list of a channel's uploads with shorts filtered out.

    `client` is a `googleapiclient` YouTube v3 resource. Requests are issued
    strictly one after another; the first failing call aborts the listing.
    """

    def __init__(self, client: Any, *, debug: bool = False) -> None:
        self._client = client
        self._debug = debug

    def list_videos(
        self,
        channel_id: str | None = None,
        *,
        min_duration_seconds: int,
    ) -> list[VideoSummary]:
        if not channel_id:
            channel_id = self._resolve_own_channel_id()
        self._trace("catalog channel_id=%s", channel_id)

        uploads_playlist_id = self._resolve_uploads_playlist_id(channel_id)
        self._trace("catalog uploads_playlist_id=%s", uploads_playlist_id)

        videos: list[VideoSummary] = []
        seen_ids: set[str] = set()
        page_token: str | None = None

        while True:
            query_kwargs: dict[str, object] = {
                "part": "snippet",
                "playlistId": uploads_playlist_id,
                "maxResults": MAX_PAGE_SIZE,
            }
            if page_token:
                query_kwargs["pageToken"] = page_token

            response = execute_request(
                self._client.playlistItems().list(**query_kwargs),
                context="error retrieving playlist items",
            )
            items = as_list(response.get("items"))
            self._trace("catalog playlist page items=%s", len(items))

            video_ids: list[str] = []
            for item in items:
                snippet = as_dict(as_dict(item).get("snippet"))
                video_id = as_dict(snippet.get("resourceId")).get("videoId")
                if isinstance(video_id, str) and video_id and video_id not in seen_ids:
                    seen_ids.add(video_id)
                    video_ids.append(video_id)

            if video_ids:
                videos.extend(self._summaries_for_page(video_ids, min_duration_seconds))

            raw_next = response.get("nextPageToken")
            page_token = raw_next if isinstance(raw_next, str) and raw_next.strip() else None
            if page_token is None:
                break

        self._trace("catalog returning videos=%s after filtering", len(videos))
        return videos

    def get_video_details(self, video_id: str) -> VideoDetails:
        response = execute_request(
            self._client.videos().list(part=DETAIL_PARTS, id=video_id),
            context="error retrieving video details",
        )
        items = as_list(response.get("items"))
        if not items:
            raise NotFoundError(f"video {video_id} not found")

        video = as_dict(items[0])
        snippet = as_dict(video.get("snippet"))
        statistics = as_dict(video.get("statistics"))
        content_details = as_dict(video.get("contentDetails"))
        return VideoDetails(
            video_id=coerce_str(video.get("id")) or video_id,
            title=coerce_str(snippet.get("title")),
            description=coerce_str(snippet.get("description")),
            channel_id=coerce_str(snippet.get("channelId")),
            channel_title=coerce_str(snippet.get("channelTitle")),
            duration=coerce_str(content_details.get("duration")),
            view_count=coerce_count(statistics.get("viewCount")),
            like_count=coerce_count(statistics.get("likeCount")),
            comment_count=coerce_count(statistics.get("commentCount")),
            published_at=coerce_str(snippet.get("publishedAt")),
            tags=extract_string_list(snippet.get("tags")),
        )

    def _summaries_for_page(
        self,
        video_ids: list[str],
        min_duration_seconds: int,
    ) -> list[VideoSummary]:
        self._trace("catalog fetching details video_ids=%s", video_ids)
        response = execute_request(
            self._client.videos().list(
                part=DETAIL_PARTS,
                id=",".join(video_ids),
                maxResults=len(video_ids),
            ),
            context="error retrieving video statistics",
        )
        items = as_list(response.get("items"))
        self._trace("catalog videos.list returned items=%s", len(items))

        details_by_id: dict[str, dict[str, Any]] = {}
        for item in items:
            item_dict = as_dict(item)
            raw_video_id = item_dict.get("id")
            if isinstance(raw_video_id, str):
                details_by_id[raw_video_id] = item_dict

        summaries: list[VideoSummary] = []
        for video_id in video_ids:
            detail = details_by_id.get(video_id)
            if detail is None:
                self._trace("catalog video %s has no detail record; skipping", video_id)
                continue

            raw_duration = coerce_str(as_dict(detail.get("contentDetails")).get("duration"))
            duration_seconds = parse_duration(raw_duration)
            short = is_short(duration_seconds, min_duration_seconds)
            self._trace(
                "catalog video %s duration=%s (%ss) min_duration=%s is_short=%s",
                video_id,
                raw_duration,
                duration_seconds,
                min_duration_seconds,
                short,
            )
            if short:
                continue

            snippet = as_dict(detail.get("snippet"))
            statistics = as_dict(detail.get("statistics"))
            summaries.append(
                VideoSummary(
                    video_id=video_id,
                    title=coerce_str(snippet.get("title")),
                    view_count=coerce_count(statistics.get("viewCount")),
                    published_at=coerce_str(snippet.get("publishedAt")),
                )
            )
        return summaries

    def _resolve_own_channel_id(self) -> str:
        response = execute_request(
            self._client.channels().list(part="id,statistics", mine=True),
            context="error retrieving user's channel",
        )
        items = as_list(response.get("items"))
        if not items:
            raise NotFoundError("no channel found for authenticated user")

        channel = as_dict(items[0])
        statistics = as_dict(channel.get("statistics"))
        self._trace(
            "catalog channel stats videos=%s subscribers=%s",
            coerce_count(statistics.get("videoCount")),
            coerce_count(statistics.get("subscriberCount")),
        )
        channel_id = channel.get("id")
        if not isinstance(channel_id, str) or not channel_id:
            raise NotFoundError("no channel found for authenticated user")
        return channel_id

    def _resolve_uploads_playlist_id(self, channel_id: str) -> str:
        response = execute_request(
            self._client.channels().list(part="contentDetails", id=channel_id),
            context="error retrieving channel details",
        )
        items = as_list(response.get("items"))
        if not items:
            raise NotFoundError(f"channel {channel_id} not found")

        content_details = as_dict(as_dict(items[0]).get("contentDetails"))
        related = as_dict(content_details.get("relatedPlaylists"))
        uploads = related.get("uploads")
        if not isinstance(uploads, str) or not uploads.strip():
            raise NotFoundError(f"channel {channel_id} has no uploads playlist")
        return uploads

    def _trace(self, message: str, *args: object) -> None:
        if self._debug:
            LOGGER.debug(message, *args)
