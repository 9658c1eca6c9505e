"""
Wellspring — VideoSearchService: YouTube Data API collaborator

Runs the recommendation mixer's weighted query plan against YouTube:

  1. ``search`` each planned query (``/search``, videos only, safe search)
  2. fetch durations for all hits in one ``/videos?part=contentDetails`` call
  3. de-duplicate by video id, keeping the first (highest-priority) source

Durations are ISO-8601 strings, converted with ``parse_duration``.  HTTP
and transport failures surface as ``VideoSearchError``; there is no retry.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from app.config import get_settings
from app.schemas.recommendation import VideoResult, WeightedQuery
from app.services.recommendation_service import parse_duration

logger = structlog.get_logger("wellspring.video_search_service")


class VideoSearchError(RuntimeError):
    """The video search API could not be reached or rejected the request."""


class VideoSearchService:
    """Thin async client over the YouTube Data API v3.

    Parameters
    ----------
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one backed by
        ``httpx.MockTransport``).  When omitted, one is created with the
        configured base URL and timeout and closed by ``aclose``.
    """

    MAX_DETAIL_IDS: int = 50

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        settings = get_settings()
        self._api_key = settings.YOUTUBE_API_KEY
        self._results_per_query = settings.VIDEO_RESULTS_PER_QUERY
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.YOUTUBE_API_BASE_URL,
            timeout=settings.VIDEO_SEARCH_TIMEOUT_S,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def search(self, query: str, max_results: int | None = None) -> list[VideoResult]:
        """Return up to ``max_results`` videos for ``query`` (no durations)."""
        payload = await self._get(
            "/search",
            {
                "part": "snippet",
                "q": query,
                "type": "video",
                "safeSearch": "strict",
                "maxResults": max_results or self._results_per_query,
            },
        )
        results: list[VideoResult] = []
        for item in payload.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet") or {}
            thumbnails = snippet.get("thumbnails") or {}
            thumb = thumbnails.get("medium") or thumbnails.get("default") or {}
            results.append(
                VideoResult(
                    video_id=video_id,
                    title=snippet.get("title", ""),
                    channel=snippet.get("channelTitle", ""),
                    description=snippet.get("description", ""),
                    thumbnail_url=thumb.get("url", ""),
                    source_query=query,
                )
            )
        return results

    async def search_plan(self, plan: list[WeightedQuery]) -> list[VideoResult]:
        """Run every planned query and return de-duplicated, timed results."""
        videos: dict[str, VideoResult] = {}
        for planned in plan:
            for video in await self.search(planned.query):
                if video.video_id not in videos:
                    videos[video.video_id] = video.model_copy(update={"source": planned.source})

        durations = await self.durations(list(videos))
        feed = [
            v.model_copy(update={"duration_seconds": durations.get(v.video_id, parse_duration(None))})
            for v in videos.values()
        ]
        logger.info("video_plan_searched", queries=len(plan), videos=len(feed))
        return feed

    async def durations(self, video_ids: list[str]) -> dict[str, int]:
        """Map video id -> duration in seconds."""
        durations: dict[str, int] = {}
        for start in range(0, len(video_ids), self.MAX_DETAIL_IDS):
            batch = video_ids[start : start + self.MAX_DETAIL_IDS]
            payload = await self._get(
                "/videos", {"part": "contentDetails", "id": ",".join(batch)}
            )
            for item in payload.get("items", []):
                details = item.get("contentDetails") or {}
                durations[item.get("id", "")] = parse_duration(details.get("duration"))
        return durations

    # ── HTTP ──────────────────────────────────────────────────────────

    async def _get(self, path: str, params: dict[str, Any]) -> dict:
        if not self._api_key:
            raise VideoSearchError("YOUTUBE_API_KEY is not configured")

        try:
            resp = await self._client.get(path, params={**params, "key": self._api_key})
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "video_search_http_error",
                path=path,
                status=exc.response.status_code,
            )
            raise VideoSearchError(
                f"YouTube API returned {exc.response.status_code} for {path}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("video_search_transport_error", path=path, error=str(exc))
            raise VideoSearchError(f"YouTube API request failed for {path}: {exc}") from exc

        return resp.json()
