"""Unit tests for VideoSearchService against an httpx mock transport."""
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.schemas.recommendation import WeightedQuery
from app.services.video_search_service import VideoSearchError, VideoSearchService

SEARCH_HITS = {
    "yoga for beginners": [("v1", "Gentle Yoga"), ("v2", "Morning Flow")],
    "surprising facts": [("v2", "Morning Flow"), ("v3", "Ocean Facts")],
}
DURATIONS = {"v1": "PT12M30S", "v2": "PT1H", "v3": "P1D"}


def _search_payload(query):
    return {
        "items": [
            {
                "id": {"videoId": vid},
                "snippet": {
                    "title": title,
                    "channelTitle": "Channel " + vid,
                    "description": "desc",
                    "thumbnails": {"medium": {"url": f"https://img/{vid}.jpg"}},
                },
            }
            for vid, title in SEARCH_HITS.get(query, [])
        ]
        + [{"id": {"kind": "youtube#channel"}, "snippet": {}}]
    }


def _videos_payload(ids):
    return {
        "items": [
            {"id": vid, "contentDetails": {"duration": DURATIONS[vid]}}
            for vid in ids
            if vid in DURATIONS
        ]
    }


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def make_service(requests_seen):
    def _make(handler=None, api_key="yt-key"):
        def default_handler(request):
            requests_seen.append(request)
            if request.url.path.endswith("/search"):
                return httpx.Response(200, json=_search_payload(request.url.params["q"]))
            ids = request.url.params["id"].split(",")
            return httpx.Response(200, json=_videos_payload(ids))

        transport = httpx.MockTransport(handler or default_handler)
        client = httpx.AsyncClient(transport=transport, base_url="https://yt.test/youtube/v3")
        with patch("app.services.video_search_service.get_settings") as mock_settings:
            settings = MagicMock()
            settings.YOUTUBE_API_KEY = api_key
            settings.VIDEO_RESULTS_PER_QUERY = 3
            mock_settings.return_value = settings
            return VideoSearchService(client=client)

    return _make


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_maps_snippets(self, make_service, requests_seen):
        service = make_service()
        results = await service.search("yoga for beginners")
        assert [r.video_id for r in results] == ["v1", "v2"]
        first = results[0]
        assert first.title == "Gentle Yoga"
        assert first.channel == "Channel v1"
        assert first.thumbnail_url == "https://img/v1.jpg"
        assert first.source_query == "yoga for beginners"

        params = requests_seen[0].url.params
        assert params["type"] == "video"
        assert params["safeSearch"] == "strict"
        assert params["maxResults"] == "3"
        assert params["key"] == "yt-key"

    @pytest.mark.asyncio
    async def test_search_plan_dedupes_and_adds_durations(self, make_service):
        service = make_service()
        plan = [
            WeightedQuery(query="yoga for beginners", source="profile", weight=0.35),
            WeightedQuery(query="surprising facts", source="exploration", weight=0.1),
        ]
        feed = await service.search_plan(plan)
        assert [(v.video_id, v.source) for v in feed] == [
            ("v1", "profile"), ("v2", "profile"), ("v3", "exploration"),
        ]
        assert [v.duration_seconds for v in feed] == [750, 3600, 30]

    @pytest.mark.asyncio
    async def test_duration_batches(self, make_service, requests_seen):
        service = make_service()
        await service.durations([f"id{i}" for i in range(120)])
        batches = [r for r in requests_seen if r.url.path.endswith("/videos")]
        assert [len(r.url.params["id"].split(",")) for r in batches] == [50, 50, 20]


class TestErrors:

    @pytest.mark.asyncio
    async def test_missing_key(self, make_service):
        service = make_service(api_key="")
        with pytest.raises(VideoSearchError):
            await service.search("anything")

    @pytest.mark.asyncio
    async def test_http_status_error(self, make_service):
        service = make_service(handler=lambda request: httpx.Response(403, json={}))
        with pytest.raises(VideoSearchError, match="403"):
            await service.search("anything")

    @pytest.mark.asyncio
    async def test_transport_error(self, make_service):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        service = make_service(handler=handler)
        with pytest.raises(VideoSearchError):
            await service.search("anything")

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, make_service):
        service = make_service()
        await service.aclose()
        assert not service._client.is_closed
