"""Test helpers: a fake upstream client, video factories and app wiring."""

from datetime import datetime, timedelta, timezone

from starlette.requests import Request

from backend.app.config import Settings
from backend.app.errors import YouTubeApiError
from backend.app.services.credentials import CredentialRotator
from backend.main import create_app

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def make_video(video_id, days_ago, views, duration="PT3M", category_id="24", likes=10, comments=2):
    published_at = (FIXED_NOW - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")
    return {
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "description": f"About {video_id}",
            "channelTitle": "Test Channel",
            "publishedAt": published_at,
            "categoryId": category_id,
            "thumbnails": {
                "high": {"url": f"https://img/{video_id}.jpg", "width": 480, "height": 360},
            },
        },
        "statistics": {"viewCount": str(views), "likeCount": str(likes), "commentCount": str(comments)},
        "contentDetails": {"duration": duration},
    }


def search_page(video_ids, next_page_token=None):
    payload = {"items": [{"id": {"kind": "youtube#video", "videoId": vid}} for vid in video_ids]}
    if next_page_token:
        payload["nextPageToken"] = next_page_token
    return payload


class FakeYouTubeClient:
    """Stands in for YouTubeClient; records every call it receives."""

    def __init__(self, chart=None, search_pages=None, videos=None, failing_batches=None):
        self.chart = chart or {"items": []}
        self.search_pages = list(search_pages or [])
        self.videos = {item["id"]: item for item in (videos or [])}
        self.failing_batches = set(failing_batches or [])
        self.calls = []

    def most_popular(self, api_key, region, max_results, category_id=None, page_token=None, hl=None):
        self.calls.append(("chart", api_key, {
            "region": region,
            "max_results": max_results,
            "category_id": category_id,
            "page_token": page_token,
            "hl": hl,
        }))
        if isinstance(self.chart, Exception):
            raise self.chart
        return self.chart

    def search_short_videos(self, api_key, query, region, order, relevance_language=None,
                            published_after=None, category_id=None, page_token=None, max_results=50):
        index = len([c for c in self.calls if c[0] == "search"])
        self.calls.append(("search", api_key, {
            "query": query,
            "region": region,
            "order": order,
            "published_after": published_after,
            "category_id": category_id,
            "page_token": page_token,
            "max_results": max_results,
        }))
        if index >= len(self.search_pages):
            return {"items": []}
        page = self.search_pages[index]
        if isinstance(page, Exception):
            raise page
        return page

    def videos_by_id(self, api_key, video_ids):
        index = len([c for c in self.calls if c[0] == "details"])
        self.calls.append(("details", api_key, {"ids": list(video_ids)}))
        if index in self.failing_batches:
            raise YouTubeApiError("Backend Error", status_code=503)
        return {"items": [self.videos[vid] for vid in video_ids if vid in self.videos]}

    def calls_of(self, kind):
        return [c for c in self.calls if c[0] == kind]


def make_settings(**overrides):
    values = {
        "api_keys": ["key-a"],
        "session_secret": "test-secret",
        "cors_origins": ["http://testserver"],
    }
    values.update(overrides)
    return Settings(**values)


def build_app(client, keys=("key-a",), **settings_overrides):
    settings = make_settings(api_keys=list(keys), **settings_overrides)
    return create_app(
        settings,
        client=client,
        rotator=CredentialRotator(list(keys)),
        now=lambda: FIXED_NOW,
    )


def make_request(app, ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [],
            "client": (ip, 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
            "app": app,
        }
    )
