from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
from backend.app.config import Settings
from backend.app.services.youtube_client import YOUTUBE_SEARCH_LIST, YouTubeClient


def make_video(video_id: str, days_ago: int, views: int, duration: str) -> dict:
    published_at = (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")
    return {
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "channelTitle": "Smoke Channel",
            "publishedAt": published_at,
            "categoryId": "24",
            "thumbnails": {
                "high": {"url": f"https://img/{video_id}.jpg", "width": 480, "height": 360},
            },
        },
        "statistics": {"viewCount": str(views), "likeCount": "3", "commentCount": "1"},
        "contentDetails": {"duration": duration},
    }


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def make_client(api_keys: list[str] | None = None) -> TestClient:
    settings = Settings(api_keys=["smoke-key"] if api_keys is None else api_keys, session_secret="smoke")
    return TestClient(main_module.create_app(settings))


def test_health() -> None:
    response = make_client().get("/health")
    assert_true(response.json().get("ok") is True, "/health should return ok=true")


def test_popular_passthrough() -> None:
    def fake_youtube_api_get(self, url: str, params: dict) -> dict:
        _ = (self, url)
        assert_true(params.get("chart") == "mostPopular", "popular mode should use the chart endpoint")
        return {
            "items": [make_video("top1", 3, 25000, "PT2M5S"), make_video("top2", 2, 90000, "PT9M")],
            "nextPageToken": "NEXT_TOKEN",
            "pageInfo": {"totalResults": 200},
        }

    with patch.object(YouTubeClient, "youtube_api_get", fake_youtube_api_get):
        payload = make_client().get("/api/youtube", params={"regionCode": "us"}).json()

    assert_true(payload.get("nextPageToken") == "NEXT_TOKEN", "popular mode should pass the page token through")
    assert_true([v["id"] for v in payload["videos"]] == ["top2", "top1"], "popular mode should sort by views")


def test_shorts_two_stage() -> None:
    call_count = {"search": 0, "videos": 0}

    def fake_youtube_api_get(self, url: str, params: dict) -> dict:
        _ = self
        if url == YOUTUBE_SEARCH_LIST:
            call_count["search"] += 1
            return {"items": [{"id": {"videoId": vid}} for vid in ("sh1", "sh2", "long1")]}
        call_count["videos"] += 1
        return {
            "items": [
                make_video("sh1", 1, 1500, "PT45S"),
                make_video("sh2", 2, 3500, "PT59S"),
                make_video("long1", 1, 99000, "PT4M"),
            ]
        }

    with patch.object(YouTubeClient, "youtube_api_get", fake_youtube_api_get):
        payload = make_client().get(
            "/api/youtube", params={"type": "shorts", "regionCode": "US", "dateFilter": "week"}
        ).json()

    assert_true(call_count == {"search": 1, "videos": 1}, "shorts should search once and hydrate once")
    assert_true([v["id"] for v in payload["videos"]] == ["sh2", "sh1"], "shorts should drop >60s videos")
    assert_true("nextPageToken" not in payload, "shorts should not return page tokens")


def test_missing_key() -> None:
    response = make_client(api_keys=[]).get("/api/youtube")
    assert_true(response.status_code == 500, "missing API key should be a 500")
    assert_true(response.json().get("errorCode") == "CONFIGURATION_ERROR", "missing API key error code")


def test_dashboard_page() -> None:
    def fake_youtube_api_get(self, url: str, params: dict) -> dict:
        _ = (self, url, params)
        return {"items": [make_video("dash1", 1, 12000, "PT3M")]}

    with patch.object(YouTubeClient, "youtube_api_get", fake_youtube_api_get):
        page = make_client().get("/")

    assert_true(page.status_code == 200, "dashboard should render")
    assert_true('data-video-id="dash1"' in page.text, "dashboard should render a card per video")


def run() -> int:
    checks = [
        ("health", test_health),
        ("popular passthrough", test_popular_passthrough),
        ("shorts two-stage fetch", test_shorts_two_stage),
        ("missing key", test_missing_key),
        ("dashboard page", test_dashboard_page),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
