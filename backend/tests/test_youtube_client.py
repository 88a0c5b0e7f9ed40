import json

import pytest
import requests

from backend.app.errors import RegionRejectedError, YouTubeApiError
from backend.app.services.youtube_client import (
    YOUTUBE_SEARCH_LIST,
    YOUTUBE_VIDEOS_LIST,
    YouTubeClient,
)


class FakeResponse:
    def __init__(self, status_code, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.response


def api_error(code, message, reason):
    return {"error": {"code": code, "message": message, "errors": [{"reason": reason, "message": message}]}}


def test_success_returns_json_and_sends_timeout():
    session = FakeSession(FakeResponse(200, {"items": [{"id": "a"}]}))
    client = YouTubeClient(timeout=7, session=session)
    assert client.youtube_api_get(YOUTUBE_VIDEOS_LIST, {"id": "a"}) == {"items": [{"id": "a"}]}
    assert session.calls[0][2] == 7


def test_region_error_becomes_region_rejected():
    session = FakeSession(FakeResponse(400, api_error(400, "The regionCode parameter is invalid", "invalidRegionCode")))
    client = YouTubeClient(session=session, default_region="KR")
    with pytest.raises(RegionRejectedError) as excinfo:
        client.most_popular("key", region="ZZ", max_results=25)
    assert excinfo.value.status_code == 400
    assert excinfo.value.region == "ZZ"
    assert excinfo.value.details == {"regionCode": "ZZ", "suggestedRegion": "KR"}


def test_quota_error_is_flagged():
    session = FakeSession(FakeResponse(403, api_error(403, "The request cannot be completed", "quotaExceeded")))
    client = YouTubeClient(session=session)
    with pytest.raises(YouTubeApiError) as excinfo:
        client.videos_by_id("key", ["a"])
    assert excinfo.value.status_code == 403
    assert excinfo.value.quota_exceeded is True
    assert excinfo.value.error_code == "QUOTA_EXCEEDED"


def test_other_errors_carry_upstream_status_and_message():
    session = FakeSession(FakeResponse(404, api_error(404, "Requested entity was not found.", "notFound")))
    client = YouTubeClient(session=session)
    with pytest.raises(YouTubeApiError) as excinfo:
        client.videos_by_id("key", ["a"])
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Requested entity was not found."
    assert not isinstance(excinfo.value, RegionRejectedError)


def test_non_json_error_body():
    client = YouTubeClient(session=FakeSession(FakeResponse(502, None, text="Bad Gateway")))
    with pytest.raises(YouTubeApiError) as excinfo:
        client.youtube_api_get(YOUTUBE_VIDEOS_LIST, {})
    assert excinfo.value.status_code == 502
    assert excinfo.value.message == "Bad Gateway"


def test_transport_failure_is_a_500():
    client = YouTubeClient(session=FakeSession(error=requests.ConnectionError("boom")))
    with pytest.raises(YouTubeApiError) as excinfo:
        client.youtube_api_get(YOUTUBE_VIDEOS_LIST, {})
    assert excinfo.value.status_code == 500


def test_request_parameters():
    session = FakeSession(FakeResponse(200, {"items": []}))
    client = YouTubeClient(session=session)

    client.most_popular("key", region="KR", max_results=25, category_id="10", page_token="T", hl="ko")
    url, params, _ = session.calls[-1]
    assert url == YOUTUBE_VIDEOS_LIST
    assert params["chart"] == "mostPopular"
    assert params["videoCategoryId"] == "10"
    assert params["pageToken"] == "T"
    assert params["hl"] == "ko"

    client.search_short_videos("key", query="#shorts", region="US", order="date", max_results=500,
                               published_after="2026-10-11T12:00:00Z")
    url, params, _ = session.calls[-1]
    assert url == YOUTUBE_SEARCH_LIST
    assert params["maxResults"] == 50
    assert params["type"] == "video"
    assert params["videoDuration"] == "short"
    assert params["publishedAfter"] == "2026-10-11T12:00:00Z"
    assert "pageToken" not in params

    client.videos_by_id("key", ["a", "b", "c"])
    assert session.calls[-1][1]["id"] == "a,b,c"


def test_unreadable_success_body_is_a_500():
    client = YouTubeClient(session=FakeSession(FakeResponse(200, None, text="<html>oops</html>")))
    with pytest.raises(YouTubeApiError) as excinfo:
        client.youtube_api_get(YOUTUBE_VIDEOS_LIST, {})
    assert excinfo.value.status_code == 500
    assert excinfo.value.to_payload()["details"] == "<html>oops</html>"
