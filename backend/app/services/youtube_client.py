import logging
from typing import Any

import requests

from backend.app.catalog import DEFAULT_REGION
from backend.app.errors import RegionRejectedError, YouTubeApiError

logger = logging.getLogger(__name__)

YOUTUBE_VIDEOS_LIST = "https://www.googleapis.com/youtube/v3/videos"
YOUTUBE_SEARCH_LIST = "https://www.googleapis.com/youtube/v3/search"

SEARCH_PAGE_SIZE_MAX = 50
VIDEOS_IDS_PER_CALL_MAX = 50
REGION_ERROR_REASONS = {"invalidRegionCode", "unsupportedRegionCode"}


def _error_body(response: requests.Response) -> tuple[str, list[str], Any]:
    try:
        payload = response.json()
    except ValueError:
        return response.text or "YouTube API error", [], None
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return "YouTube API error", [], payload
    reasons = [
        str(item.get("reason"))
        for item in error.get("errors") or []
        if isinstance(item, dict) and item.get("reason")
    ]
    return str(error.get("message") or "YouTube API error"), reasons, error


def is_quota_error(status_code: int, message: str, reasons: list[str]) -> bool:
    if status_code not in {403, 429}:
        return False
    lowered = " ".join([message, *reasons]).lower()
    return "quotaexceeded" in lowered or "quota exceeded" in lowered or "ratelimitexceeded" in lowered


def is_region_error(status_code: int, message: str, reasons: list[str]) -> bool:
    if status_code != 400:
        return False
    if REGION_ERROR_REASONS.intersection(reasons):
        return True
    return "regioncode" in message.lower()


class YouTubeClient:
    """Thin wrapper over the three YouTube Data API operations the
    dashboard needs. Every call takes the API key for the current request."""

    def __init__(self, timeout: int = 15, session: requests.Session | None = None,
                 default_region: str = DEFAULT_REGION):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.default_region = default_region

    def youtube_api_get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        logger.debug("GET %s %s", url, {k: v for k, v in params.items() if k != "key"})
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise YouTubeApiError(
                "Failed to fetch YouTube videos",
                status_code=500,
                details=str(exc),
            ) from exc

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as exc:
                raise YouTubeApiError(
                    "YouTube API returned an unreadable response",
                    status_code=500,
                    details=response.text[:200] or None,
                ) from exc

        message, reasons, details = _error_body(response)
        if is_region_error(response.status_code, message, reasons):
            raise RegionRejectedError(
                f"Region code is not supported: {message}",
                region=str(params.get("regionCode") or ""),
                suggested_region=self.default_region,
            )
        raise YouTubeApiError(
            message,
            status_code=response.status_code,
            details=details,
            quota_exceeded=is_quota_error(response.status_code, message, reasons),
        )

    def most_popular(
        self,
        api_key: str,
        region: str,
        max_results: int,
        category_id: str | None = None,
        page_token: str | None = None,
        hl: str | None = None,
    ) -> dict[str, Any]:
        params = {
            "part": "snippet,statistics,contentDetails",
            "chart": "mostPopular",
            "regionCode": region,
            "maxResults": max_results,
            "key": api_key,
        }
        if hl:
            params["hl"] = hl
        if category_id:
            params["videoCategoryId"] = category_id
        if page_token:
            params["pageToken"] = page_token
        return self.youtube_api_get(YOUTUBE_VIDEOS_LIST, params)

    def search_short_videos(
        self,
        api_key: str,
        query: str,
        region: str,
        order: str,
        relevance_language: str | None = None,
        published_after: str | None = None,
        category_id: str | None = None,
        page_token: str | None = None,
        max_results: int = SEARCH_PAGE_SIZE_MAX,
    ) -> dict[str, Any]:
        params = {
            "part": "id",
            "type": "video",
            "videoDuration": "short",
            "q": query,
            "regionCode": region,
            "order": order,
            "maxResults": min(max_results, SEARCH_PAGE_SIZE_MAX),
            "key": api_key,
        }
        if relevance_language:
            params["relevanceLanguage"] = relevance_language
        if published_after:
            params["publishedAfter"] = published_after
        if category_id:
            params["videoCategoryId"] = category_id
        if page_token:
            params["pageToken"] = page_token
        return self.youtube_api_get(YOUTUBE_SEARCH_LIST, params)

    def videos_by_id(self, api_key: str, video_ids: list[str]) -> dict[str, Any]:
        return self.youtube_api_get(
            YOUTUBE_VIDEOS_LIST,
            {
                "part": "snippet,statistics,contentDetails",
                "id": ",".join(video_ids[:VIDEOS_IDS_PER_CALL_MAX]),
                "key": api_key,
            },
        )
