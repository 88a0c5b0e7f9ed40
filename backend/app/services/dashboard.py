"""Dashboard view controller.

One ``DashboardController`` lives per browser session. It owns the filter
state and pagination history, asks the aggregation endpoint for videos on
every state change, and in Shorts mode merges what it has already seen for
narrower date buckets into the current list.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import requests
from pydantic import ValidationError

from backend.app.catalog import (
    CONTENT_TYPES,
    DATE_FILTER_DAYS,
    DEFAULT_REGION,
    SORT_ORDERS,
    date_filters_within,
    lang_for_region,
    normalize_region,
)
from backend.app.errors import DashboardError, FetchError
from backend.app.models import Video, VideoListResponse
from backend.app.services.aggregator import MAX_RESULTS_DEFAULT, TrendingAggregator, build_query
from backend.app.services.pipeline import dedupe_by_id, parse_iso8601_datetime, sort_videos

logger = logging.getLogger(__name__)

STATUS_LOADING = "loading"
STATUS_ERROR = "error"
STATUS_EMPTY = "empty"
STATUS_READY = "ready"


# ---------------------------
# Formatting
# ---------------------------

def _trim_decimal(value: float) -> str:
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def format_number(num: int, lang: str = "ko") -> str:
    if lang == "ko":
        if num >= 100_000_000:
            return _trim_decimal(num / 100_000_000) + "억"
        if num >= 10_000:
            return _trim_decimal(num / 10_000) + "만"
        if num >= 1000:
            return f"{num:,}"
        return str(num)

    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1000, "K")):
        if num >= threshold:
            return _trim_decimal(num / threshold) + suffix
    return str(num)


def format_relative_date(published_at: str | None, lang: str = "ko", now: datetime | None = None) -> str:
    published = parse_iso8601_datetime(published_at)
    if published is None:
        return ""
    now = now or datetime.now(timezone.utc)
    days = max(0, int((now - published).total_seconds() // 86400))

    if lang == "ko":
        if days == 0:
            return "오늘"
        if days == 1:
            return "어제"
        if days < 7:
            return f"{days}일 전"
        if days < 30:
            return f"{days // 7}주 전"
        if days < 365:
            return f"{days // 30}개월 전"
        return f"{days // 365}년 전"

    if days == 0:
        return "today"
    if days == 1:
        return "yesterday"
    for limit, size, unit in ((7, 1, "day"), (30, 7, "week"), (365, 30, "month")):
        if days < limit:
            count = days // size
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    years = days // 365
    return f"{years} year{'' if years == 1 else 's'} ago"


# ---------------------------
# Fetchers
# ---------------------------

class VideoFetcher(Protocol):
    def __call__(self, params: dict[str, Any]) -> VideoListResponse: ...


class AggregatorFetcher:
    """Calls the aggregation logic in-process with endpoint query params."""

    def __init__(self, aggregator: TrendingAggregator, default_region: str = DEFAULT_REGION):
        self.aggregator = aggregator
        self.default_region = default_region

    def __call__(self, params: dict[str, Any]) -> VideoListResponse:
        try:
            query = build_query(
                max_results=params.get("maxResults"),
                region_code=params.get("regionCode"),
                content_type=params.get("type"),
                page_token=params.get("pageToken"),
                category_id=params.get("videoCategoryId"),
                date_filter=params.get("dateFilter"),
                sort_order=params.get("sortOrder"),
                default_region=self.default_region,
            )
            return self.aggregator.fetch(query)
        except DashboardError as exc:
            raise FetchError(exc.message) from exc


class HttpFetcher:
    """Calls a remote /api/youtube endpoint."""

    def __init__(self, base_url: str, timeout: int = 30, session: requests.Session | None = None):
        self.url = base_url.rstrip("/") + "/api/youtube"
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, params: dict[str, Any]) -> VideoListResponse:
        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError("Failed to fetch videos") from exc
        if response.status_code != 200:
            raise FetchError("Failed to fetch videos")
        try:
            return VideoListResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise FetchError("Failed to fetch videos") from exc


# ---------------------------
# State
# ---------------------------

@dataclass(frozen=True)
class FilterState:
    content_type: str = "popular"
    region: str = DEFAULT_REGION
    category_id: str = ""
    date_filter: str = "all"
    sort_order: str = "popular"

    @property
    def cache_key(self) -> tuple[str, str, str, str]:
        return (self.region, self.category_id, self.date_filter, self.sort_order)

    def to_params(self, max_results: int, page_token: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "maxResults": max_results,
            "regionCode": self.region,
            "type": self.content_type,
            "dateFilter": self.date_filter,
            "sortOrder": self.sort_order,
        }
        if self.category_id:
            params["videoCategoryId"] = self.category_id
        if page_token:
            params["pageToken"] = page_token
        return params


class ResultCache:
    """Most recent Shorts list per (region, category, date bucket, sort order), LRU-bounded."""

    def __init__(self, capacity: int = 32):
        self.capacity = max(1, capacity)
        self._entries: OrderedDict[tuple[str, ...], list[Video]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[str, ...]) -> bool:
        return key in self._entries

    def get(self, key: tuple[str, ...]) -> list[Video] | None:
        videos = self._entries.get(key)
        if videos is not None:
            self._entries.move_to_end(key)
        return videos

    def put(self, key: tuple[str, ...], videos: list[Video]) -> None:
        self._entries[key] = list(videos)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)


class DashboardController:
    def __init__(
        self,
        fetcher: VideoFetcher,
        default_region: str = DEFAULT_REGION,
        page_size: int = MAX_RESULTS_DEFAULT,
        cache_capacity: int = 32,
    ):
        self.fetcher = fetcher
        self.default_region = default_region
        self.page_size = page_size
        self.state = FilterState(region=default_region)
        self.page_token: str | None = None
        self.token_history: list[str | None] = []
        self.cache = ResultCache(cache_capacity)
        self.response: VideoListResponse | None = None
        self.videos: list[Video] = []
        self.status = STATUS_LOADING
        self.error_message: str | None = None
        self.loaded = False
        # one session can have requests in flight from several tabs
        self._lock = threading.RLock()

    @property
    def lang(self) -> str:
        return lang_for_region(self.state.region)

    @property
    def is_shorts(self) -> bool:
        return self.state.content_type == "shorts"

    @property
    def has_next_page(self) -> bool:
        return not self.is_shorts and bool(self.response and self.response.next_page_token)

    @property
    def has_previous_page(self) -> bool:
        return not self.is_shorts and (bool(self.token_history) or self.page_token is not None)

    @property
    def total_results(self) -> int:
        if self.is_shorts:
            return len(self.videos)
        return self.response.total_results if self.response else 0

    def request_params(self) -> dict[str, Any]:
        return self.state.to_params(self.page_size, self.page_token)

    def _reset_pagination(self) -> None:
        self.page_token = None
        self.token_history = []

    def ensure_loaded(self) -> None:
        with self._lock:
            if not self.loaded:
                self.load()

    def set_filters(self, **changes: Any) -> None:
        """Apply filter changes, go back to page one and refetch.

        Unknown or invalid values are ignored rather than stored.
        """
        updates: dict[str, Any] = {}
        if changes.get("content_type") in CONTENT_TYPES:
            updates["content_type"] = changes["content_type"]
        if changes.get("region") is not None:
            updates["region"] = normalize_region(changes["region"], self.default_region)
        if changes.get("category_id") is not None:
            updates["category_id"] = str(changes["category_id"]).strip()
        if changes.get("date_filter") in DATE_FILTER_DAYS:
            updates["date_filter"] = changes["date_filter"]
        if changes.get("sort_order") in SORT_ORDERS:
            updates["sort_order"] = changes["sort_order"]

        with self._lock:
            self.state = replace(self.state, **updates)
            self._reset_pagination()
            self.load()

    def reset_filters(self) -> None:
        with self._lock:
            self.state = FilterState(region=self.default_region)
            self._reset_pagination()
            self.load()

    def next_page(self) -> bool:
        with self._lock:
            if not self.has_next_page:
                return False
            self.token_history.append(self.page_token)
            self.page_token = self.response.next_page_token
            self.load()
            return True

    def previous_page(self) -> None:
        with self._lock:
            if self.token_history:
                self.page_token = self.token_history.pop()
            else:
                self._reset_pagination()
            self.load()

    def retry(self) -> None:
        self.load()

    def load(self) -> None:
        with self._lock:
            self._load()

    def _load(self) -> None:
        self.status = STATUS_LOADING
        self.error_message = None
        self.loaded = True
        try:
            response = self.fetcher(self.request_params())
        except FetchError as exc:
            logger.info("dashboard fetch failed: %s", exc)
            self.response = None
            self.videos = []
            self.status = STATUS_ERROR
            self.error_message = str(exc) or "Failed to fetch videos"
            return

        self.response = response
        if self.is_shorts:
            self.cache.put(self.state.cache_key, response.videos)
            self.videos = self.merged_shorts(response.videos)
        else:
            self.videos = list(response.videos)
        self.status = STATUS_READY if self.videos else STATUS_EMPTY

    def merged_shorts(self, fresh: list[Video]) -> list[Video]:
        """Union the fresh list with cached lists of every date bucket
        contained in the selected one, for the same region, category and
        sort order."""
        combined = list(fresh)
        for bucket in date_filters_within(self.state.date_filter):
            cached = self.cache.get(replace(self.state, date_filter=bucket).cache_key)
            if cached:
                combined.extend(cached)
        return sort_videos(dedupe_by_id(combined), self.state.sort_order)


class SessionRegistry:
    """Per-session controllers, evicting the least recently used session."""

    def __init__(self, factory: Callable[[], DashboardController], max_sessions: int = 256):
        self.factory = factory
        self.max_sessions = max(1, max_sessions)
        self._controllers: OrderedDict[str, DashboardController] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    def get(self, session_id: str) -> DashboardController:
        with self._lock:
            controller = self._controllers.get(session_id)
            if controller is None:
                controller = self.factory()
                self._controllers[session_id] = controller
            self._controllers.move_to_end(session_id)
            while len(self._controllers) > self.max_sessions:
                self._controllers.popitem(last=False)
            return controller
