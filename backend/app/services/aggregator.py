import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from backend.app.catalog import (
    CONTENT_TYPES,
    DATE_FILTER_DAYS,
    DEFAULT_REGION,
    SORT_ORDERS,
    date_filter_cutoff,
    lang_for_region,
    normalize_region,
    shorts_query_for_region,
)
from backend.app.errors import InvalidParameterError, RegionRejectedError, YouTubeApiError
from backend.app.models import VideoListResponse
from backend.app.services.credentials import CredentialRotator
from backend.app.services.pipeline import (
    chunked,
    filter_category,
    filter_published_after,
    filter_short_form,
    shape_videos,
)
from backend.app.services.youtube_client import (
    SEARCH_PAGE_SIZE_MAX,
    VIDEOS_IDS_PER_CALL_MAX,
    YouTubeClient,
)

logger = logging.getLogger(__name__)

MAX_RESULTS_DEFAULT = 25
MAX_RESULTS_CEILING = 50
# extra search pages allowed to make up for duplicate ids across pages
SEARCH_EXTRA_PAGES = 1


@dataclass(frozen=True)
class VideoQuery:
    content_type: str = "popular"
    region: str = DEFAULT_REGION
    max_results: int = MAX_RESULTS_DEFAULT
    category_id: str | None = None
    date_filter: str = "all"
    sort_order: str = "popular"
    page_token: str | None = None


def build_query(
    max_results: int | None = None,
    region_code: str | None = None,
    content_type: str | None = None,
    page_token: str | None = None,
    category_id: str | None = None,
    date_filter: str | None = None,
    sort_order: str | None = None,
    default_region: str = DEFAULT_REGION,
) -> VideoQuery:
    """Validate raw query parameters into a VideoQuery.

    Regions are corrected rather than rejected; unknown enum values are
    rejected with InvalidParameterError.
    """
    content_type = (content_type or "popular").lower()
    if content_type not in CONTENT_TYPES:
        raise InvalidParameterError("type must be popular or shorts", details={"type": content_type})
    date_filter = (date_filter or "all").lower()
    if date_filter not in DATE_FILTER_DAYS:
        raise InvalidParameterError(
            "dateFilter must be one of all, today, week, month, 3months",
            details={"dateFilter": date_filter},
        )
    sort_order = (sort_order or "popular").lower()
    if sort_order not in SORT_ORDERS:
        raise InvalidParameterError("sortOrder must be date or popular", details={"sortOrder": sort_order})

    return VideoQuery(
        content_type=content_type,
        region=normalize_region(region_code, default_region),
        max_results=max(1, min(max_results or MAX_RESULTS_DEFAULT, MAX_RESULTS_CEILING)),
        category_id=(category_id or "").strip() or None,
        date_filter=date_filter,
        sort_order=sort_order,
        page_token=(page_token or "").strip() or None,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TrendingAggregator:
    """Turns a VideoQuery into a VideoListResponse using one API key per call."""

    def __init__(
        self,
        client: YouTubeClient,
        rotator: CredentialRotator,
        shorts_sample_size: int = 100,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.client = client
        self.rotator = rotator
        self.shorts_sample_size = shorts_sample_size
        self.now = now

    def fetch(self, query: VideoQuery) -> VideoListResponse:
        api_key = self.rotator.next_key()
        if query.content_type == "shorts":
            return self.fetch_shorts(api_key, query)
        return self.fetch_popular(api_key, query)

    def fetch_popular(self, api_key: str, query: VideoQuery) -> VideoListResponse:
        try:
            payload = self.client.most_popular(
                api_key,
                region=query.region,
                max_results=query.max_results,
                category_id=query.category_id,
                page_token=query.page_token,
                hl=lang_for_region(query.region),
            )
        except YouTubeApiError as exc:
            logger.error(
                "stage=chart region=%s status=%s quota=%s: %s",
                query.region, exc.status_code, exc.quota_exceeded, exc.message,
            )
            raise

        items = payload.get("items") or []
        # the chart endpoint has no recency filter upstream
        items = filter_published_after(items, date_filter_cutoff(query.date_filter, self.now()))
        videos = shape_videos(items, "popular", query.sort_order)
        total = (payload.get("pageInfo") or {}).get("totalResults") or len(videos)
        return VideoListResponse(
            videos=videos,
            total_results=total,
            next_page_token=payload.get("nextPageToken"),
            prev_page_token=payload.get("prevPageToken"),
        )

    def fetch_shorts(self, api_key: str, query: VideoQuery) -> VideoListResponse:
        cutoff = date_filter_cutoff(query.date_filter, self.now())
        candidate_ids = self.collect_candidate_ids(api_key, query, cutoff)
        if not candidate_ids:
            return VideoListResponse(videos=[], total_results=0)

        hydrated = self.hydrate(api_key, candidate_ids)
        items = filter_short_form(hydrated)
        items = filter_published_after(items, cutoff)
        items = filter_category(items, query.category_id)
        videos = shape_videos(items, "shorts", query.sort_order, limit=self.shorts_sample_size)
        logger.info(
            "shorts region=%s date=%s candidates=%d hydrated=%d kept=%d",
            query.region, query.date_filter, len(candidate_ids), len(hydrated), len(videos),
        )
        return VideoListResponse(videos=videos, total_results=len(videos))

    def collect_candidate_ids(self, api_key: str, query: VideoQuery, cutoff: datetime | None) -> list[str]:
        target = self.shorts_sample_size
        max_pages = math.ceil(target / SEARCH_PAGE_SIZE_MAX) + SEARCH_EXTRA_PAGES
        ids: list[str] = []
        seen: set[str] = set()
        page_token = None

        for page_index in range(max_pages):
            try:
                payload = self.client.search_short_videos(
                    api_key,
                    query=shorts_query_for_region(query.region),
                    region=query.region,
                    order="viewCount" if query.sort_order == "popular" else "date",
                    relevance_language=lang_for_region(query.region),
                    published_after=_rfc3339(cutoff) if cutoff else None,
                    category_id=query.category_id,
                    page_token=page_token,
                    max_results=SEARCH_PAGE_SIZE_MAX,
                )
            except RegionRejectedError:
                raise
            except YouTubeApiError as exc:
                logger.warning(
                    "stage=search page=%d region=%s status=%s quota=%s collected=%d: %s",
                    page_index, query.region, exc.status_code, exc.quota_exceeded, len(ids), exc.message,
                )
                break

            for item in payload.get("items") or []:
                vid = (item.get("id") or {}).get("videoId")
                if not vid or vid in seen:
                    continue
                seen.add(vid)
                ids.append(vid)

            page_token = payload.get("nextPageToken")
            if len(ids) >= target or not page_token:
                break

        return ids[:target]

    def hydrate(self, api_key: str, video_ids: list[str]) -> list[dict]:
        """Fetch details batch by batch, skipping failed batches.

        If every batch fails the last error is raised, so a quota or upstream
        failure is not reported as an empty result.
        """
        hydrated = []
        last_error: YouTubeApiError | None = None
        succeeded = 0
        for batch_index, batch in enumerate(chunked(video_ids, VIDEOS_IDS_PER_CALL_MAX)):
            try:
                payload = self.client.videos_by_id(api_key, batch)
            except YouTubeApiError as exc:
                logger.warning(
                    "stage=details batch=%d size=%d status=%s quota=%s: %s",
                    batch_index, len(batch), exc.status_code, exc.quota_exceeded, exc.message,
                )
                last_error = exc
                continue
            succeeded += 1
            hydrated.extend(payload.get("items") or [])
        if last_error is not None and not succeeded:
            raise last_error
        return hydrated
