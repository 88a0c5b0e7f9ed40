"""Pure transformation steps over upstream video items.

Nothing here talks to the network; the aggregator feeds these functions
the raw ``videos.list`` items and gets back shaped ``Video`` records.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, Iterator, TypeVar

from backend.app.models import Video

T = TypeVar("T")

SHORTS_MAX_SECONDS = 60
DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def iso8601_duration_to_seconds(duration: str | None) -> int | None:
    if not duration:
        return None
    match = DURATION_RE.fullmatch(duration.strip())
    if not match or not any(match.groups()):
        return None
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def parse_iso8601_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def chunked(lst: list[T], n: int) -> Iterator[list[T]]:
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def best_thumbnail_url(thumbnails: dict) -> str | None:
    for key in ("maxres", "standard", "high", "medium", "default"):
        t = thumbnails.get(key)
        if t and "url" in t:
            return t["url"]
    return None


def _count(stats: dict, key: str) -> int:
    try:
        return max(0, int(stats.get(key) or 0))
    except (TypeError, ValueError):
        return 0


def watch_url(video_id: str, content_type: str) -> str:
    if content_type == "shorts":
        return f"https://www.youtube.com/shorts/{video_id}"
    return f"https://www.youtube.com/watch?v={video_id}"


def to_video(item: dict, content_type: str) -> Video:
    snip = item.get("snippet") or {}
    stats = item.get("statistics") or {}
    video_id = str(item.get("id"))
    return Video(
        id=video_id,
        title=snip.get("title") or "",
        description=snip.get("description") or "",
        thumbnail=best_thumbnail_url(snip.get("thumbnails") or {}),
        channel_title=snip.get("channelTitle") or "",
        published_at=snip.get("publishedAt"),
        view_count=_count(stats, "viewCount"),
        like_count=_count(stats, "likeCount"),
        comment_count=_count(stats, "commentCount"),
        url=watch_url(video_id, content_type),
    )


def filter_short_form(items: Iterable[dict], max_seconds: int = SHORTS_MAX_SECONDS) -> list[dict]:
    kept = []
    for item in items:
        seconds = iso8601_duration_to_seconds((item.get("contentDetails") or {}).get("duration"))
        # unknown duration is never treated as short
        if seconds is None or seconds > max_seconds:
            continue
        kept.append(item)
    return kept


def filter_published_after(items: Iterable[dict], cutoff: datetime | None) -> list[dict]:
    if cutoff is None:
        return list(items)
    kept = []
    for item in items:
        published_at = parse_iso8601_datetime((item.get("snippet") or {}).get("publishedAt"))
        if published_at is None or published_at < cutoff:
            continue
        kept.append(item)
    return kept


def filter_category(items: Iterable[dict], category_id: str | None) -> list[dict]:
    if not category_id:
        return list(items)
    return [
        item for item in items
        if str((item.get("snippet") or {}).get("categoryId") or "") == category_id
    ]


def dedupe_by_id(records: Iterable[T]) -> list[T]:
    """Keep the first record seen for each id. Works on raw dicts and Videos."""
    seen: set[str] = set()
    unique = []
    for record in records:
        record_id = record.get("id") if isinstance(record, dict) else getattr(record, "id", None)
        if not record_id or record_id in seen:
            continue
        seen.add(record_id)
        unique.append(record)
    return unique


def sort_videos(videos: Iterable[Video], sort_order: str) -> list[Video]:
    if sort_order == "popular":
        return sorted(videos, key=lambda v: v.view_count, reverse=True)
    return sorted(
        videos,
        key=lambda v: parse_iso8601_datetime(v.published_at) or _EPOCH,
        reverse=True,
    )


def shape_videos(items: Iterable[dict], content_type: str, sort_order: str, limit: int | None = None) -> list[Video]:
    shaped = (to_video(item, content_type) for item in items if item.get("id"))
    videos = sort_videos(dedupe_by_id(shaped), sort_order)
    if limit is not None:
        return videos[:limit]
    return videos
