"""Static lookup data: categories, date buckets, region hints."""

import re
from datetime import datetime, timedelta
from types import MappingProxyType

DEFAULT_REGION = "KR"
REGION_CODE_RE = re.compile(r"^[A-Z]{2}$")

# Markets the YouTube Data API does not serve charts or search for.
UNSUPPORTED_REGIONS = frozenset({"CN", "KP", "IR", "SY", "CU"})

CONTENT_TYPES = ("popular", "shorts")
SORT_ORDERS = ("date", "popular")

VIDEO_CATEGORIES = (
    ("", "전체"),
    ("1", "영화 및 애니메이션"),
    ("2", "자동차"),
    ("10", "음악"),
    ("15", "애완동물"),
    ("17", "스포츠"),
    ("20", "게임"),
    ("22", "여행"),
    ("23", "코미디"),
    ("24", "엔터테인먼트"),
    ("25", "뉴스"),
    ("26", "뷰티 & 스타일"),
    ("27", "교육"),
    ("28", "과학 & 기술"),
    ("29", "비영리"),
)

# Ordered narrowest first; each bucket contains every bucket before it.
DATE_FILTERS = (
    ("today", "오늘", 1),
    ("week", "최근 1주일", 7),
    ("month", "최근 1개월", 30),
    ("3months", "최근 3개월", 90),
    ("all", "전체", None),
)
DATE_FILTER_DAYS = MappingProxyType({key: days for key, _name, days in DATE_FILTERS})

# Region -> language hint (bias, not guarantee)
REGION_LANG = MappingProxyType({
    "KR": "ko",
    "JP": "ja",
    "TW": "zh-Hant",
    "HK": "zh-Hant",
    "VN": "vi",
    "TH": "th",
    "ID": "id",
    "DE": "de",
    "FR": "fr",
    "ES": "es",
    "MX": "es",
    "BR": "pt",
    "IT": "it",
    "RU": "ru",
    "IN": "hi",
    "US": "en",
    "GB": "en",
    "CA": "en",
    "AU": "en",
})

# Region -> Shorts search keyword; regions without one search by hashtag.
REGION_SHORTS_KEYWORD = MappingProxyType({
    "KR": "쇼츠",
    "JP": "ショート",
    "TW": "短片",
    "HK": "短片",
    "VN": "video ngắn",
    "TH": "คลิปสั้น",
    "BR": "shorts brasil",
    "DE": "shorts deutsch",
    "FR": "shorts france",
    "ES": "shorts español",
    "MX": "shorts mexico",
})
SHORTS_HASHTAG = "#shorts"


def lang_for_region(region: str) -> str:
    return REGION_LANG.get(region.upper(), "en")


def shorts_query_for_region(region: str) -> str:
    return REGION_SHORTS_KEYWORD.get(region.upper(), SHORTS_HASHTAG)


def normalize_region(region: str | None, default: str = DEFAULT_REGION) -> str:
    """Uppercase a region code, falling back to the default when it is
    malformed or on the unsupported list."""
    candidate = (region or "").strip().upper()
    if not REGION_CODE_RE.match(candidate):
        return default
    if candidate in UNSUPPORTED_REGIONS:
        return default
    return candidate


def date_filter_cutoff(date_filter: str, now: datetime) -> datetime | None:
    days = DATE_FILTER_DAYS.get(date_filter)
    if days is None:
        return None
    return now - timedelta(days=days)


def date_filters_within(date_filter: str) -> list[str]:
    """Buckets whose window is contained in the given bucket, itself included."""
    keys = [key for key, _name, _days in DATE_FILTERS]
    if date_filter not in keys:
        return []
    return keys[: keys.index(date_filter) + 1]


def category_name(category_id: str | None) -> str:
    for cid, name in VIDEO_CATEGORIES:
        if cid == (category_id or ""):
            return name
    return category_id or ""
