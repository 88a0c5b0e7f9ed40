import os
import secrets
from dataclasses import dataclass, field

from dotenv import load_dotenv

from backend.app.catalog import DEFAULT_REGION, normalize_region

SHORTS_SAMPLE_SIZE_MIN = 50
SHORTS_SAMPLE_SIZE_MAX = 200


def parse_api_keys(raw: str | None) -> list[str]:
    return [key.strip() for key in (raw or "").split(",") if key.strip()]


def parse_cors_origins(raw: str | None) -> tuple[list[str], bool]:
    raw = (raw or "").strip()
    if not raw:
        return ["http://localhost:3000"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:3000"], True
    return origins, True


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_keys: list[str] = field(default_factory=list)
    default_region: str = DEFAULT_REGION
    shorts_sample_size: int = 100
    upstream_timeout_seconds: int = 15
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cors_credentials: bool = True
    session_secret: str = ""
    result_cache_capacity: int = 32
    max_sessions: int = 256
    api_rate_limit_max_requests: int = 60
    api_rate_limit_window_seconds: int = 60
    dashboard_api_base_url: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        raw_keys = os.getenv("YOUTUBE_API_KEYS") or os.getenv("YOUTUBE_API_KEY")
        cors_origins, cors_credentials = parse_cors_origins(os.getenv("CORS_ALLOWED_ORIGINS"))
        sample_size = _int_env("SHORTS_SAMPLE_SIZE", 100)
        return cls(
            api_keys=parse_api_keys(raw_keys),
            default_region=normalize_region(os.getenv("DEFAULT_REGION"), DEFAULT_REGION),
            shorts_sample_size=max(SHORTS_SAMPLE_SIZE_MIN, min(sample_size, SHORTS_SAMPLE_SIZE_MAX)),
            upstream_timeout_seconds=max(1, _int_env("UPSTREAM_TIMEOUT_SECONDS", 15)),
            cors_origins=cors_origins,
            cors_credentials=cors_credentials,
            session_secret=os.getenv("SESSION_SECRET") or secrets.token_hex(32),
            result_cache_capacity=max(1, _int_env("RESULT_CACHE_CAPACITY", 32)),
            max_sessions=max(1, _int_env("MAX_SESSIONS", 256)),
            api_rate_limit_max_requests=max(1, _int_env("API_RATE_LIMIT_MAX_REQUESTS", 60)),
            api_rate_limit_window_seconds=max(1, _int_env("API_RATE_LIMIT_WINDOW_SECONDS", 60)),
            dashboard_api_base_url=(os.getenv("DASHBOARD_API_BASE_URL") or "").strip() or None,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )
