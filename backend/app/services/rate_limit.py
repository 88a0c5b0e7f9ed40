import threading
import time
from collections import deque

from fastapi import HTTPException, Request


def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimiter:
    """Sliding-window request limit per client IP and scope."""

    def __init__(self, max_requests: int = 60, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.buckets: dict[str, deque] = {}
        self._lock = threading.Lock()

    def clear(self) -> None:
        with self._lock:
            self.buckets.clear()

    def enforce(self, request: Request, scope: str = "youtube") -> None:
        now_ts = time.time()
        key = f"{scope}:{get_client_ip(request)}"
        with self._lock:
            bucket = self.buckets.get(key)
            if bucket is None:
                bucket = deque()
                self.buckets[key] = bucket

            cutoff = now_ts - self.window_seconds
            while bucket and bucket[0] < cutoff:
                bucket.popleft()

            if len(bucket) >= self.max_requests:
                raise HTTPException(
                    status_code=429,
                    detail="Too many requests. Please wait a minute and try again.",
                )

            bucket.append(now_ts)
