import threading

from backend.app.config import parse_api_keys
from backend.app.errors import ConfigurationError


class CredentialRotator:
    """Hands out API keys round-robin, one per inbound request."""

    def __init__(self, keys: list[str]):
        self._keys = [key for key in keys if key]
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_env_value(cls, raw: str | None) -> "CredentialRotator":
        return cls(parse_api_keys(raw))

    def __len__(self) -> int:
        return len(self._keys)

    def next_key(self) -> str:
        if not self._keys:
            raise ConfigurationError("YouTube API key is not configured")
        with self._lock:
            key = self._keys[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._keys)
        return key
