from abc import ABC, abstractmethod
from typing import Any


class CacheBackend(ABC):
    """Optional side-channel cache. Implementations may drop entries at any time."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class InMemoryCacheBackend(CacheBackend):
    """Process-lifetime cache; concurrent writers overwrite each other (last writer wins)"""

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value


class NullCacheBackend(CacheBackend):
    """Cache that never stores anything, used when caching is disabled"""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any) -> None:
        pass


def create_cache_backend(enabled: bool) -> CacheBackend:
    return InMemoryCacheBackend() if enabled else NullCacheBackend()
