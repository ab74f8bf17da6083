"""
Bounded, time-expiring store for rendered HTML documents.

`RenderCache` keeps at most `max_entries` documents keyed by the exact request
URL. Entries expire `ttl` seconds after insertion, and the least-recently-used
entry is evicted first once the capacity is exceeded. Nothing is persisted; a
restart starts with an empty cache.
"""
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Tuple, Any, TYPE_CHECKING

from prerender_service.core.exceptions import ConfigurationError
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class RenderCache:
    """
    LRU cache with a per-entry time-to-live.

    Every public method takes the internal lock, so a lookup (expiry check plus
    recency bump) or an insertion (plus eviction) is atomic for the caller.

    Attributes:
        max_entries (int): Maximum number of documents held at once.
        ttl (float): Lifetime of an entry in seconds, measured from insertion.
    """
    DEFAULT_MAX_ENTRIES = 100
    DEFAULT_TTL = 60 * 60  # Seconds

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl: float = DEFAULT_TTL,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_entries (int): Capacity; must be at least 1.
            ttl (float): Entry lifetime in seconds; must be positive.
            timer (Callable[[], float]): Monotonic clock, replaceable in tests.

        Raises:
            ConfigurationError: If `max_entries` or `ttl` is not usable.
        """
        try:
            max_entries = int(max_entries)
            ttl = float(ttl)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Cache capacity and TTL must be numeric, got max_entries={max_entries!r}, ttl={ttl!r}.")
        if max_entries < 1:
            raise ConfigurationError(f"Cache max_entries must be at least 1, got {max_entries}.")
        if ttl <= 0:
            raise ConfigurationError(f"Cache ttl must be positive, got {ttl}.")

        self.max_entries = max_entries
        self.ttl = ttl
        self._timer = timer
        # key -> (html, inserted_at); order is recency, oldest first.
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager'] = None) -> 'RenderCache':
        """Builds a cache from the `cache.max_entries` and `cache.ttl` settings."""
        if config is None:
            return cls()
        return cls(
            max_entries=config.get('cache.max_entries', cls.DEFAULT_MAX_ENTRIES),
            ttl=config.get('cache.ttl', cls.DEFAULT_TTL),
        )

    def _is_expired(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at >= self.ttl

    def get(self, key: str) -> Optional[str]:
        """
        Returns the cached document for `key`, or None if absent or expired.

        A live entry becomes the most recently used one. An expired entry is
        dropped on the spot.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, inserted_at = entry
            if self._is_expired(inserted_at, self._timer()):
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry expired for {key}")
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: str, value: str) -> None:
        """
        Stores `value` under `key`, restarting its TTL, and evicts the
        least-recently-used entries while over capacity.
        """
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = (value, self._timer())
            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache capacity reached ({self.max_entries}); evicted {evicted_key}")

    def evict_expired(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        with self._lock:
            now = self._timer()
            expired = [k for k, (_, inserted_at) in self._entries.items() if self._is_expired(inserted_at, now)]
            for k in expired:
                del self._entries[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        """Returns size, capacity, ttl and hit/miss counters."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __contains__(self, key: object) -> bool:
        # Membership does not count as a use.
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and not self._is_expired(entry[1], self._timer())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
