"""
Expiring in-memory cache with single-flight fetches.

One `ExpiringCache` serves every data type: each call supplies the key, the
fetch function and a `CachePolicy` (staleness budget and retry settings).
Concurrent callers for the same key share one in-flight fetch. The clock and
sleep functions are injectable so expiry and backoff are testable.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .config import CachePreset
from .models import DataSource

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a fetch fails after all retries."""
    pass


class FetchTimeout(FetchError):
    """Raised when a caller's deadline passes before the fetch resolves."""
    pass


@dataclass(frozen=True)
class CachePolicy:
    """How one lookup should be cached and retried."""
    bucket: str
    stale_seconds: float
    retries: int
    retry_delay: float
    data_source: DataSource
    bypass_cache: bool = False

    @classmethod
    def from_preset(cls, bucket: str, preset: CachePreset, bypass_cache: bool = False) -> "CachePolicy":
        return cls(
            bucket=bucket,
            stale_seconds=preset.stale_seconds,
            retries=preset.retries,
            retry_delay=preset.retry_delay,
            data_source=preset.data_source,
            bypass_cache=bypass_cache,
        )

    def forced(self) -> "CachePolicy":
        return replace(self, bypass_cache=True, data_source=DataSource.LIVE)


_MISSING = object()


class ExpiringCache:
    """
    Thread-safe cache; entries expire per the policy they were stored under.

    `get_or_fetch` also treats an entry as stale once it is older than the
    caller's own staleness budget.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 8,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple[Any, float, float]] = {}
        self._inflight: Dict[Hashable, Future] = {}
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="pgc-cache"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # =========================================================================
    # Plain access
    # =========================================================================

    def _lookup(self, key: Hashable, max_age: Optional[float] = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, fetched_at, expires_at = entry
        now = self._clock()
        if now >= expires_at:
            del self._entries[key]
            return _MISSING
        if max_age is not None and now - fetched_at >= max_age:
            return _MISSING
        return value

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Get a cached value if not expired."""
        with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: Any, stale_seconds: float):
        with self._lock:
            now = self._clock()
            self._entries[key] = (value, now, now + stale_seconds)

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, _, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired cache entries")
        return len(expired)

    # =========================================================================
    # Single-flight fetch
    # =========================================================================

    def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Any],
        policy: CachePolicy,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for `key`, or fetch it.

        Callers arriving while a fetch for `key` is running wait on that same
        fetch. An entry older than `policy.stale_seconds` is refetched even
        when the policy it was stored under would still keep it. A caller
        that times out gets `FetchTimeout`, but the fetch keeps running and
        still fills the cache when it succeeds. Failed fetches raise
        `FetchError` and leave the cache untouched.
        """
        with self._lock:
            if not policy.bypass_cache:
                value = self._lookup(key, policy.stale_seconds)
                if value is not _MISSING:
                    logger.debug(f"Cache hit for {key}")
                    return value
            future = self._inflight.get(key)
            if future is None:
                logger.debug(f"Fetching {key} ({policy.bucket})")
                future = self._executor.submit(self._fetch_with_retry, key, fetch, policy)
                self._inflight[key] = future

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            raise FetchTimeout(f"Timed out after {timeout}s waiting for {key}")

    def _fetch_with_retry(self, key: Hashable, fetch: Callable[[], Any], policy: CachePolicy) -> Any:
        attempts = max(1, policy.retries + 1)
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                value = fetch()
            except Exception as e:
                last_error = e
                if attempt < attempts - 1:
                    delay = policy.retry_delay * (2 ** attempt)  # Exponential backoff
                    logger.warning(
                        f"Fetch for {key} failed (attempt {attempt + 1}/{attempts}): {e}. "
                        f"Retrying in {delay}s..."
                    )
                    self._sleep(delay)
                continue

            with self._lock:
                now = self._clock()
                self._entries[key] = (value, now, now + policy.stale_seconds)
                self._inflight.pop(key, None)
            return value

        with self._lock:
            self._inflight.pop(key, None)
        logger.error(f"Fetch for {key} failed after {attempts} attempts: {last_error}")
        raise FetchError(f"Fetch for {key} failed: {last_error}") from last_error

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
