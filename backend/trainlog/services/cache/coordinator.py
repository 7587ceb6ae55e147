"""
Progress Cache Coordinator - In-memory document cache with single-flight fetches.

Per key lifecycle:
    EMPTY -> LOADING -> FRESH -> STALE -> REVALIDATING -> FRESH

- Reads are cache-first: the last known value is returned regardless of age
- At most one fetch per key is in flight; overlapping requests are no-ops
  and may await the pending fetch through wait_settled
- An invalidation during a fetch keeps the fetched value stale
- A failed fetch leaves the cached value untouched
- Listeners are notified after every successful write
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from trainlog.core.config import settings
from trainlog.core.logging import get_logger, track_operation
from trainlog.models.progress import CacheEntry, CacheState, FetchResult, FetchStatus

logger = get_logger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[str, Any], None]


def default_ttl_policy() -> Dict[str, float]:
    """TTL per document kind, the part of a key before ``:``."""
    return {
        "program": settings.PROGRAM_CACHE_TTL_SECONDS,
        "progress": settings.PROGRESS_CACHE_TTL_SECONDS,
    }


class ProgressCacheCoordinator:
    """
    Process-wide cache for per-user documents.

    Fetch failures are returned as ``FetchResult`` values, never raised.
    There is no cancellation: a fetch whose caller went away still writes
    its result for the next reader.

    Usage:
        cache = ProgressCacheCoordinator()
        result = await cache.ensure_fresh("progress:u1", lambda: repo.get_progress("u1"))
        progress = cache.read("progress:u1")
    """

    def __init__(
        self,
        ttl_policy: Optional[Mapping[str, float]] = None,
        default_ttl_seconds: float = 60.0,
        quick_reentry_window_seconds: Optional[float] = None,
        deferred_revalidate_delay_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the coordinator.

        Args:
            ttl_policy: TTL in seconds per document kind
            default_ttl_seconds: TTL for keys without a policy entry
            quick_reentry_window_seconds: Re-focus window that defers revalidation
            deferred_revalidate_delay_seconds: Delay applied inside that window
            clock: Monotonic time source in seconds
            sleep: Coroutine used for the deferred revalidation
        """
        self._ttl_policy = dict(ttl_policy) if ttl_policy is not None else default_ttl_policy()
        self._default_ttl = default_ttl_seconds
        self._quick_reentry_window = (
            quick_reentry_window_seconds
            if quick_reentry_window_seconds is not None
            else settings.QUICK_REENTRY_WINDOW_SECONDS
        )
        self._deferred_delay = (
            deferred_revalidate_delay_seconds
            if deferred_revalidate_delay_seconds is not None
            else settings.DEFERRED_REVALIDATE_DELAY_SECONDS
        )
        self._clock = clock
        self._sleep = sleep

        self._entries: Dict[str, CacheEntry] = {}
        # Settles with the FetchResult of the fetch in flight for a key
        self._pending: Dict[str, "asyncio.Future[FetchResult]"] = {}
        self._refreshing: Set[str] = set()
        self._listeners: List[Listener] = []

    # ========================================
    # Reads
    # ========================================

    def ttl_for(self, key: str) -> float:
        kind = key.split(":", 1)[0]
        return self._ttl_policy.get(kind, self._default_ttl)

    def read(self, key: str) -> Any:
        """Last known value, fresh or not; None before the first fetch."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    def is_in_flight(self, key: str) -> bool:
        return key in self._pending

    def is_invalidated(self, key: str) -> bool:
        """True from an invalidation until a fetch started after it is stored."""
        entry = self._entries.get(key)
        return entry is not None and entry.invalidated

    def is_refreshing(self, key: str) -> bool:
        """True while a deferred re-focus revalidation is pending or running."""
        return key in self._refreshing

    def age(self, key: str) -> Optional[float]:
        """Seconds since the last successful write, None if never written."""
        entry = self._entries.get(key)
        if entry is None or entry.last_updated_at is None:
            return None
        return self._clock() - entry.last_updated_at

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        in_flight = key in self._pending

        if entry is None or not entry.has_value():
            return CacheState.LOADING if in_flight else CacheState.EMPTY
        if in_flight:
            return CacheState.REVALIDATING
        if entry.is_fresh(self._clock()):
            return CacheState.FRESH
        return CacheState.STALE

    # ========================================
    # Fetching
    # ========================================

    async def ensure_fresh(self, key: str, fetcher: Fetcher) -> FetchResult:
        """
        Fetch ``key`` unless it is fresh or already being fetched.

        Args:
            key: Cache key
            fetcher: Coroutine factory producing the document

        Returns:
            FetchResult describing what happened
        """
        if self.is_fresh(key):
            logger.debug("Cache fresh, skipping fetch", key=key)
            return FetchResult(key=key, status=FetchStatus.SKIPPED_FRESH, value=self.read(key))

        return await self.revalidate(key, fetcher)

    async def revalidate(self, key: str, fetcher: Fetcher) -> FetchResult:
        """
        Fetch ``key`` regardless of freshness, still single-flight.

        A concurrent call while a fetch is in flight returns immediately
        with ``SKIPPED_IN_FLIGHT``; use ``wait_settled`` to wait for the
        pending fetch instead.

        A fetch that started before an ``invalidate`` still stores its
        value, but the entry stays stale so the next reader refetches.
        """
        if key in self._pending:
            logger.debug("Fetch already in flight, skipping", key=key)
            return FetchResult(key=key, status=FetchStatus.SKIPPED_IN_FLIGHT, value=self.read(key))

        entry = self._entries.setdefault(key, CacheEntry(ttl_seconds=self.ttl_for(key)))
        generation = entry.generation

        # Registered before the first await so overlapping callers see it
        settled: "asyncio.Future[FetchResult]" = asyncio.get_running_loop().create_future()
        self._pending[key] = settled

        # Reported to waiters if this fetch is cancelled
        result = FetchResult(key=key, status=FetchStatus.FAILED, value=entry.value)
        try:
            with track_operation(logger, "fetch", key):
                value = await fetcher()
        except Exception as e:
            result = FetchResult(key=key, status=FetchStatus.FAILED, value=entry.value, error=e)
        else:
            del self._pending[key]
            superseded = self._entries.get(key) is entry and entry.generation != generation
            self._store(key, value, invalidated=superseded)
            if superseded:
                logger.debug("Fetch predates invalidation, entry left stale", key=key)
            result = FetchResult(key=key, status=FetchStatus.UPDATED, value=value)
        finally:
            self._pending.pop(key, None)
            if not settled.done():
                settled.set_result(result)

        return result

    async def wait_settled(self, key: str) -> Optional[FetchResult]:
        """
        Wait for the fetch in flight for ``key``, if any.

        Returns:
            That fetch's FetchResult, or None when nothing was in flight
        """
        settled = self._pending.get(key)
        if settled is None:
            return None
        # Shielded so a cancelled waiter does not cancel the shared future
        return await asyncio.shield(settled)

    async def on_focus(self, key: str, fetcher: Fetcher) -> FetchResult:
        """
        Re-entry policy for a surface that regains attention.

        Within the quick re-entry window of the last update, the key is
        marked as refreshing and revalidated after a short delay; otherwise
        it is revalidated immediately.
        """
        age = self.age(key)
        if age is None or age >= self._quick_reentry_window:
            return await self.revalidate(key, fetcher)

        self._refreshing.add(key)
        try:
            await self._sleep(self._deferred_delay)
            return await self.revalidate(key, fetcher)
        finally:
            self._refreshing.discard(key)

    async def refresh_all(
        self,
        fetchers: Mapping[str, Fetcher],
        force: bool = False,
    ) -> Dict[str, FetchResult]:
        """
        Refresh several keys independently and wait for all of them.

        One failing key never cancels the others; each gets its own result.
        """
        keys = list(fetchers)
        refresh = self.revalidate if force else self.ensure_fresh

        outcomes = await asyncio.gather(
            *(refresh(key, fetchers[key]) for key in keys),
            return_exceptions=True,
        )

        results: Dict[str, FetchResult] = {}
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                outcome = FetchResult(
                    key=key, status=FetchStatus.FAILED, value=self.read(key), error=outcome
                )
            results[key] = outcome

        failures = [k for k, r in results.items() if not r.ok]
        if failures:
            logger.warning("Refresh completed with failures", failed_keys=failures)

        return results

    # ========================================
    # Writes
    # ========================================

    def write(self, key: str, value: Any) -> None:
        """Store a value as fresh and notify listeners."""
        self._store(key, value, invalidated=False)

    def _store(self, key: str, value: Any, invalidated: bool) -> None:
        entry = self._entries.setdefault(key, CacheEntry(ttl_seconds=self.ttl_for(key)))
        entry.value = value
        entry.last_updated_at = self._clock()
        entry.invalidated = invalidated
        self._notify(key, value)

    def invalidate(self, key: str) -> None:
        """Mark a key stale; its value stays readable."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.invalidated = True
            entry.generation += 1
            logger.debug("Cache entry invalidated", key=key)

    def clear(self) -> None:
        """Drop every entry. In-flight fetches still write when they settle."""
        self._entries.clear()
        logger.info("Cache cleared")

    # ========================================
    # Change notification
    # ========================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener(key, value)`` for successful writes.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception as e:
                logger.warning("Cache listener failed", key=key, error=str(e))


# Singleton coordinator shared by the application
_coordinator: Optional[ProgressCacheCoordinator] = None


def get_cache_coordinator() -> ProgressCacheCoordinator:
    """Get or create the global cache coordinator."""
    global _coordinator
    if _coordinator is None:
        _coordinator = ProgressCacheCoordinator()
    return _coordinator
