"""
Rate Quote Cache for carrier rate lookups

Minimize redundant external calls: an availability check followed by a
price computation for the same package must hit the carrier only once.

Purpose:
- Memoizes carrier rate-lookup results per (carrier, origin, destination, weight)
- Cache key: value-based RateCacheKey, normalized before hashing
- TTL: configurable, lazy expiry on read (no background sweeper)
- Max size: LRU eviction
- Failures are never cached, so a transient outage is retried on the next call

Usage:
    from parcel_shipping.core.rate_cache import RateCache, RateCacheKey

    cache = RateCache(ttl_seconds=600)
    key = RateCacheKey.for_package("postnl", package)
    quotes = await cache.get_or_fetch(key, lambda: carrier.find_rates(package))
"""
import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

WEIGHT_KEY_QUANTUM = Decimal("0.001")


@dataclass(frozen=True)
class RateCacheKey:
    """Value-based identity of one rate lookup."""
    carrier: str
    origin: str
    destination_country: str
    destination_postal_code: str
    weight: Decimal
    account: str = ""  # credentials fingerprint; quotes are per account

    @classmethod
    def for_package(cls, carrier: str, package, account: str = "") -> "RateCacheKey":
        """Build a normalized key from a Package."""
        destination = package.destination
        return cls(
            carrier=carrier.lower().strip(),
            origin=str(package.origin.id),
            destination_country=destination.country_code.upper().strip(),
            destination_postal_code="".join((destination.postal_code or "").split()).upper(),
            weight=Decimal(package.weight).quantize(WEIGHT_KEY_QUANTUM),
            account=account,
        )


class RateCache:
    """
    LRU cache with TTL for carrier rate quotes.

    Map mutations are guarded by a lock so concurrent in-flight pricing
    requests (threads or tasks) cannot corrupt it. The fetch itself runs
    outside the lock: two concurrent misses on one key may both fetch.

    Attributes:
        ttl_seconds: Time-to-live for cache entries (default: 600 = 10 minutes)
        max_size: Maximum cache entries before LRU eviction (default: 1000)
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate cache.

        Args:
            ttl_seconds: Time-to-live for cache entries in seconds
            max_size: Maximum number of cache entries
            clock: Monotonic time source (overridable in tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: "OrderedDict[str, Tuple[float, List[Any]]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _make_key(self, key: RateCacheKey) -> str:
        """
        Generate the storage key.

        Returns:
            MD5 hash of the normalized key fields
        """
        key_string = "|".join([
            key.carrier,
            key.origin,
            key.destination_country,
            key.destination_postal_code,
            str(key.weight),
            key.account,
        ])
        return hashlib.md5(key_string.encode()).hexdigest()

    def get(self, key: RateCacheKey) -> Optional[List[Any]]:
        """
        Get cached quotes if valid.

        Returns:
            Cached quote list or None if not found/expired
        """
        storage_key = self._make_key(key)

        with self._lock:
            entry = self._cache.get(storage_key)
            if entry is None:
                self._misses += 1
                return None

            timestamp, quotes = entry

            if self._clock() - timestamp > self.ttl_seconds:
                # Expired - remove and return miss
                del self._cache[storage_key]
                self._misses += 1
                logger.debug(f"[RATE_CACHE] Expired: {key.carrier} -> {key.destination_country}")
                return None

            self._cache.move_to_end(storage_key)
            self._hits += 1

        logger.debug(f"[RATE_CACHE] Hit: {key.carrier} -> {key.destination_country} ({len(quotes)} quotes)")
        return list(quotes)

    def set(self, key: RateCacheKey, quotes: List[Any]) -> None:
        """Cache a successful rate lookup."""
        storage_key = self._make_key(key)

        with self._lock:
            if storage_key in self._cache:
                del self._cache[storage_key]

            # Evict oldest entries if at capacity
            while self._cache and len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug("[RATE_CACHE] Evicted oldest entry (capacity)")

            self._cache[storage_key] = (self._clock(), list(quotes))

        logger.debug(f"[RATE_CACHE] Stored: {key.carrier} -> {key.destination_country} ({len(quotes)} quotes)")

    async def get_or_fetch(
        self,
        key: RateCacheKey,
        fetch_func: Callable[[], Awaitable[List[Any]]],
    ) -> List[Any]:
        """
        Get from cache or fetch and cache.

        This is the primary interface for cached lookups.

        Args:
            key: Rate lookup identity
            fetch_func: Zero-argument coroutine function called once on a miss

        Returns:
            Quote list (from cache or fresh fetch)

        Raises:
            Whatever fetch_func raises; failures are not cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        try:
            quotes = await fetch_func()
        except Exception as e:
            logger.debug(f"[RATE_CACHE] Fetch failed for {key.carrier} -> {key.destination_country}: {e}")
            raise

        quotes = list(quotes or [])
        self.set(key, quotes)
        return quotes

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate, size, etc.
        """
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total > 0 else 0.0,
                "size": len(self._cache),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "evictions": self._evictions,
            }

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"[RATE_CACHE] Cleared {count} entries")

    def invalidate(self, key: RateCacheKey) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed, False otherwise
        """
        storage_key = self._make_key(key)
        with self._lock:
            if storage_key in self._cache:
                del self._cache[storage_key]
                logger.debug(f"[RATE_CACHE] Invalidated: {key.carrier} -> {key.destination_country}")
                return True
        return False

    def reset_stats(self) -> None:
        """Reset hit/miss/eviction counters."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
        logger.info("[RATE_CACHE] Stats reset")

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
