"""
Context Cache - tagged, TTL-bounded storage for collected context maps.

Provides:
- Redis storage (JSON values with SETEX, one Redis set per tag)
- Graceful fallback to an in-process LRU when Redis is disabled or unreachable
- Tag invalidation: every key stored under a tag is dropped together

Key pattern: ai_context:... (chosen by the collectors)
Tag index:   ai_context:tag:{tag}

Concurrent misses on the same key may both recompute; the last writer wins.

Usage:
    from services.context_cache import ContextCache

    cache = ContextCache(url="redis://localhost:6379/0")
    cache.set("ai_context:site", {"name": "Example"}, max_age=86400, tags=["config:system.site"])
    cache.invalidate_tags(["config:system.site"])
"""

import json
import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Dict, Iterable, Optional, Set

import redis

logger = logging.getLogger(__name__)

TAG_PREFIX = "ai_context:tag:"
# Longest TTL any entry may carry (the upper bound of context_max_age)
TAG_MAX_AGE = 604800


class ContextCache:
    """Redis-backed context cache with an in-memory fallback."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        enabled: bool = True,
        fallback_max_entries: int = 1000,
    ):
        """
        Args:
            url: Redis connection URL
            enabled: False goes straight to the in-memory fallback
            fallback_max_entries: LRU bound for the fallback store
        """
        self.url = url
        self.enabled = enabled
        self._fallback_max_entries = fallback_max_entries

        self._client: Optional[redis.Redis] = None
        self._fallback_mode = not enabled
        self._connected = False
        self._lock = Lock()

        # Fallback state
        self._local_cache: "OrderedDict[str, Any]" = OrderedDict()
        self._local_expiry: Dict[str, float] = {}
        self._local_tags: Dict[str, Set[str]] = {}

        if not enabled:
            logger.info("Redis disabled by config, context cache using in-memory fallback")

    @property
    def fallback_mode(self) -> bool:
        return self._fallback_mode

    def _get_client(self) -> Optional[redis.Redis]:
        """Connect lazily; any failure switches to fallback for the process lifetime."""
        if self._fallback_mode:
            return None
        if self._client is not None and self._connected:
            return self._client
        try:
            self._client = redis.Redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2.0,
                socket_timeout=2.0,
            )
            self._client.ping()
            self._connected = True
            logger.info(f"Context cache connected to Redis: {self.url}")
            return self._client
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}, context cache using fallback mode")
            self._enter_fallback()
            return None

    def _enter_fallback(self) -> None:
        self._fallback_mode = True
        self._connected = False
        self._client = None

    # === Key-Value Operations ===

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Cached context map for key, or None on a miss."""
        client = self._get_client()
        if client is None:
            return self._fallback_get(key)
        try:
            raw = client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis GET failed for {key}: {e}")
            self._enter_fallback()
            return self._fallback_get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    def set(self, key: str, value: Dict[str, Any], max_age: int, tags: Iterable[str] = ()) -> None:
        """Store value for at most max_age seconds under the given tags.

        A max_age of zero or less means the value is not cached at all.
        """
        if max_age <= 0:
            logger.debug(f"Not caching {key}: max_age={max_age}")
            return
        tags = list(tags)
        client = self._get_client()
        if client is None:
            self._fallback_set(key, value, max_age, tags)
            return
        try:
            pipe = client.pipeline()
            pipe.setex(key, max_age, json.dumps(value, default=str))
            for tag in tags:
                pipe.sadd(f"{TAG_PREFIX}{tag}", key)
                pipe.expire(f"{TAG_PREFIX}{tag}", max(max_age, TAG_MAX_AGE))
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Redis SET failed for {key}: {e}")
            self._enter_fallback()
            self._fallback_set(key, value, max_age, tags)

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Drop every entry stored under any of tags. Returns entries removed."""
        tags = list(tags)
        if not tags:
            return 0
        client = self._get_client()
        if client is None:
            return self._fallback_invalidate(tags)
        try:
            keys: Set[str] = set()
            for tag in tags:
                keys.update(client.smembers(f"{TAG_PREFIX}{tag}"))
            removed = client.delete(*keys) if keys else 0
            client.delete(*[f"{TAG_PREFIX}{tag}" for tag in tags])
        except redis.RedisError as e:
            logger.warning(f"Redis tag invalidation failed: {e}")
            self._enter_fallback()
            return self._fallback_invalidate(tags)
        if removed:
            logger.info(f"Context cache invalidated {removed} entries for tags {tags}")
        return removed

    def clear(self) -> None:
        """Drop every context entry (both stores)."""
        with self._lock:
            self._local_cache.clear()
            self._local_expiry.clear()
            self._local_tags.clear()
        client = self._get_client()
        if client is None:
            return
        try:
            keys = list(client.scan_iter(match="ai_context:*"))
            if keys:
                client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis clear failed: {e}")
            self._enter_fallback()

    def health_check(self) -> Dict[str, Any]:
        """Report cache mode and size."""
        client = self._get_client()
        if client is None:
            return {"status": "fallback", "mode": "in-memory", "cache_size": len(self._local_cache)}
        try:
            start = time.perf_counter()
            client.ping()
            return {
                "status": "connected",
                "mode": "redis",
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        except redis.RedisError as e:
            self._enter_fallback()
            logger.warning(f"Redis health check failed: {e}, switching to fallback")
            return {"status": "error", "mode": "fallback", "error": str(e)}

    # === Fallback store ===

    def _fallback_get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            expiry = self._local_expiry.get(key)
            if expiry is not None and time.time() > expiry:
                self._drop_local(key)
                return None
            value = self._local_cache.get(key)
            if value is not None:
                self._local_cache.move_to_end(key)
            # Copy so callers cannot mutate the cached map
            return json.loads(json.dumps(value, default=str)) if value is not None else None

    def _fallback_set(self, key: str, value: Dict[str, Any], max_age: int, tags: Iterable[str]) -> None:
        with self._lock:
            if len(self._local_cache) >= self._fallback_max_entries and key not in self._local_cache:
                self._sweep_expired()
                while len(self._local_cache) >= self._fallback_max_entries:
                    evicted_key = next(iter(self._local_cache))
                    self._drop_local(evicted_key)

            self._local_cache[key] = json.loads(json.dumps(value, default=str))
            self._local_cache.move_to_end(key)
            self._local_expiry[key] = time.time() + max_age
            for tag in tags:
                self._local_tags.setdefault(tag, set()).add(key)

    def _fallback_invalidate(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for tag in tags:
                for key in self._local_tags.pop(tag, set()):
                    if key in self._local_cache:
                        removed += 1
                    self._drop_local(key)
        if removed:
            logger.info(f"Context cache invalidated {removed} entries for tags {list(tags)}")
        return removed

    def _drop_local(self, key: str) -> None:
        self._local_cache.pop(key, None)
        self._local_expiry.pop(key, None)
        for tag in [t for t, keys in self._local_tags.items() if key in keys]:
            self._local_tags[tag].discard(key)
            if not self._local_tags[tag]:
                del self._local_tags[tag]

    def _sweep_expired(self) -> None:
        now = time.time()
        expired = [k for k, exp in self._local_expiry.items() if now > exp]
        for k in expired:
            self._drop_local(k)
