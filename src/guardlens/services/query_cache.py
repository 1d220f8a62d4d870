"""Content-addressed result cache with at most one in-flight fetch per key."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from concurrent.futures import Future
from time import monotonic
from typing import Any, Callable, Optional, TypeVar

from cachetools import TTLCache

from guardlens.config.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAXSIZE = 256

_MISSING = object()


def make_key(key_parts: Any) -> str:
    """Canonical JSON of the key parts, hashed so credentials are never kept in clear."""
    canonical = json.dumps(key_parts, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class QueryCache:
    """
    Results keyed by (namespace, credential, params).

    - a fresh entry is returned without calling the fetch function
    - concurrent callers for the same key share one fetch
    - a completed fetch replaces the entry wholesale
    - failures are never cached; every waiter sees the exception
    - entries expire after `stale_time_s`; the least recently used go first past `maxsize`
    """

    def __init__(
        self,
        stale_time_s: Optional[float] = None,
        maxsize: int = DEFAULT_MAXSIZE,
        time_fn: Callable[[], float] = monotonic,
    ):
        self.stale_time_s = settings.stale_time_s if stale_time_s is None else stale_time_s
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=self.stale_time_s, timer=time_fn)
        self._inflight: dict[str, Future] = {}
        self._lock = threading.Lock()

    def fetch(self, key_parts: Any, fn: Callable[[], T]) -> T:
        key = make_key(key_parts)
        with self._lock:
            value = self._entries.get(key, _MISSING)
            if value is not _MISSING:
                logger.debug("cache hit %s", key[:12])
                return value
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            logger.debug("joining in-flight fetch %s", key[:12])
            return future.result()

        try:
            value = fn()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            # a zero window keeps nothing, only the in-flight sharing
            if self.stale_time_s > 0:
                self._entries[key] = value
            self._inflight.pop(key, None)
        future.set_result(value)
        return value

    def invalidate(self, key_parts: Any = None) -> None:
        """Drop one key, or every entry when called without arguments."""
        with self._lock:
            if key_parts is None:
                self._entries.clear()
            else:
                self._entries.pop(make_key(key_parts), None)
