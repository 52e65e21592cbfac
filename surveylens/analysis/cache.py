"""Canonical cache keys and a bounded memo cache for series results.

The engine never caches.  Callers that recompute on every interaction key a
cache on a canonical serialisation of the inputs: dataset identity, question
id, cohort specification and sort order.
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections import OrderedDict
from enum import Enum
from typing import Any

from pydantic import BaseModel

from surveylens.analysis.models import SeriesResult


def _canonical(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, Enum):
        return value.value
    return value


def series_cache_key(kind: str, *parts: Any) -> str:
    """SHA-256 over the sorted-key JSON of *parts*, namespaced by *kind*.

    Identical inputs always give the same key; dict ordering never matters.
    """
    payload = json.dumps(
        [kind, *(_canonical(p) for p in parts)],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SeriesCache:
    """Least-recently-used map of cache key -> ``SeriesResult``.

    Sync FastAPI routes run on a threadpool, so every access holds the lock.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self.maxsize = maxsize
        self._entries: OrderedDict[str, SeriesResult] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> SeriesResult | None:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return result

    def put(self, key: str, result: SeriesResult) -> None:
        if self.maxsize <= 0:
            return
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = self.misses = 0
