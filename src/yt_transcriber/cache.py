"""Bounded in-memory transcript cache keyed by video id."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from yt_transcriber.types import TranscriptRecord

DEFAULT_MAX_ENTRIES = 50


@dataclass(frozen=True, slots=True)
class CacheEntry:
    record: TranscriptRecord
    inserted_at: float


class TranscriptCache:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Callable[[], float] = time.time) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, video_id: str) -> TranscriptRecord | None:
        with self._lock:
            entry = self._entries.get(video_id)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.record

    def set(self, video_id: str, record: TranscriptRecord) -> None:
        with self._lock:
            if video_id not in self._entries and len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda key: self._entries[key].inserted_at)
                del self._entries[oldest]
            self._entries[video_id] = CacheEntry(record=record, inserted_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, video_id: object) -> bool:
        with self._lock:
            return video_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int | float]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / max(self._hits + self._misses, 1) * 100, 1),
            }
