# sitelens/services/cache.py
# -----------------------------------------------------------------------------
# Bounded FIFO cache for finished reports
# - explicit insertion order in a deque, values in a dict
# - one lock guards both so concurrent requests see a consistent pair
# -----------------------------------------------------------------------------
from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from loguru import logger

from sitelens.schemas.analysis import AnalysisReport


class ReportCache:
    """In-memory report store evicting the oldest insert once over capacity."""

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: Dict[str, AnalysisReport] = {}
        self._order: Deque[str] = deque()
        self._lock = threading.Lock()

    def put(self, key: str, report: AnalysisReport) -> None:
        with self._lock:
            if key in self._entries:
                # last writer wins, original position kept
                self._entries[key] = report
                return
            self._entries[key] = report
            self._order.append(key)
            while len(self._order) > self.capacity:
                oldest = self._order.popleft()
                self._entries.pop(oldest, None)
                logger.debug(f"[Cache] evicted {oldest}")

    def get(self, key: str) -> Optional[AnalysisReport]:
        with self._lock:
            return self._entries.get(key)

    def keys(self) -> List[str]:
        """Keys from oldest to newest."""
        with self._lock:
            return list(self._order)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)
