"""
Detection History

Short rolling record of per-frame detection counts, used to report how
steady the detector output is.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import numpy as np


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: float
    count: int
    source_method: str


class DetectionHistory:
    """Bounded history of frame results."""

    def __init__(self, max_size: int = 5, window: int = 3):
        self.window = window
        self._entries: Deque[HistoryEntry] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, timestamp: float, count: int, source_method: str) -> None:
        self._entries.append(HistoryEntry(timestamp, count, source_method))

    def clear(self) -> None:
        self._entries.clear()

    @property
    def last_method(self) -> Optional[str]:
        if not self._entries:
            return None
        return self._entries[-1].source_method

    def stability(self) -> int:
        """
        0-100 score from the variance of the most recent counts.

        Fewer than two frames count as fully stable.
        """
        if len(self._entries) < 2:
            return 100

        recent = np.array([e.count for e in list(self._entries)[-self.window:]], dtype=float)
        variance = float(recent.var())
        return int(round(max(0.0, 100 - variance * 10)))
