from collections import deque
from typing import List, Optional

from neuroflow.config.settings import DATA_WINDOW_SIZE
from neuroflow.schemas import DataPoint


class RollingWindow:
    """
    Fixed-capacity FIFO of the most recent DataPoints.
    Oldest points are evicted when a new one pushes the length over capacity.
    Insertion order is the only order; points are never re-sorted.
    """

    def __init__(self, capacity: int = DATA_WINDOW_SIZE):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._points = deque(maxlen=capacity)
        self.total_appended = 0
        self.total_evicted = 0

    def append(self, point: DataPoint):
        if len(self._points) == self.capacity:
            self.total_evicted += 1
        self._points.append(point)
        self.total_appended += 1

    def clear(self):
        self._points.clear()

    def snapshot(self) -> List[DataPoint]:
        """Current contents, oldest first. The list is a copy; points are shared."""
        return list(self._points)

    def latest(self) -> Optional[DataPoint]:
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def get_stats(self) -> dict:
        return {
            "length": len(self._points),
            "capacity": self.capacity,
            "total_appended": self.total_appended,
            "total_evicted": self.total_evicted,
        }
