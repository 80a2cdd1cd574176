"""Central time-ordered schedule drained once per world tick."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable
import heapq
import itertools
import logging


logger = logging.getLogger("wildgrove_core.sim.schedule")

ScheduledFn = Callable[[], None]


@dataclass(order=True)
class ScheduledEntry:
    due_ms: int
    seq: int
    label: str = field(compare=False)
    callback: ScheduledFn = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class Schedule:
    """Min-heap of callbacks keyed by simulation time.

    Callbacks only run from ``run_due``, which the world calls inside its own
    tick, so nothing fires after ``clear``.
    """

    def __init__(self) -> None:
        self._heap: list[ScheduledEntry] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return sum(1 for entry in self._heap if not entry.cancelled)

    def schedule(self, due_ms: int, callback: ScheduledFn, *, label: str = "") -> ScheduledEntry:
        entry = ScheduledEntry(due_ms=int(due_ms), seq=next(self._seq), label=label, callback=callback)
        heapq.heappush(self._heap, entry)
        return entry

    @staticmethod
    def cancel(entry: ScheduledEntry) -> None:
        entry.cancelled = True

    def run_due(self, now_ms: int) -> int:
        ran = 0
        while self._heap and self._heap[0].due_ms <= now_ms:
            entry = heapq.heappop(self._heap)
            if entry.cancelled:
                continue
            try:
                entry.callback()
            except Exception as exc:
                logger.exception("[SCHEDULE] Callback '%s' failed: %s", entry.label, exc)
            ran += 1
        return ran

    def pending_labels(self) -> list[str]:
        return [entry.label for entry in sorted(self._heap) if not entry.cancelled]

    def clear(self) -> None:
        self._heap.clear()
