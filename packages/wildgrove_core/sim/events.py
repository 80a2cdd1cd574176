"""In-world event log shared by characters and the world journal."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .geometry import Vec3


MAX_LOG_ENTRIES = 50


@dataclass(frozen=True)
class EventEntry:
    timestamp_ms: int
    actor_id: str
    kind: str
    message: str
    target_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    position: Vec3 | None = None

    def clock_label(self) -> str:
        total_seconds = max(0, int(self.timestamp_ms) // 1000)
        hours, rem = divmod(total_seconds, 3600)
        minutes, seconds = divmod(rem, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def prompt_line(self) -> str:
        return f"[{self.clock_label()}] {self.message}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "clock": self.clock_label(),
            "actor_id": self.actor_id,
            "kind": self.kind,
            "message": self.message,
            "target_id": self.target_id,
            "details": dict(self.details),
            "position": self.position.as_dict() if self.position else None,
        }


class EventLog:
    """Bounded, append-only log; oldest entries fall off the front."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES) -> None:
        self.max_entries = max(1, int(max_entries))
        self._entries: deque[EventEntry] = deque(maxlen=self.max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[EventEntry]:
        return list(self._entries)

    def add_entry(self, entry: EventEntry) -> None:
        self._entries.append(entry)

    def recent(self, count: int) -> list[EventEntry]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def recent_lines(self, count: int) -> list[str]:
        return [entry.prompt_line() for entry in self.recent(count)]

    def by_kind(self, kind: str) -> list[EventEntry]:
        return [entry for entry in self._entries if entry.kind == kind]
