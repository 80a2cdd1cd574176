"""Background scheduler that ticks the world at a fixed rate."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
import threading
import time
import uuid

from ..state import get_world


logger = logging.getLogger("wildgrove_api.runtime_scheduler")

DEFAULT_TICK_HZ = 10.0
MAX_TICK_HZ = 60.0


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _tick_hz_from_env() -> float:
    raw = str(os.environ.get("WILDGROVE_TICK_HZ") or "").strip()
    if not raw:
        return DEFAULT_TICK_HZ
    try:
        return float(raw)
    except ValueError:
        logger.warning("[RUNTIME] Ignoring invalid WILDGROVE_TICK_HZ=%r", raw)
        return DEFAULT_TICK_HZ


def _clamp_hz(value: float) -> float:
    return max(0.5, min(MAX_TICK_HZ, float(value)))


class WorldRuntimeScheduler:
    def __init__(self, tick_hz: float | None = None) -> None:
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._tick_hz = _clamp_hz(tick_hz if tick_hz is not None else _tick_hz_from_env())
        self._ticks = 0
        self._last_tick_at: str | None = None
        self._last_error: str | None = None
        self._scheduler_instance_id = f"scheduler-{uuid.uuid4().hex[:12]}"

    def start(self, *, tick_hz: float | None = None) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            if tick_hz is not None:
                self._tick_hz = _clamp_hz(tick_hz)
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="wildgrove-world-runtime-scheduler",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            logger.info("[RUNTIME] Background world scheduler started at %.1f Hz", self._tick_hz)
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        logger.info("[RUNTIME] Background world scheduler stopped after %d ticks", self._ticks)
        return True

    def status(self) -> dict[str, object]:
        with self._state_lock:
            running = bool(self._thread and self._thread.is_alive())
            thread_name = self._thread.name if self._thread else None
        return {
            "running": running,
            "thread_name": thread_name,
            "instance_id": self._scheduler_instance_id,
            "tick_hz": self._tick_hz,
            "ticks": self._ticks,
            "last_tick_at": self._last_tick_at,
            "last_error": self._last_error,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            interval = 1.0 / self._tick_hz
            started = time.monotonic()
            try:
                get_world().tick(interval)
                self._ticks += 1
                self._last_tick_at = _utc_now_iso()
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[RUNTIME] Scheduler loop error: %s", exc)
            elapsed = time.monotonic() - started
            self._stop_event.wait(max(0.0, interval - elapsed))


_SCHEDULER = WorldRuntimeScheduler()


def start_world_runtime_scheduler(*, tick_hz: float | None = None) -> bool:
    return _SCHEDULER.start(tick_hz=tick_hz)


def stop_world_runtime_scheduler() -> bool:
    return _SCHEDULER.stop()


def world_runtime_scheduler_status() -> dict[str, object]:
    return _SCHEDULER.status()
