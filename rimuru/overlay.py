"""
Overlay lifecycle: mount, animate in, animate out, unmount.

Every modal and popover owns one OverlayController. The controller turns an
open/closed intent into four phases so the page can play CSS transitions
before content is removed:

    exited --open--> entering --next tick--> entered
    entered/entering --close--> exiting --duration--> exited

Deferred work goes through a Scheduler so the same machine runs on a
pumped cooperative loop (dashboard, tests) or on real threads.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger("rimuru.overlay")

DEFAULT_DURATION_MS = 200


def monotonic_ms() -> int:
    """Integer milliseconds, so a timer due after N ms fires after exactly N."""
    return time.monotonic_ns() // 1_000_000


class Phase(str, Enum):
    ENTERING = "entering"
    ENTERED = "entered"
    EXITING = "exiting"
    EXITED = "exited"


# ── Schedulers ────────────────────────────────────────────────────────────────

class ScheduledCall:
    """Handle for deferred work. ``cancel()`` is idempotent."""

    def __init__(self, callback: Callable[[], None], on_cancel: Optional[Callable[[], None]] = None):
        self.callback = callback
        self.cancelled = False
        self._on_cancel = on_cancel

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    def run(self) -> None:
        if not self.cancelled:
            self.callback()


class Scheduler(ABC):

    @abstractmethod
    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        """Run ``callback`` at the next scheduling opportunity, never synchronously."""
        ...

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        """Run ``callback`` once ``delay_ms`` milliseconds have elapsed."""
        ...


class CooperativeScheduler(Scheduler):
    """Single-threaded scheduler; nothing runs until the owner calls ``pump()``.

    ``call_soon`` work runs on the next pump. ``call_later`` work runs on the
    first pump at or after its due time, in due-time order.
    """

    def __init__(self, clock: Callable[[], int] = monotonic_ms):
        self._clock = clock
        self._soon: List[ScheduledCall] = []
        self._timers: List[Tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()
        # guards the queues only; callbacks run unlocked so they can reschedule
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        return self._clock()

    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        handle = ScheduledCall(callback)
        with self._lock:
            self._soon.append(handle)
        return handle

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        handle = ScheduledCall(callback)
        with self._lock:
            heapq.heappush(self._timers, (self.now_ms() + delay_ms, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for h in self._soon if not h.cancelled) + \
                sum(1 for _, _, h in self._timers if not h.cancelled)

    def pump(self) -> int:
        """Run everything that is due. Returns the number of callbacks run."""
        with self._lock:
            # work queued by these callbacks waits for the next pump
            due, self._soon = self._soon, []
            now = self.now_ms()
            while self._timers and self._timers[0][0] <= now:
                due.append(heapq.heappop(self._timers)[2])
        ran = 0
        for handle in due:
            if not handle.cancelled:
                handle.run()
                ran += 1
        return ran


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by ``threading.Timer``."""

    # one display frame
    FRAME_MS = 16

    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        return self.call_later(self.FRAME_MS, callback)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        handle: ScheduledCall
        timer = threading.Timer(delay_ms / 1000.0, lambda: handle.run())
        timer.daemon = True
        handle = ScheduledCall(callback, on_cancel=timer.cancel)
        timer.start()
        return handle


# ── Controller ────────────────────────────────────────────────────────────────

class OverlayController:
    """Four-phase lifecycle for one overlay instance.

    ``should_render`` is False only in ``exited``; consumers must not render
    content when it is False.
    """

    def __init__(self, is_open: bool = False, duration_ms: float = DEFAULT_DURATION_MS,
                 scheduler: Optional[Scheduler] = None,
                 on_change: Optional[Callable[["OverlayController"], None]] = None,
                 name: str = ""):
        if duration_ms < 0:
            raise ValueError(f"duration_ms must be >= 0, got {duration_ms}")
        self.name = name
        self.duration_ms = duration_ms
        self.scheduler = scheduler or CooperativeScheduler()
        self.on_change = on_change
        self._is_open = bool(is_open)
        self._phase = Phase.ENTERED if is_open else Phase.EXITED
        self._pending: Optional[ScheduledCall] = None
        self._generation = 0
        self._destroyed = False
        self._lock = threading.RLock()

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def should_render(self) -> bool:
        return self._phase is not Phase.EXITED

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def set_open(self, is_open: bool) -> Phase:
        is_open = bool(is_open)
        with self._lock:
            if self._destroyed:
                raise RuntimeError(f"Overlay {self.name!r} has been destroyed")
            if is_open == self._is_open:
                return self._phase
            self._is_open = is_open
            self._cancel_pending()
            generation = self._generation
            if is_open:
                self._set_phase(Phase.ENTERING)
                self._pending = self.scheduler.call_soon(
                    lambda: self._advance(generation, Phase.ENTERED))
            else:
                self._set_phase(Phase.EXITING)
                self._pending = self.scheduler.call_later(
                    self.duration_ms, lambda: self._advance(generation, Phase.EXITED))
            return self._phase

    def set_duration(self, duration_ms: float) -> None:
        """Change the exit duration. Applies from the next close; a running exit keeps its timer."""
        if duration_ms < 0:
            raise ValueError(f"duration_ms must be >= 0, got {duration_ms}")
        with self._lock:
            self.duration_ms = duration_ms

    def open(self) -> Phase:
        return self.set_open(True)

    def close(self) -> Phase:
        return self.set_open(False)

    def destroy(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self._cancel_pending()
            self._destroyed = True
            logger.debug(f"Overlay {self.name!r} destroyed in phase {self._phase.value}")

    def snapshot(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "open": self._is_open,
            "phase": self._phase.value,
            "shouldRender": self.should_render,
            "duration": self.duration_ms,
        }

    def _cancel_pending(self) -> None:
        # bump first so a threaded timer already past cancel() sees itself as stale
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _advance(self, generation: int, phase: Phase) -> None:
        with self._lock:
            if self._destroyed or generation != self._generation:
                return
            self._pending = None
            self._set_phase(phase)

    def _set_phase(self, phase: Phase) -> None:
        if phase is self._phase:
            return
        logger.debug(f"Overlay {self.name!r}: {self._phase.value} -> {phase.value}")
        self._phase = phase
        if self.on_change is not None:
            self.on_change(self)


class OverlayRegistry:
    """Named overlays owned by one dashboard instance."""

    def __init__(self, scheduler: Optional[Scheduler] = None,
                 default_duration_ms: float = DEFAULT_DURATION_MS):
        self.scheduler = scheduler or CooperativeScheduler()
        self.default_duration_ms = default_duration_ms
        self._overlays: Dict[str, OverlayController] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        return name in self._overlays

    def __len__(self) -> int:
        return len(self._overlays)

    def get(self, name: str) -> Optional[OverlayController]:
        return self._overlays.get(name)

    def request(self, name: str, is_open: bool,
                duration_ms: Optional[float] = None) -> Dict[str, object]:
        """Apply an open/close intent; the first open request creates the overlay."""
        with self._lock:
            ctrl = self._overlays.get(name)
            if ctrl is None:
                if not is_open:
                    return self._closed_snapshot(name, duration_ms)
                duration = self.default_duration_ms if duration_ms is None else duration_ms
                ctrl = OverlayController(False, duration, scheduler=self.scheduler, name=name)
                self._overlays[name] = ctrl
                logger.info(f"Created overlay {name!r} (duration {duration}ms)")
            elif duration_ms is not None:
                ctrl.set_duration(duration_ms)
            ctrl.set_open(is_open)
            return ctrl.snapshot()

    def snapshot(self, name: str) -> Optional[Dict[str, object]]:
        with self._lock:
            ctrl = self._overlays.get(name)
            return ctrl.snapshot() if ctrl else None

    def snapshots(self, prefix: str = "") -> List[Dict[str, object]]:
        with self._lock:
            return [c.snapshot() for name, c in self._overlays.items() if name.startswith(prefix)]

    def destroy(self, name: str) -> bool:
        with self._lock:
            ctrl = self._overlays.pop(name, None)
        if ctrl is None:
            return False
        ctrl.destroy()
        return True

    def destroy_all(self) -> None:
        with self._lock:
            overlays, self._overlays = self._overlays, {}
        for ctrl in overlays.values():
            ctrl.destroy()

    def _closed_snapshot(self, name: str, duration_ms: Optional[float]) -> Dict[str, object]:
        return {
            "name": name,
            "open": False,
            "phase": Phase.EXITED.value,
            "shouldRender": False,
            "duration": self.default_duration_ms if duration_ms is None else duration_ms,
        }
