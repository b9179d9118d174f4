"""
Scroll coordinator for the virtual list window.

Turns a noisy stream of scroll samples into visible-range updates:
  1. Samples closer than one unit to the last applied offset are ignored.
  2. A direction reversal applies immediately (no blank strip on reversal).
  3. Other samples inside the debounce window are coalesced into one deferred
     apply, which re-reads the live offset when it fires.
  4. Each apply widens overscan with scroll velocity and schedules a single
     geometry requery for the next frame.
  5. After a quiet period the coordinator goes idle and requeries once with
     the base overscan so the widened window is released.
"""

import math
import time
from dataclasses import dataclass

from PySide6.QtCore import QObject, QTimer, Signal

from virtualwindow.models.geometry_config import EMPTY_RANGE, VisibleRange
from virtualwindow.models.geometry_index import GeometryIndex
from virtualwindow.utils.flow_log import log_flow
from virtualwindow.utils.settings import get_float_setting, get_int_setting

# Offsets closer than this to the last applied one are treated as noise.
_NOISE_FLOOR = 1.0

# Overscan never widens past this multiple of the base value.
_MAX_OVERSCAN_FACTOR = 4.0


@dataclass(frozen=True)
class ScrollSample:
    offset: float
    timestamp_ms: float


@dataclass(frozen=True)
class ScrollTuning:
    overscan: int = 3
    debounce_ms: int = 16
    scroll_end_ms: int = 150
    velocity_threshold: float = 2.0
    max_overscan: int = 100

    @classmethod
    def from_settings(cls):
        return cls(
            overscan=get_int_setting('virtual_overscan', 0, 100),
            debounce_ms=get_int_setting('scroll_debounce_ms', 0, 1000),
            scroll_end_ms=get_int_setting('scroll_end_ms', 16, 5000),
            velocity_threshold=get_float_setting('scroll_velocity_threshold', 0.01, 1000.0),
            max_overscan=get_int_setting('max_dynamic_overscan', 1, 1000),
        )

    def dynamic_overscan(self, velocity: float) -> int:
        """Widen overscan with velocity, never below base or above the cap."""
        if not math.isfinite(velocity) or velocity < 0:
            velocity = 0.0
        factor = min(_MAX_OVERSCAN_FACTOR, 1.0 + velocity / self.velocity_threshold)
        widened = int(math.ceil(self.overscan * factor))
        return max(self.overscan, min(widened, self.max_overscan))


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ScrollCoordinator(QObject):
    """
    Debounces scroll samples and emits the visible window for the geometry.

    Timers are single-shot and at most one of each kind is live. `shutdown()`
    must be called before the viewport goes away.
    """

    visible_range_changed = Signal(object, float)  # (VisibleRange, total_size)
    offset_settled = Signal(float)

    STATE_IDLE = "idle"
    STATE_PENDING = "pending"
    STATE_ACTIVE = "active"

    def __init__(self, geometry: GeometryIndex, parent=None, *, tuning: ScrollTuning | None = None,
                 viewport_size: float = 0.0, live_offset=None, clock=None, timer_factory=None):
        super().__init__(parent)
        self._geometry = geometry
        self._tuning = tuning or ScrollTuning.from_settings()
        self._viewport_size = self._sanitize_viewport(viewport_size)
        self._live_offset = live_offset
        self._clock = clock or _monotonic_ms

        self._state = self.STATE_IDLE
        self._last_sample: ScrollSample | None = None
        self._direction = 0
        self._velocity = 0.0
        self._pending_offset = 0.0
        self._applied_offset = 0.0
        self._applied_at_ms: float | None = None
        # (host timestamp, clock reading) of the sample that armed the debounce.
        self._deferred_from: tuple[float, float] | None = None
        self._current_overscan = self._tuning.overscan
        self._force_emit = True
        self._last_emitted: tuple[VisibleRange, float] | None = None
        self._visible_range = EMPTY_RANGE

        make_timer = timer_factory or self._make_timer
        self._debounce_timer = make_timer(self._on_debounce_fired)
        self._frame_timer = make_timer(self._on_frame)
        self._scroll_end_timer = make_timer(self._on_scroll_end)

    def _make_timer(self, callback):
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.timeout.connect(callback)
        return timer

    @staticmethod
    def _sanitize_viewport(viewport_size) -> float:
        try:
            value = float(viewport_size)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(value) or value <= 0:
            return 0.0
        return value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def velocity(self) -> float:
        return self._velocity

    @property
    def direction(self) -> int:
        return self._direction

    @property
    def applied_offset(self) -> float:
        return self._applied_offset

    @property
    def current_overscan(self) -> int:
        return self._current_overscan

    @property
    def viewport_size(self) -> float:
        return self._viewport_size

    @property
    def visible_range(self) -> VisibleRange:
        return self._visible_range

    @property
    def tuning(self) -> ScrollTuning:
        return self._tuning

    def set_tuning(self, tuning: ScrollTuning):
        self._tuning = tuning
        if self._state == self.STATE_IDLE:
            self._current_overscan = tuning.overscan
        self.request_requery()

    def on_scroll_sample(self, offset: float, timestamp_ms: float) -> bool:
        """Feed one scroll position. Returns True when it was applied immediately."""
        offset = float(offset)
        timestamp_ms = float(timestamp_ms)
        if not math.isfinite(offset):
            return False
        if abs(offset - self._applied_offset) < _NOISE_FLOOR:
            if self._debounce_timer.isActive():
                # Still the position the deferred apply falls back to.
                self._pending_offset = offset
            return False

        previous = self._last_sample
        if previous is not None:
            delta = offset - previous.offset
            elapsed = max(1.0, timestamp_ms - previous.timestamp_ms)
        else:
            delta = offset - self._applied_offset
            elapsed = None
        self._velocity = abs(delta) / elapsed if elapsed is not None else 0.0
        direction = (delta > 0) - (delta < 0)
        self._last_sample = ScrollSample(offset, timestamp_ms)
        self._pending_offset = offset

        reversed_direction = direction != 0 and self._direction != 0 and direction != self._direction
        if direction != 0:
            self._direction = direction

        if reversed_direction:
            self._debounce_timer.stop()
            log_flow("SCROLL", f"Direction reversed at offset={offset:.0f}; applying immediately",
                     throttle_key="scroll_reverse", every_s=0.25)
            self._apply(offset, timestamp_ms)
            return True

        if self._applied_at_ms is not None:
            since_apply = timestamp_ms - self._applied_at_ms
            if since_apply < self._tuning.debounce_ms:
                if not self._debounce_timer.isActive():
                    self._state = self.STATE_PENDING
                    remaining = max(0, int(math.ceil(self._tuning.debounce_ms - since_apply)))
                    self._deferred_from = (timestamp_ms, self._clock())
                    self._debounce_timer.start(remaining)
                return False

        self._apply(offset, timestamp_ms)
        return True

    def on_resize(self, viewport_size: float):
        """New viewport size at the current offset; always requeries."""
        self._viewport_size = self._sanitize_viewport(viewport_size)
        self.request_requery()

    def request_requery(self):
        """Requery on the next frame and emit even if the range is unchanged."""
        self._force_emit = True
        self._schedule_frame()

    def shutdown(self):
        """Cancel all pending timers; no callbacks fire afterwards."""
        self._debounce_timer.stop()
        self._frame_timer.stop()
        self._scroll_end_timer.stop()
        self._state = self.STATE_IDLE

    # ------------------------------------------------------------------
    # Apply / frame
    # ------------------------------------------------------------------

    def _read_live_offset(self) -> float:
        if self._live_offset is not None:
            try:
                value = float(self._live_offset())
            except Exception as e:
                log_flow("SCROLL", f"Live offset unavailable ({e!r}); using last sample",
                         level="WARN", throttle_key="scroll_live_offset", every_s=1.0)
            else:
                if math.isfinite(value):
                    return value
        return self._pending_offset

    def _apply(self, offset: float, timestamp_ms: float):
        if self._state == self.STATE_IDLE:
            log_flow("SCROLL", f"Active at offset={offset:.0f}", level="INFO")
        self._state = self.STATE_ACTIVE
        self._applied_offset = offset
        self._applied_at_ms = timestamp_ms
        self._current_overscan = self._tuning.dynamic_overscan(self._velocity)
        self._schedule_frame()
        self._scroll_end_timer.start(self._tuning.scroll_end_ms)

    def _schedule_frame(self):
        # Restarting replaces an unfired request.
        self._frame_timer.stop()
        self._frame_timer.start(0)

    def _deferred_timestamp(self) -> float:
        """Host-timebase time of a deferred apply: arming sample plus the wait."""
        latest = self._last_sample.timestamp_ms if self._last_sample is not None else 0.0
        if self._deferred_from is None:
            return latest
        armed_ms, armed_clock = self._deferred_from
        self._deferred_from = None
        waited = self._clock() - armed_clock
        if not math.isfinite(waited) or waited < 0:
            waited = 0.0
        return max(latest, armed_ms + waited)

    def _on_debounce_fired(self):
        offset = self._read_live_offset()
        timestamp_ms = self._deferred_timestamp()
        if self._last_sample is not None and offset != self._last_sample.offset:
            elapsed = max(1.0, timestamp_ms - self._last_sample.timestamp_ms)
            self._velocity = abs(offset - self._last_sample.offset) / elapsed
            self._last_sample = ScrollSample(offset, timestamp_ms)
        self._apply(offset, timestamp_ms)

    def _on_frame(self):
        self._requery()

    def _on_scroll_end(self):
        self._debounce_timer.stop()
        self._state = self.STATE_IDLE
        self._velocity = 0.0
        self._current_overscan = self._tuning.overscan
        live = self._read_live_offset()
        if abs(live - self._applied_offset) >= _NOISE_FLOOR:
            self._applied_offset = live
        log_flow("SCROLL", f"Idle at offset={self._applied_offset:.0f}", level="INFO")
        self._frame_timer.stop()
        self._requery()

    def _requery(self):
        total = self._geometry.total_size()
        if self._viewport_size <= 0:
            visible = EMPTY_RANGE
        else:
            visible = self._geometry.visible_range(
                self._viewport_size, self._applied_offset, self._current_overscan
            )
        self._visible_range = visible
        snapshot = (visible, total)
        if self._force_emit or snapshot != self._last_emitted:
            self._force_emit = False
            self._last_emitted = snapshot
            self.visible_range_changed.emit(visible, total)
        self.offset_settled.emit(self._applied_offset)
