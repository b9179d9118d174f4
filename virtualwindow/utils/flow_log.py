"""Timestamped, optionally throttled flow logging for geometry/scroll diagnostics."""

import time

from virtualwindow.utils.settings import settings

# Components whose messages survive the minimal trace filter.
_MINIMAL_COMPONENTS = {"SCROLL"}

_flow_log_last: dict[str, float] = {}


def log_flow(component: str, message: str, *, level: str = "DEBUG",
             throttle_key: str | None = None, every_s: float | None = None):
    # Set `minimal_trace_logs` to False in settings to see the full flow.
    if level not in ("WARN", "ERROR"):
        try:
            minimal_trace = bool(settings.value("minimal_trace_logs", True, type=bool))
        except Exception:
            minimal_trace = True
        if minimal_trace and component not in _MINIMAL_COMPONENTS:
            return
        if minimal_trace and level == "DEBUG":
            return

    now = time.time()
    if throttle_key and every_s is not None:
        last = _flow_log_last.get(throttle_key, 0.0)
        if (now - last) < every_s:
            return
        _flow_log_last[throttle_key] = now
    ts = time.strftime("%H:%M:%S", time.localtime(now)) + f".{int((now % 1) * 1000):03d}"
    print(f"[{ts}][TRACE][{component}][{level}] {message}")


def reset_throttle():
    """Forget throttle timestamps."""
    _flow_log_last.clear()
