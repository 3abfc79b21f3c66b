"""
Clock readings for app start tracing.

All timestamps handed to the tracker are milliseconds on the `monotonic_ms()` timeline.
"""

import os
import time

from app_start_tracing.core.loggers import logger_name, make_logger

logger = make_logger(logger_name())

PROC_SELF_STAT = "/proc/self/stat"
# Index of `starttime` among the fields following the parenthesized command name
_STARTTIME_FIELD = 19


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def _process_age_ms() -> float:
    """How long ago this process was created, read from procfs."""
    with open(PROC_SELF_STAT, "r") as f:
        stat = f.read()
    # The command name may itself contain spaces or parentheses
    fields = stat.rsplit(")", 1)[1].split()
    start_ticks = int(fields[_STARTTIME_FIELD])
    started_after_boot_ms = start_ticks * 1000.0 / os.sysconf("SC_CLK_TCK")
    since_boot_ms = time.clock_gettime(time.CLOCK_BOOTTIME) * 1000.0
    return since_boot_ms - started_after_boot_ms


def get_process_start_time_ms() -> float:
    """Process creation time on the `monotonic_ms()` timeline.

    Falls back to the current reading when the platform does not expose a process start time,
    which makes the process-init phase measure as zero.
    """
    now = monotonic_ms()
    try:
        age_ms = _process_age_ms()
    except (OSError, ValueError, IndexError, AttributeError) as e:
        logger.debug(f"Could not determine process start time, using now: {e}")
        return now
    return now - max(age_ms, 0.0)


class ManualClock:
    """A clock that only moves when told to. Used for simulated startups."""

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = float(start_ms)

    def __call__(self) -> float:
        return self._now_ms

    def advance(self, delta_ms: float) -> float:
        self._now_ms += delta_ms
        return self._now_ms

    def set(self, now_ms: float) -> None:
        self._now_ms = float(now_ms)
