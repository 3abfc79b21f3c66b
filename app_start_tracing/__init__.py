"""
App start tracing: measures cold and warm app start as one `ui.load` trace.

Usage for hosts:

    from app_start_tracing import (
        LifecycleRegistry,
        ManualFrameScheduler,
        StartupTraceTracker,
        get_telemetry_gateway,
    )

    lifecycle = LifecycleRegistry()
    tracker = StartupTraceTracker(get_telemetry_gateway(), frame_scheduler, lifecycle)

    # As early as possible in the process
    tracker.begin()

    # From the host's screen hooks
    lifecycle.dispatch_screen_created("MainActivity")
    lifecycle.dispatch_screen_visible("MainActivity")

    # The trace finishes by itself once the frame scheduler reports the next rendered frame
"""

from .clock import ManualClock, get_process_start_time_ms, monotonic_ms
from .domain.entities import (
    MeasurementUnit,
    PhaseKind,
    SpanStatus,
    StartType,
    TrackerState,
    TransactionOptions,
)
from .infra.gateways import get_telemetry_gateway
from .lifecycle import (
    AsyncioFrameScheduler,
    FrameScheduler,
    LifecycleObserver,
    LifecycleRegistry,
    ManualFrameScheduler,
    StartupSubscription,
)
from .tracker import StartupTraceTracker

__all__ = [
    # Main interface
    "StartupTraceTracker",
    "StartupSubscription",
    "get_telemetry_gateway",
    # Host plumbing
    "LifecycleObserver",
    "LifecycleRegistry",
    "FrameScheduler",
    "ManualFrameScheduler",
    "AsyncioFrameScheduler",
    # Clock
    "monotonic_ms",
    "get_process_start_time_ms",
    "ManualClock",
    # Entities
    "MeasurementUnit",
    "PhaseKind",
    "SpanStatus",
    "StartType",
    "TrackerState",
    "TransactionOptions",
]
