import pytest
from app_start_tracing.clock import ManualClock
from app_start_tracing.core.config import TrackerConfig
from app_start_tracing.infra.gateways.fake_telemetry_gateway import FakeTelemetryGateway
from app_start_tracing.lifecycle import LifecycleRegistry, ManualFrameScheduler
from app_start_tracing.tracker import StartupTraceTracker


@pytest.fixture
def tracker_config() -> TrackerConfig:
    return TrackerConfig(
        enabled=True,
        backend="fake",
        placeholder_transaction_name="AppStart",
        deadline_timeout_s=None,
        idle_timeout_s=None,
        wait_for_children=True,
        trim_end=True,
    )


@pytest.fixture
def fake_gateway() -> FakeTelemetryGateway:
    return FakeTelemetryGateway()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock(start_ms=0.0)


@pytest.fixture
def frame_scheduler() -> ManualFrameScheduler:
    return ManualFrameScheduler()


@pytest.fixture
def lifecycle() -> LifecycleRegistry:
    return LifecycleRegistry()


@pytest.fixture
def tracker(
    fake_gateway, frame_scheduler, lifecycle, manual_clock, tracker_config
) -> StartupTraceTracker:
    return StartupTraceTracker(
        fake_gateway,
        frame_scheduler,
        lifecycle,
        clock=manual_clock,
        config=tracker_config,
    )
