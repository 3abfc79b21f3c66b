"""
StartupTraceTracker - measures app start as a single `ui.load` transaction.

Phases, in the order the host drives them:

    begin()                      PROCESS_INIT (cold only, retroactive), APP_INIT opened
    on_first_screen_created()    trace renamed to the screen, APP_INIT finished, SCREEN_CREATE opened
    on_first_screen_visible()    SCREEN_CREATE finished, FIRST_FRAME opened, frame callback scheduled
    <next frame rendered>        FIRST_FRAME finished, measurements written, trace finished

PROCESS_INIT elapsed before anything in the process could create a span. Its span is created and
finished on the spot, so only its `actual_duration_ms` data entry is meaningful, not its timestamps.

When another caller already has a span active at `begin`, the tracker does not start a second root
transaction: it attaches one child span to the active span, writes the start measurement onto it,
and stops there.

Telemetry must never break startup. Nothing here raises into the host: missing handles skip the
step, and backend errors are logged and skip the step.
"""

import threading
from contextlib import contextmanager
from functools import partial
from typing import Callable, Dict, Optional

from app_start_tracing.clock import get_process_start_time_ms, monotonic_ms
from app_start_tracing.constants import (
    DATA_ACTUAL_DURATION_MS,
    DATA_APP_START_TYPE,
    DATA_DURATION_MS,
    DATA_PROCESS_INIT_DURATION_MS,
    DATA_PROCESS_START_TIME_MS,
    DATA_SCREEN,
    MEASUREMENT_TIME_TO_FULL_DISPLAY,
    MEASUREMENT_TIME_TO_INITIAL_DISPLAY,
    TAG_START_TYPE,
    TAG_UI_LOAD_TYPE,
    UI_LOAD_OPERATION,
)
from app_start_tracing.core.config import TrackerConfig, get_tracker_config
from app_start_tracing.core.loggers import LoggerTagKey, LoggerTagManager, logger_name, make_logger
from app_start_tracing.domain.entities import (
    MeasurementUnit,
    PhaseKind,
    SpanStatus,
    StartType,
    TrackerState,
)
from app_start_tracing.domain.gateways.telemetry_gateway import (
    SpanHandle,
    TelemetryGateway,
    TransactionHandle,
)
from app_start_tracing.lifecycle import (
    FrameScheduler,
    LifecycleObserver,
    LifecycleRegistry,
    StartupSubscription,
)

logger = make_logger(logger_name())

PHASE_DESCRIPTIONS: Dict[PhaseKind, str] = {
    PhaseKind.PROCESS_INIT: "Process Initialization",
    PhaseKind.APP_INIT: "Application Initialization",
    PhaseKind.FIRST_FRAME: "First Frame Render",
}


@contextmanager
def _telemetry_step(step: str):
    try:
        yield
    except Exception:
        logger.warning(f"App start tracing could not {step}, skipping", exc_info=True)


class StartupTraceTracker(LifecycleObserver):
    """
    One tracker per process. Each `begin` starts an attempt; the first attempt is a cold start and
    later ones are warm, unless the host passes `start_type` explicitly.
    """

    def __init__(
        self,
        gateway: TelemetryGateway,
        frame_scheduler: FrameScheduler,
        lifecycle: Optional[LifecycleRegistry] = None,
        clock: Callable[[], float] = monotonic_ms,
        config: Optional[TrackerConfig] = None,
    ):
        self._gateway = gateway
        self._frame_scheduler = frame_scheduler
        self._lifecycle = lifecycle
        self._clock = clock
        self._config = config or get_tracker_config()
        self._lock = threading.RLock()
        self._state = TrackerState.IDLE
        self._attempts = 0
        self._start_type: Optional[StartType] = None
        self._process_start_ms: Optional[float] = None
        self._transaction: Optional[TransactionHandle] = None
        self._phase_spans: Dict[PhaseKind, SpanHandle] = {}
        self._screen: Optional[str] = None
        self._subscription: Optional[StartupSubscription] = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def start_type(self) -> Optional[StartType]:
        return self._start_type

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def in_flight(self) -> bool:
        return self._state.in_flight

    @property
    def transaction(self) -> Optional[TransactionHandle]:
        """The startup transaction owned by the current attempt, if any."""
        return self._transaction

    def begin(
        self,
        process_start_ms: Optional[float] = None,
        now_ms: Optional[float] = None,
        start_type: Optional[StartType] = None,
    ) -> StartupSubscription:
        """Start tracking an app start.

        Args:
            process_start_ms: When the start began, on the tracker clock's timeline. Defaults to the
                process creation time.
            now_ms: The current reading, captured as early as possible by the host. Defaults to now.
            start_type: Overrides cold/warm detection.

        Returns:
            The subscription for the lifecycle observers registered for this attempt. It disposes
            itself once the trace is finished. It is already disposed when nothing is left to observe.
        """
        with self._lock:
            if self._state.in_flight:
                if self._subscription is not None and not self._subscription.disposed:
                    logger.warning("App start tracking already in progress, ignoring begin()")
                    return self._subscription
                self._abandon_attempt()

            if not self._config.enabled:
                logger.info("App start tracing disabled, not tracking")
                return StartupSubscription.already_disposed()

            if process_start_ms is None:
                process_start_ms = get_process_start_time_ms()
            if now_ms is None:
                now_ms = self._clock()

            self._reset_attempt()
            if start_type is None:
                start_type = StartType.COLD if self._attempts == 0 else StartType.WARM
            self._start_type = start_type
            self._attempts += 1
            self._process_start_ms = process_start_ms
            LoggerTagManager.set(LoggerTagKey.START_TYPE, start_type.value)
            elapsed_ms = now_ms - process_start_ms

            ambient: Optional[SpanHandle] = None
            with _telemetry_step("look up the active span"):
                ambient = self._gateway.get_current_active_span()
            if ambient is not None:
                self._attach_to_ambient(ambient, elapsed_ms)
                return StartupSubscription.already_disposed()

            if not self._start_transaction(process_start_ms, elapsed_ms):
                return StartupSubscription.already_disposed()

            if start_type is StartType.COLD:
                self._record_process_init(elapsed_ms)
            self._open_phase(PhaseKind.APP_INIT)
            self._state = TrackerState.APP_INIT

            if self._lifecycle is not None:
                self._subscription = self._lifecycle.register(self)
            else:
                self._subscription = StartupSubscription()
            logger.info(
                f"Tracking {start_type.value} app start, process init took {elapsed_ms:.1f}ms"
            )
            return self._subscription

    def on_first_screen_created(self, screen: str) -> None:
        with self._lock:
            if self._screen is not None or self._transaction is None:
                logger.debug(f"Ignoring screen created for {screen}, nothing to do")
                return
            self._screen = screen
            LoggerTagManager.set(LoggerTagKey.SCREEN, screen)

            with _telemetry_step("rename the app start transaction"):
                self._transaction.name = screen
            self._finish_phase(PhaseKind.APP_INIT)
            self._open_phase(
                PhaseKind.SCREEN_CREATE, description=f"{screen}.create", data={DATA_SCREEN: screen}
            )
            self._state = TrackerState.SCREEN_CREATE

    def on_first_screen_visible(self, screen: str) -> None:
        with self._lock:
            if PhaseKind.SCREEN_CREATE not in self._phase_spans:
                logger.debug(
                    f"Ignoring screen visible for {screen}, no screen creation in progress"
                )
                return
            self._finish_phase(PhaseKind.SCREEN_CREATE)
            self._open_phase(PhaseKind.FIRST_FRAME)
            self._state = TrackerState.FIRST_FRAME

            callback = partial(self._on_first_frame_rendered, self._transaction)
            with _telemetry_step("schedule the first frame callback"):
                self._frame_scheduler.schedule_on_next_frame_rendered(callback)

    def _on_first_frame_rendered(self, transaction: Optional[TransactionHandle]) -> None:
        with self._lock:
            # Only the attempt that scheduled this frame may finish, and only once
            if transaction is None or self._transaction is not transaction:
                return
            self._transaction = None
            self._finish_phase(PhaseKind.FIRST_FRAME, SpanStatus.OK)

            start_type = self._start_type or StartType.COLD
            total_ms = float(self._clock() - (self._process_start_ms or 0.0))
            with _telemetry_step("record app start measurements"):
                transaction.set_data(DATA_DURATION_MS, total_ms)
                transaction.set_measurement(
                    start_type.measurement_name, total_ms, MeasurementUnit.MILLISECOND
                )
                # No separate "fully drawn" signal exists, so both display metrics share the value
                transaction.set_measurement(
                    MEASUREMENT_TIME_TO_INITIAL_DISPLAY, total_ms, MeasurementUnit.MILLISECOND
                )
                transaction.set_measurement(
                    MEASUREMENT_TIME_TO_FULL_DISPLAY, total_ms, MeasurementUnit.MILLISECOND
                )
            with _telemetry_step("finish the app start transaction"):
                transaction.finish(SpanStatus.OK)

            self._state = TrackerState.FINISHED
            logger.info(
                f"App start complete: {start_type.value} start of {self._screen} "
                f"took {total_ms:.1f}ms"
            )
            self._dispose_subscription()

    def _attach_to_ambient(self, ambient: SpanHandle, elapsed_ms: float) -> None:
        start_type = self._start_type or StartType.COLD
        self._state = TrackerState.ATTACHED_CHILD
        logger.info("Found an active span, attaching app start as a child span")

        child: Optional[SpanHandle] = None
        with _telemetry_step("attach app start to the active span"):
            child = ambient.start_child(start_type.child_operation, start_type.child_description)
            child.set_data(DATA_APP_START_TYPE, start_type.value)
            child.set_tag(TAG_START_TYPE, start_type.value)
            child.set_data(DATA_ACTUAL_DURATION_MS, elapsed_ms)
        with _telemetry_step("write the app start measurement onto the active span"):
            ambient.set_measurement(
                start_type.measurement_name, float(elapsed_ms), MeasurementUnit.MILLISECOND
            )
        if child is not None:
            with _telemetry_step("finish the attached app start span"):
                child.finish(SpanStatus.OK)

    def _start_transaction(self, process_start_ms: float, elapsed_ms: float) -> bool:
        start_type = self._start_type or StartType.COLD
        transaction: Optional[TransactionHandle] = None
        with _telemetry_step("start the app start transaction"):
            transaction = self._gateway.start_transaction(
                self._config.placeholder_transaction_name,
                UI_LOAD_OPERATION,
                self._config.transaction_options(),
            )
        if transaction is None:
            self._state = TrackerState.IDLE
            return False

        self._transaction = transaction
        self._state = TrackerState.OWNS_ROOT
        with _telemetry_step("annotate the app start transaction"):
            transaction.set_data(DATA_APP_START_TYPE, start_type.value)
            transaction.set_tag(TAG_START_TYPE, start_type.value)
            transaction.set_tag(TAG_UI_LOAD_TYPE, start_type.value)
            # Placeholder, overwritten once the first frame is rendered
            transaction.set_measurement(
                start_type.measurement_name, 0.0, MeasurementUnit.MILLISECOND
            )
            transaction.set_data(DATA_PROCESS_INIT_DURATION_MS, elapsed_ms)
            transaction.set_data(DATA_PROCESS_START_TIME_MS, process_start_ms)
        with _telemetry_step("watch the app start transaction for timeouts"):
            transaction.add_finish_callback(self._on_transaction_finished)
        # A timeout may already have ended it
        return self._transaction is transaction

    def _on_transaction_finished(
        self, transaction: TransactionHandle, status: Optional[SpanStatus]
    ) -> None:
        with self._lock:
            # The tracker clears its handle before ending the transaction itself, so a match here
            # means a deadline or idle timeout ended the attempt
            if self._transaction is not transaction:
                return
            logger.warning(
                f"App start transaction ended early with status "
                f"{status.value if status else None} in state {self._state.value}"
            )
            self._transaction = None
            for kind in list(self._phase_spans):
                self._finish_phase(kind, status)
            self._dispose_subscription()
            self._state = TrackerState.IDLE

    def _record_process_init(self, elapsed_ms: float) -> None:
        span = self._open_phase(PhaseKind.PROCESS_INIT, data={DATA_ACTUAL_DURATION_MS: elapsed_ms})
        if span is not None:
            self._finish_phase(PhaseKind.PROCESS_INIT)
            self._state = TrackerState.PROCESS_INIT_DONE

    def _open_phase(
        self,
        kind: PhaseKind,
        description: Optional[str] = None,
        data: Optional[Dict[str, object]] = None,
    ) -> Optional[SpanHandle]:
        if self._transaction is None:
            return None
        with _telemetry_step(f"open the {kind.name} span"):
            span = self._transaction.start_child(
                kind.value, description or PHASE_DESCRIPTIONS[kind]
            )
            self._phase_spans[kind] = span
            for key, value in (data or {}).items():
                span.set_data(key, value)
            return span
        return None

    def _finish_phase(self, kind: PhaseKind, status: Optional[SpanStatus] = None) -> None:
        span = self._phase_spans.pop(kind, None)
        if span is None:
            return
        with _telemetry_step(f"finish the {kind.name} span"):
            span.finish(status)

    def _abandon_attempt(self) -> None:
        """Give up on an attempt whose observers the host already disposed."""
        logger.warning(f"Abandoning unfinished app start attempt in state {self._state.value}")
        for kind in list(self._phase_spans):
            self._finish_phase(kind, SpanStatus.CANCELLED)
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            with _telemetry_step("cancel the app start transaction"):
                transaction.finish(SpanStatus.CANCELLED)
        self._state = TrackerState.IDLE

    def _dispose_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            with _telemetry_step("unregister lifecycle observers"):
                subscription.dispose()

    def _reset_attempt(self) -> None:
        self._transaction = None
        self._phase_spans = {}
        self._screen = None
        self._subscription = None
        self._state = TrackerState.IDLE
