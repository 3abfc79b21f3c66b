from enum import Enum
from typing import Optional

from app_start_tracing.constants import (
    APP_START_CHILD_OPERATION_PREFIX,
    MEASUREMENT_APP_START_COLD,
    MEASUREMENT_APP_START_WARM,
)
from pydantic import BaseModel


class StartType(str, Enum):
    COLD = "cold"
    WARM = "warm"

    @property
    def measurement_name(self) -> str:
        if self is StartType.COLD:
            return MEASUREMENT_APP_START_COLD
        return MEASUREMENT_APP_START_WARM

    @property
    def child_operation(self) -> str:
        return f"{APP_START_CHILD_OPERATION_PREFIX}.{self.value}"

    @property
    def child_description(self) -> str:
        return f"App Start ({self.value})"


class PhaseKind(str, Enum):
    """Measured sub-intervals of startup, valued by the span operation they are reported under."""

    PROCESS_INIT = "app.start.process.init"
    APP_INIT = "app.start.application.create"
    SCREEN_CREATE = "app.start.activity.create"
    FIRST_FRAME = "app.start.first.frame"


class SpanStatus(str, Enum):
    OK = "ok"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class MeasurementUnit(str, Enum):
    MILLISECOND = "millisecond"
    SECOND = "second"


class TrackerState(str, Enum):
    IDLE = "IDLE"
    ATTACHED_CHILD = "ATTACHED_CHILD"
    OWNS_ROOT = "OWNS_ROOT"
    PROCESS_INIT_DONE = "PROCESS_INIT_DONE"
    APP_INIT = "APP_INIT"
    SCREEN_CREATE = "SCREEN_CREATE"
    FIRST_FRAME = "FIRST_FRAME"
    FINISHED = "FINISHED"

    @property
    def in_flight(self) -> bool:
        return self not in (TrackerState.IDLE, TrackerState.ATTACHED_CHILD, TrackerState.FINISHED)


class TransactionOptions(BaseModel):
    """
    Options passed to the telemetry backend when the startup transaction is created.

    A timeout of None disables it: the backend must not start a supervisory timer for it.
    """

    deadline_timeout: Optional[float] = None
    idle_timeout: Optional[float] = None
    wait_for_children: bool = True
    trim_end: bool = True
