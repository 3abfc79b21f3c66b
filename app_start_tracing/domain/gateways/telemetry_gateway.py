"""
Interface to the telemetry backend that app start traces are reported to.

The backend owns batching, sampling and transport. The tracker only needs to create a root
transaction, hang child spans off it, annotate both, and look up whatever span is already active.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from app_start_tracing.domain.entities import MeasurementUnit, SpanStatus, TransactionOptions


class SpanHandle(ABC):
    """A started span. Finishing is idempotent: only the first call reaches the backend."""

    def __init__(
        self,
        operation: str,
        description: Optional[str] = None,
        parent: Optional["SpanHandle"] = None,
    ):
        self.operation = operation
        self.description = description
        self.parent = parent
        self.end_time_ns: Optional[int] = None
        self._finished = False
        self._lock = threading.RLock()

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def transaction(self) -> Optional["TransactionHandle"]:
        """The transaction this span belongs to, if it was created through one."""
        node: Optional[SpanHandle] = self
        while node is not None:
            if isinstance(node, TransactionHandle):
                return node
            node = node.parent
        return None

    def start_child(self, operation: str, description: Optional[str] = None) -> "SpanHandle":
        child = self._start_child(operation, description)
        transaction = self.transaction
        if transaction is not None:
            transaction._on_child_started(child)
        return child

    def finish(
        self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None
    ) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self.end_time_ns = end_time_ns or time.time_ns()
        self._end(status, self.end_time_ns)
        transaction = self.transaction
        if transaction is not None and transaction is not self:
            transaction._on_child_finished(self)

    @abstractmethod
    def _start_child(self, operation: str, description: Optional[str]) -> "SpanHandle":
        """Create the backend child span. Must pass `parent=self` to the new handle."""

    @abstractmethod
    def _end(self, status: Optional[SpanStatus], end_time_ns: int) -> None:
        """End the backend span. Called at most once."""

    @abstractmethod
    def set_data(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def set_tag(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def set_measurement(
        self, name: str, value: float, unit: MeasurementUnit = MeasurementUnit.MILLISECOND
    ) -> None:
        pass


class TransactionHandle(SpanHandle):
    """
    A root span. Applies TransactionOptions on top of the backend span:

    - wait_for_children: finish() while children are open defers the end until the last one finishes
    - trim_end: the end timestamp is pulled back to the latest child end
    - deadline_timeout / idle_timeout: timers that force the end; None means no timer at all

    Callbacks added with `add_finish_callback` run once the transaction has really ended, whichever
    path ended it.
    """

    def __init__(self, name: str, operation: str, options: Optional[TransactionOptions] = None):
        super().__init__(operation)
        self._name = name
        self.options = options or TransactionOptions()
        self._open_children: List[SpanHandle] = []
        self._latest_child_end_ns: Optional[int] = None
        self._finish_requested = False
        self._requested_status: Optional[SpanStatus] = None
        self.status: Optional[SpanStatus] = None
        self._finish_callbacks: List["FinishCallback"] = []
        self._deadline_timer: Optional[threading.Timer] = None
        self._idle_timer: Optional[threading.Timer] = None

        if self.options.deadline_timeout is not None:
            self._deadline_timer = threading.Timer(self.options.deadline_timeout, self._on_deadline)
            self._deadline_timer.daemon = True
            self._deadline_timer.start()
        self._arm_idle_timer()

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value
        self._rename(value)

    @abstractmethod
    def _rename(self, name: str) -> None:
        pass

    def add_finish_callback(self, callback: "FinishCallback") -> None:
        """Run `callback(transaction, status)` after the end. Runs at once if already ended."""
        with self._lock:
            if not self._finished:
                self._finish_callbacks.append(callback)
                return
        callback(self, self.status)

    @property
    def has_timers(self) -> bool:
        return self._deadline_timer is not None or self._idle_timer is not None

    def finish(
        self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None
    ) -> None:
        with self._lock:
            if self._finished:
                return
            if self.options.wait_for_children and self._open_children:
                self._finish_requested = True
                self._requested_status = status
                return
        self._complete(status, end_time_ns)

    def _complete(
        self,
        status: Optional[SpanStatus],
        end_time_ns: Optional[int] = None,
        only_if_idle: bool = False,
    ) -> None:
        with self._lock:
            if self._finished:
                return
            if only_if_idle and self._open_children:
                return
            self._finished = True
            self.status = status
            self._cancel_timers()
            end = end_time_ns or time.time_ns()
            if self.options.trim_end and self._latest_child_end_ns is not None:
                end = self._latest_child_end_ns
            self.end_time_ns = end
            callbacks, self._finish_callbacks = self._finish_callbacks, []
        self._end(status, end)
        for callback in callbacks:
            callback(self, status)

    def _on_child_started(self, child: SpanHandle) -> None:
        with self._lock:
            self._open_children.append(child)
            if self._idle_timer is not None:
                self._idle_timer.cancel()
                self._idle_timer = None

    def _on_child_finished(self, child: SpanHandle) -> None:
        complete = False
        with self._lock:
            if child in self._open_children:
                self._open_children.remove(child)
            if child.end_time_ns is not None and (
                self._latest_child_end_ns is None or child.end_time_ns > self._latest_child_end_ns
            ):
                self._latest_child_end_ns = child.end_time_ns
            if not self._open_children:
                if self._finish_requested:
                    complete = True
                else:
                    self._arm_idle_timer()
        if complete:
            self._complete(self._requested_status)

    def _arm_idle_timer(self) -> None:
        if self.options.idle_timeout is None or self._finished:
            return
        if self._idle_timer is not None:
            self._idle_timer.cancel()
        self._idle_timer = threading.Timer(self.options.idle_timeout, self._on_idle)
        self._idle_timer.daemon = True
        self._idle_timer.start()

    def _on_idle(self) -> None:
        # A child may have started since the timer fired
        self._complete(SpanStatus.OK, only_if_idle=True)

    def _on_deadline(self) -> None:
        with self._lock:
            if self._finished:
                return
            self._finish_requested = True
            self._requested_status = SpanStatus.DEADLINE_EXCEEDED
            open_children = list(self._open_children)
        for child in open_children:
            child.finish(SpanStatus.DEADLINE_EXCEEDED)
        self._complete(SpanStatus.DEADLINE_EXCEEDED)

    def _cancel_timers(self) -> None:
        for timer in (self._deadline_timer, self._idle_timer):
            if timer is not None:
                timer.cancel()
        self._deadline_timer = None
        self._idle_timer = None


FinishCallback = Callable[[TransactionHandle, Optional[SpanStatus]], None]


class TelemetryGateway(ABC):
    @abstractmethod
    def get_current_active_span(self) -> Optional[SpanHandle]:
        """
        Returns the span active on the ambient scope, if another caller already started one.
        """

    @abstractmethod
    def start_transaction(
        self, name: str, operation: str, options: Optional[TransactionOptions] = None
    ) -> TransactionHandle:
        """
        Starts a new root transaction, detached from any ambient span.
        """
