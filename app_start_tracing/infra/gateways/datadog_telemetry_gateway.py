from typing import Any, Optional

from app_start_tracing.core.loggers import logger_name, make_logger
from app_start_tracing.domain.entities import MeasurementUnit, SpanStatus, TransactionOptions
from app_start_tracing.domain.gateways.telemetry_gateway import (
    SpanHandle,
    TelemetryGateway,
    TransactionHandle,
)
from ddtrace import tracer as dd_tracer

logger = make_logger(logger_name())

MEASUREMENT_METRIC_PREFIX = "measurements"


class _DatadogSpanMixin:
    _span: Any
    _gateway: "DatadogTelemetryGateway"

    def _start_child(self, operation: str, description: Optional[str]) -> SpanHandle:
        span = self._gateway.tracer.start_span(
            operation,
            child_of=self._span,
            service=self._gateway.service,
            resource=description or operation,
        )
        return DatadogSpanHandle(
            span, self._gateway, operation, description, parent=self  # type: ignore
        )

    def _end(self, status: Optional[SpanStatus], end_time_ns: int) -> None:
        if status is not None:
            self._span.set_tag("span.status", status.value)
            if status != SpanStatus.OK:
                self._span.error = 1
        self._span.finish(finish_time=end_time_ns / 1_000_000_000)

    def set_data(self, key: str, value: Any) -> None:
        # Numbers go to metrics so they can be aggregated, everything else is a tag
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            self._span.set_metric(key, value)
        else:
            self._span.set_tag(key, getattr(value, "value", value))

    def set_tag(self, key: str, value: Any) -> None:
        self._span.set_tag(key, str(getattr(value, "value", value)))

    def set_measurement(
        self, name: str, value: float, unit: MeasurementUnit = MeasurementUnit.MILLISECOND
    ) -> None:
        self._span.set_metric(f"{MEASUREMENT_METRIC_PREFIX}.{name}", float(value))
        self._span.set_tag(f"{MEASUREMENT_METRIC_PREFIX}.{name}.unit", unit.value)


class DatadogSpanHandle(_DatadogSpanMixin, SpanHandle):
    def __init__(
        self,
        span: Any,
        gateway: "DatadogTelemetryGateway",
        operation: str,
        description: Optional[str] = None,
        parent: Optional[SpanHandle] = None,
    ):
        self._span = span
        self._gateway = gateway
        SpanHandle.__init__(self, operation, description, parent)


class DatadogTransactionHandle(_DatadogSpanMixin, TransactionHandle):
    def __init__(
        self,
        span: Any,
        gateway: "DatadogTelemetryGateway",
        name: str,
        operation: str,
        options: Optional[TransactionOptions] = None,
    ):
        self._span = span
        self._gateway = gateway
        TransactionHandle.__init__(self, name, operation, options)

    def _rename(self, name: str) -> None:
        # Datadog groups spans by resource, the span name stays the operation
        self._span.resource = name


class DatadogTelemetryGateway(TelemetryGateway):
    def __init__(self, tracer: Any = None, service: Optional[str] = None):
        self.tracer = tracer or dd_tracer
        self.service = service

    def get_current_active_span(self) -> Optional[SpanHandle]:
        current_span = self.tracer.current_span()
        if current_span is None or getattr(current_span, "finished", False):
            return None
        return DatadogSpanHandle(current_span, self, current_span.name)

    def start_transaction(
        self, name: str, operation: str, options: Optional[TransactionOptions] = None
    ) -> TransactionHandle:
        span = self.tracer.start_span(operation, child_of=None, service=self.service, resource=name)
        logger.debug(f"Started Datadog app start transaction {name} trace_id={span.trace_id}")
        return DatadogTransactionHandle(span, self, name, operation, options)
