"""
OpenTelemetry backend for app start traces.

Spans are exported through whatever TracerProvider is installed. `configure_otel_providers` installs
OTLP gRPC exporters for traces and metrics when an endpoint is configured.
"""

import os
from enum import Enum
from typing import Any, Dict, Optional

from app_start_tracing.core.config import TelemetryConfig
from app_start_tracing.core.loggers import logger_name, make_logger
from app_start_tracing.domain.entities import MeasurementUnit, SpanStatus, TransactionOptions
from app_start_tracing.domain.gateways.telemetry_gateway import (
    SpanHandle,
    TelemetryGateway,
    TransactionHandle,
)
from opentelemetry import context as otel_context
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

logger = make_logger(logger_name())

ATTRIBUTE_OPERATION = "span.op"
ATTRIBUTE_DESCRIPTION = "span.description"


def _attribute_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _otel_status(status: SpanStatus) -> Status:
    if status == SpanStatus.OK:
        return Status(StatusCode.OK)
    return Status(StatusCode.ERROR, status.value)


class _OtelSpanMixin:
    _span: trace.Span
    _gateway: "OtelTelemetryGateway"

    def _start_child(self, operation: str, description: Optional[str]) -> SpanHandle:
        attributes = {ATTRIBUTE_OPERATION: operation}
        if description:
            attributes[ATTRIBUTE_DESCRIPTION] = description
        span = self._gateway.tracer.start_span(
            description or operation,
            kind=SpanKind.INTERNAL,
            context=trace.set_span_in_context(self._span),
            attributes=attributes,
        )
        return OtelSpanHandle(
            span, self._gateway, operation, description, parent=self  # type: ignore
        )

    def _end(self, status: Optional[SpanStatus], end_time_ns: int) -> None:
        if status is not None:
            self._span.set_status(_otel_status(status))
        self._span.end(end_time=end_time_ns)

    def set_data(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, _attribute_value(value))

    def set_tag(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, str(_attribute_value(value)))

    def set_measurement(
        self, name: str, value: float, unit: MeasurementUnit = MeasurementUnit.MILLISECOND
    ) -> None:
        self._span.set_attribute(f"measurement.{name}.value", float(value))
        self._span.set_attribute(f"measurement.{name}.unit", unit.value)
        self._gateway.record_measurement(name, value, unit)


class OtelSpanHandle(_OtelSpanMixin, SpanHandle):
    def __init__(
        self,
        span: trace.Span,
        gateway: "OtelTelemetryGateway",
        operation: str,
        description: Optional[str] = None,
        parent: Optional[SpanHandle] = None,
    ):
        self._span = span
        self._gateway = gateway
        SpanHandle.__init__(self, operation, description, parent)


class OtelTransactionHandle(_OtelSpanMixin, TransactionHandle):
    def __init__(
        self,
        span: trace.Span,
        gateway: "OtelTelemetryGateway",
        name: str,
        operation: str,
        options: Optional[TransactionOptions] = None,
    ):
        self._span = span
        self._gateway = gateway
        TransactionHandle.__init__(self, name, operation, options)

    def _rename(self, name: str) -> None:
        self._span.update_name(name)


class OtelTelemetryGateway(TelemetryGateway):
    def __init__(
        self,
        tracer: Optional[trace.Tracer] = None,
        meter: Optional[metrics.Meter] = None,
        service_name: str = "app-start-tracing",
    ):
        self.tracer = tracer or trace.get_tracer(service_name)
        self._meter = meter
        self._gauges: Dict[str, Any] = {}

    def get_current_active_span(self) -> Optional[SpanHandle]:
        span = trace.get_current_span()
        if not span.get_span_context().is_valid or not span.is_recording():
            return None
        operation = getattr(span, "name", None) or "unknown"
        return OtelSpanHandle(span, self, operation)

    def start_transaction(
        self, name: str, operation: str, options: Optional[TransactionOptions] = None
    ) -> TransactionHandle:
        # An empty context detaches the transaction from any ambient span
        span = self.tracer.start_span(
            name,
            kind=SpanKind.INTERNAL,
            context=otel_context.Context(),
            attributes={ATTRIBUTE_OPERATION: operation},
        )
        return OtelTransactionHandle(span, self, name, operation, options)

    def record_measurement(self, name: str, value: float, unit: MeasurementUnit) -> None:
        """Mirror a measurement onto a gauge so it can be queried as a metric."""
        if self._meter is None:
            return
        if name not in self._gauges:
            self._gauges[name] = self._meter.create_gauge(
                f"app_start.{name}", description=f"App start measurement {name}", unit=unit.value
            )
        self._gauges[name].set(float(value))


def _resolve_endpoint(telemetry_config: TelemetryConfig) -> Optional[str]:
    if telemetry_config.otlp_endpoint:
        return telemetry_config.otlp_endpoint
    # Fallback: Datadog Agent's OTLP receiver
    dd_agent_host = os.environ.get("DD_AGENT_HOST")
    if not dd_agent_host:
        return None
    if ":" in dd_agent_host and not dd_agent_host.startswith("["):
        return f"http://[{dd_agent_host}]:4317"
    return f"http://{dd_agent_host}:4317"


def configure_otel_providers(telemetry_config: TelemetryConfig) -> Optional[metrics.Meter]:
    """Install global tracer and meter providers exporting over OTLP.

    Returns the meter to record measurement gauges on, or None when no endpoint is configured.
    """
    endpoint = _resolve_endpoint(telemetry_config)
    if not endpoint:
        logger.info("Skipping OTel init - OTEL_EXPORTER_OTLP_ENDPOINT not set")
        return None

    resource = Resource.create({"service.name": telemetry_config.service_name})
    use_insecure = endpoint.startswith("http://")

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=use_insecure))
    )
    trace.set_tracer_provider(provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=endpoint, insecure=use_insecure),
        export_interval_millis=telemetry_config.metric_export_interval_ms,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    logger.info(f"OTel app start telemetry initialized, endpoint={endpoint}")
    return meter_provider.get_meter(telemetry_config.service_name)


def flush_otel_providers(timeout_ms: int = 5000) -> None:
    """Force flush all telemetry data."""
    try:
        provider = trace.get_tracer_provider()
        if hasattr(provider, "force_flush"):
            provider.force_flush(timeout_millis=timeout_ms)

        meter_provider = metrics.get_meter_provider()
        if hasattr(meter_provider, "force_flush"):
            meter_provider.force_flush(timeout_millis=timeout_ms)
    except Exception as e:
        logger.warning(f"Error flushing telemetry: {e}")


def build_otel_telemetry_gateway(telemetry_config: TelemetryConfig) -> OtelTelemetryGateway:
    meter = configure_otel_providers(telemetry_config)
    return OtelTelemetryGateway(meter=meter, service_name=telemetry_config.service_name)
