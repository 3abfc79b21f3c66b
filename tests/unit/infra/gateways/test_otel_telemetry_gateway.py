"""Tests for the OpenTelemetry backend."""

import pytest
from app_start_tracing.clock import ManualClock
from app_start_tracing.core.config import TelemetryConfig, TrackerConfig
from app_start_tracing.domain.entities import MeasurementUnit, SpanStatus
from app_start_tracing.infra.gateways.otel_telemetry_gateway import (
    OtelTelemetryGateway,
    _resolve_endpoint,
    configure_otel_providers,
)
from app_start_tracing.lifecycle import LifecycleRegistry, ManualFrameScheduler
from app_start_tracing.tracker import StartupTraceTracker
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("test")


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def gateway(tracer, metric_reader) -> OtelTelemetryGateway:
    meter = MeterProvider(metric_readers=[metric_reader]).get_meter("test")
    return OtelTelemetryGateway(tracer=tracer, meter=meter)


def _spans_by_name(span_exporter):
    return {span.name: span for span in span_exporter.get_finished_spans()}


class TestOtelTelemetryGateway:
    def test_no_active_span(self, gateway):
        assert gateway.get_current_active_span() is None

    def test_active_span(self, gateway, tracer):
        with tracer.start_as_current_span("checkout"):
            handle = gateway.get_current_active_span()
            assert handle is not None
            assert handle.operation == "checkout"

    def test_transaction_is_detached_from_active_span(self, gateway, tracer, span_exporter):
        with tracer.start_as_current_span("checkout"):
            transaction = gateway.start_transaction("AppStart", "ui.load")
        transaction.finish(SpanStatus.OK)

        span = _spans_by_name(span_exporter)["AppStart"]
        assert span.parent is None
        assert span.attributes["span.op"] == "ui.load"
        assert span.status.status_code == StatusCode.OK

    def test_child_span(self, gateway, span_exporter):
        transaction = gateway.start_transaction("AppStart", "ui.load")
        child = transaction.start_child("app.start.first.frame", "First Frame Render")
        child.set_data("count", 3)
        child.set_tag("start_type", "cold")
        child.finish(SpanStatus.CANCELLED)
        transaction.finish(SpanStatus.OK)

        spans = _spans_by_name(span_exporter)
        child_span = spans["First Frame Render"]
        assert child_span.parent.span_id == spans["AppStart"].context.span_id
        assert child_span.attributes["span.op"] == "app.start.first.frame"
        assert child_span.attributes["count"] == 3
        assert child_span.attributes["start_type"] == "cold"
        assert child_span.status.status_code == StatusCode.ERROR

    def test_rename_and_trim_end(self, gateway, span_exporter):
        transaction = gateway.start_transaction("AppStart", "ui.load")
        transaction.name = "MainActivity"
        child_end_ns = transaction_start_ns(transaction) + 5_000_000_000
        transaction.start_child("a").finish(end_time_ns=child_end_ns)
        transaction.finish(SpanStatus.OK)

        span = _spans_by_name(span_exporter)["MainActivity"]
        assert span.end_time == span.start_time + 5_000_000_000

    def test_measurement_recorded_on_span_and_gauge(self, gateway, span_exporter, metric_reader):
        transaction = gateway.start_transaction("AppStart", "ui.load")
        transaction.set_measurement("app_start_cold", 300, MeasurementUnit.MILLISECOND)
        transaction.finish(SpanStatus.OK)

        span = _spans_by_name(span_exporter)["AppStart"]
        assert span.attributes["measurement.app_start_cold.value"] == 300.0
        assert span.attributes["measurement.app_start_cold.unit"] == "millisecond"

        metric_names = {
            metric.name
            for resource_metrics in metric_reader.get_metrics_data().resource_metrics
            for scope_metrics in resource_metrics.scope_metrics
            for metric in scope_metrics.metrics
        }
        assert "app_start.app_start_cold" in metric_names

    def test_measurement_without_meter(self, tracer, span_exporter):
        gateway = OtelTelemetryGateway(tracer=tracer)
        transaction = gateway.start_transaction("AppStart", "ui.load")
        transaction.set_measurement("app_start_warm", 12.5)
        transaction.finish(SpanStatus.OK)
        span = _spans_by_name(span_exporter)["AppStart"]
        assert span.attributes["measurement.app_start_warm.value"] == 12.5


def transaction_start_ns(transaction) -> int:
    return transaction._span.start_time


class TestTrackerWithOtel:
    """End to end through the OpenTelemetry SDK."""

    def _tracker(self, gateway):
        clock = ManualClock()
        frames = ManualFrameScheduler()
        lifecycle = LifecycleRegistry()
        config = TrackerConfig(enabled=True, backend="otel")
        tracker = StartupTraceTracker(gateway, frames, lifecycle, clock=clock, config=config)
        return tracker, clock, frames, lifecycle

    def test_cold_start(self, gateway, span_exporter):
        tracker, clock, frames, lifecycle = self._tracker(gateway)
        clock.set(1050)
        tracker.begin(process_start_ms=1000, now_ms=1050)
        clock.set(1200)
        lifecycle.dispatch_screen_created("Main")
        clock.set(1210)
        lifecycle.dispatch_screen_visible("Main")
        clock.set(1300)
        frames.render_frame()

        spans = span_exporter.get_finished_spans()
        assert len(spans) == 5
        root = _spans_by_name(span_exporter)["Main"]
        assert root.attributes["span.op"] == "ui.load"
        assert root.attributes["start_type"] == "cold"
        assert root.attributes["measurement.app_start_cold.value"] == 300.0
        assert root.attributes["measurement.time_to_initial_display.value"] == 300.0
        children = [span for span in spans if span.parent is not None]
        assert {span.attributes["span.op"] for span in children} == {
            "app.start.process.init",
            "app.start.application.create",
            "app.start.activity.create",
            "app.start.first.frame",
        }
        assert all(span.parent.span_id == root.context.span_id for span in children)
        # Trimmed to the last child
        assert root.end_time == max(span.end_time for span in children)

    def test_attaches_to_active_span(self, gateway, tracer, span_exporter):
        tracker, _, _, _ = self._tracker(gateway)
        with tracer.start_as_current_span("checkout") as ambient:
            tracker.begin(process_start_ms=1000, now_ms=1050)
            ambient_span_id = ambient.get_span_context().span_id

        spans = _spans_by_name(span_exporter)
        assert set(spans) == {"checkout", "App Start (cold)"}
        assert spans["App Start (cold)"].parent.span_id == ambient_span_id
        assert spans["checkout"].attributes["measurement.app_start_cold.value"] == 50.0


class TestConfigureOtelProviders:
    def test_no_endpoint(self, monkeypatch):
        monkeypatch.delenv("DD_AGENT_HOST", raising=False)
        assert configure_otel_providers(TelemetryConfig(otlp_endpoint="")) is None

    def test_explicit_endpoint(self, monkeypatch):
        monkeypatch.setenv("DD_AGENT_HOST", "10.0.0.5")
        config = TelemetryConfig(otlp_endpoint="http://collector:4317")
        assert _resolve_endpoint(config) == "http://collector:4317"

    @pytest.mark.parametrize(
        "agent_host,expected",
        [
            ("10.0.0.5", "http://10.0.0.5:4317"),
            ("fd00::1", "http://[fd00::1]:4317"),
        ],
    )
    def test_datadog_agent_fallback(self, monkeypatch, agent_host, expected):
        monkeypatch.setenv("DD_AGENT_HOST", agent_host)
        assert _resolve_endpoint(TelemetryConfig(otlp_endpoint="")) == expected
