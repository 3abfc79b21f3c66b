from unittest import mock

import pytest
from app_start_tracing.core.config import TelemetryConfig, TrackerConfig
from app_start_tracing.domain.exceptions import (
    DomainException,
    UnsupportedTelemetryBackendException,
)
from app_start_tracing.infra.gateways import (
    DatadogTelemetryGateway,
    FakeTelemetryGateway,
    OtelTelemetryGateway,
    get_telemetry_gateway,
)


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    return TelemetryConfig(otlp_endpoint="", service_name="my-app", metric_export_interval_ms=1000)


def test_fake_backend(telemetry_config):
    gateway = get_telemetry_gateway(TrackerConfig(backend="fake"), telemetry_config)
    assert isinstance(gateway, FakeTelemetryGateway)


def test_datadog_backend(telemetry_config):
    gateway = get_telemetry_gateway(TrackerConfig(backend="datadog"), telemetry_config)
    assert isinstance(gateway, DatadogTelemetryGateway)
    assert gateway.service == "my-app"


def test_otel_backend(telemetry_config, monkeypatch):
    monkeypatch.delenv("DD_AGENT_HOST", raising=False)
    gateway = get_telemetry_gateway(TrackerConfig(backend="otel"), telemetry_config)
    assert isinstance(gateway, OtelTelemetryGateway)


def test_otel_backend_installs_providers_when_endpoint_set():
    config = TelemetryConfig(otlp_endpoint="http://collector:4317", service_name="my-app")
    with mock.patch(
        "app_start_tracing.infra.gateways.otel_telemetry_gateway.configure_otel_providers",
        return_value=None,
    ) as configure:
        get_telemetry_gateway(TrackerConfig(backend="otel"), config)
    configure.assert_called_once_with(config)


def test_unknown_backend(telemetry_config):
    with pytest.raises(UnsupportedTelemetryBackendException) as exc_info:
        get_telemetry_gateway(TrackerConfig(backend="sentry"), telemetry_config)
    assert isinstance(exc_info.value, DomainException)
    assert "sentry" in str(exc_info.value)
