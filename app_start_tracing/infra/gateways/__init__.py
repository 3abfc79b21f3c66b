from typing import Optional

from app_start_tracing.core.config import (
    TelemetryConfig,
    TrackerConfig,
    get_telemetry_config,
    get_tracker_config,
)
from app_start_tracing.domain.exceptions import UnsupportedTelemetryBackendException
from app_start_tracing.domain.gateways.telemetry_gateway import TelemetryGateway

from .datadog_telemetry_gateway import DatadogTelemetryGateway
from .fake_telemetry_gateway import FakeTelemetryGateway
from .otel_telemetry_gateway import OtelTelemetryGateway, build_otel_telemetry_gateway

__all__ = (
    "DatadogTelemetryGateway",
    "FakeTelemetryGateway",
    "OtelTelemetryGateway",
    "get_telemetry_gateway",
)

SUPPORTED_BACKENDS = ("otel", "datadog", "fake")


def get_telemetry_gateway(
    tracker_config: Optional[TrackerConfig] = None,
    telemetry_config: Optional[TelemetryConfig] = None,
) -> TelemetryGateway:
    """
    Returns the telemetry gateway for the configured backend.
    Building the OTel gateway installs global tracer/meter providers, so call this once per process.
    """
    tracker_config = tracker_config or get_tracker_config()
    telemetry_config = telemetry_config or get_telemetry_config()
    backend = tracker_config.backend
    if backend == "otel":
        return build_otel_telemetry_gateway(telemetry_config)
    if backend == "datadog":
        return DatadogTelemetryGateway(service=telemetry_config.service_name)
    if backend == "fake":
        return FakeTelemetryGateway()
    raise UnsupportedTelemetryBackendException(
        f"Unsupported telemetry backend {backend!r}, expected one of {SUPPORTED_BACKENDS}"
    )
