from .telemetry_gateway import SpanHandle, TelemetryGateway, TransactionHandle

__all__ = (
    "SpanHandle",
    "TelemetryGateway",
    "TransactionHandle",
)
