"""
Configuration for app start tracing.

Environment variables for configuration:
- APP_START_TRACING_ENABLED: Set to "false" / "0" to turn the tracker into a no-op (default: "true")
- APP_START_TRACING_BACKEND: Telemetry backend, one of "otel", "datadog", "fake" (default: "otel")
- APP_START_PLACEHOLDER_NAME: Transaction name used until the first screen is known (default: "AppStart")
- APP_START_DEADLINE_TIMEOUT_S: Deadline timeout for the startup transaction; unset means disabled
- APP_START_IDLE_TIMEOUT_S: Idle timeout for the startup transaction; unset means disabled
- APP_START_WAIT_FOR_CHILDREN: Defer transaction end until open children finish (default: "true")
- APP_START_TRIM_END: Trim the transaction end to its last child (default: "true")
- OTEL_EXPORTER_OTLP_ENDPOINT: OTLP gRPC endpoint for telemetry export
- OTEL_SERVICE_NAME: Service name for traces/metrics (default: "app-start-tracing")
- OTEL_METRIC_EXPORT_INTERVAL_MS: Metric export interval (default: 5000)
"""

import inspect
import os
from dataclasses import dataclass, field
from typing import Optional

import yaml
from app_start_tracing.constants import (
    DEFAULT_PLACEHOLDER_TRANSACTION_NAME,
    DEFAULT_SERVICE_NAME,
)
from app_start_tracing.core.loggers import logger_name, make_logger
from app_start_tracing.domain.entities import TransactionOptions
from app_start_tracing.domain.exceptions import InvalidTrackerConfigException

logger = make_logger(logger_name())

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise InvalidTrackerConfigException(f"{name} must be a boolean, got {value!r}")


def _parse_timeout(value: Optional[str], name: str) -> Optional[float]:
    """Parse a timeout in seconds. Empty, "none" and "disabled" all mean no timeout."""
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() in ("none", "disabled"):
        return None
    try:
        timeout = float(value)
    except ValueError as e:
        raise InvalidTrackerConfigException(
            f"{name} must be a number of seconds, got {value!r}"
        ) from e
    if timeout <= 0:
        raise InvalidTrackerConfigException(f"{name} must be positive, got {timeout}")
    return timeout


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return _parse_bool(value, name)


@dataclass
class TrackerConfig:
    """Configuration for the startup trace tracker."""

    enabled: bool = field(default_factory=lambda: _env_bool("APP_START_TRACING_ENABLED", True))
    backend: str = field(
        default_factory=lambda: os.environ.get("APP_START_TRACING_BACKEND", "otel").strip().lower()
    )
    placeholder_transaction_name: str = field(
        default_factory=lambda: os.environ.get(
            "APP_START_PLACEHOLDER_NAME", DEFAULT_PLACEHOLDER_TRANSACTION_NAME
        )
    )
    deadline_timeout_s: Optional[float] = field(
        default_factory=lambda: _parse_timeout(
            os.environ.get("APP_START_DEADLINE_TIMEOUT_S"), "APP_START_DEADLINE_TIMEOUT_S"
        )
    )
    idle_timeout_s: Optional[float] = field(
        default_factory=lambda: _parse_timeout(
            os.environ.get("APP_START_IDLE_TIMEOUT_S"), "APP_START_IDLE_TIMEOUT_S"
        )
    )
    wait_for_children: bool = field(
        default_factory=lambda: _env_bool("APP_START_WAIT_FOR_CHILDREN", True)
    )
    trim_end: bool = field(default_factory=lambda: _env_bool("APP_START_TRIM_END", True))

    def transaction_options(self) -> TransactionOptions:
        return TransactionOptions(
            deadline_timeout=self.deadline_timeout_s,
            idle_timeout=self.idle_timeout_s,
            wait_for_children=self.wait_for_children,
            trim_end=self.trim_end,
        )

    @classmethod
    def from_json(cls, json: dict) -> "TrackerConfig":
        params = inspect.signature(cls).parameters
        kwargs = {k: v for k, v in json.items() if k in params}
        for key in ("deadline_timeout_s", "idle_timeout_s"):
            if key in kwargs and not isinstance(kwargs[key], (int, float)):
                kwargs[key] = _parse_timeout(kwargs[key], key)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_path) -> "TrackerConfig":
        with open(yaml_path, "r") as f:
            raw_data = yaml.safe_load(f) or {}
        logger.info(f"Loaded tracker config from `{yaml_path}`")
        return cls.from_json(raw_data.get("tracker", raw_data))


@dataclass
class TelemetryConfig:
    """Configuration for OpenTelemetry export."""

    otlp_endpoint: str = field(
        default_factory=lambda: os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    )
    service_name: str = field(
        default_factory=lambda: os.environ.get("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME)
    )
    metric_export_interval_ms: int = field(
        default_factory=lambda: int(os.environ.get("OTEL_METRIC_EXPORT_INTERVAL_MS", "5000"))
    )

    @property
    def is_enabled(self) -> bool:
        """Check if telemetry export is enabled (endpoint is configured)."""
        return bool(self.otlp_endpoint)

    @classmethod
    def from_yaml(cls, yaml_path) -> "TelemetryConfig":
        with open(yaml_path, "r") as f:
            raw_data = yaml.safe_load(f) or {}
        raw_data = raw_data.get("telemetry", raw_data)
        params = inspect.signature(cls).parameters
        return cls(**{k: v for k, v in raw_data.items() if k in params})


# Singleton instances
_tracker_config: Optional[TrackerConfig] = None
_telemetry_config: Optional[TelemetryConfig] = None


def get_tracker_config() -> TrackerConfig:
    """Get or create singleton TrackerConfig instance."""
    global _tracker_config
    if _tracker_config is None:
        _tracker_config = TrackerConfig()
    return _tracker_config


def get_telemetry_config() -> TelemetryConfig:
    """Get or create singleton TelemetryConfig instance."""
    global _telemetry_config
    if _telemetry_config is None:
        _telemetry_config = TelemetryConfig()
    return _telemetry_config
