class DomainException(Exception):
    """
    Base class for exceptions thrown while wiring up app start tracing.
    The tracker itself never raises; these only surface from configuration and factories.
    """


class UnsupportedTelemetryBackendException(DomainException, ValueError):
    """
    Thrown when the configured telemetry backend name is not one we know how to build.
    """


class InvalidTrackerConfigException(DomainException, ValueError):
    """
    Thrown when a configuration value cannot be parsed, e.g. a non-numeric timeout.
    """
