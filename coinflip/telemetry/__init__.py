"""Rate-limit telemetry sinks."""
from ..config import TelemetryConfig
from ..interfaces.telemetry import TelemetrySink
from .log import LoggingTelemetrySink
from .rest import RestTelemetrySink


def build_sink(config: TelemetryConfig) -> TelemetrySink:
    if config.enabled:
        return RestTelemetrySink(config)
    return LoggingTelemetrySink()


__all__ = ["LoggingTelemetrySink", "RestTelemetrySink", "build_sink"]
