"""Console logging plus an optional OpenTelemetry log exporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import TelemetryConfig

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_LOGGER: logging.Logger | None = None
_OTEL_HANDLER: logging.Handler | None = None
_FILTER_INSTALLED = False


class _OtelContextFilter(logging.Filter):
    """Fills in trace/span ids so LOG_FORMAT works outside any span."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        for attr in ("otelTraceID", "otelSpanID"):
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


def get_logger(name: str = "seabattle") -> logging.Logger:
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger(name)
        _LOGGER.setLevel(logging.INFO)
    return _LOGGER


def configure_console(level: str | int = logging.INFO) -> None:
    """Set up the root logger for terminal output at ``level``."""
    global _FILTER_INSTALLED
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        for existing in root_logger.handlers:
            existing.addFilter(_OtelContextFilter())

    if not _FILTER_INSTALLED:
        root_logger.addFilter(_OtelContextFilter())
        _FILTER_INSTALLED = True


def init_logging(config: TelemetryConfig) -> logging.Logger:
    """Route log records through an OpenTelemetry LoggerProvider."""
    from opentelemetry._logs import set_logger_provider
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

    logger = get_logger(config.service_name)
    logger.setLevel(config.log_level)

    provider = LoggerProvider(resource=config.build_resource())
    if config.otlp_logs_endpoint:
        exporter = OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)

    _install_root_handler(LoggingHandler(level=config.log_level, logger_provider=provider), config.log_level)
    return logger


def _install_root_handler(handler: logging.Handler, level: str | int) -> None:
    """Attach the OTLP handler to the root logger, replacing an earlier one."""
    global _OTEL_HANDLER
    configure_console(level)

    root_logger = logging.getLogger()
    if _OTEL_HANDLER is not None:
        root_logger.removeHandler(_OTEL_HANDLER)
    handler.addFilter(_OtelContextFilter())
    root_logger.addHandler(handler)
    _OTEL_HANDLER = handler
