"""Telemetry configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field, field_validator

_TRUE_VALUES = {"1", "true", "yes", "on"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_SIGNALS = ("traces", "metrics", "logs")


def bool_from_env(*names: str) -> bool | None:
    """Return the first of ``names`` that is set, parsed as a boolean flag."""
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() in _TRUE_VALUES
    return None


def parse_resource_attributes(raw: str) -> dict[str, str]:
    """Parse ``OTEL_RESOURCE_ATTRIBUTES`` (``k=v,k2=v2``), skipping malformed parts."""
    attrs: dict[str, str] = {}
    for part in raw.split(","):
        key, sep, value = part.partition("=")
        if sep and key.strip():
            attrs[key.strip()] = value.strip()
    return attrs


class TelemetryConfig(BaseModel):
    """Which OpenTelemetry signals to export, and where."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    log_level: str = "INFO"
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    service_name: str = "seabattle"
    service_namespace: str = "game"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def build_resource(self) -> Resource:
        """Resource shared by the tracer, meter and logger providers."""
        attributes = {
            "service.name": self.service_name,
            "service.namespace": self.service_namespace,
        }
        attributes.update(self.resource_attributes)
        return Resource.create(attributes)

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Construct config from env vars (`SEABATTLE_*` + `OTEL_*`).

        Per-signal endpoints fall back to ``OTEL_EXPORTER_OTLP_ENDPOINT`` with
        the standard ``v1/<signal>`` suffix. Any signal with an endpoint is
        enabled regardless of its flag.
        """

        data: Dict[str, Any] = cls().model_dump()
        data.update(overrides)

        for signal, flag in zip(_SIGNALS, ("enable_tracing", "enable_metrics", "enable_logging")):
            env_value = bool_from_env(f"SEABATTLE_{flag.upper()}", f"OTEL_{signal.upper()}_ENABLED")
            if env_value is not None:
                data[flag] = env_value

        log_level = os.getenv("SEABATTLE_LOG_LEVEL")
        if log_level:
            data["log_level"] = log_level

        base_endpoint = (os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "").rstrip("/")
        for signal, flag in zip(_SIGNALS, ("enable_tracing", "enable_metrics", "enable_logging")):
            key = f"otlp_{signal}_endpoint"
            if not data.get(key):
                explicit = os.getenv(f"OTEL_EXPORTER_OTLP_{signal.upper()}_ENDPOINT")
                data[key] = explicit or (f"{base_endpoint}/v1/{signal}" if base_endpoint else None)
            if data[key]:
                data[flag] = True

        for key, env_name in (("service_name", "OTEL_SERVICE_NAME"), ("service_namespace", "OTEL_SERVICE_NAMESPACE")):
            value = os.getenv(env_name)
            if value:
                data[key] = value

        resource_env = os.getenv("OTEL_RESOURCE_ATTRIBUTES")
        if resource_env:
            data["resource_attributes"] = {
                **data.get("resource_attributes", {}),
                **parse_resource_attributes(resource_env),
            }

        return cls(**data)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Initialise the enabled telemetry signals and return the config used."""

    from .logger import init_logging
    from .metrics import init_metrics
    from .tracer import init_tracing

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
