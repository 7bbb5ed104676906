"""OpenTelemetry setup for the loyalty admin API."""

from __future__ import annotations

from fastapi import FastAPI
from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from loyalty_admin_api.core.settings import Settings


EXCLUDED_URLS = "healthz,readyz"

_provider: TracerProvider | None = None


def parse_otlp_headers(raw: str | None) -> dict[str, str] | None:
    """Parse ``key=value,key2=value2`` as used by ``OTEL_EXPORTER_OTLP_HEADERS``."""
    if not raw:
        return None
    headers = {}
    for pair in raw.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers or None


def _exporter(config: Settings) -> SpanExporter:
    if config.otel_exporter_endpoint:
        return OTLPSpanExporter(
            endpoint=config.otel_exporter_endpoint,
            headers=parse_otlp_headers(config.otel_exporter_headers),
        )
    return ConsoleSpanExporter()


def _tracer_provider(config: Settings, *, service_name: str, service_version: str) -> TracerProvider:
    global _provider

    if _provider is None:
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: service_name,
                ResourceAttributes.SERVICE_VERSION: service_version,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: config.environment,
            }
        )
        _provider = TracerProvider(
            resource=resource,
            sampler=ParentBased(TraceIdRatioBased(config.trace_sample_ratio)),
        )
        _provider.add_span_processor(BatchSpanProcessor(_exporter(config)))
        trace.set_tracer_provider(_provider)
        LoggingInstrumentor().instrument(set_logging_format=False)
        logger.info(
            "Tracing configured",
            exporter="otlp" if config.otel_exporter_endpoint else "console",
            sample_ratio=config.trace_sample_ratio,
        )
    return _provider


def configure_tracing(app: FastAPI, config: Settings, *, service_name: str, service_version: str) -> None:
    """Instrument ``app``; the tracer provider is installed once per process."""

    if not config.tracing_enabled:
        return

    provider = _tracer_provider(config, service_name=service_name, service_version=service_version)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=EXCLUDED_URLS)


__all__ = ["configure_tracing", "parse_otlp_headers"]
