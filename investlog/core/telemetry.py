"""OpenTelemetry configuration helpers."""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes
from sqlalchemy.ext.asyncio import AsyncEngine

from investlog.config import AppSettings

logger = logging.getLogger(__name__)

_TELEMETRY_INITIALISED = False


def _build_resource(settings: AppSettings) -> Resource:
    attributes: dict[str, Any] = {
        ResourceAttributes.SERVICE_NAME: settings.telemetry_service_name or settings.app_name,
        ResourceAttributes.SERVICE_NAMESPACE: "investlog",
    }
    return Resource.create(attributes)


def _build_exporter_options(settings: AppSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        options["endpoint"] = settings.telemetry_otlp_endpoint
    return options


def setup_telemetry(settings: AppSettings, engine: AsyncEngine | None = None) -> bool:
    """Configure span export and instrument httpx plus SQLAlchemy.

    Returns True when instrumentation was installed by this call.
    """

    global _TELEMETRY_INITIALISED  # noqa: PLW0603 - single initialisation guard

    if _TELEMETRY_INITIALISED:
        return False

    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return False

    sampler = ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio))
    tracer_provider = TracerProvider(resource=_build_resource(settings), sampler=sampler)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(**_build_exporter_options(settings)))
    )
    trace.set_tracer_provider(tracer_provider)

    # Upstream quote calls become client spans
    HTTPXClientInstrumentor().instrument(tracer_provider=tracer_provider)
    LoggingInstrumentor().instrument(set_logging_format=False)
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(
            engine=engine.sync_engine,
            tracer_provider=tracer_provider,
        )

    _TELEMETRY_INITIALISED = True
    logger.info("Telemetry initialised and instrumentation enabled")
    return True


__all__ = ["setup_telemetry"]
