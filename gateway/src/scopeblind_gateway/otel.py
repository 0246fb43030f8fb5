# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import os
from typing import Dict

from opentelemetry import trace
from opentelemetry.propagate import inject

_TRACER_NAME = "scopeblind_gateway"


def setup_otel_from_env(use_console: bool = False) -> bool:
    """Configure OpenTelemetry tracing from environment variables.

    Env vars:
    - OTEL_EXPORTER_OTLP_ENDPOINT (spans are exported only when set)
    - OTEL_SERVICE_NAME (default scopeblind-gateway)
    - OTEL_CONSOLE_EXPORTER=1 to add console export

    Returns True when a tracer provider was installed.
    """
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    console = use_console or os.getenv("OTEL_CONSOLE_EXPORTER", "0").lower() in {"1", "true", "yes"}
    if not endpoint and not console:
        return False

    try:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except Exception as e:  # pragma: no cover - import error path
        raise RuntimeError(
            "OpenTelemetry SDK/exporter not installed. Install extras: pip install scopeblind-gateway[otel]"
        ) from e

    service_name = os.getenv("OTEL_SERVICE_NAME", "scopeblind-gateway")
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))

    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return True


def start_client_span(name: str):
    tracer = trace.get_tracer(_TRACER_NAME)
    return tracer.start_as_current_span(name, kind=trace.SpanKind.CLIENT)


def trace_headers() -> Dict[str, str]:
    """W3C trace context for the current span (empty when tracing is off)."""
    carrier: Dict[str, str] = {}
    inject(carrier)
    return carrier
