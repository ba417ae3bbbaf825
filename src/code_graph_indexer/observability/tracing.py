"""OpenTelemetry tracing helpers.

Spans are created in-process even without an exporter; a provider installed
by the environment (e.g. auto-instrumentation) is left in place.
"""

from __future__ import annotations

from functools import lru_cache

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider


@lru_cache()
def init_tracing(service_name: str) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return
    trace.set_tracer_provider(TracerProvider(resource=Resource.create({"service.name": service_name})))


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
