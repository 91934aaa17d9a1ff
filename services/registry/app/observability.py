from __future__ import annotations

import functools
import time
from contextvars import ContextVar
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from services.registry.app.errors import StorageError


REGISTRY = CollectorRegistry()
ProcessCollector(registry=REGISTRY)
PlatformCollector(registry=REGISTRY)
GCCollector(registry=REGISTRY)

REQUEST_SUCCESS_TOTAL = Counter(
    "request_success_total",
    "Count of successful requests",
    ["service", "route", "method"],
    registry=REGISTRY,
)
REQUEST_LATENCY = Histogram(
    "request_latency_ms",
    "Request latency in milliseconds",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
    registry=REGISTRY,
)

STORAGE_OPERATION_LATENCY = Histogram(
    "storage_operation_latency_ms",
    "Registry storage operation latency in milliseconds",
    ["operation"],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000),
    registry=REGISTRY,
)
STORAGE_ERROR_TOTAL = Counter(
    "storage_error_total",
    "Registry storage operation failures",
    ["operation", "code"],
    registry=REGISTRY,
)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# Name of the outermost storage operation running in the current task, if any.
_OUTER_OPERATION: ContextVar[str | None] = ContextVar("registry_outer_operation", default=None)


def traced_operation(operation: str) -> Callable[[F], F]:
    """
    Wrap an async storage operation in a span and a latency sample.

    Failures are counted in `storage_error_total` once, under the outermost operation;
    operations called from inside another one only record them on their span.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = trace.get_tracer("registry.storage")
            start = time.perf_counter()
            outermost = _OUTER_OPERATION.get() is None
            token = _OUTER_OPERATION.set(operation) if outermost else None
            with tracer.start_as_current_span(operation) as span:
                try:
                    return await fn(*args, **kwargs)
                except StorageError as e:
                    if outermost:
                        STORAGE_ERROR_TOTAL.labels(operation, e.code.value).inc()
                    span.set_attribute("storage.error_code", e.code.value)
                    raise
                except Exception as e:
                    if outermost:
                        STORAGE_ERROR_TOTAL.labels(operation, "unclassified").inc()
                    span.record_exception(e)
                    raise
                finally:
                    STORAGE_OPERATION_LATENCY.labels(operation).observe((time.perf_counter() - start) * 1000)
                    if token is not None:
                        _OUTER_OPERATION.reset(token)

        return wrapper  # type: ignore[return-value]

    return decorator


def setup_tracing(app: FastAPI, service_name: str) -> None:
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def add_metrics_middleware(app: FastAPI, service_name: str) -> None:
    @app.middleware("http")
    async def _metrics(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        resp = await call_next(request)
        route = request.scope.get("path", "unknown")
        method = request.method
        REQUEST_LATENCY.labels(service_name, route, method).observe((time.perf_counter() - start) * 1000)
        if resp.status_code < 500:
            REQUEST_SUCCESS_TOTAL.labels(service_name, route, method).inc()
        return resp

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
