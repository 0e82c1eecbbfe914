"""OpenTelemetry + Prometheus fallback wiring for logwatch."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from logwatch import config

logger = logging.getLogger("logwatch.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_ingestion_counter: Any | None = None
_ingestion_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_policy_status_counter: Any | None = None

_prom_enabled = False
_prom_ingestion_counter: Any | None = None
_prom_ingestion_latency_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_policy_status_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(*, source: str, **extra: str) -> dict[str, str]:
    labels = {"source": source or "unknown"}
    for key, value in extra.items():
        labels[key] = (value or "").strip() or "unknown"
    return labels


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _ingestion_counter, _ingestion_latency_hist, _parser_failure_counter, _policy_status_counter
    global _prom_enabled
    global _prom_ingestion_counter, _prom_ingestion_latency_hist
    global _prom_parser_failure_counter, _prom_policy_status_counter

    if _initialized:
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (LOGWATCH_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "logwatch"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "logwatch",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("logwatch")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("logwatch")

    _ingestion_counter = meter.create_counter(
        "logwatch_parses_total",
        unit="1",
        description="Count of log parse invocations",
    )
    _ingestion_latency_hist = meter.create_histogram(
        "logwatch_parse_latency_ms",
        unit="ms",
        description="Latency of log parse invocations",
    )
    _parser_failure_counter = meter.create_counter(
        "logwatch_parser_failures_total",
        unit="1",
        description="Count of rejected inputs and entry-level parse errors",
    )
    _policy_status_counter = meter.create_counter(
        "logwatch_policy_status_total",
        unit="1",
        description="Policy executions by derived status",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_ingestion_counter = Counter(
                "logwatch_parses_total",
                "Count of log parse invocations",
                ["entity", "result", "source"],
            )
            _prom_ingestion_latency_hist = Histogram(
                "logwatch_parse_latency_ms",
                "Latency of log parse invocations",
                ["entity", "result", "source"],
            )
            _prom_parser_failure_counter = Counter(
                "logwatch_parser_failures_total",
                "Count of rejected inputs and entry-level parse errors",
                ["parser", "source"],
            )
            _prom_policy_status_counter = Counter(
                "logwatch_policy_status_total",
                "Policy executions by derived status",
                ["status", "source"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        logger.debug("FastAPI uninstrument failed", exc_info=True)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception:
        logger.debug("Meter provider shutdown failed", exc_info=True)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception:
        logger.debug("Trace provider shutdown failed", exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_ingestion(entity: str, result: str, duration_ms: float, *, source: str) -> None:
    labels = {
        "entity": entity or "unknown",
        "result": result or "unknown",
        "source": source or "unknown",
    }
    if _enabled and _ingestion_counter is not None:
        _ingestion_counter.add(1, labels)
    if _enabled and _ingestion_latency_hist is not None:
        _ingestion_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_ingestion_counter is not None:
        prom = _prom_labels(source=source, entity=entity, result=result)
        _prom_ingestion_counter.labels(**prom).inc()
    if _prom_enabled and _prom_ingestion_latency_hist is not None:
        prom = _prom_labels(source=source, entity=entity, result=result)
        _prom_ingestion_latency_hist.labels(**prom).observe(max(0.0, float(duration_ms)))


def record_parser_failure(parser: str, *, source: str, count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    labels = {
        "parser": parser or "unknown",
        "source": source or "unknown",
    }
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(safe_count, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        prom = _prom_labels(source=source, parser=parser)
        _prom_parser_failure_counter.labels(**prom).inc(safe_count)


def record_policy_statuses(counts: dict[str, int], *, source: str) -> None:
    for status, count in counts.items():
        safe_count = max(0, int(count))
        if safe_count == 0:
            continue
        labels = {"status": status or "unknown", "source": source or "unknown"}
        if _enabled and _policy_status_counter is not None:
            _policy_status_counter.add(safe_count, labels)
        if _prom_enabled and _prom_policy_status_counter is not None:
            prom = _prom_labels(source=source, status=status)
            _prom_policy_status_counter.labels(**prom).inc(safe_count)
