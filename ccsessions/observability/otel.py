"""OpenTelemetry + Prometheus fallback wiring for cc-sessions."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from ccsessions import config

logger = logging.getLogger("ccsessions.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None

_scan_counter: Any | None = None
_scan_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_remote_sync_counter: Any | None = None
_remote_sync_latency_hist: Any | None = None

_prom_enabled = False
_prom_scan_counter: Any | None = None
_prom_scan_latency_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_remote_sync_counter: Any | None = None


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


def _prom_labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def initialize() -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider
    global _scan_counter, _scan_latency_hist, _parser_failure_counter
    global _remote_sync_counter, _remote_sync_latency_hist
    global _prom_enabled, _prom_scan_counter, _prom_scan_latency_hist
    global _prom_parser_failure_counter, _prom_remote_sync_counter

    if _initialized:
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.debug("OpenTelemetry disabled (CCSESSIONS_OTEL_ENABLED=false)")
    else:
        try:
            from opentelemetry import metrics, trace
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.sdk.resources import Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError as exc:
            logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        else:
            traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
            metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
            service_name = config.OTEL_SERVICE_NAME or "cc-sessions"

            resource = Resource.create(
                {
                    "service.name": service_name,
                    "service.namespace": "cc-sessions",
                }
            )

            trace_provider = TracerProvider(resource=resource)
            trace_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None))
            )
            trace.set_tracer_provider(trace_provider)

            metric_reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=metrics_endpoint or None)
            )
            meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
            metrics.set_meter_provider(meter_provider)
            meter = metrics.get_meter("ccsessions")

            _scan_counter = meter.create_counter(
                "ccsessions_scans_total",
                unit="1",
                description="Count of transcript scans by source and result",
            )
            _scan_latency_hist = meter.create_histogram(
                "ccsessions_scan_latency_ms",
                unit="ms",
                description="Latency of transcript scans",
            )
            _parser_failure_counter = meter.create_counter(
                "ccsessions_parser_failures_total",
                unit="1",
                description="Count of transcript parser failures",
            )
            _remote_sync_counter = meter.create_counter(
                "ccsessions_remote_syncs_total",
                unit="1",
                description="Remote cache sync outcomes",
            )
            _remote_sync_latency_hist = meter.create_histogram(
                "ccsessions_remote_sync_latency_ms",
                unit="ms",
                description="Latency of remote cache syncs",
            )

            _trace_provider = trace_provider
            _meter_provider = meter_provider
            _tracer = trace.get_tracer("ccsessions")
            _enabled = True
            logger.info(
                "OpenTelemetry initialized (service=%s endpoint=%s)",
                service_name,
                config.OTEL_ENDPOINT,
            )

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_scan_counter = Counter(
                "ccsessions_scans_total",
                "Count of transcript scans by source and result",
                ["source", "result"],
            )
            _prom_scan_latency_hist = Histogram(
                "ccsessions_scan_latency_ms",
                "Latency of transcript scans",
                ["source", "result"],
            )
            _prom_parser_failure_counter = Counter(
                "ccsessions_parser_failures_total",
                "Count of transcript parser failures",
                ["parser", "source"],
            )
            _prom_remote_sync_counter = Counter(
                "ccsessions_remote_syncs_total",
                "Remote cache sync outcomes",
                ["remote", "result"],
            )
            _prom_enabled = True
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False


def shutdown() -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Tracer provider shutdown failed: %s", exc)
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


def record_scan(source: str, result: str, duration_ms: float) -> None:
    labels = {"source": source or "unknown", "result": result or "unknown"}
    if _enabled and _scan_counter is not None:
        _scan_counter.add(1, labels)
    if _enabled and _scan_latency_hist is not None:
        _scan_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_scan_counter is not None:
        _prom_scan_counter.labels(**_prom_labels(**labels)).inc()
    if _prom_enabled and _prom_scan_latency_hist is not None:
        _prom_scan_latency_hist.labels(**_prom_labels(**labels)).observe(max(0.0, float(duration_ms)))


def record_parser_failure(parser: str, *, source: str) -> None:
    labels = {"parser": parser or "unknown", "source": source or "unknown"}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**_prom_labels(**labels)).inc()


def record_remote_sync(remote: str, result: str, duration_ms: float = 0.0) -> None:
    labels = {"remote": remote or "unknown", "result": result or "unknown"}
    if _enabled and _remote_sync_counter is not None:
        _remote_sync_counter.add(1, labels)
    if _enabled and _remote_sync_latency_hist is not None and duration_ms > 0:
        _remote_sync_latency_hist.record(float(duration_ms), labels)
    if _prom_enabled and _prom_remote_sync_counter is not None:
        _prom_remote_sync_counter.labels(**_prom_labels(**labels)).inc()
