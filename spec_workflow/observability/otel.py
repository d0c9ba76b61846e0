"""OpenTelemetry wiring for the spec workflow core."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from spec_workflow import config

logger = logging.getLogger("spec_workflow.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None

_parser_failure_counter: Any | None = None
_watcher_event_counter: Any | None = None
_approval_transition_counter: Any | None = None


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


def initialize() -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider
    global _parser_failure_counter, _watcher_event_counter, _approval_transition_counter

    if _initialized:
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (SPEC_WORKFLOW_OTEL_ENABLED=false)")
        return

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
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "spec-workflow"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "spec-workflow",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("spec_workflow")

    _parser_failure_counter = meter.create_counter(
        "spec_workflow_parser_failures_total",
        unit="1",
        description="Phase documents that could not be read or parsed",
    )
    _watcher_event_counter = meter.create_counter(
        "spec_workflow_watcher_events_total",
        unit="1",
        description="Filesystem events processed by the change watcher",
    )
    _approval_transition_counter = meter.create_counter(
        "spec_workflow_approval_transitions_total",
        unit="1",
        description="Approval status transitions",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("spec_workflow")
    _enabled = True

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown() -> None:
    global _enabled, _initialized
    if not _initialized:
        return
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.warning("OpenTelemetry provider shutdown failed: %s", exc)
    _enabled = False
    _initialized = False


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


def record_parser_failure(parser: str, *, project_id: str) -> None:
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, {
            "parser": parser or "unknown",
            "project_id": project_id or "unknown",
        })


def record_watcher_event(kind: str, action: str, result: str, *, project_id: str) -> None:
    if _enabled and _watcher_event_counter is not None:
        _watcher_event_counter.add(1, {
            "kind": kind or "unknown",
            "action": action or "unknown",
            "result": result or "unknown",
            "project_id": project_id or "unknown",
        })


def record_approval_transition(from_status: str, to_status: str, *, project_id: str) -> None:
    if _enabled and _approval_transition_counter is not None:
        _approval_transition_counter.add(1, {
            "from": from_status or "unknown",
            "to": to_status or "unknown",
            "project_id": project_id or "unknown",
        })
