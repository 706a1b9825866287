"""Structured timing logs and optional OpenTelemetry export for translation runs."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Dict, Iterator, Mapping, Optional

from . import logging_manager as log_mgr

logger = log_mgr.get_logger().getChild("observability")

try:  # pragma: no cover - optional dependency
    from opentelemetry import metrics, trace
except ImportError:  # pragma: no cover - telemetry extra not installed
    metrics = None  # type: ignore
    trace = None  # type: ignore

INSTRUMENTATION_NAME = "subtitle_translator"

_tracer = trace.get_tracer(INSTRUMENTATION_NAME) if trace else None
_meter = metrics.get_meter(INSTRUMENTATION_NAME) if metrics else None
_histograms: Dict[str, object] = {}


def _histogram(name: str):  # pragma: no cover - requires the telemetry extra
    if _meter is None:
        return None
    if name not in _histograms:
        _histograms[name] = _meter.create_histogram(name)
    return _histograms[name]


def record_metric(
    name: str,
    value: float,
    attributes: Optional[Mapping[str, object]] = None,
) -> None:
    """Record ``value`` under ``name``; falls back to a debug log line."""

    attrs = {key: item for key, item in dict(attributes or {}).items() if item is not None}
    histogram = _histogram(name)
    if histogram is not None:
        try:  # pragma: no cover - dependent on optional OTEL runtime
            histogram.record(value, attributes=attrs)
            return
        except Exception as exc:  # pragma: no cover - exporter failures are non-fatal
            logger.debug(
                "Metric export failed for %s: %s",
                name,
                exc,
                extra={"event": "observability.metric_export_error"},
            )
    logger.debug(
        "%s=%.3f",
        name,
        value,
        extra={"event": "observability.metric", "metric": name, "attributes": attrs},
    )


@contextlib.contextmanager
def _span(name: str, attributes: Mapping[str, object]) -> Iterator[None]:
    if _tracer is None:
        yield
        return
    with _tracer.start_as_current_span(name, attributes=dict(attributes)):  # pragma: no cover
        yield


@contextlib.contextmanager
def _timed(event: str, metric: str, attributes: Mapping[str, object], *, level: int) -> Iterator[None]:
    start = time.perf_counter()
    status = "failed"
    try:
        with _span(event, attributes):
            yield
        status = "completed"
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        record_metric(metric, duration_ms, {**attributes, "status": status})
        logger.log(
            level,
            "%s %s in %.1f ms",
            event,
            status,
            duration_ms,
            extra={
                "event": f"{event}.complete",
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "attributes": dict(attributes),
            },
        )


@contextlib.contextmanager
def pipeline_stage(stage: str, attributes: Optional[Mapping[str, object]] = None) -> Iterator[None]:
    """Time one pipeline phase (analysis, translation or validation).

    The phase name is pushed into the log context so every record emitted by
    the pass carries it.
    """

    attrs = dict(attributes or {})
    with log_mgr.log_context(stage=stage):
        logger.info(
            "Starting %s phase",
            stage,
            extra={"event": "pipeline.stage.start", "attributes": attrs},
        )
        with _timed(
            f"pipeline.{stage}",
            "pipeline.stage.duration",
            {**attrs, "stage": stage},
            level=logging.INFO,
        ):
            yield


@contextlib.contextmanager
def provider_request(provider: str, model: Optional[str], entry_count: int) -> Iterator[None]:
    """Time a single provider completion call."""

    attrs = {"provider": provider, "model": model, "entries": entry_count}
    with _timed("provider.request", "provider.request.duration", attrs, level=logging.DEBUG):
        yield


def worker_pool_event(
    action: str,
    *,
    mode: str,
    max_workers: int,
    attributes: Optional[Mapping[str, object]] = None,
) -> None:
    """Log a worker pool lifecycle transition."""

    attrs = {"mode": mode, "max_workers": max_workers, **dict(attributes or {})}
    logger.debug(
        "Worker pool %s",
        action,
        extra={"event": f"worker_pool.{action}", "attributes": attrs},
    )
    record_metric(f"worker_pool.{action}", float(max_workers), attrs)


__all__ = [
    "pipeline_stage",
    "provider_request",
    "record_metric",
    "worker_pool_event",
]
