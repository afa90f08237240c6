"""A small metrics pipeline: instruments, a manual reader and an OTLP/HTTP exporter."""

from __future__ import annotations

import bisect
import json
import logging
import os
import sys
import threading
import time
import urllib.request
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

IMAGES_REMOVED_COUNTER = "images_removed_run_total"
IMAGES_REMOVED_DESCRIPTION = "total images removed"
DURATION_METRIC = "imagejob_duration_run_seconds"

DEFAULT_BOUNDARIES: tuple[float, ...] = (
    0, 5, 10, 25, 50, 75, 100, 250, 500, 750, 1000, 2500, 5000, 7500, 10000,
)
DURATION_BOUNDARIES: tuple[float, ...] = (0, 10, 20, 30, 40, 50, 60)

_CUMULATIVE = 2


def _kv(key: str, value: str) -> dict[str, Any]:
    return {"key": key, "value": {"stringValue": value}}


def _attributes(key: frozenset[tuple[str, str]]) -> list[dict[str, Any]]:
    return [_kv(k, v) for k, v in sorted(key)]


def _key(attributes: Mapping[str, str] | None) -> frozenset[tuple[str, str]]:
    return frozenset((attributes or {}).items())


class Counter:
    """A monotonic integer sum, kept per attribute set."""

    def __init__(self, name: str, description: str = "", unit: str = "") -> None:
        self.name = name
        self.description = description
        self.unit = unit
        self._start = time.time_ns()
        self._points: dict[frozenset[tuple[str, str]], int] = {}
        self._lock = threading.Lock()

    def add(self, value: int, attributes: Mapping[str, str] | None = None) -> None:
        key = _key(attributes)
        with self._lock:
            self._points[key] = self._points.get(key, 0) + int(value)

    def _to_metric(self, now: int) -> dict[str, Any] | None:
        with self._lock:
            points = dict(self._points)
        if not points:
            return None
        return {
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "sum": {
                "dataPoints": [
                    {
                        "attributes": _attributes(key),
                        "startTimeUnixNano": str(self._start),
                        "timeUnixNano": str(now),
                        "asInt": str(total),
                    }
                    for key, total in points.items()
                ],
                "aggregationTemporality": _CUMULATIVE,
                "isMonotonic": True,
            },
        }


@dataclass
class _HistogramPoint:
    buckets: list[int]
    count: int = 0
    total: float = 0.0
    minimum: float = field(default=float("inf"))
    maximum: float = field(default=float("-inf"))


class Histogram:
    """A histogram with explicit bucket boundaries, kept per attribute set."""

    def __init__(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        boundaries: Sequence[float] = DEFAULT_BOUNDARIES,
    ) -> None:
        self.name = name
        self.description = description
        self.unit = unit
        self.boundaries = tuple(boundaries)
        self._start = time.time_ns()
        self._points: dict[frozenset[tuple[str, str]], _HistogramPoint] = {}
        self._lock = threading.Lock()

    def record(self, value: float, attributes: Mapping[str, str] | None = None) -> None:
        key = _key(attributes)
        with self._lock:
            point = self._points.get(key)
            if point is None:
                point = _HistogramPoint(buckets=[0] * (len(self.boundaries) + 1))
                self._points[key] = point
            point.buckets[bisect.bisect_left(self.boundaries, value)] += 1
            point.count += 1
            point.total += value
            point.minimum = min(point.minimum, value)
            point.maximum = max(point.maximum, value)

    def _to_metric(self, now: int) -> dict[str, Any] | None:
        with self._lock:
            points = {
                k: (list(p.buckets), p.count, p.total, p.minimum, p.maximum)
                for k, p in self._points.items()
            }
        if not points:
            return None
        return {
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "histogram": {
                "dataPoints": [
                    {
                        "attributes": _attributes(key),
                        "startTimeUnixNano": str(self._start),
                        "timeUnixNano": str(now),
                        "count": str(count),
                        "sum": total,
                        "bucketCounts": [str(b) for b in buckets],
                        "explicitBounds": list(self.boundaries),
                        "min": minimum,
                        "max": maximum,
                    }
                    for key, (buckets, count, total, minimum, maximum) in points.items()
                ],
                "aggregationTemporality": _CUMULATIVE,
            },
        }


class Meter:
    """Creates and holds the instruments of one instrumentation scope."""

    def __init__(self, name: str, views: Mapping[str, Sequence[float]] | None = None) -> None:
        self.name = name
        self._views = dict(views or {})
        self._instruments: dict[str, Counter | Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str = "", unit: str = "") -> Counter:
        with self._lock:
            existing = self._instruments.get(name)
            if existing is None:
                existing = self._instruments[name] = Counter(name, description, unit)
        if not isinstance(existing, Counter):
            raise ValueError(f"instrument {name!r} is already registered as a histogram")
        return existing

    def histogram(self, name: str, description: str = "", unit: str = "") -> Histogram:
        with self._lock:
            existing = self._instruments.get(name)
            if existing is None:
                boundaries = self._views.get(name, DEFAULT_BOUNDARIES)
                existing = self._instruments[name] = Histogram(
                    name, description, unit, boundaries
                )
        if not isinstance(existing, Histogram):
            raise ValueError(f"instrument {name!r} is already registered as a counter")
        return existing

    def _collect(self, now: int) -> list[dict[str, Any]]:
        with self._lock:
            instruments = list(self._instruments.values())
        metrics = (instrument._to_metric(now) for instrument in instruments)
        return [metric for metric in metrics if metric is not None]


class ManualReader:
    """Collects the current state of a provider's metrics on demand."""

    def __init__(self) -> None:
        self._provider: MeterProvider | None = None

    def _register(self, provider: "MeterProvider") -> None:
        if self._provider is not None:
            raise ValueError("reader is already registered with a meter provider")
        self._provider = provider

    def collect(self) -> dict[str, Any]:
        """Return all metrics in OTLP JSON form."""
        if self._provider is None:
            raise RuntimeError("reader is not registered")
        return self._provider._collect()


class MeterProvider:
    """Hands out meters and gathers their metrics for a reader."""

    def __init__(
        self,
        reader: ManualReader | None = None,
        views: Mapping[str, Sequence[float]] | None = None,
    ) -> None:
        self._views = dict(views or {})
        self._meters: dict[str, Meter] = {}
        self._lock = threading.Lock()
        service = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "python"
        self.resource = {
            "service.name": f"unknown_service:{service}",
            "telemetry.sdk.language": "python",
        }
        if reader is not None:
            reader._register(self)

    def meter(self, name: str) -> Meter:
        with self._lock:
            meter = self._meters.get(name)
            if meter is None:
                meter = self._meters[name] = Meter(name, self._views)
            return meter

    def _collect(self) -> dict[str, Any]:
        now = time.time_ns()
        with self._lock:
            meters = list(self._meters.values())
        scopes = []
        for meter in meters:
            metrics = meter._collect(now)
            if metrics:
                scopes.append({"scope": {"name": meter.name}, "metrics": metrics})
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [_kv(k, v) for k, v in self.resource.items()]
                    },
                    "scopeMetrics": scopes,
                }
            ]
        }


class OtlpHttpExporter:
    """Sends collected metrics to an OTLP/HTTP endpoint as JSON."""

    def __init__(self, endpoint: str, insecure: bool = True, timeout: float = 10.0) -> None:
        if not endpoint:
            raise ValueError("an endpoint is required")
        scheme = "http" if insecure else "https"
        self.url = f"{scheme}://{endpoint}/v1/metrics"
        self.timeout = timeout

    def export(self, data: Mapping[str, Any]) -> None:
        request = urllib.request.Request(
            self.url,
            data=json.dumps(data).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(request, timeout=self.timeout) as response:
            response.read()


def configure_metrics(
    endpoint: str,
) -> tuple[OtlpHttpExporter | None, ManualReader | None, MeterProvider | None]:
    """Build an exporter, reader and provider; all ``None`` if setup fails."""
    try:
        exporter = OtlpHttpExporter(endpoint)
    except ValueError:
        log.exception("error initializing exporter")
        return None, None, None
    reader = ManualReader()
    provider = MeterProvider(reader=reader, views={DURATION_METRIC: DURATION_BOUNDARIES})
    return exporter, reader, provider


def export_metrics(exporter: OtlpHttpExporter, reader: ManualReader) -> None:
    """Collect from ``reader`` and send through ``exporter``, logging failures."""
    try:
        data = reader.collect()
    except Exception:
        log.exception("failed to collect metrics")
        return
    try:
        exporter.export(data)
    except Exception:
        log.exception("failed to export metrics")


def _node_attributes() -> dict[str, str]:
    return {"node name": os.environ.get("NODE_NAME", "")}


def record_metrics_remover(provider: MeterProvider, total_removed: int) -> None:
    """Count the images a remover run removed."""
    counter = provider.meter("eraser").counter(
        IMAGES_REMOVED_COUNTER, description=IMAGES_REMOVED_DESCRIPTION, unit="1"
    )
    counter.add(total_removed, _node_attributes())


def record_metrics_scanner(provider: MeterProvider, total_vulnerable: int) -> None:
    """Count the vulnerable images a scanner run found."""
    counter = provider.meter("eraser").counter(
        "vulnerable_images_run_total", description="total vulnerable images", unit="1"
    )
    counter.add(total_vulnerable, _node_attributes())


def record_metrics_controller(
    provider: MeterProvider, job_duration: float, pods_completed: int, pods_failed: int
) -> None:
    """Record the duration and pod outcomes of one image job."""
    meter = provider.meter("eraser")
    meter.histogram(DURATION_METRIC, description="duration of imagejob", unit="s").record(
        job_duration
    )
    meter.counter(
        "pods_completed_run_total", description="total pods completed", unit="1"
    ).add(pods_completed)
    meter.counter(
        "pods_failed_run_total", description="total pods failed", unit="1"
    ).add(pods_failed)
    meter.counter(
        "imagejob_run_total", description="total number of imagejobs completed", unit="1"
    ).add(1)