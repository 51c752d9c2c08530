# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Prometheus metrics collector implementation."""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


class PrometheusMetricsCollector(MetricsCollector):
    """Prometheus metrics collector.

    All calls for the same metric name must use the same label keys;
    Prometheus rejects a metric re-registered with different labels.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = "error_aggregator",
        raise_on_error: bool = False,
    ):
        """Initialize Prometheus metrics collector.

        Args:
            registry: Prometheus registry (a private registry is created if None)
            namespace: Namespace prefix for all metrics
            raise_on_error: If True, re-raise metric errors instead of logging them
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace
        self.raise_on_error = raise_on_error
        self._counters: dict[tuple[str, tuple[str, ...]], Counter] = {}
        self._histograms: dict[tuple[str, tuple[str, ...]], Histogram] = {}
        self._gauges: dict[tuple[str, tuple[str, ...]], Gauge] = {}
        self._metrics_errors_count = 0

    def _get_or_create(self, cache: dict, metric_cls, kind: str, name: str, tags: dict[str, str] | None):
        labelnames = tuple(sorted(tags.keys())) if tags else ()
        cache_key = (name, labelnames)

        if cache_key not in cache:
            cache[cache_key] = metric_cls(
                name=name,
                documentation=f"{kind} metric: {name}",
                labelnames=labelnames,
                namespace=self.namespace,
                registry=self.registry,
            )

        return cache[cache_key]

    def _handle_error(self, action: str, name: str, error: Exception) -> None:
        self._metrics_errors_count += 1
        logger.error(f"Failed to {action} {name}: {error}")
        if self.raise_on_error:
            raise error

    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        try:
            counter = self._get_or_create(self._counters, Counter, "Counter", name, tags)
            if tags:
                counter.labels(**tags).inc(value)
            else:
                counter.inc(value)
        except Exception as e:
            self._handle_error("increment counter", name, e)

    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        try:
            histogram = self._get_or_create(self._histograms, Histogram, "Histogram", name, tags)
            if tags:
                histogram.labels(**tags).observe(value)
            else:
                histogram.observe(value)
        except Exception as e:
            self._handle_error("observe histogram", name, e)

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        try:
            gauge = self._get_or_create(self._gauges, Gauge, "Gauge", name, tags)
            if tags:
                gauge.labels(**tags).set(value)
            else:
                gauge.set(value)
        except Exception as e:
            self._handle_error("set gauge", name, e)

    def get_errors_count(self) -> int:
        """Number of metric operations that failed."""
        return self._metrics_errors_count
