# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Metrics collection abstraction and in-memory collector."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class MetricsCollector(ABC):
    """Abstract base class for metrics collectors.

    Provides a pluggable interface so the aggregator can count reports and
    dropped deliveries without depending on a particular backend.
    """

    @abstractmethod
    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        """Increment a counter metric.

        Args:
            name: Name of the counter metric
            value: Amount to increment by (default: 1.0)
            tags: Optional dictionary of tags/labels for the metric
        """
        pass

    @abstractmethod
    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Observe a value for histogram/summary metrics.

        Args:
            name: Name of the histogram/summary metric
            value: Value to observe
            tags: Optional dictionary of tags/labels for the metric
        """
        pass

    @abstractmethod
    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Set a gauge metric to a specific value.

        Args:
            name: Name of the gauge metric
            value: Value to set the gauge to
            tags: Optional dictionary of tags/labels for the metric
        """
        pass


class NoOpMetricsCollector(MetricsCollector):
    """Metrics collector that stores calls in memory without external dependencies.

    Useful for tests and for deployments where metrics are not scraped.
    """

    def __init__(self, **kwargs):
        """Initialize no-op metrics collector.

        Args:
            **kwargs: Ignored (for compatibility with the factory)
        """
        self.counters: list[tuple[str, float, dict[str, str] | None]] = []
        self.observations: list[tuple[str, float, dict[str, str] | None]] = []
        self.gauges: list[tuple[str, float, dict[str, str] | None]] = []

    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        self.counters.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: increment {name} by {value} with tags {tags}")

    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.observations.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: observe {name} value {value} with tags {tags}")

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append((name, value, tags))
        logger.debug(f"NoOpMetricsCollector: gauge {name} set to {value} with tags {tags}")

    def clear_metrics(self) -> None:
        """Clear all stored metrics."""
        self.counters.clear()
        self.observations.clear()
        self.gauges.clear()

    def get_counter_total(self, name: str, tags: dict[str, str] | None = None) -> float:
        """Get total value of a counter metric.

        Args:
            name: Name of the counter metric
            tags: Optional tags to filter by (if None, sums all matching names)

        Returns:
            Total counter value
        """
        total = 0.0
        for counter_name, value, counter_tags in self.counters:
            if counter_name == name:
                if tags is None or counter_tags == tags:
                    total += value
        return total

    def get_gauge_value(self, name: str, tags: dict[str, str] | None = None) -> float | None:
        """Get the most recent value of a gauge metric.

        Args:
            name: Name of the gauge metric
            tags: Optional tags to filter by

        Returns:
            Most recent gauge value, or None if never set
        """
        matching_gauges = [
            value for gauge_name, value, gauge_tags in self.gauges
            if gauge_name == name and (tags is None or gauge_tags == tags)
        ]
        return matching_gauges[-1] if matching_gauges else None
