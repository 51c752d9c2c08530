# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Environment-backed configuration for the error aggregator."""

import os
from dataclasses import dataclass
from typing import Any, Mapping

ENV_PREFIX = "ERROR_AGGREGATOR_"

OVERFLOW_POLICIES = ("drop_oldest", "drop_newest")
SINK_TYPES = ("console", "silent", "none")
METRICS_TYPES = ("noop", "prometheus")


class EnvConfigProvider:
    """Configuration provider that reads from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, key: str, default: Any = None) -> Any:
        return self._environ.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._environ.get(key)
        if value is None:
            return default

        value_lower = value.lower()
        if value_lower in ("true", "1", "yes", "on"):
            return True
        if value_lower in ("false", "0", "no", "off"):
            return False
        return default

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._environ.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default


@dataclass(frozen=True)
class AggregatorConfig:
    """Typed configuration for an ErrorAggregator and its service.

    Attributes:
        history_capacity: Number of records retained, oldest evicted first
        subscriber_queue_size: Per-subscription channel capacity (0 = unbounded)
        subscriber_overflow: What a full channel drops: "drop_oldest" or "drop_newest"
        sink_type: Error sink driver ("console", "silent", "none")
        metrics_type: Metrics driver ("noop", "prometheus")
        http_port: Port for the diagnostics HTTP service
    """

    history_capacity: int = 100
    subscriber_queue_size: int = 1000
    subscriber_overflow: str = "drop_oldest"
    sink_type: str = "none"
    metrics_type: str = "noop"
    http_port: int = 8081

    def __post_init__(self):
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")
        if self.subscriber_queue_size < 0:
            raise ValueError("subscriber_queue_size must be 0 or greater")
        if self.subscriber_overflow not in OVERFLOW_POLICIES:
            raise ValueError(
                f"Invalid subscriber_overflow: {self.subscriber_overflow}. "
                f"Must be one of: {', '.join(OVERFLOW_POLICIES)}"
            )
        if self.sink_type not in SINK_TYPES:
            raise ValueError(
                f"Invalid sink_type: {self.sink_type}. Must be one of: {', '.join(SINK_TYPES)}"
            )
        if self.metrics_type not in METRICS_TYPES:
            raise ValueError(
                f"Invalid metrics_type: {self.metrics_type}. Must be one of: {', '.join(METRICS_TYPES)}"
            )
        if not 0 < self.http_port < 65536:
            raise ValueError("http_port must be between 1 and 65535")


def load_config(environ: Mapping[str, str] | None = None) -> AggregatorConfig:
    """Load aggregator configuration from environment variables.

    Unset variables fall back to the AggregatorConfig defaults.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        Validated AggregatorConfig

    Raises:
        ValueError: If a value is out of range or names an unknown driver
    """
    provider = EnvConfigProvider(environ)
    defaults = AggregatorConfig()

    return AggregatorConfig(
        history_capacity=provider.get_int(f"{ENV_PREFIX}HISTORY_CAPACITY", defaults.history_capacity),
        subscriber_queue_size=provider.get_int(
            f"{ENV_PREFIX}SUBSCRIBER_QUEUE_SIZE", defaults.subscriber_queue_size
        ),
        subscriber_overflow=provider.get(
            f"{ENV_PREFIX}SUBSCRIBER_OVERFLOW", defaults.subscriber_overflow
        ).lower(),
        sink_type=provider.get(f"{ENV_PREFIX}SINK_TYPE", defaults.sink_type).lower(),
        metrics_type=provider.get(f"{ENV_PREFIX}METRICS_TYPE", defaults.metrics_type).lower(),
        http_port=provider.get_int(f"{ENV_PREFIX}HTTP_PORT", defaults.http_port),
    )
