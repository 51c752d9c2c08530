# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Shared fixtures for error aggregator tests."""

import pytest

from error_aggregator import (
    ErrorAggregator,
    NoOpMetricsCollector,
    SilentErrorSink,
    create_logger,
)


@pytest.fixture
def logger():
    """Silent logger capturing entries in memory."""
    return create_logger(logger_type="silent", level="DEBUG", name="error-aggregator-test")


@pytest.fixture
def metrics():
    """In-memory metrics collector."""
    return NoOpMetricsCollector()


@pytest.fixture
def sink():
    """In-memory error sink."""
    return SilentErrorSink()


@pytest.fixture
def aggregator(logger, metrics, sink):
    """Fresh aggregator per test, closed afterwards."""
    aggregator = ErrorAggregator(logger=logger, metrics=metrics, sinks=[sink])
    yield aggregator
    aggregator.close()
