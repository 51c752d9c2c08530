# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for broadcast subscriptions and aggregator teardown."""

import threading

import pytest

from error_aggregator import ErrorAggregator, Subscription
from error_aggregator.models import ErrorCause, ErrorRecord


def _record(text="x"):
    return ErrorRecord(cause=ErrorCause(text))


class TestSubscriptionChannel:
    """Tests for the Subscription channel on its own."""

    def test_deliver_and_get(self):
        """Test FIFO delivery."""
        subscription = Subscription("s")
        first, second = _record("1"), _record("2")

        assert subscription.deliver(first)
        assert subscription.deliver(second)

        assert subscription.get() is first
        assert subscription.get() is second
        assert subscription.get(timeout=0.01) is None
        assert subscription.delivered == 2

    def test_drop_oldest(self):
        """Test that a full channel discards its oldest record."""
        dropped = []
        subscription = Subscription("s", maxsize=2, on_drop=dropped.append)
        records = [_record(str(i)) for i in range(3)]

        for record in records:
            assert subscription.deliver(record)

        assert subscription.drain() == records[1:]
        assert subscription.dropped == 1
        assert dropped == [subscription]

    def test_drop_newest(self):
        """Test that a full channel can reject the incoming record."""
        subscription = Subscription("s", maxsize=2, overflow="drop_newest")
        records = [_record(str(i)) for i in range(3)]

        results = [subscription.deliver(record) for record in records]

        assert results == [True, True, False]
        assert subscription.drain() == records[:2]
        assert subscription.dropped == 1

    def test_invalid_arguments(self):
        """Test argument validation."""
        with pytest.raises(ValueError, match="overflow"):
            Subscription("s", overflow="block")
        with pytest.raises(ValueError, match="maxsize"):
            Subscription("s", maxsize=-1)

    def test_cancel_discards_and_stops(self):
        """Test that cancel releases buffered records and refuses new ones."""
        cancelled = []
        subscription = Subscription("s", on_cancel=cancelled.append)
        subscription.deliver(_record())

        subscription.cancel()
        subscription.cancel()

        assert subscription.closed
        assert subscription.pending == 0
        assert not subscription.deliver(_record())
        assert subscription.get() is None
        assert cancelled == ["s", "s"]

    def test_close_keeps_delivered_records(self):
        """Test that a source close lets consumers drain what they already have."""
        subscription = Subscription("s")
        record = _record()
        subscription.deliver(record)

        subscription._close(discard=False)

        assert list(subscription) == [record]

    def test_get_wakes_on_close(self):
        """Test that a blocked reader returns when the subscription closes."""
        subscription = Subscription("s")
        results = []
        reader = threading.Thread(target=lambda: results.append(subscription.get()))
        reader.start()

        subscription.cancel()
        reader.join(timeout=2)

        assert not reader.is_alive()
        assert results == [None]

    def test_callback_exceptions_are_contained(self):
        """Test that a failing callback does not stop later deliveries."""
        seen = []
        done = threading.Event()

        def callback(record):
            seen.append(record)
            if len(seen) == 1:
                raise RuntimeError("handler bug")
            done.set()

        subscription = Subscription("s", callback=callback)
        subscription.deliver(_record("1"))
        subscription.deliver(_record("2"))

        assert done.wait(2)
        assert len(seen) == 2
        subscription.cancel()
        subscription.join(timeout=2)

    def test_context_manager_cancels(self):
        """Test using a subscription as a context manager."""
        with Subscription("s") as subscription:
            pass
        assert subscription.closed


class TestBroadcast:
    """Tests for aggregator subscribe/publish semantics."""

    def test_every_subscriber_gets_one_copy(self, aggregator):
        """Test multicast delivery."""
        first = aggregator.subscribe()
        second = aggregator.subscribe()

        record = aggregator.report("x")

        assert first.drain() == [record]
        assert second.drain() == [record]

    def test_record_in_history_before_delivery(self, aggregator):
        """Test that a delivered record is already visible in all()."""
        observed = []
        done = threading.Event()

        def callback(record):
            observed.append(record in aggregator.all())
            done.set()

        aggregator.subscribe(callback=callback)
        aggregator.report("x")

        assert done.wait(2)
        assert observed == [True]

    def test_no_replay_for_late_subscribers(self, aggregator):
        """Test that past records are not streamed to new subscribers."""
        aggregator.report("past")
        subscription = aggregator.subscribe()

        assert subscription.get(timeout=0.05) is None

        current = aggregator.report("current")
        assert subscription.get(timeout=1) is current

    def test_notify_false_skips_subscribers(self, aggregator):
        """Test that notify=False only stores the record."""
        subscription = aggregator.subscribe()

        aggregator.report("x", notify=False)

        assert subscription.pending == 0
        assert len(aggregator) == 1

    def test_unsubscribe_stops_delivery_only_for_that_subscriber(self, aggregator):
        """Test that cancelling one subscription leaves others working."""
        leaving = aggregator.subscribe()
        staying = aggregator.subscribe()

        aggregator.unsubscribe(leaving)
        record = aggregator.report("x")

        assert leaving.drain() == []
        assert staying.drain() == [record]
        assert aggregator.subscriber_count == 1

    def test_unsubscribe_mid_delivery(self, aggregator):
        """Test one subscriber cancelling itself while a record is delivered."""
        received = []
        done = threading.Event()
        holder = {}

        def leave(record):
            holder["leaving"].cancel()

        def stay(record):
            received.append(record)
            done.set()

        holder["leaving"] = aggregator.subscribe(callback=leave)
        aggregator.subscribe(callback=stay)

        record = aggregator.report("x")

        assert done.wait(2)
        assert received == [record]
        holder["leaving"].join(timeout=2)
        assert holder["leaving"].closed
        assert aggregator.subscriber_count == 1

    def test_cancel_concurrent_with_publish(self, aggregator):
        """Test that cancelling while reports are in flight never raises."""
        subscriptions = [aggregator.subscribe() for _ in range(20)]
        errors = []

        def publish():
            try:
                for i in range(200):
                    aggregator.report(str(i), log=False)
            except Exception as e:
                errors.append(e)

        publisher = threading.Thread(target=publish)
        publisher.start()
        for subscription in subscriptions:
            subscription.cancel()
        publisher.join(timeout=10)

        assert errors == []
        assert aggregator.subscriber_count == 0

    def test_subscribe_from_inside_callback(self, aggregator):
        """Test adding a subscription from a delivery handler."""
        created = []
        done = threading.Event()

        def callback(record):
            if not created:
                created.append(aggregator.subscribe())
                done.set()

        aggregator.subscribe(callback=callback)
        aggregator.report("first")
        assert done.wait(2)

        second = aggregator.report("second")
        assert created[0].get(timeout=1) is second

    def test_overflow_records_metric(self, aggregator, metrics, logger):
        """Test that dropped deliveries are counted and logged."""
        subscription = aggregator.subscribe(maxsize=1)

        aggregator.report("1")
        aggregator.report("2")

        assert subscription.dropped == 1
        assert metrics.get_counter_total("error_deliveries_dropped_total") == 1
        assert logger.has_log("record dropped", level="WARNING")

    def test_subscriber_gauge(self, aggregator, metrics):
        """Test the live subscription gauge."""
        subscription = aggregator.subscribe()
        assert metrics.get_gauge_value("error_subscribers") == 1

        subscription.cancel()
        assert metrics.get_gauge_value("error_subscribers") == 0

    def test_subscriptions_survive_clear(self, aggregator):
        """Test that clear() leaves subscriptions working."""
        subscription = aggregator.subscribe()
        aggregator.clear()

        record = aggregator.report("after clear")

        assert subscription.get(timeout=1) is record


class TestTeardown:
    """Tests for close()."""

    def test_close_ends_streams(self, logger):
        """Test that close finishes every subscription after delivered records."""
        aggregator = ErrorAggregator(logger=logger)
        subscription = aggregator.subscribe()
        record = aggregator.report("before close")

        aggregator.close()

        assert aggregator.closed
        assert list(subscription) == [record]
        assert subscription.closed
        assert aggregator.subscriber_count == 0

    def test_close_is_idempotent(self, logger, sink):
        """Test that repeated close calls are no-ops."""
        aggregator = ErrorAggregator(logger=logger, sinks=[sink])

        aggregator.close()
        aggregator.close()

        assert sink.closed
        closed_logs = [log for log in logger.get_logs() if log["message"] == "Error aggregator closed"]
        assert len(closed_logs) == 1

    def test_report_after_close_is_stored_not_delivered(self, logger, sink):
        """Test the Closed state."""
        aggregator = ErrorAggregator(logger=logger, sinks=[sink])
        subscription = aggregator.subscribe()
        aggregator.close()

        record = aggregator.report("late")

        assert aggregator.recent(1) == [record]
        assert logger.has_log("ERROR [MEDIUM]")
        assert subscription.drain() == []

    def test_subscribe_after_close_returns_closed_handle(self, logger):
        """Test subscribing to a closed aggregator."""
        aggregator = ErrorAggregator(logger=logger)
        aggregator.close()

        subscription = aggregator.subscribe()

        assert subscription.closed
        assert subscription.get(timeout=0.01) is None
        assert aggregator.subscriber_count == 0
