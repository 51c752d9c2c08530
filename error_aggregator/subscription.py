# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Live, cancellable delivery channels for broadcast error records."""

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator

from .models import ErrorRecord

logger = logging.getLogger(__name__)

DROP_OLDEST = "drop_oldest"
DROP_NEWEST = "drop_newest"


class Subscription:
    """One subscriber's delivery channel.

    Records are buffered in a bounded channel owned by the subscription, so
    publishing never waits on the consumer. When the channel is full the
    overflow policy decides which record is lost: ``drop_oldest`` discards
    the oldest buffered record, ``drop_newest`` discards the incoming one.

    Records can be consumed by polling ``get()``, by iterating the
    subscription, or by passing a callback, which is then invoked on a
    dedicated daemon thread.
    """

    def __init__(
        self,
        subscription_id: str,
        maxsize: int = 0,
        overflow: str = DROP_OLDEST,
        callback: Callable[[ErrorRecord], None] | None = None,
        on_cancel: Callable[[str], None] | None = None,
        on_drop: Callable[["Subscription"], None] | None = None,
    ):
        """Initialize a subscription.

        Args:
            subscription_id: Registry key for this subscription
            maxsize: Channel capacity (0 means unbounded)
            overflow: "drop_oldest" or "drop_newest"
            callback: Optional handler run on a worker thread for each record
            on_cancel: Called with the subscription id when cancelled
            on_drop: Called each time a record is dropped on overflow

        Raises:
            ValueError: If overflow or maxsize is invalid
        """
        if overflow not in (DROP_OLDEST, DROP_NEWEST):
            raise ValueError(f"Invalid overflow policy: {overflow}")
        if maxsize < 0:
            raise ValueError("maxsize must be 0 or greater")

        self.id = subscription_id
        self.maxsize = maxsize
        self.overflow = overflow
        self.delivered = 0
        self.dropped = 0
        self._buffer: deque[ErrorRecord] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._callback = callback
        self._on_cancel = on_cancel
        self._on_drop = on_drop
        self._worker: threading.Thread | None = None

        if callback is not None:
            self._worker = threading.Thread(
                target=self._run_callback,
                name=f"error-subscription-{subscription_id}",
                daemon=True,
            )
            self._worker.start()

    @property
    def closed(self) -> bool:
        """True once the subscription has been cancelled or its source closed."""
        return self._closed

    @property
    def pending(self) -> int:
        """Number of records buffered but not yet consumed."""
        with self._cond:
            return len(self._buffer)

    def deliver(self, record: ErrorRecord) -> bool:
        """Offer a record to this channel without blocking.

        Args:
            record: The published record

        Returns:
            True if the record was buffered, False if the subscription is
            closed or the record was dropped
        """
        dropped = False
        with self._cond:
            if self._closed:
                return False
            if self.maxsize and len(self._buffer) >= self.maxsize:
                self.dropped += 1
                dropped = True
                if self.overflow == DROP_NEWEST:
                    accepted = False
                else:
                    self._buffer.popleft()
                    self._buffer.append(record)
                    accepted = True
            else:
                self._buffer.append(record)
                accepted = True
            if accepted:
                self.delivered += 1
                self._cond.notify()

        if dropped and self._on_drop is not None:
            try:
                self._on_drop(self)
            except Exception:
                logger.exception("Overflow handler failed for subscription %s", self.id)
        return accepted

    def get(self, timeout: float | None = None) -> ErrorRecord | None:
        """Take the next record from the channel.

        Args:
            timeout: Seconds to wait; None waits until a record arrives or
                the subscription closes

        Returns:
            The next record, or None on timeout or once closed and drained
        """
        with self._cond:
            self._cond.wait_for(lambda: self._buffer or self._closed, timeout=timeout)
            if self._buffer:
                return self._buffer.popleft()
            return None

    def drain(self) -> list[ErrorRecord]:
        """Take every buffered record without waiting."""
        with self._cond:
            records = list(self._buffer)
            self._buffer.clear()
            return records

    def cancel(self) -> None:
        """Stop delivery and release buffered records.

        Idempotent. Safe to call from inside this subscription's own
        callback and concurrently with a publish.
        """
        if self._on_cancel is not None:
            self._on_cancel(self.id)
        self._close(discard=True)

    def _close(self, discard: bool) -> None:
        # discard=False lets consumers drain what was already delivered
        with self._cond:
            self._closed = True
            if discard:
                self._buffer.clear()
            self._cond.notify_all()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the callback worker to finish after close."""
        if self._worker is not None and self._worker is not threading.current_thread():
            self._worker.join(timeout)

    def _run_callback(self) -> None:
        while True:
            record = self.get()
            if record is None:
                break
            try:
                self._callback(record)
            except Exception:
                logger.exception("Error subscriber callback failed for subscription %s", self.id)

    def __iter__(self) -> Iterator[ErrorRecord]:
        while True:
            record = self.get()
            if record is None:
                return
            yield record

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "active"
        return f"Subscription(id={self.id!r}, {state}, pending={self.pending})"
