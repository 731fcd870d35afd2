"""Bounded batch persistence into the key-value store.

Records are encoded and accumulated per table. A table's batch is flushed as
one ``BatchWriteItem`` request as soon as it reaches capacity, and every
partial batch is flushed by :meth:`BatchPersister.drain` at end of stream.

Items the store hands back as unprocessed (throttling) are re-sent with
exponential backoff. Once the retry policy is exhausted the rejected items are
surfaced as :class:`StoreRejectionError` instead of being dropped.

With an executor, flushes run as tasks and are joined explicitly in
``drain``; without one they run inline and errors surface from ``submit``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from contracts.errors import IngestError, StoreRejectionError, UnknownOutcomeError
from pipeline.record_encoder import to_write_request

logger = logging.getLogger(__name__)

# BatchWriteItem hard limit.
DYNAMO_MAX_BATCH_WRITE_ITEM = 25

WriteRequest = Dict[str, Any]


class BatchWriteStore(Protocol):
    def batch_write(self, table: str, requests: Sequence[WriteRequest]) -> List[WriteRequest]:
        """Send one batch request; return the unprocessed requests."""


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for unprocessed batch items."""

    max_attempts: int = 5
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))


@dataclass
class FlushOutcome:
    table: str
    submitted: int
    written: int = 0
    attempts: int = 0
    retried: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PersistStats:
    submitted: int = 0
    flushes: int = 0
    written: int = 0
    retried_items: int = 0
    failed_flushes: int = 0
    outcomes: List[FlushOutcome] = field(default_factory=list)


def validate_capacity(capacity: int) -> int:
    cap = int(capacity)
    if cap < 1 or cap > DYNAMO_MAX_BATCH_WRITE_ITEM:
        raise ValueError(
            f"batch capacity must be between 1 and {DYNAMO_MAX_BATCH_WRITE_ITEM}, got {capacity}"
        )
    return cap


class BatchPersister:
    """
    Accumulates encoded records per table and writes them in bounded batches.

    Usage:
      persister = BatchPersister(store, capacity=25)
      for rec in records:
          persister.submit("reports", rec)
      stats = persister.drain()
    """

    def __init__(
        self,
        store: BatchWriteStore,
        *,
        capacity: int = DYNAMO_MAX_BATCH_WRITE_ITEM,
        retry: RetryPolicy = RetryPolicy(),
        executor: Optional[Executor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._capacity = validate_capacity(capacity)
        self._retry = retry
        self._executor = executor
        self._sleep = sleep
        self._batches: Dict[str, List[WriteRequest]] = {}
        self._tasks: List[tuple[str, int, Future]] = []
        self._cancelled = False
        self.stats = PersistStats()

    @property
    def capacity(self) -> int:
        return self._capacity

    def pending(self, table: str) -> int:
        """Number of records accumulated (not yet flushed) for ``table``."""
        return len(self._batches.get(table, ()))

    def submit(self, table: str, record: Any) -> None:
        """
        Encode ``record`` and add it to the table's batch, flushing when full.

        EncodingError is raised before anything is added to the batch.
        """
        if self._cancelled:
            raise RuntimeError("persister was cancelled; no further submissions accepted")
        if not table:
            raise ValueError("table name must be non-empty")

        request = to_write_request(record)
        batch = self._batches.setdefault(table, [])
        batch.append(request)
        self.stats.submitted += 1

        if len(batch) >= self._capacity:
            self.flush(table)

    def flush(self, table: str, forced: bool = False) -> Optional[FlushOutcome]:
        """
        Send the table's batch if it is full (or non-empty when ``forced``).

        Returns the outcome for inline flushes, None when nothing was sent or
        when the flush was handed to the executor.
        """
        batch = self._batches.get(table) or []
        if not batch or (len(batch) < self._capacity and not forced):
            return None

        requests = list(batch)
        self._batches[table] = []
        self.stats.flushes += 1

        if self._executor is not None:
            future = self._executor.submit(self._send, table, requests)
            self._tasks.append((table, len(requests), future))
            return None

        outcome = self._send(table, requests)
        self._record(outcome)
        if outcome.error is not None:
            raise outcome.error
        return outcome

    def drain(self, timeout: Optional[float] = None) -> PersistStats:
        """
        Flush every partial batch, then join all flush tasks.

        Every table is flushed and every outcome collected before the first failure
        is raised. Tasks still running after ``timeout`` seconds raise
        UnknownOutcomeError. Stats cover the work since the previous drain; the
        persister starts the next round with fresh stats.
        """
        if not self._cancelled:
            for table in list(self._batches):
                try:
                    self.flush(table, forced=True)
                except IngestError:
                    # recorded in stats.outcomes by flush, raised below
                    continue

        tasks, self._tasks = self._tasks, []
        unknown: Dict[str, int] = {}
        if tasks:
            futures = [f for _, _, f in tasks]
            _done, not_done = wait(futures, timeout=timeout)
            for table, count, future in tasks:
                if future in not_done:
                    future.cancel()
                    unknown[table] = unknown.get(table, 0) + count
                    continue
                self._record(future.result())

        stats, self.stats = self.stats, PersistStats()
        if unknown:
            logger.error("batch writes unconfirmed: %s", unknown)
            raise UnknownOutcomeError(unknown)
        for outcome in stats.outcomes:
            if outcome.error is not None:
                raise outcome.error
        return stats

    def cancel(self) -> Dict[str, int]:
        """
        Stop accepting submissions and drop records that were never sent.

        Returns the number of dropped records per table. Already-issued flushes are
        still joined (and reported) by ``drain``.
        """
        self._cancelled = True
        dropped = {t: len(b) for t, b in self._batches.items() if b}
        self._batches.clear()
        if dropped:
            logger.warning("persister cancelled, unsent records dropped: %s", dropped)
        return dropped

    # -------------------------
    # Internal helpers
    # -------------------------

    def _record(self, outcome: FlushOutcome) -> None:
        self.stats.outcomes.append(outcome)
        self.stats.written += outcome.written
        self.stats.retried_items += outcome.retried
        if outcome.error is not None:
            self.stats.failed_flushes += 1

    def _send(self, table: str, requests: List[WriteRequest]) -> FlushOutcome:
        outcome = FlushOutcome(table=table, submitted=len(requests))
        remaining = requests
        try:
            while True:
                outcome.attempts += 1
                unprocessed = list(self._store.batch_write(table, remaining))
                outcome.written += len(remaining) - len(unprocessed)
                if not unprocessed:
                    break
                if outcome.attempts >= self._retry.max_attempts:
                    raise StoreRejectionError(table, unprocessed, attempts=outcome.attempts)
                outcome.retried += len(unprocessed)
                delay = self._retry.delay_for(outcome.attempts)
                logger.warning(
                    "%s item(s) unprocessed by %s, retrying in %.2fs (attempt %s/%s)",
                    len(unprocessed),
                    table,
                    delay,
                    outcome.attempts,
                    self._retry.max_attempts,
                )
                self._sleep(delay)
                remaining = unprocessed
        except IngestError as exc:
            outcome.error = exc
            logger.error("batch write to %s failed: %s", table, exc)
        return outcome
