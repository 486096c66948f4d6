"""
Partial-failure retry for batch writes.

A put-records call can succeed for some records and fail for others. The
coordinator resubmits only the failed subset, backing off exponentially
between attempts, until everything is accepted or the retry ceiling is hit.

Each record travels with its index in the caller's original sequence, so the
result of attempt *k* is always mapped back to the right slot no matter how
the retry batch shrank.

The backoff lock is owned by the coordinator instance (one per client) and is
not per stream: concurrent calls on the same client serialize their backoff
sleeps, which bounds retry storms against the service. It is held only while
scheduling and sleeping, never across a send.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional, Protocol, Sequence

from loguru import logger

from .backoff import BackoffProfile, BackoffTimer
from .errors import TransportFailure
from .metrics import BACKOFF_SLEEP_SECONDS, RETRY_ATTEMPTS_TOTAL
from .models import (
    PutRecordsRequestEntry,
    PutRecordsResult,
    PutRecordsResultEntry,
    RetryOutcome,
)

NOT_SENT_ERROR_CODE = "DIS.CLIENT.NOT_SENT"


class BatchSender(Protocol):
    """Sends one put-records request; one result entry per record, same order."""

    def __call__(
        self, stream_name: str, records: Sequence[PutRecordsRequestEntry]
    ) -> Sequence[PutRecordsResultEntry]: ...


@dataclass(frozen=True)
class BatchWriteResult:
    """Final state of a retried batch write, aligned with the input records."""

    records: list[PutRecordsResultEntry]
    failed_count: int
    attempts: int
    outcome: RetryOutcome
    error: Optional[TransportFailure] = None

    @property
    def aborted(self) -> bool:
        return self.outcome is RetryOutcome.ABORTED

    def to_put_records_result(self) -> PutRecordsResult:
        return PutRecordsResult(
            failed_record_count=self.failed_count,
            records=self.records,
            outcome=self.outcome,
            attempts=self.attempts,
            error=str(self.error) if self.error is not None else None,
        )


class BatchWriteRetryCoordinator:
    """
    Resubmits the failed subset of a batch with exponential backoff.

    Args:
        sender: Callable performing a single put-records request
        backoff: Backoff profile (default: ``BackoffProfile()``)
        lock: Mutual-exclusion primitive guarding backoff sleeps; shared by
            every call on this coordinator (default: ``threading.Lock()``)
        sleep: Blocking sleep in seconds (injectable for tests)
        clock: Monotonic clock in seconds, for the elapsed-time budget
    """

    def __init__(
        self,
        sender: BatchSender,
        backoff: Optional[BackoffProfile] = None,
        *,
        lock: Optional[ContextManager] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._send = sender
        self._backoff = backoff or BackoffProfile()
        self._lock = lock if lock is not None else threading.Lock()
        self._sleep = sleep
        self._clock = clock

    @property
    def backoff(self) -> BackoffProfile:
        return self._backoff

    def submit_with_retry(
        self,
        stream_name: str,
        records: Sequence[PutRecordsRequestEntry],
        max_retries: int,
    ) -> BatchWriteResult:
        """
        Send ``records`` and retry the failed ones up to ``max_retries`` times.

        A transport failure on the first attempt propagates. A transport
        failure on a later attempt ends the loop and returns the best-known
        results with outcome ``ABORTED``.
        """
        if not records:
            raise ValueError("records must not be empty")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        originals = list(records)
        results: list[Optional[PutRecordsResultEntry]] = [None] * len(originals)
        batch: list[tuple[int, PutRecordsRequestEntry]] = list(enumerate(originals))
        pending: Optional[list[int]] = None

        attempt = -1
        attempts_made = 0
        timer: Optional[BackoffTimer] = None
        last_submitted = 0
        last_failed = 0
        outcome = RetryOutcome.RETRIES_EXHAUSTED
        error: Optional[TransportFailure] = None

        while True:
            attempt += 1
            if attempt > 0:
                timer, sleep_ms = self._wait_before_retry(
                    timer, stream_name, attempt, last_submitted, last_failed
                )
                if sleep_ms is None:
                    logger.warning(
                        f"Backoff budget spent for {stream_name}: "
                        f"{len(pending or [])} records still failing after {attempts_made} attempts"
                    )
                    break
                RETRY_ATTEMPTS_TOTAL.labels(stream=stream_name).inc()

            try:
                entries = self._send_once(stream_name, batch)
            except TransportFailure as exc:
                if pending is None:
                    raise
                logger.error(
                    f"Put records retry {attempt} to {stream_name} failed, "
                    f"returning partial results: {exc}"
                )
                outcome = RetryOutcome.ABORTED
                error = exc
                break
            attempts_made += 1

            last_submitted = len(batch)
            batch = self._absorb(batch, entries, results)
            pending = [idx for idx, _ in batch]
            last_failed = len(pending)

            if not pending:
                outcome = RetryOutcome.COMPLETED
                break
            if attempt >= max_retries:
                if max_retries > 0:
                    logger.warning(
                        f"Put records to {stream_name}: {len(pending)} of {len(originals)} "
                        f"records still failing after {max_retries} retries"
                    )
                break

        if pending is None:
            # nothing was ever confirmed; report the whole batch as failed
            return BatchWriteResult(
                records=[
                    PutRecordsResultEntry(error_code=NOT_SENT_ERROR_CODE) for _ in originals
                ],
                failed_count=len(originals),
                attempts=attempts_made,
                outcome=outcome,
                error=error,
            )

        return BatchWriteResult(
            records=[
                r if r is not None else PutRecordsResultEntry(error_code=NOT_SENT_ERROR_CODE)
                for r in results
            ],
            failed_count=len(pending),
            attempts=attempts_made,
            outcome=outcome,
            error=error,
        )

    # --------------------------- internals

    def _send_once(
        self, stream_name: str, batch: list[tuple[int, PutRecordsRequestEntry]]
    ) -> Sequence[PutRecordsResultEntry]:
        entries = self._send(stream_name, [record for _, record in batch])
        if len(entries) != len(batch):
            raise TransportFailure(
                f"service returned {len(entries)} results for {len(batch)} records"
            )
        return entries

    @staticmethod
    def _absorb(
        batch: list[tuple[int, PutRecordsRequestEntry]],
        entries: Sequence[PutRecordsResultEntry],
        results: list[Optional[PutRecordsResultEntry]],
    ) -> list[tuple[int, PutRecordsRequestEntry]]:
        """Store this attempt's results; return the (index, record) pairs to resend."""
        retry: list[tuple[int, PutRecordsRequestEntry]] = []
        for (idx, record), entry in zip(batch, entries):
            current = results[idx]
            if current is not None and not current.failed:
                continue  # a success is final
            results[idx] = entry
            if entry.failed:
                retry.append((idx, record))
        return retry

    def _wait_before_retry(
        self,
        timer: Optional[BackoffTimer],
        stream_name: str,
        attempt: int,
        last_submitted: int,
        last_failed: int,
    ) -> tuple[BackoffTimer, Optional[int]]:
        with self._lock:
            logger.trace("Put records retry lock acquired.")
            try:
                if timer is None:
                    timer = self._backoff.timer(self._clock)
                elif last_failed != last_submitted:
                    # partial progress: retry sooner
                    timer.reset()

                sleep_ms = timer.next_sleep_ms()
                if sleep_ms is None:
                    return timer, None

                logger.debug(
                    f"Put {last_submitted} records but {last_failed} failed, will re-try "
                    f"after backoff {sleep_ms} ms, current retry count is {attempt}."
                )
                BACKOFF_SLEEP_SECONDS.observe(sleep_ms / 1000.0)
                self._sleep(sleep_ms / 1000.0)
                return timer, sleep_ms
            finally:
                logger.trace("Put records retry lock released.")
