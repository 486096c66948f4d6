"""
Unit tests for BatchWriteRetryCoordinator.

Covers:
- Fast path (no failures, no lock, no sleep)
- Resubmission of exactly the failed subset, in original order
- Retry ceiling and max_retries=0
- Transport failures on the first vs. a later attempt
- Backoff growth and reset on partial progress
- Lock granularity (held only for backoff, shared across calls)
"""

import threading
import time

import pytest

from conftest import ScriptedSender, all_fail, all_ok, err, fail_payloads, ok, records
from dis_client.backoff import BackoffProfile
from dis_client.errors import TransportFailure
from dis_client.models import RetryOutcome
from dis_client.retry import BatchWriteRetryCoordinator

PROFILE = BackoffProfile(initial_interval_ms=10, multiplier=2.0, max_interval_ms=80)


def make(sender, spy_lock=None, sleeps=None, backoff=PROFILE, **kw):
    return BatchWriteRetryCoordinator(
        sender,
        backoff,
        lock=spy_lock,
        sleep=sleeps if sleeps is not None else (lambda s: None),
        **kw,
    )


class TestFastPath:
    def test_all_succeed_first_time(self, spy_lock, sleeps):
        sender = ScriptedSender(all_ok)
        res = make(sender, spy_lock, sleeps).submit_with_retry("s", records(5), max_retries=3)

        assert res.failed_count == 0
        assert res.outcome is RetryOutcome.COMPLETED
        assert res.attempts == 1
        assert len(res.records) == 5
        assert len(sender.calls) == 1
        assert spy_lock.acquired == 0
        assert sleeps.sleeps == []


class TestPartialFailure:
    def test_resubmits_only_failed_records_in_order(self, spy_lock, sleeps):
        sender = ScriptedSender(fail_payloads(b"r2", b"r5", b"r9"), all_ok)
        res = make(sender, spy_lock, sleeps).submit_with_retry("s", records(10), max_retries=3)

        assert sender.calls[1] == [b"r2", b"r5", b"r9"]
        assert res.failed_count == 0
        assert res.outcome is RetryOutcome.COMPLETED
        assert res.attempts == 2
        assert len(res.records) == 10
        assert all(not r.failed for r in res.records)
        assert spy_lock.acquired == 1

    def test_results_aligned_with_original_positions(self):
        def first(batch):
            # fail every odd record, tag successes with their payload
            return [
                err() if i % 2 else ok().model_copy(update={"sequence_number": r.data.decode()})
                for i, r in enumerate(batch)
            ]

        def second(batch):
            return [ok().model_copy(update={"sequence_number": r.data.decode()}) for r in batch]

        res = make(ScriptedSender(first, second)).submit_with_retry("s", records(6), max_retries=1)

        assert [r.sequence_number for r in res.records] == [f"r{i}" for i in range(6)]

    def test_failed_order_differs_from_submission_order(self):
        # only the last and first fail; the retry batch keeps original order
        sender = ScriptedSender(fail_payloads(b"r3", b"r0"), fail_payloads(b"r3"), all_ok)
        res = make(sender).submit_with_retry("s", records(4), max_retries=5)

        assert sender.calls[1] == [b"r0", b"r3"]
        assert sender.calls[2] == [b"r3"]
        assert res.failed_count == 0

    def test_pending_set_shrinks_monotonically(self):
        sender = ScriptedSender(
            fail_payloads(b"r1", b"r2", b"r4"),
            fail_payloads(b"r2", b"r4"),
            fail_payloads(b"r4"),
            all_ok,
        )
        make(sender).submit_with_retry("s", records(5), max_retries=5)

        for prev, nxt in zip(sender.calls, sender.calls[1:]):
            assert set(nxt) <= set(prev)

    def test_success_is_never_overwritten(self):
        results = [ok(), None]
        batch = list(enumerate(records(2)))
        retry = BatchWriteRetryCoordinator._absorb(batch, [err(), err()], results)

        assert not results[0].failed
        assert results[1].failed
        assert [idx for idx, _ in retry] == [1]


class TestCeiling:
    def test_max_retries_zero_returns_immediately(self, spy_lock, sleeps):
        sender = ScriptedSender(fail_payloads(b"r0", b"r3"))
        res = make(sender, spy_lock, sleeps).submit_with_retry("s", records(4), max_retries=0)

        assert len(sender.calls) == 1
        assert res.failed_count == 2
        assert res.outcome is RetryOutcome.RETRIES_EXHAUSTED
        assert [r.failed for r in res.records] == [True, False, False, True]
        assert spy_lock.acquired == 0
        assert sleeps.sleeps == []

    def test_attempts_never_exceed_ceiling(self, sleeps):
        sender = ScriptedSender(*([all_fail] * 10))
        res = make(sender, sleeps=sleeps).submit_with_retry("s", records(3), max_retries=3)

        assert len(sender.calls) == 4
        assert res.attempts == 4
        assert res.failed_count == 3
        assert res.outcome is RetryOutcome.RETRIES_EXHAUSTED
        assert len(sleeps.sleeps) == 3

    def test_elapsed_budget_stops_retrying(self, spy_lock, sleeps):
        sender = ScriptedSender(all_fail, all_ok)
        backoff = BackoffProfile(initial_interval_ms=10, max_interval_ms=80, max_elapsed_ms=0)
        res = make(sender, spy_lock, sleeps, backoff=backoff).submit_with_retry(
            "s", records(2), max_retries=5
        )

        assert len(sender.calls) == 1
        assert res.failed_count == 2
        assert res.outcome is RetryOutcome.RETRIES_EXHAUSTED
        assert sleeps.sleeps == []
        assert spy_lock.acquired == 1
        assert not spy_lock.held


class TestTransportFailures:
    def test_first_attempt_failure_propagates(self, spy_lock):
        sender = ScriptedSender(TransportFailure("connection refused"))
        with pytest.raises(TransportFailure, match="connection refused"):
            make(sender, spy_lock).submit_with_retry("s", records(3), max_retries=3)
        assert spy_lock.acquired == 0

    def test_late_failure_returns_partial_snapshot(self):
        sender = ScriptedSender(
            fail_payloads(b"r0", b"r2", b"r3", b"r5", b"r7"),
            TransportFailure("HTTP 503: service unavailable", status_code=503),
        )
        res = make(sender).submit_with_retry("s", records(8), max_retries=3)

        assert res.failed_count == 5
        assert res.outcome is RetryOutcome.ABORTED
        assert res.aborted
        assert res.error is not None and res.error.status_code == 503
        assert res.attempts == 1
        assert [r.failed for r in res.records] == [True, False, True, True, False, True, False, True]

    def test_result_count_mismatch_on_first_attempt_raises(self):
        sender = ScriptedSender(lambda batch: [ok()])
        with pytest.raises(TransportFailure, match="1 results for 3 records"):
            make(sender).submit_with_retry("s", records(3), max_retries=3)

    def test_other_exceptions_are_not_swallowed(self):
        sender = ScriptedSender(all_fail, ValueError("bug in sender"))
        with pytest.raises(ValueError):
            make(sender).submit_with_retry("s", records(2), max_retries=3)

    def test_aborted_result_converts_to_put_records_result(self):
        sender = ScriptedSender(all_fail, TransportFailure("reset by peer"))
        res = make(sender).submit_with_retry("s", records(2), max_retries=3)
        out = res.to_put_records_result()

        assert out.failed_record_count == 2
        assert out.outcome is RetryOutcome.ABORTED
        assert out.error == "reset by peer"
        assert len(out.records) == 2


class TestBackoff:
    def test_sleep_grows_without_progress(self, sleeps):
        sender = ScriptedSender(*([all_fail] * 6))
        make(sender, sleeps=sleeps).submit_with_retry("s", records(2), max_retries=5)

        assert sleeps.sleeps == pytest.approx([0.01, 0.02, 0.04, 0.08, 0.08])

    def test_partial_progress_resets_interval(self, sleeps):
        sender = ScriptedSender(
            all_fail,  # 4/4 fail
            all_fail,  # 4/4 fail -> keep growing
            fail_payloads(b"r0", b"r1"),  # 2/4 fail -> progress
            all_fail,  # 2/2 fail
            all_ok,
        )
        res = make(sender, sleeps=sleeps).submit_with_retry("s", records(4), max_retries=6)

        assert res.failed_count == 0
        assert sleeps.sleeps == pytest.approx([0.01, 0.02, 0.01, 0.02])


class TestLocking:
    def test_lock_not_held_during_send(self, spy_lock):
        def check(step):
            def _inner(batch):
                assert not spy_lock.held
                return step(batch)

            return _inner

        sender = ScriptedSender(check(all_fail), check(all_fail), check(all_ok))
        make(sender, spy_lock).submit_with_retry("s", records(2), max_retries=3)

        assert spy_lock.acquired == 2
        assert not spy_lock.held

    def test_lock_released_when_sleep_raises(self):
        lock = threading.Lock()

        def boom(_):
            raise RuntimeError("interrupted")

        coord = BatchWriteRetryCoordinator(ScriptedSender(all_fail), PROFILE, lock=lock, sleep=boom)
        with pytest.raises(RuntimeError):
            coord.submit_with_retry("s", records(1), max_retries=2)

        assert lock.acquire(blocking=False)
        lock.release()

    def test_backoff_sleeps_serialize_across_streams(self):
        active = 0
        max_active = 0
        guard = threading.Lock()

        def sleep(seconds):
            nonlocal active, max_active
            with guard:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.02)
            with guard:
                active -= 1

        seen: dict[str, int] = {}

        def sender(stream_name, batch):
            with guard:
                seen[stream_name] = seen.get(stream_name, 0) + 1
                first = seen[stream_name] == 1
            return all_fail(batch) if first else all_ok(batch)

        coord = BatchWriteRetryCoordinator(sender, PROFILE, sleep=sleep)
        results = {}

        def run(stream):
            results[stream] = coord.submit_with_retry(stream, records(3), max_retries=2)

        threads = [threading.Thread(target=run, args=(f"stream-{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_active == 1
        assert all(r.failed_count == 0 for r in results.values())


class TestValidation:
    def test_empty_records_rejected(self):
        with pytest.raises(ValueError):
            make(ScriptedSender()).submit_with_retry("s", [], max_retries=1)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            make(ScriptedSender()).submit_with_retry("s", records(1), max_retries=-1)
