"""
Pytest configuration and fixtures for dis-client.

Provides client configuration, a scripted batch sender, a spy lock and a
recording sleep so retry tests run instantly.
"""

from typing import Callable, Sequence, Union

import pytest

from dis_client.models import PutRecordsRequestEntry, PutRecordsResultEntry


@pytest.fixture
def mock_endpoint():
    """Mock DIS endpoint for testing."""
    return "https://dis.test.example.com"


@pytest.fixture
def mock_project_id():
    """Mock project ID for testing."""
    return "6b6a6a8a3e2e4a8e9c3d9ef0ffa4d111"


@pytest.fixture
def mock_config(mock_endpoint, mock_project_id):
    """Mock configuration for testing."""
    return {
        "endpoint": mock_endpoint,
        "project_id": mock_project_id,
        "region": "test-region-1",
        "records_retries": 3,
        "backoff_initial_interval_ms": 10,
        "backoff_max_interval_ms": 80,
    }


def ok(i: int = 0) -> PutRecordsResultEntry:
    return PutRecordsResultEntry(partition_id="shardId-0000000000", sequence_number=str(i))


def err(code: str = "DIS.4303", msg: str = "Exceeded traffic control limit") -> PutRecordsResultEntry:
    return PutRecordsResultEntry(error_code=code, error_message=msg)


def records(n: int) -> list[PutRecordsRequestEntry]:
    return [PutRecordsRequestEntry(data=f"r{i}".encode(), partition_key=f"k{i}") for i in range(n)]


Step = Union[Exception, Callable[[Sequence[PutRecordsRequestEntry]], list]]


class ScriptedSender:
    """
    Fake BatchSender. Each call consumes one step: an exception to raise, or a
    function mapping the submitted records to result entries.
    """

    def __init__(self, *steps: Step):
        self._steps = list(steps)
        self.calls: list[list[bytes]] = []

    def __call__(self, stream_name, batch):
        self.calls.append([r.data for r in batch])
        step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return step(batch)


def fail_payloads(*payloads: bytes):
    """Step that fails exactly the given payloads and accepts the rest."""

    def _step(batch):
        return [err() if r.data in payloads else ok(i) for i, r in enumerate(batch)]

    return _step


def all_ok(batch):
    return [ok(i) for i in range(len(batch))]


def all_fail(batch):
    return [err() for _ in batch]


class SpyLock:
    """Context-manager lock that counts acquisitions."""

    def __init__(self):
        self.acquired = 0
        self.held = False

    def __enter__(self):
        assert not self.held
        self.acquired += 1
        self.held = True
        return self

    def __exit__(self, *exc):
        self.held = False
        return False


class SleepRecorder:
    def __init__(self):
        self.sleeps: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def spy_lock():
    return SpyLock()


@pytest.fixture
def sleeps():
    return SleepRecorder()
