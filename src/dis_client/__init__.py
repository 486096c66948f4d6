"""
DIS Client Library

Python client for the DIS data-stream ingestion service: typed requests and
responses, single-record puts, record payload encryption and partial-failure
retry with exponential backoff for batch writes.

Usage:
    from dis_client import DISClient, PutRecordsRequest, PutRecordsRequestEntry

    dis = DISClient({"endpoint": "https://dis.example.com", "project_id": "...",
                     "region": "eu-west-0"})
    res = dis.put_records(
        PutRecordsRequest(
            stream_name="clicks",
            records=[PutRecordsRequestEntry(data=b"...", partition_key="user-1")],
        )
    )
    assert res.failed_record_count == 0
"""

from .backoff import BackoffProfile, BackoffTimer
from .client import DISClient
from .config import DISConfig
from .batch import BatchProcessor, BatchConfig
from .errors import DISClientError, TransportFailure, RetryableError
from .retry import BatchWriteRetryCoordinator, BatchWriteResult, BatchSender
from .models import (
    CreateStreamRequest,
    CursorType,
    DeleteStreamRequest,
    DescribeStreamRequest,
    DescribeStreamResult,
    GetPartitionCursorRequest,
    GetPartitionCursorResult,
    GetRecordsRequest,
    GetRecordsResult,
    ListStreamsRequest,
    ListStreamsResult,
    PutRecordRequest,
    PutRecordResult,
    PutRecordsRequest,
    PutRecordsRequestEntry,
    PutRecordsResult,
    PutRecordsResultEntry,
    Record,
    RetryOutcome,
    StreamType,
)

__version__ = "1.0.0"
__all__ = [
    "DISClient",
    "DISConfig",
    "BatchProcessor",
    "BatchConfig",
    "BackoffProfile",
    "BackoffTimer",
    "BatchWriteRetryCoordinator",
    "BatchWriteResult",
    "BatchSender",
    "DISClientError",
    "TransportFailure",
    "RetryableError",
    "RetryOutcome",
    "CreateStreamRequest",
    "CursorType",
    "DeleteStreamRequest",
    "DescribeStreamRequest",
    "DescribeStreamResult",
    "GetPartitionCursorRequest",
    "GetPartitionCursorResult",
    "GetRecordsRequest",
    "GetRecordsResult",
    "ListStreamsRequest",
    "ListStreamsResult",
    "PutRecordRequest",
    "PutRecordResult",
    "PutRecordsRequest",
    "PutRecordsRequestEntry",
    "PutRecordsResult",
    "PutRecordsResultEntry",
    "Record",
    "StreamType",
]
