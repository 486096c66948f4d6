"""
Pydantic data models for the DIS client.

Request models dump to the service's JSON wire format with
``model_dump(mode="json", by_alias=True, exclude_none=True)``; record payloads
are raw bytes in Python and base64 on the wire.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def _b64decode(v):
    if isinstance(v, str):
        return base64.b64decode(v)
    return v


class RetryOutcome(str, Enum):
    """How a retried put-records call ended."""

    COMPLETED = "completed"  # every record accepted
    RETRIES_EXHAUSTED = "retries_exhausted"  # ceiling/backoff budget hit, failures remain
    ABORTED = "aborted"  # transport failure during a retry, partial snapshot returned


class CursorType(str, Enum):
    AT_SEQUENCE_NUMBER = "AT_SEQUENCE_NUMBER"
    AFTER_SEQUENCE_NUMBER = "AFTER_SEQUENCE_NUMBER"
    TRIM_HORIZON = "TRIM_HORIZON"
    LATEST = "LATEST"
    AT_TIMESTAMP = "AT_TIMESTAMP"


class StreamType(str, Enum):
    COMMON = "COMMON"
    ADVANCED = "ADVANCED"


# ---------------------------------------------------------------- records


class PutRecordsRequestEntry(BaseModel):
    """A single record of a batch write."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    partition_key: Optional[str] = None
    explicit_hash_key: Optional[str] = None
    timestamp: Optional[int] = None  # ms since epoch

    @field_validator("data", mode="before")
    def _decode_data(cls, v):
        return _b64decode(v)

    @field_serializer("data", when_used="json")
    def _encode_data(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")


class PutRecordsRequest(BaseModel):
    stream_name: str
    records: list[PutRecordsRequestEntry] = Field(default_factory=list)

    @field_validator("stream_name")
    def _stream_name(cls, v):
        if not v or not v.strip():
            raise ValueError("stream_name must not be empty")
        return v


class PutRecordsResultEntry(BaseModel):
    """Per-record outcome. A non-empty ``error_code`` marks a failure."""

    partition_id: Optional[str] = None
    sequence_number: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return bool(self.error_code)


class PutRecordsResult(BaseModel):
    failed_record_count: int = 0
    records: list[PutRecordsResultEntry] = Field(default_factory=list)
    # client-side only; not part of the service response
    outcome: RetryOutcome = RetryOutcome.COMPLETED
    attempts: int = 1
    error: Optional[str] = None


class PutRecordRequest(BaseModel):
    """Single-record convenience request."""

    stream_name: str
    data: bytes
    partition_key: Optional[str] = None
    explicit_hash_key: Optional[str] = None
    timestamp: Optional[int] = None


class PutRecordResult(BaseModel):
    partition_id: Optional[str] = None
    sequence_number: Optional[str] = None


# ---------------------------------------------------------------- reads


class GetPartitionCursorRequest(BaseModel):
    stream_name: str = Field(serialization_alias="stream-name")
    partition_id: str = Field(serialization_alias="partition-id")
    cursor_type: CursorType = Field(CursorType.LATEST, serialization_alias="cursor-type")
    starting_sequence_number: Optional[str] = Field(
        None, serialization_alias="starting-sequence-number"
    )
    timestamp: Optional[int] = None

    @field_validator("timestamp")
    def _timestamp_positive(cls, v):
        if v is not None and v < 0:
            raise ValueError("timestamp must be >= 0")
        return v


class GetPartitionCursorResult(BaseModel):
    partition_cursor: str


class GetRecordsRequest(BaseModel):
    partition_cursor: str = Field(serialization_alias="partition-cursor")
    max_fetch_bytes: Optional[int] = None


class Record(BaseModel):
    """A record read back from a partition."""

    data: bytes
    sequence_number: Optional[str] = None
    partition_key: Optional[str] = None
    timestamp: Optional[int] = None
    timestamp_type: Optional[str] = None

    @field_validator("data", mode="before")
    def _decode_data(cls, v):
        return _b64decode(v)


class GetRecordsResult(BaseModel):
    records: list[Record] = Field(default_factory=list)
    next_partition_cursor: Optional[str] = None


# ---------------------------------------------------------------- streams


class CreateStreamRequest(BaseModel):
    stream_name: str
    partition_count: int
    stream_type: StreamType = StreamType.COMMON
    data_type: str = "BLOB"
    data_duration: int = 24  # hours

    @field_validator("partition_count")
    def _partitions(cls, v):
        if v <= 0:
            raise ValueError("partition_count must be positive")
        return v

    @field_validator("data_type")
    def _data_type(cls, v):
        valid = {"BLOB", "JSON", "CSV"}
        if v.upper() not in valid:
            raise ValueError(f"Invalid data_type: {v}. Must be one of {valid}")
        return v.upper()


class DescribeStreamRequest(BaseModel):
    stream_name: str
    start_partition_id: Optional[str] = Field(None, serialization_alias="start_partitionId")
    limit_partitions: Optional[int] = None


class PartitionResult(BaseModel):
    partition_id: str
    status: Optional[str] = None
    hash_range: Optional[str] = None
    sequence_number_range: Optional[str] = None


class DescribeStreamResult(BaseModel):
    stream_name: str
    status: Optional[str] = None
    stream_type: Optional[str] = None
    data_type: Optional[str] = None
    retention_period: Optional[int] = None
    create_time: Optional[int] = None
    last_modified_time: Optional[int] = None
    partitions: list[PartitionResult] = Field(default_factory=list)
    has_more_partitions: bool = False


class DeleteStreamRequest(BaseModel):
    stream_name: str


class ListStreamsRequest(BaseModel):
    limit: Optional[int] = None
    start_stream_name: Optional[str] = None


class ListStreamsResult(BaseModel):
    total_number: int = 0
    stream_names: list[str] = Field(default_factory=list)
    has_more_streams: bool = False
