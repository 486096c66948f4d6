from __future__ import annotations

import time
from typing import Any, Callable, ContextManager, Optional, Sequence, Union

import httpx
from loguru import logger
from pydantic import ValidationError

from . import paths
from .config import DISConfig, build_config
from .crypto import PayloadCipher
from .errors import TransportFailure
from .metrics import PUT_RECORDS_TOTAL, RECORDS_FAILED_TOTAL
from .models import (
    CreateStreamRequest,
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
)
from .retry import BatchWriteRetryCoordinator
from .transport import RestTransport


class DISClient:
    """
    Synchronous DIS client.

    Usage:
        with DISClient({"endpoint": "https://dis.example.com", "project_id": "...",
                        "region": "eu-west-0"}) as dis:
            dis.put_records(PutRecordsRequest(stream_name="s", records=[...]))

    ``put_records`` retries the failed subset of a batch (see
    ``BatchWriteRetryCoordinator``); check ``failed_record_count`` on the
    result to learn whether every record was accepted.
    """

    def __init__(
        self,
        config: Union[DISConfig, dict[str, Any], None] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        auth: Optional[httpx.Auth] = None,
        retry_lock: Optional[ContextManager] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        cfg = build_config(config)
        cfg.check()
        self._cfg = cfg
        self._transport = RestTransport(cfg, http_client=http_client, auth=auth)
        self._cipher = PayloadCipher(cfg.data_password) if cfg.encrypt_enabled else None
        self._retry = BatchWriteRetryCoordinator(
            self._send_records,
            cfg.backoff_profile(),
            lock=retry_lock,
            sleep=sleep,
        )

    @property
    def config(self) -> DISConfig:
        return self._cfg

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "DISClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------- internal helpers ----------

    def _records_path(self) -> str:
        return paths.records_path(self._cfg.project_id)

    def _send_records(
        self, stream_name: str, records: Sequence[PutRecordsRequestEntry]
    ) -> list[PutRecordsResultEntry]:
        body = PutRecordsRequest(stream_name=stream_name, records=list(records)).model_dump(
            mode="json", exclude_none=True
        )
        resp = self._transport.request(
            "POST",
            self._cfg.endpoint,
            self._records_path(),
            json=body,
            operation="put_records",
        )
        try:
            return PutRecordsResult.model_validate(resp).records
        except ValidationError as e:
            raise TransportFailure(f"invalid put_records response: {e}") from e

    def _encrypt(self, records: Sequence[PutRecordsRequestEntry]) -> list[PutRecordsRequestEntry]:
        if self._cipher is None:
            return list(records)
        return [r.model_copy(update={"data": self._cipher.encrypt(r.data)}) for r in records]

    # ---------- writes ----------

    def put_records(self, request: PutRecordsRequest) -> PutRecordsResult:
        if not request.records:
            return PutRecordsResult()

        # encrypt once so every retry resends the same ciphertext
        records = self._encrypt(request.records)
        outcome = self._retry.submit_with_retry(
            request.stream_name, records, self._cfg.records_retries
        )

        PUT_RECORDS_TOTAL.labels(stream=request.stream_name, outcome=outcome.outcome.value).inc()
        if outcome.failed_count:
            RECORDS_FAILED_TOTAL.labels(stream=request.stream_name).inc(outcome.failed_count)
            logger.warning(
                f"Put records to {request.stream_name}: {outcome.failed_count} of "
                f"{len(records)} failed ({outcome.outcome.value}, {outcome.attempts} attempts)"
            )
        return outcome.to_put_records_result()

    def put_record(self, request: PutRecordRequest) -> Optional[PutRecordResult]:
        """
        Put a single record through the batch path.

        Returns None if the service returned no entry; raises TransportFailure
        if the record was still rejected after retries.
        """
        entry = PutRecordsRequestEntry(
            data=request.data,
            partition_key=request.partition_key,
            explicit_hash_key=request.explicit_hash_key,
            timestamp=request.timestamp,
        )
        result = self.put_records(
            PutRecordsRequest(stream_name=request.stream_name, records=[entry])
        )
        if not result.records:
            return None
        first = result.records[0]
        if first.failed:
            raise TransportFailure(
                f"put record to {request.stream_name} failed: {first.error_message}",
                error_code=first.error_code,
            )
        return PutRecordResult(partition_id=first.partition_id, sequence_number=first.sequence_number)

    # ---------- reads ----------

    def get_partition_cursor(self, request: GetPartitionCursorRequest) -> GetPartitionCursorResult:
        resp = self._transport.request(
            "GET",
            self._cfg.endpoint,
            paths.cursors_path(self._cfg.project_id),
            params=request.model_dump(mode="json", by_alias=True, exclude_none=True),
            operation="get_partition_cursor",
        )
        return GetPartitionCursorResult.model_validate(resp)

    def get_records(self, request: GetRecordsRequest) -> GetRecordsResult:
        resp = self._transport.request(
            "GET",
            self._cfg.endpoint,
            self._records_path(),
            params=request.model_dump(mode="json", by_alias=True, exclude_none=True),
            operation="get_records",
        )
        result = GetRecordsResult.model_validate(resp)
        if self._cipher is not None:
            result.records = [
                r.model_copy(update={"data": self._cipher.decrypt(r.data)}) for r in result.records
            ]
        return result

    # ---------- streams ----------

    def create_stream(self, request: CreateStreamRequest) -> None:
        self._transport.request(
            "POST",
            self._cfg.manager_endpoint,
            paths.streams_path(self._cfg.project_id),
            json=request.model_dump(mode="json", exclude_none=True),
            operation="create_stream",
        )
        logger.info(f"Created stream {request.stream_name} ({request.partition_count} partitions)")

    def describe_stream(self, request: DescribeStreamRequest) -> DescribeStreamResult:
        resp = self._transport.request(
            "GET",
            self._cfg.manager_endpoint,
            paths.streams_path(self._cfg.project_id, request.stream_name),
            params=request.model_dump(
                mode="json", by_alias=True, exclude_none=True, exclude={"stream_name"}
            ),
            operation="describe_stream",
        )
        return DescribeStreamResult.model_validate(resp)

    def delete_stream(self, request: DeleteStreamRequest) -> None:
        self._transport.request(
            "DELETE",
            self._cfg.manager_endpoint,
            paths.streams_path(self._cfg.project_id, request.stream_name),
            operation="delete_stream",
        )
        logger.info(f"Deleted stream {request.stream_name}")

    def list_streams(self, request: Optional[ListStreamsRequest] = None) -> ListStreamsResult:
        request = request or ListStreamsRequest()
        resp = self._transport.request(
            "GET",
            self._cfg.manager_endpoint,
            paths.streams_path(self._cfg.project_id),
            params=request.model_dump(mode="json", exclude_none=True),
            operation="list_streams",
        )
        return ListStreamsResult.model_validate(resp)
