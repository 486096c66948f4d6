from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from time import monotonic
from typing import Optional

from loguru import logger

from .client import DISClient
from .models import PutRecordsRequest, PutRecordsRequestEntry, PutRecordsResult


@dataclass(frozen=True)
class BatchConfig:
    """Simple size/time/bytes flush thresholds."""

    max_rows: int = 500  # flush after N records across all streams
    max_ms: int = 5000  # or flush after this many ms
    max_bytes: int = 4_194_304  # or flush after ~4MB of payload


class BatchProcessor:
    """
    Tiny sync batcher for high-throughput writes via DISClient.

    Usage:
        dis = DISClient({...})
        bp = BatchProcessor(dis, BatchConfig(max_rows=1000, max_ms=2000))
        for payload in payloads:
            bp.add("my-stream", payload, partition_key="k")
        bp.close()  # final flush
    """

    def __init__(self, client: DISClient, config: Optional[BatchConfig] = None):
        self._client = client
        self._cfg = config or BatchConfig()
        self._t0 = monotonic()

        self._buffers: dict[str, list[PutRecordsRequestEntry]] = defaultdict(list)
        self._rows = 0
        self._bytes = 0

        self.sent = 0
        self.failed = 0
        self.last_results: dict[str, PutRecordsResult] = {}

    # --------------------------- public API

    def add(
        self,
        stream_name: str,
        data: bytes,
        *,
        partition_key: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        self.add_entry(
            stream_name,
            PutRecordsRequestEntry(data=data, partition_key=partition_key, timestamp=timestamp),
        )

    def add_entry(self, stream_name: str, entry: PutRecordsRequestEntry) -> None:
        self._buffers[stream_name].append(entry)
        self._rows += 1
        self._bytes += len(entry.data)
        self._maybe_flush()

    def flush(self) -> int:
        """Flush all buffers. Returns records accepted by the service."""
        accepted = 0
        for stream_name in list(self._buffers):
            records = self._buffers[stream_name]
            if not records:
                del self._buffers[stream_name]
                continue
            # buffer stays in place if the write raises
            result = self._client.put_records(
                PutRecordsRequest(stream_name=stream_name, records=records)
            )
            del self._buffers[stream_name]
            self._rows -= len(records)
            self._bytes -= sum(len(r.data) for r in records)
            self.last_results[stream_name] = result
            accepted += len(records) - result.failed_record_count
            self.sent += len(records) - result.failed_record_count
            self.failed += result.failed_record_count
            if result.failed_record_count:
                logger.warning(
                    f"Batch flush to {stream_name}: {result.failed_record_count} records dropped"
                )

        self._t0 = monotonic()
        return accepted

    def close(self) -> int:
        """Flush remaining records; safe to call multiple times."""
        return self.flush()

    def __enter__(self) -> "BatchProcessor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------- internals

    def _maybe_flush(self) -> None:
        if self._rows >= self._cfg.max_rows:
            self.flush()
            return
        if self._bytes >= self._cfg.max_bytes:
            self.flush()
            return
        elapsed_ms = (monotonic() - self._t0) * 1000.0
        if elapsed_ms >= self._cfg.max_ms:
            self.flush()
