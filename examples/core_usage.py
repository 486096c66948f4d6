"""
Example usage of the DIS client.

Writes a batch of records, checks which ones the service still rejected after
retries, then reads them back from the first partition.
"""

from dis_client import (
    BatchConfig,
    BatchProcessor,
    CursorType,
    DISClient,
    GetPartitionCursorRequest,
    GetRecordsRequest,
    PutRecordsRequest,
    PutRecordsRequestEntry,
)
from dis_client.utils import encode_json, now_ms


def put_records_example(dis: DISClient, stream: str):
    """Put a batch and inspect per-record results."""
    print("=== Put records ===")

    records = [
        PutRecordsRequestEntry(
            data=encode_json({"symbol": symbol, "price": price}),
            partition_key=symbol,
            timestamp=now_ms(),
        )
        for symbol, price in [("AAPL", 150.5), ("MSFT", 300.5), ("GOOG", 140.2)]
    ]
    result = dis.put_records(PutRecordsRequest(stream_name=stream, records=records))

    print(f"Outcome: {result.outcome} after {result.attempts} attempts")
    for i, entry in enumerate(result.records):
        if entry.failed:
            print(f"  record {i} rejected: {entry.error_code} {entry.error_message}")
        else:
            print(f"  record {i} -> {entry.partition_id} seq={entry.sequence_number}")


def batch_example(dis: DISClient, stream: str):
    """Buffer records and let the processor flush them."""
    print("=== Batch processor ===")

    with BatchProcessor(dis, BatchConfig(max_rows=100, max_ms=2000)) as bp:
        for i in range(250):
            bp.add(stream, encode_json({"i": i}), partition_key=str(i % 4))
    print(f"Sent: {bp.sent}, failed: {bp.failed}")


def read_example(dis: DISClient, stream: str):
    print("=== Get records ===")

    cursor = dis.get_partition_cursor(
        GetPartitionCursorRequest(
            stream_name=stream,
            partition_id="shardId-0000000000",
            cursor_type=CursorType.TRIM_HORIZON,
        )
    ).partition_cursor
    res = dis.get_records(GetRecordsRequest(partition_cursor=cursor))
    for r in res.records[:10]:
        print(f"  {r.sequence_number}: {r.data!r}")


if __name__ == "__main__":
    # endpoint, project id and region come from DIS_* environment variables
    with DISClient() as dis:
        put_records_example(dis, "demo-stream")
        batch_example(dis, "demo-stream")
        read_example(dis, "demo-stream")
