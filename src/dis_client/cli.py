from __future__ import annotations

import json
from typing import Optional

import typer

from . import BatchConfig, BatchProcessor, DISClient
from .errors import DISClientError
from .models import (
    CreateStreamRequest,
    CursorType,
    DeleteStreamRequest,
    DescribeStreamRequest,
    GetPartitionCursorRequest,
    GetRecordsRequest,
    ListStreamsRequest,
    PutRecordRequest,
    StreamType,
)
from .utils import encode_json, iter_ndjson, now_ms, partition_key_for

app = typer.Typer(help="dis_client operational CLI")

# ---------------------------
# Common options
# ---------------------------


def endpoint_opt() -> Optional[str]:
    return typer.Option(None, "--endpoint", envvar="DIS_ENDPOINT", help="DIS data endpoint URL")


def project_opt() -> Optional[str]:
    return typer.Option(None, "--project-id", envvar="DIS_PROJECT_ID", help="Project id")


def region_opt() -> Optional[str]:
    return typer.Option(None, "--region", envvar="DIS_REGION", help="Region, e.g. eu-west-0")


def _client(endpoint: Optional[str], project_id: Optional[str], region: Optional[str]) -> DISClient:
    overrides = {"endpoint": endpoint, "project_id": project_id, "region": region}
    try:
        return DISClient({k: v for k, v in overrides.items() if v is not None})
    except DISClientError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2) from e


def _echo(obj) -> None:
    typer.echo(json.dumps(obj, indent=2, default=str))


# ---------------------------
# Writes
# ---------------------------


@app.command("put-record")
def put_record(
    stream: str = typer.Argument(..., help="Stream name"),
    data: str = typer.Argument(..., help="Record payload (UTF-8 text)"),
    partition_key: Optional[str] = typer.Option(None, "--partition-key"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    with _client(endpoint, project_id, region) as dis:
        res = dis.put_record(
            PutRecordRequest(
                stream_name=stream,
                data=data.encode("utf-8"),
                partition_key=partition_key,
                timestamp=now_ms(),
            )
        )
    _echo(res.model_dump() if res else None)


@app.command("put-ndjson")
def put_ndjson(
    stream: str = typer.Argument(..., help="Stream name"),
    path: str = typer.Argument(..., help="NDJSON file (.gz ok), one record per line"),
    key_field: Optional[str] = typer.Option(
        None, "--key-field", help="Field used as partition key (default: content hash)"
    ),
    max_rows: int = typer.Option(500, "--max-rows", help="Records per put-records call"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    with _client(endpoint, project_id, region) as dis:
        bp = BatchProcessor(dis, BatchConfig(max_rows=max_rows))
        for obj in iter_ndjson(path):
            bp.add(stream, encode_json(obj), partition_key=partition_key_for(obj, key_field))
        bp.close()
    _echo({"sent": bp.sent, "failed": bp.failed})
    if bp.failed:
        raise typer.Exit(code=1)


# ---------------------------
# Reads
# ---------------------------


@app.command("get-records")
def get_records(
    stream: str = typer.Argument(..., help="Stream name"),
    partition_id: str = typer.Option("shardId-0000000000", "--partition-id"),
    cursor_type: CursorType = typer.Option(CursorType.TRIM_HORIZON, "--cursor-type"),
    sequence_number: Optional[str] = typer.Option(None, "--sequence-number"),
    limit: int = typer.Option(100, "--limit", help="Stop after this many records"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    """Print records of one partition as NDJSON."""
    with _client(endpoint, project_id, region) as dis:
        cursor = dis.get_partition_cursor(
            GetPartitionCursorRequest(
                stream_name=stream,
                partition_id=partition_id,
                cursor_type=cursor_type,
                starting_sequence_number=sequence_number,
            )
        ).partition_cursor
        seen = 0
        while cursor and seen < limit:
            res = dis.get_records(GetRecordsRequest(partition_cursor=cursor))
            if not res.records:
                break
            for r in res.records[: limit - seen]:
                typer.echo(
                    json.dumps(
                        {
                            "sequence_number": r.sequence_number,
                            "partition_key": r.partition_key,
                            "timestamp": r.timestamp,
                            "data": r.data.decode("utf-8", errors="replace"),
                        }
                    )
                )
                seen += 1
            cursor = res.next_partition_cursor


# ---------------------------
# Stream management
# ---------------------------


@app.command("list-streams")
def list_streams(
    limit: Optional[int] = typer.Option(None, "--limit"),
    start: Optional[str] = typer.Option(None, "--start", help="Start after this stream name"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    with _client(endpoint, project_id, region) as dis:
        res = dis.list_streams(ListStreamsRequest(limit=limit, start_stream_name=start))
    _echo(res.model_dump())


@app.command("describe-stream")
def describe_stream(
    stream: str = typer.Argument(..., help="Stream name"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    with _client(endpoint, project_id, region) as dis:
        res = dis.describe_stream(DescribeStreamRequest(stream_name=stream))
    _echo(res.model_dump())


@app.command("create-stream")
def create_stream(
    stream: str = typer.Argument(..., help="Stream name"),
    partitions: int = typer.Option(1, "--partitions"),
    stream_type: StreamType = typer.Option(StreamType.COMMON, "--stream-type"),
    data_type: str = typer.Option("BLOB", "--data-type"),
    retention_hours: int = typer.Option(24, "--retention-hours"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    with _client(endpoint, project_id, region) as dis:
        dis.create_stream(
            CreateStreamRequest(
                stream_name=stream,
                partition_count=partitions,
                stream_type=stream_type,
                data_type=data_type,
                data_duration=retention_hours,
            )
        )
    typer.echo("ok")


@app.command("delete-stream")
def delete_stream(
    stream: str = typer.Argument(..., help="Stream name"),
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation"),
    endpoint: Optional[str] = endpoint_opt(),
    project_id: Optional[str] = project_opt(),
    region: Optional[str] = region_opt(),
):
    if not yes:
        typer.confirm(f"Delete stream {stream}?", abort=True)
    with _client(endpoint, project_id, region) as dis:
        dis.delete_stream(DeleteStreamRequest(stream_name=stream))
    typer.echo("ok")


if __name__ == "__main__":
    app()
