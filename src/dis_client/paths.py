"""REST resource paths of the DIS API (``/v2/{project_id}/...``)."""

from __future__ import annotations

from urllib.parse import quote

API_VERSION = "v2"


class ResourcePathBuilder:
    """
    Builds resource paths segment by segment.

    Usage:
        ResourcePathBuilder(project_id).streams("my-stream").build()
        # -> "/v2/<project_id>/streams/my-stream"
    """

    def __init__(self, project_id: str):
        if not project_id:
            raise ValueError("project_id required")
        self._segments: list[str] = [API_VERSION, project_id]

    def _add(self, resource: str, name: str | None = None) -> "ResourcePathBuilder":
        self._segments.append(resource)
        if name:
            self._segments.append(name)
        return self

    def streams(self, stream_name: str | None = None) -> "ResourcePathBuilder":
        return self._add("streams", stream_name)

    def records(self) -> "ResourcePathBuilder":
        return self._add("records")

    def cursors(self) -> "ResourcePathBuilder":
        return self._add("cursors")

    def build(self) -> str:
        return "/" + "/".join(quote(s, safe="") for s in self._segments)


def records_path(project_id: str) -> str:
    return ResourcePathBuilder(project_id).records().build()


def cursors_path(project_id: str) -> str:
    return ResourcePathBuilder(project_id).cursors().build()


def streams_path(project_id: str, stream_name: str | None = None) -> str:
    return ResourcePathBuilder(project_id).streams(stream_name).build()
