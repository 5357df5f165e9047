"""Data models for dockerdash."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dockerdash.charts import format_ports


def _short_id(raw_id: str) -> str:
    return raw_id.removeprefix("sha256:")[:12]


@dataclass(slots=True, frozen=True)
class ContainerSummary:
    """One row of the container list."""

    id: str
    name: str
    image: str
    status: str  # "Up 2 hours", "Exited (0) 3 days ago"
    state: str  # 'running', 'exited', 'paused', ...
    ports: str
    created: int  # epoch seconds
    labels: dict[str, str] = field(default_factory=lambda: {})

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ContainerSummary:
        names = raw.get("Names") or [raw.get("Id", "")[:12]]
        return cls(
            id=raw.get("Id", "")[:12],
            name=names[0].lstrip("/"),
            image=raw.get("Image", ""),
            status=raw.get("Status", ""),
            state=raw.get("State", ""),
            ports=format_ports(raw.get("Ports")),
            created=int(raw.get("Created") or 0),
            labels=dict(raw.get("Labels") or {}),
        )

    @property
    def running(self) -> bool:
        return self.state == "running"


@dataclass(slots=True, frozen=True)
class ImageSummary:
    id: str
    repository: str
    tag: str
    size: int  # bytes
    created: int  # epoch seconds

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ImageSummary:
        repo_tags = raw.get("RepoTags") or ["<none>:<none>"]
        repository, _, tag = repo_tags[0].rpartition(":")
        if not repository:
            repository, tag = tag, ""
        return cls(
            id=_short_id(raw.get("Id", "")),
            repository=repository or "<none>",
            tag=tag or "<none>",
            size=int(raw.get("Size") or 0),
            created=int(raw.get("Created") or 0),
        )

    @property
    def created_date(self) -> str:
        return datetime.fromtimestamp(self.created).strftime("%Y-%m-%d")


@dataclass(slots=True, frozen=True)
class ImageLayer:
    id: str
    created: int
    created_by: str
    size: int

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ImageLayer:
        layer_id = raw.get("Id") or ""
        return cls(
            id=_short_id(layer_id) if layer_id and layer_id != "<missing>" else "<missing>",
            created=int(raw.get("Created") or 0),
            created_by=raw.get("CreatedBy") or "",
            size=int(raw.get("Size") or 0),
        )


@dataclass(slots=True, frozen=True)
class VolumeSummary:
    name: str
    driver: str
    mountpoint: str
    scope: str
    created_at: str
    labels: dict[str, str] = field(default_factory=lambda: {})

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> VolumeSummary:
        return cls(
            name=raw.get("Name", ""),
            driver=raw.get("Driver", ""),
            mountpoint=raw.get("Mountpoint", ""),
            scope=raw.get("Scope", ""),
            created_at=raw.get("CreatedAt", ""),
            labels=dict(raw.get("Labels") or {}),
        )


SYSTEM_NETWORKS = frozenset({"bridge", "host", "none"})


@dataclass(slots=True, frozen=True)
class NetworkSummary:
    id: str
    name: str
    driver: str
    scope: str
    internal: bool
    containers: int
    labels: dict[str, str] = field(default_factory=lambda: {})

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> NetworkSummary:
        return cls(
            id=raw.get("Id", ""),
            name=raw.get("Name", ""),
            driver=raw.get("Driver", ""),
            scope=raw.get("Scope", ""),
            internal=bool(raw.get("Internal")),
            containers=len(raw.get("Containers") or {}),
            labels=dict(raw.get("Labels") or {}),
        )

    @property
    def is_system(self) -> bool:
        return self.name in SYSTEM_NETWORKS


@dataclass(slots=True, frozen=True)
class ComposeInfo:
    """Compose project metadata read from a container's labels."""

    project: str
    service: str | None
    working_dir: str | None
    config_files: list[str] = field(default_factory=lambda: [])
