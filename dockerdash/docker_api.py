"""Thin wrapper around the Docker Engine API (docker SDK).

All calls go through the low-level ``client.api`` so results are the raw
engine dicts; failures are re-raised as :class:`DockerError` carrying the
action name and the engine's message.
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import docker
import requests

from dockerdash.models import (
    ContainerSummary,
    ImageLayer,
    ImageSummary,
    NetworkSummary,
    VolumeSummary,
)

log = logging.getLogger(__name__)


class DockerError(Exception):
    """A Docker API call failed. ``str()`` is the user-facing message."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(f"{action}: {message}")
        self.action = action
        self.message = message


@contextlib.contextmanager
def _api_errors(action: str) -> Iterator[None]:
    try:
        yield
    except docker.errors.APIError as e:
        raise DockerError(action, str(e.explanation or e)) from e
    except docker.errors.DockerException as e:
        raise DockerError(action, str(e)) from e
    except requests.exceptions.ConnectionError as e:
        raise DockerError(action, f"cannot reach the Docker daemon ({e})") from e
    except requests.exceptions.RequestException as e:
        raise DockerError(action, f"request to the Docker daemon failed ({e})") from e


# ── Client ─────────────────────────────────────────────────────────────────

_client: docker.DockerClient | None = None


def socket_candidates() -> list[str]:
    """Unix socket paths to try, in order of preference."""
    home = Path.home()
    paths: list[str] = []
    host = os.environ.get("DOCKER_HOST", "")
    if host.startswith("unix://"):
        paths.append(host.removeprefix("unix://"))
    paths.extend(
        [
            str(home / ".docker" / "desktop" / "docker.sock"),  # Docker Desktop (Linux)
            "/var/run/docker.sock",
            str(home / ".docker" / "run" / "docker.sock"),  # Docker Desktop (macOS)
        ]
    )
    return paths


def find_socket() -> str:
    for path in socket_candidates():
        if os.path.exists(path):
            return path
    return "/var/run/docker.sock"


def get_client() -> docker.DockerClient:
    """Return the shared client, creating it on first use."""
    global _client
    if _client is None:
        host = os.environ.get("DOCKER_HOST", "")
        with _api_errors("connect to Docker"):
            if host and not host.startswith("unix://"):
                _client = docker.from_env()
            else:
                _client = docker.DockerClient(base_url=f"unix://{find_socket()}")
        log.debug("docker client created: %s", _client.api.base_url)
    return _client


def is_docker_running() -> bool:
    try:
        with _api_errors("ping"):
            return bool(get_client().ping())
    except DockerError as e:
        log.debug("docker ping failed: %s", e)
        return False


def get_docker_info() -> dict[str, Any]:
    with _api_errors("read version"):
        return get_client().api.version()


def get_system_info() -> dict[str, Any]:
    with _api_errors("read system info"):
        return get_client().api.info()


def get_disk_usage() -> dict[str, Any]:
    with _api_errors("read disk usage"):
        return get_client().api.df()


# ── Containers ─────────────────────────────────────────────────────────────


def list_containers(all: bool = True) -> list[ContainerSummary]:
    with _api_errors("list containers"):
        raw = get_client().api.containers(all=all)
    return [ContainerSummary.from_api(c) for c in raw]


def container_counts() -> dict[str, int]:
    containers = list_containers(all=True)
    running = sum(1 for c in containers if c.running)
    return {
        "running": running,
        "stopped": len(containers) - running,
        "total": len(containers),
    }


def start_container(ref: str) -> None:
    with _api_errors(f"start {ref}"):
        get_client().api.start(ref)


def stop_container(ref: str) -> None:
    with _api_errors(f"stop {ref}"):
        get_client().api.stop(ref)


def restart_container(ref: str) -> None:
    with _api_errors(f"restart {ref}"):
        get_client().api.restart(ref)


def remove_container(ref: str, force: bool = False) -> None:
    with _api_errors(f"remove {ref}"):
        get_client().api.remove_container(ref, force=force)


def inspect_container(ref: str) -> dict[str, Any]:
    with _api_errors(f"inspect {ref}"):
        return get_client().api.inspect_container(ref)


def create_container(config: dict[str, Any]) -> str:
    """Create a container from an inspect-style config. Returns the new id."""
    api = get_client().api
    with _api_errors(f"create {config.get('name', 'container')}"):
        created = api.create_container(
            image=config["image"],
            name=config.get("name"),
            hostname=config.get("hostname"),
            environment=config.get("environment"),
            command=config.get("command"),
            ports=config.get("ports"),
            host_config=config.get("host_config"),
            networking_config=config.get("networking_config"),
        )
    return created["Id"]


def get_container_stats_once(ref: str) -> dict[str, Any]:
    with _api_errors(f"read stats for {ref}"):
        return get_client().api.stats(ref, stream=False)


def detect_shell(ref: str) -> str:
    """Return the first usable shell inside the container."""
    api = get_client().api
    for shell in ("/bin/bash", "/bin/sh", "/bin/ash", "/bin/zsh"):
        try:
            with _api_errors(f"probe {shell}"):
                exec_id = api.exec_create(ref, ["test", "-x", shell])["Id"]
                api.exec_start(exec_id)
                if api.exec_inspect(exec_id).get("ExitCode") == 0:
                    return shell
        except DockerError as e:
            log.debug("shell probe failed: %s", e)
    return "/bin/sh"


# ── Streams ────────────────────────────────────────────────────────────────


class StatsStream:
    """Raw stats chunks for one container, closable from another thread.

    The SDK's stats generator has no cancel hook and cannot be closed from
    another thread while it is blocked in a read. ``close`` therefore only
    flags the stream: the connection is released lazily, when the reading
    thread wakes for the next chunk (the engine sends one per second), stops,
    and closes the generator.
    """

    def __init__(self, chunks: Iterator[bytes]) -> None:
        self._chunks = chunks
        self._closed = threading.Event()

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                if self._closed.is_set():
                    break
                yield chunk
        finally:
            close = getattr(self._chunks, "close", None)
            if close is not None:
                close()

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()


class LogStream:
    """Log byte chunks; ``close`` shuts the underlying socket immediately."""

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._stream)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._stream, "close", None)
        if close is not None:
            close()


def open_stats_stream(ref: str) -> StatsStream:
    with _api_errors(f"stream stats for {ref}"):
        chunks = get_client().api.stats(ref, stream=True, decode=False)
    return StatsStream(chunks)


def open_log_stream(
    ref: str, follow: bool = True, tail: int = 100, timestamps: bool = True
) -> LogStream:
    with _api_errors(f"stream logs for {ref}"):
        stream = get_client().api.logs(
            ref,
            stdout=True,
            stderr=True,
            stream=True,
            follow=follow,
            tail=tail,
            timestamps=timestamps,
        )
    return LogStream(stream)


def get_logs(ref: str, tail: int = 100) -> str:
    with _api_errors(f"read logs for {ref}"):
        raw = get_client().api.logs(
            ref, stdout=True, stderr=True, stream=False, tail=tail, timestamps=True
        )
    return raw.decode("utf-8", errors="replace")


# ── Images ─────────────────────────────────────────────────────────────────


def list_images() -> list[ImageSummary]:
    with _api_errors("list images"):
        raw = get_client().api.images()
    return [ImageSummary.from_api(i) for i in raw]


def remove_image(ref: str, force: bool = False) -> None:
    with _api_errors(f"remove image {ref}"):
        get_client().api.remove_image(ref, force=force)


def tag_image(source: str, target: str) -> None:
    repository, _, tag = target.rpartition(":")
    if not repository or "/" in tag:
        repository, tag = target, "latest"
    with _api_errors(f"tag {source} as {target}"):
        get_client().api.tag(source, repository, tag=tag)


def image_history(ref: str) -> list[ImageLayer]:
    with _api_errors(f"read history of {ref}"):
        raw = get_client().api.history(ref)
    return [ImageLayer.from_api(layer) for layer in raw]


def inspect_image(ref: str) -> dict[str, Any]:
    with _api_errors(f"inspect image {ref}"):
        return get_client().api.inspect_image(ref)


def image_tags(image_id: str) -> list[str]:
    with _api_errors("list images"):
        raw = get_client().api.images()
    for image in raw:
        if image.get("Id") == image_id or image_id in image.get("Id", ""):
            return list(image.get("RepoTags") or [])
    return []


def pull_image(ref: str) -> Iterator[dict[str, Any]]:
    """Pull an image, yielding the engine's progress events."""
    repository, _, tag = ref.rpartition(":")
    if not repository or "/" in tag:
        repository, tag = ref, "latest"
    with _api_errors(f"pull {ref}"):
        for event in get_client().api.pull(repository, tag=tag, stream=True, decode=True):
            if "error" in event:
                raise DockerError(f"pull {ref}", str(event["error"]))
            yield event


# ── Volumes ────────────────────────────────────────────────────────────────


def list_volumes() -> list[VolumeSummary]:
    with _api_errors("list volumes"):
        raw = get_client().api.volumes()
    return [VolumeSummary.from_api(v) for v in (raw or {}).get("Volumes") or []]


def inspect_volume(name: str) -> dict[str, Any]:
    with _api_errors(f"inspect volume {name}"):
        return get_client().api.inspect_volume(name)


def create_volume(
    name: str, driver: str = "local", labels: dict[str, str] | None = None
) -> dict[str, Any]:
    with _api_errors(f"create volume {name}"):
        return get_client().api.create_volume(name=name, driver=driver, labels=labels or {})


def remove_volume(name: str, force: bool = False) -> None:
    with _api_errors(f"remove volume {name}"):
        get_client().api.remove_volume(name, force=force)


def volume_containers(name: str) -> list[ContainerSummary]:
    """Containers (running or not) that mount the named volume."""
    with _api_errors("list containers"):
        raw = get_client().api.containers(all=True)
    return [
        ContainerSummary.from_api(c)
        for c in raw
        if any(m.get("Name") == name for m in c.get("Mounts") or [])
    ]


# ── Networks ───────────────────────────────────────────────────────────────


def list_networks() -> list[NetworkSummary]:
    with _api_errors("list networks"):
        raw = get_client().api.networks()
    return [NetworkSummary.from_api(n) for n in raw]


def inspect_network(ref: str) -> dict[str, Any]:
    with _api_errors(f"inspect network {ref}"):
        return get_client().api.inspect_network(ref)


def create_network(
    name: str,
    driver: str = "bridge",
    internal: bool = False,
    attachable: bool = True,
    labels: dict[str, str] | None = None,
    subnet: str | None = None,
    gateway: str | None = None,
) -> dict[str, Any]:
    ipam = None
    if subnet or gateway:
        ipam = docker.types.IPAMConfig(
            pool_configs=[docker.types.IPAMPool(subnet=subnet, gateway=gateway)]
        )
    with _api_errors(f"create network {name}"):
        return get_client().api.create_network(
            name,
            driver=driver,
            internal=internal,
            attachable=attachable,
            labels=labels or {},
            ipam=ipam,
        )


def remove_network(ref: str) -> None:
    with _api_errors(f"remove network {ref}"):
        get_client().api.remove_network(ref)


def connect_container(network: str, container: str) -> None:
    with _api_errors(f"connect {container} to {network}"):
        get_client().api.connect_container_to_network(container, network)


def disconnect_container(network: str, container: str, force: bool = False) -> None:
    with _api_errors(f"disconnect {container} from {network}"):
        get_client().api.disconnect_container_from_network(container, network, force=force)


def network_containers(ref: str) -> list[dict[str, str]]:
    containers = inspect_network(ref).get("Containers") or {}
    return [
        {
            "id": cid[:12],
            "name": info.get("Name", ""),
            "ipv4": info.get("IPv4Address", ""),
            "ipv6": info.get("IPv6Address", ""),
            "mac": info.get("MacAddress", ""),
        }
        for cid, info in containers.items()
    ]


# ── Prune ──────────────────────────────────────────────────────────────────


def prune_containers() -> dict[str, Any]:
    with _api_errors("prune containers"):
        return get_client().api.prune_containers()


def prune_images(all: bool = False) -> dict[str, Any]:
    """Prune dangling images, or every unused image when *all* is set."""
    filters = {"dangling": False} if all else {"dangling": True}
    with _api_errors("prune images"):
        return get_client().api.prune_images(filters=filters)


def prune_volumes() -> dict[str, Any]:
    with _api_errors("prune volumes"):
        return get_client().api.prune_volumes()


def prune_networks() -> dict[str, Any]:
    with _api_errors("prune networks"):
        return get_client().api.prune_networks()


def prune_build_cache() -> dict[str, Any]:
    with _api_errors("prune build cache"):
        return get_client().api.prune_builds()


def system_prune() -> dict[str, dict[str, Any]]:
    return {
        "containers": prune_containers(),
        "images": prune_images(),
        "volumes": prune_volumes(),
        "networks": prune_networks(),
    }


def reclaimed_bytes(result: dict[str, Any]) -> int:
    """Sum SpaceReclaimed over one prune result or a system_prune result."""
    if "SpaceReclaimed" in result:
        return int(result.get("SpaceReclaimed") or 0)
    return sum(
        int((part or {}).get("SpaceReclaimed") or 0)
        for part in result.values()
        if isinstance(part, dict)
    )
