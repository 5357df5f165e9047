"""Tests for the Docker API wrapper, with the SDK client mocked out."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import docker
import pytest
import requests

from dockerdash import docker_api
from dockerdash.docker_api import (
    DockerError,
    LogStream,
    StatsStream,
    container_counts,
    find_socket,
    is_docker_running,
    list_containers,
    open_stats_stream,
    prune_images,
    pull_image,
    reclaimed_bytes,
    socket_candidates,
    tag_image,
    volume_containers,
)


@pytest.fixture
def api() -> Iterator[MagicMock]:
    client = MagicMock()
    with patch("dockerdash.docker_api.get_client", return_value=client):
        yield client.api


# ── Error translation ──────────────────────────────────────────────────────


class TestApiErrors:
    def test_api_error_uses_explanation(self, api: MagicMock) -> None:
        api.stop.side_effect = docker.errors.NotFound("404", explanation="No such container: x")
        with pytest.raises(DockerError) as exc:
            docker_api.stop_container("x")
        assert exc.value.action == "stop x"
        assert exc.value.message == "No such container: x"
        assert str(exc.value) == "stop x: No such container: x"

    def test_connection_error(self, api: MagicMock) -> None:
        api.containers.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(DockerError, match="cannot reach the Docker daemon"):
            list_containers()

    def test_read_timeout(self, api: MagicMock) -> None:
        api.stats.side_effect = requests.exceptions.ReadTimeout("read timed out")
        with pytest.raises(DockerError) as exc:
            open_stats_stream("web")
        assert exc.value.action == "stream stats for web"
        assert "request to the Docker daemon failed" in exc.value.message

    def test_generic_docker_exception(self, api: MagicMock) -> None:
        api.version.side_effect = docker.errors.DockerException("boom")
        with pytest.raises(DockerError, match="read version: boom"):
            docker_api.get_docker_info()


def test_is_docker_running(api: MagicMock) -> None:
    api_client = docker_api.get_client()
    api_client.ping.return_value = True
    assert is_docker_running()
    api_client.ping.side_effect = requests.exceptions.ConnectionError("down")
    assert not is_docker_running()


# ── Sockets ────────────────────────────────────────────────────────────────


def test_socket_candidates_honours_docker_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCKER_HOST", "unix:///tmp/custom.sock")
    assert socket_candidates()[0] == "/tmp/custom.sock"


def test_find_socket_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    with patch("dockerdash.docker_api.os.path.exists", return_value=False):
        assert find_socket() == "/var/run/docker.sock"


# ── Containers ─────────────────────────────────────────────────────────────


def test_list_and_count_containers(api: MagicMock) -> None:
    api.containers.return_value = [
        {"Id": "a" * 64, "Names": ["/web"], "State": "running"},
        {"Id": "b" * 64, "Names": ["/job"], "State": "exited"},
    ]
    names = [c.name for c in list_containers(all=True)]
    assert names == ["web", "job"]
    api.containers.assert_called_with(all=True)
    assert container_counts() == {"running": 1, "stopped": 1, "total": 2}


def test_volume_containers_filters_by_mount(api: MagicMock) -> None:
    api.containers.return_value = [
        {"Id": "1", "Names": ["/a"], "Mounts": [{"Name": "data"}]},
        {"Id": "2", "Names": ["/b"], "Mounts": [{"Name": "other"}]},
        {"Id": "3", "Names": ["/c"], "Mounts": None},
    ]
    assert [c.name for c in volume_containers("data")] == ["a"]


# ── Streams ────────────────────────────────────────────────────────────────


class TestStatsStream:
    def test_open_requests_raw_stream(self, api: MagicMock) -> None:
        api.stats.return_value = iter([b"{}"])
        stream = open_stats_stream("web")
        api.stats.assert_called_once_with("web", stream=True, decode=False)
        assert list(stream) == [b"{}"]

    def test_close_stops_iteration(self) -> None:
        stream = StatsStream(iter([b"1", b"2", b"3"]))
        seen = []
        for chunk in stream:
            seen.append(chunk)
            stream.close()
        assert seen == [b"1"]
        assert stream.closed

    def test_underlying_generator_closed(self) -> None:
        closed = []

        def gen() -> Iterator[bytes]:
            try:
                yield b"1"
                yield b"2"
            finally:
                closed.append(True)

        stream = StatsStream(gen())
        stream.close()
        assert list(stream) == []
        assert closed == [True]

    def test_close_mid_read_releases_on_next_chunk(self) -> None:
        closed = []

        def gen() -> Iterator[bytes]:
            try:
                yield b"1"
                yield b"2"
                yield b"3"
            finally:
                closed.append(True)

        stream = StatsStream(gen())
        it = iter(stream)
        assert next(it) == b"1"
        stream.close()
        assert closed == []
        with pytest.raises(StopIteration):
            next(it)
        assert closed == [True]


class TestLogStream:
    def test_iterates_underlying(self) -> None:
        assert list(LogStream([b"a", b"b"])) == [b"a", b"b"]

    def test_close_once(self) -> None:
        inner = MagicMock()
        stream = LogStream(inner)
        stream.close()
        stream.close()
        inner.close.assert_called_once_with()

    def test_close_without_close_method(self) -> None:
        LogStream([b"a"]).close()


# ── Images ─────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("target", "repository", "tag"),
    [
        ("app:dev", "app", "dev"),
        ("app", "app", "latest"),
        ("localhost:5000/app", "localhost:5000/app", "latest"),
        ("localhost:5000/app:1", "localhost:5000/app", "1"),
    ],
)
def test_tag_image_splits_reference(api: MagicMock, target: str, repository: str, tag: str) -> None:
    tag_image("abc", target)
    api.tag.assert_called_once_with("abc", repository, tag=tag)


def test_pull_image_yields_events(api: MagicMock) -> None:
    api.pull.return_value = iter([{"status": "Pulling fs layer"}, {"status": "Done"}])
    events = list(pull_image("ghcr.io/org/app"))
    api.pull.assert_called_once_with("ghcr.io/org/app", tag="latest", stream=True, decode=True)
    assert [e["status"] for e in events] == ["Pulling fs layer", "Done"]


def test_pull_image_error_event(api: MagicMock) -> None:
    api.pull.return_value = iter([{"error": "manifest unknown"}])
    with pytest.raises(DockerError, match="manifest unknown"):
        list(pull_image("app:nope"))


@pytest.mark.parametrize(("all_images", "dangling"), [(False, True), (True, False)])
def test_prune_images_filter(api: MagicMock, all_images: bool, dangling: bool) -> None:
    prune_images(all=all_images)
    api.prune_images.assert_called_once_with(filters={"dangling": dangling})


# ── Prune accounting ───────────────────────────────────────────────────────


def test_reclaimed_bytes_single() -> None:
    assert reclaimed_bytes({"SpaceReclaimed": 2048, "ContainersDeleted": ["a"]}) == 2048


def test_reclaimed_bytes_system_prune() -> None:
    result = {
        "containers": {"SpaceReclaimed": 10},
        "images": {"SpaceReclaimed": 20},
        "volumes": {"SpaceReclaimed": None},
        "networks": {},
    }
    assert reclaimed_bytes(result) == 30
