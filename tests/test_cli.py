"""Tests for the dockerdash command line."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from dockerdash import cli
from dockerdash import config as config_mod
from dockerdash.charts import strip_ansi
from dockerdash.docker_api import DockerError
from dockerdash.models import ContainerSummary
from dockerdash.shell import CommandResult


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_mod, "_DEFAULT_PATH", tmp_path / "home" / "config.json")


@pytest.fixture
def docker_up() -> Iterator[MagicMock]:
    with patch("dockerdash.cli.docker_api.is_docker_running", return_value=True) as running:
        yield running


def run_main(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    return exc.value.code  # type: ignore[return-value]


def config_file(tmp_path: Path, data: dict[str, object] | None = None) -> Path:
    path = tmp_path / "dockerdash.json"
    path.write_text(json.dumps(data or {}))
    return path


# ── Parser ─────────────────────────────────────────────────────────────────


class TestParser:
    def test_no_command_opens_menu(self) -> None:
        args = cli.build_parser().parse_args([])
        assert args.func is cli.cmd_menu
        assert args.command is None

    def test_list_alias(self) -> None:
        args = cli.build_parser().parse_args(["ls", "--running"])
        assert args.func is cli.cmd_list
        assert args.running

    def test_logs_options(self) -> None:
        args = cli.build_parser().parse_args(["logs", "web", "-t", "5", "--no-follow"])
        assert (args.container, args.tail, args.no_follow) == ("web", 5, True)

    def test_prune_defaults_to_system(self) -> None:
        args = cli.build_parser().parse_args(["prune"])
        assert args.target == "system"
        assert not args.yes

    def test_prune_rejects_unknown_target(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.build_parser().parse_args(["prune", "everything"])
        assert exc.value.code == 2

    def test_config_requires_action(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["config"])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--version"])
        assert capsys.readouterr().out.strip() == f"dockerdash {cli.VERSION}"


@pytest.mark.parametrize(
    ("raw", "value"), [("1000", 1000), ("true", True), ("1.5", 1.5), ("dark", "dark")]
)
def test_parse_value(raw: str, value: object) -> None:
    assert cli._parse_value(raw) == value


# ── main() error handling ──────────────────────────────────────────────────


class TestMain:
    def test_docker_not_running(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("dockerdash.cli.docker_api.is_docker_running", return_value=False):
            assert run_main(["ls"]) == 1
        assert "Docker is not running" in capsys.readouterr().out

    def test_config_skips_docker_check(self) -> None:
        with patch("dockerdash.cli.check_docker") as check:
            assert run_main(["config", "defaults"]) == 0
        check.assert_not_called()

    def test_docker_error_reported(
        self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch(
            "dockerdash.cli.docker_api.list_containers",
            side_effect=DockerError("list containers", "boom"),
        ):
            assert run_main(["ls"]) == 1
        assert "✕ Failed to list containers: boom" in strip_ansi(capsys.readouterr().out)

    def test_ctrl_c_says_goodbye(
        self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("dockerdash.cli.show_dashboard", side_effect=KeyboardInterrupt):
            assert run_main(["dashboard"]) == 0
        assert "Goodbye!" in capsys.readouterr().out

    def test_unexpected_error(
        self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("dockerdash.cli.show_dashboard", side_effect=RuntimeError("kaboom")):
            assert run_main(["dashboard"]) == 1
        assert "dockerdash: unexpected error: kaboom" in capsys.readouterr().err

    def test_missing_explicit_config(self, tmp_path: Path) -> None:
        assert run_main(["--config", str(tmp_path / "nope.json"), "config", "show"]) == 1


# ── Commands ───────────────────────────────────────────────────────────────


class TestCommands:
    def test_list_running_only(
        self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        web = ContainerSummary("1", "web", "nginx", "Up", "running", "-", 0)
        with patch("dockerdash.cli.docker_api.list_containers", return_value=[web]) as lc:
            assert run_main(["ls", "--running"]) == 0
        lc.assert_called_once_with(all=False)
        assert "web" in strip_ansi(capsys.readouterr().out)

    def test_list_empty(self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("dockerdash.cli.docker_api.list_containers", return_value=[]):
            assert run_main(["ls"]) == 0
        assert "No containers found" in capsys.readouterr().out

    def test_logs_uses_configured_tail(self, docker_up: MagicMock, tmp_path: Path) -> None:
        path = config_file(tmp_path, {"logTail": 42})
        with patch("dockerdash.cli.stream_logs") as stream:
            assert run_main(["--config", str(path), "logs", "web"]) == 0
        stream.assert_called_once_with("web", tail=42)

    def test_logs_no_follow(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.print_logs") as printed:
            assert run_main(["logs", "web", "--tail", "5", "--no-follow"]) == 0
        printed.assert_called_once_with("web", tail=5)

    def test_stats_single_container(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.show_container_stats") as stats:
            assert run_main(["stats", "web"]) == 0
        assert stats.call_args.args[0] == "web"

    def test_stats_without_container_opens_dashboard(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.show_dashboard") as dash:
            assert run_main(["stats"]) == 0
        dash.assert_called_once()

    def test_stop(self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("dockerdash.cli.docker_api.stop_container") as stop:
            assert run_main(["stop", "web"]) == 0
        stop.assert_called_once_with("web")
        out = strip_ansi(capsys.readouterr().out)
        assert "Stopping web..." in out
        assert "✓ Container web stopped" in out

    def test_remove_force(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.docker_api.remove_container") as rm:
            assert run_main(["rm", "-f", "web"]) == 0
        rm.assert_called_once_with("web", force=True)

    def test_rebuild_failure_exit_code(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.rebuild", return_value=False) as rb:
            assert run_main(["rebuild", "web", "--no-cache"]) == 1
        rb.assert_called_once_with("web", no_cache=True)

    def test_build(self, docker_up: MagicMock) -> None:
        with patch("dockerdash.cli.run_build", return_value=True) as build:
            assert run_main(["build", "app", "-t", "app:dev"]) == 0
        build.assert_called_once_with("app", tag="app:dev", dockerfile="Dockerfile", no_cache=False)

    def test_prune_confirmed(self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pruner = MagicMock(return_value={"SpaceReclaimed": 2048})
        with patch.dict(cli._PRUNERS, {"volumes": pruner}):
            assert run_main(["prune", "volumes", "-y"]) == 0
        pruner.assert_called_once_with()
        assert "Reclaimed 2 KB" in strip_ansi(capsys.readouterr().out)

    def test_prune_declined(self, docker_up: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pruner = MagicMock()
        with (
            patch.dict(cli._PRUNERS, {"images": pruner}),
            patch("dockerdash.cli.confirm", return_value=False),
        ):
            assert run_main(["prune", "images"]) == 0
        pruner.assert_not_called()
        assert "Cancelled." in capsys.readouterr().out


class TestComposeCommand:
    def test_no_compose_file(self, docker_up: MagicMock, tmp_path: Path) -> None:
        assert run_main(["compose", "ps", "--dir", str(tmp_path)]) == 1

    def test_ps(
        self, docker_up: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (tmp_path / "compose.yml").write_text("services: {}\n")
        services = [{"Service": "api", "State": "running"}]
        with patch("dockerdash.cli.compose_status", return_value=services) as status:
            assert run_main(["compose", "ps", "--dir", str(tmp_path)]) == 0
        status.assert_called_once_with(str(tmp_path))
        assert "api" in strip_ansi(capsys.readouterr().out)

    def test_failed_action(self, docker_up: MagicMock, tmp_path: Path) -> None:
        (tmp_path / "compose.yml").write_text("services: {}\n")
        with patch("dockerdash.cli.compose_restart", return_value=CommandResult(3, "", "")) as r:
            assert run_main(["compose", "restart", "api", "--dir", str(tmp_path)]) == 1
        r.assert_called_once_with(str(tmp_path), "api")


# ── config subcommand ──────────────────────────────────────────────────────


class TestConfigCommand:
    def test_show(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = config_file(tmp_path, {"refreshInterval": 500})
        assert run_main(["--config", str(path), "config", "show"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["refreshInterval"] == 500
        assert shown["logTail"] == 100

    def test_get(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = config_file(tmp_path, {"theme": "dark"})
        assert run_main(["--config", str(path), "config", "get", "theme"]) == 0
        assert capsys.readouterr().out.strip() == '"dark"'

    def test_get_unknown_key(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_main(["config", "get", "nope"]) == 1
        assert "unknown config key: nope" in capsys.readouterr().err

    def test_set_persists(self, tmp_path: Path) -> None:
        path = config_file(tmp_path)
        assert run_main(["--config", str(path), "config", "set", "refreshInterval", "1000"]) == 0
        assert json.loads(path.read_text())["refreshInterval"] == 1000

    def test_set_rejects_bad_value(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = config_file(tmp_path)
        assert run_main(["--config", str(path), "config", "set", "logTail", "lots"]) == 1
        assert "invalid value for logTail" in capsys.readouterr().err
        assert "logTail" not in json.loads(path.read_text())


# ── Logging ────────────────────────────────────────────────────────────────


class TestSetupLogging:
    def test_quiet_by_default(self) -> None:
        with patch("dockerdash.cli.logging.basicConfig") as basic:
            cli.setup_logging(False)
        basic.assert_not_called()
        handlers = logging.getLogger("dockerdash").handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)

    def test_debug_writes_to_file(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "debug.log"
        with patch("dockerdash.cli.logging.basicConfig") as basic:
            cli.setup_logging(True, path)
        assert path.parent.is_dir()
        assert basic.call_args.kwargs["filename"] == path
        assert basic.call_args.kwargs["level"] == logging.DEBUG
