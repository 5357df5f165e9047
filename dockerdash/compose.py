"""Docker Compose helpers: project discovery from labels and CLI wrappers."""

from __future__ import annotations

import json
from pathlib import Path

from dockerdash.docker_api import DockerError
from dockerdash.models import ComposeInfo, ContainerSummary
from dockerdash.shell import CommandResult, OutputCallback, run_command

COMPOSE_FILES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

LABEL_PROJECT = "com.docker.compose.project"
LABEL_SERVICE = "com.docker.compose.service"
LABEL_WORKING_DIR = "com.docker.compose.project.working_dir"
LABEL_CONFIG_FILES = "com.docker.compose.project.config_files"


def find_compose_files(directory: Path | None = None) -> list[Path]:
    base = directory or Path.cwd()
    return [base / name for name in COMPOSE_FILES if (base / name).is_file()]


def get_compose_info(labels: dict[str, str] | None) -> ComposeInfo | None:
    """Read compose metadata from container labels; None if not a compose container."""
    labels = labels or {}
    project = labels.get(LABEL_PROJECT)
    if not project:
        return None
    config_files = labels.get(LABEL_CONFIG_FILES)
    return ComposeInfo(
        project=project,
        service=labels.get(LABEL_SERVICE),
        working_dir=labels.get(LABEL_WORKING_DIR),
        config_files=config_files.split(",") if config_files else [],
    )


def group_by_project(
    containers: list[ContainerSummary],
) -> dict[str, list[tuple[str | None, ContainerSummary]]]:
    """Map project name → [(service, container), ...] for compose containers."""
    projects: dict[str, list[tuple[str | None, ContainerSummary]]] = {}
    for container in containers:
        info = get_compose_info(container.labels)
        if info is None:
            continue
        projects.setdefault(info.project, []).append((info.service, container))
    return projects


def exec_compose(
    args: list[str], cwd: str | None = None, on_output: OutputCallback | None = None
) -> CommandResult:
    """Run ``docker compose`` (v2), falling back to the legacy ``docker-compose``."""
    try:
        return run_command(["docker", "compose", *args], cwd=cwd, on_output=on_output)
    except FileNotFoundError:
        pass
    try:
        return run_command(["docker-compose", *args], cwd=cwd, on_output=on_output)
    except FileNotFoundError:
        raise DockerError("run compose", "Docker Compose not found") from None


def compose_status(project_dir: str) -> list[dict[str, object]]:
    """Services of a compose project as reported by ``compose ps``."""
    result = exec_compose(["ps", "--format", "json"], cwd=project_dir)
    if not result.ok:
        raise DockerError("read compose status", result.stderr.strip() or f"exit {result.code}")
    text = result.stdout.strip()
    if not text:
        return []
    try:
        # Newer releases print one object per line, older ones a JSON array
        if text.startswith("["):
            return list(json.loads(text))
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    except ValueError as e:
        raise DockerError("read compose status", "failed to parse compose output") from e


def compose_up(
    project_dir: str,
    detach: bool = True,
    build: bool = False,
    on_output: OutputCallback | None = None,
) -> CommandResult:
    args = ["up"]
    if detach:
        args.append("-d")
    if build:
        args.append("--build")
    return exec_compose(args, cwd=project_dir, on_output=on_output)


def compose_down(
    project_dir: str, remove_volumes: bool = False, on_output: OutputCallback | None = None
) -> CommandResult:
    args = ["down"]
    if remove_volumes:
        args.append("-v")
    return exec_compose(args, cwd=project_dir, on_output=on_output)


def compose_restart(project_dir: str, service: str | None = None) -> CommandResult:
    args = ["restart"]
    if service:
        args.append(service)
    return exec_compose(args, cwd=project_dir)


def compose_rebuild(
    project_dir: str,
    service: str | None = None,
    no_cache: bool = False,
    on_output: OutputCallback | None = None,
) -> CommandResult:
    """Build then force-recreate a service. Stops after a failed build."""
    build_args = ["build"]
    if no_cache:
        build_args.append("--no-cache")
    if service:
        build_args.append(service)
    result = exec_compose(build_args, cwd=project_dir, on_output=on_output)
    if not result.ok:
        return result

    up_args = ["up", "-d", "--force-recreate"]
    if service:
        up_args.append(service)
    return exec_compose(up_args, cwd=project_dir, on_output=on_output)


def compose_logs(
    project_dir: str,
    service: str | None = None,
    tail: int = 100,
    follow: bool = False,
    on_output: OutputCallback | None = None,
) -> CommandResult:
    args = ["logs", f"--tail={tail}"]
    if follow:
        args.append("-f")
    if service:
        args.append(service)
    return exec_compose(args, cwd=project_dir, on_output=on_output)
