"""Image builds with live progress, and one-step container rebuilds.

``docker build --progress=plain`` output is parsed line by line into a
:class:`BuildProgressTracker`, which both the live box and the final summary
render from. Both the classic builder (``Step 3/7 : RUN ...``) and BuildKit
(``#7 [3/7] RUN ...``) formats are recognised.
"""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dockerdash.charts import BOLD, CYAN, DIM, GREEN, RED, RESET, box, progress_bar, truncate
from dockerdash.compose import LABEL_PROJECT, LABEL_SERVICE, LABEL_WORKING_DIR, compose_rebuild
from dockerdash.docker_api import (
    DockerError,
    create_container,
    inspect_container,
    pull_image,
    remove_container,
    start_container,
    stop_container,
)
from dockerdash.renderer import Renderer
from dockerdash.shell import OutputCallback, run_command

log = logging.getLogger(__name__)

LOG_KEEP = 100
RENDER_EVERY = 0.1  # seconds between live repaints

# ── Output parsing ─────────────────────────────────────────────────────────

_STEP_RE = re.compile(r"Step\s+(\d+)/(\d+)\s*:\s*(.+)", re.I)
_BUILDKIT_STEP_RE = re.compile(r"^#\d+\s+\[(?:[\w.-]+\s+)?(\d+)/(\d+)\]\s+(.+)")
_RUNNING_RE = re.compile(r"--->\s*Running in\s+([a-f0-9]+)", re.I)
_LAYER_RE = re.compile(r"--->\s*([a-f0-9]{12})", re.I)
_SUCCESS_RE = re.compile(r"Successfully built\s+([a-f0-9]+)", re.I)
_WRITING_RE = re.compile(r"writing image sha256:([a-f0-9]+)", re.I)
_TAGGED_RE = re.compile(r"Successfully tagged\s+(.+)", re.I)
_NAMING_RE = re.compile(r"naming to\s+(\S+)", re.I)
_DOWNLOAD_RE = re.compile(
    r"([a-f0-9]+):\s*(Downloading|Extracting)\s*\[([=>\s]+)\]\s*([\d.]+[KMGT]?B)/([\d.]+[KMGT]?B)",
    re.I,
)
_PULL_RE = re.compile(r"Pulling from\s+(.+)", re.I)


def parse_build_step(line: str) -> dict[str, Any] | None:
    """Classify one line of build output. Returns *None* for uninteresting lines."""
    m = _STEP_RE.search(line) or _BUILDKIT_STEP_RE.search(line)
    if m:
        return {
            "type": "step",
            "current": int(m.group(1)),
            "total": int(m.group(2)),
            "instruction": m.group(3).strip(),
        }

    if "Using cache" in line or re.search(r"^#\d+\s+CACHED", line):
        return {"type": "cache"}

    if m := _RUNNING_RE.search(line):
        return {"type": "running", "container_id": m.group(1)}
    if m := _LAYER_RE.search(line):
        return {"type": "layer", "layer_id": m.group(1)}
    if m := _SUCCESS_RE.search(line) or _WRITING_RE.search(line):
        return {"type": "success", "image_id": m.group(1)[:12]}
    if m := _TAGGED_RE.search(line) or _NAMING_RE.search(line):
        return {"type": "tagged", "tag": m.group(1).strip()}

    if m := _DOWNLOAD_RE.search(line):
        return {
            "type": "download",
            "layer_id": m.group(1),
            "action": m.group(2).lower(),
            "current": m.group(4),
            "total": m.group(5),
        }
    if m := _PULL_RE.search(line):
        return {"type": "pull", "image": m.group(1).strip()}

    if "error" in line.lower():
        return {"type": "error", "message": line.strip()}
    return None


class BuildProgressTracker:
    """Accumulates build state from output lines."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.start_time = clock()
        self.current_step = 0
        self.total_steps = 0
        self.current_instruction = ""
        self.cached_steps = 0
        self.image_id: str | None = None
        self.tag: str | None = None
        self.logs: deque[str] = deque(maxlen=LOG_KEEP)
        self.errors: list[str] = []
        self.downloads: dict[str, dict[str, str]] = {}

    def process_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        self.logs.append(line)

        parsed = parse_build_step(line)
        if parsed is None:
            return
        kind = parsed["type"]
        if kind == "step":
            self.current_step = parsed["current"]
            self.total_steps = parsed["total"]
            self.current_instruction = parsed["instruction"]
        elif kind == "cache":
            self.cached_steps += 1
        elif kind == "success":
            self.image_id = parsed["image_id"]
        elif kind == "tagged":
            self.tag = parsed["tag"]
        elif kind == "error":
            self.errors.append(parsed["message"])
        elif kind == "download":
            self.downloads[parsed["layer_id"]] = {
                "action": parsed["action"],
                "current": parsed["current"],
                "total": parsed["total"],
            }

    @property
    def elapsed(self) -> str:
        seconds = int(self._clock() - self.start_time)
        minutes, seconds = divmod(seconds, 60)
        return f"{minutes}m {seconds}s" if minutes else f"{seconds}s"

    @property
    def progress_percent(self) -> int:
        if self.total_steps == 0:
            return 0
        return round(self.current_step / self.total_steps * 100)


# ── Rendering ──────────────────────────────────────────────────────────────


def render_build_progress(tracker: BuildProgressTracker, width: int = 60) -> str:
    step = (
        f"Step {tracker.current_step}/{tracker.total_steps}"
        if tracker.total_steps
        else "Initializing..."
    )
    lines = [
        f"{BOLD}Build Progress: {step}{RESET}",
        progress_bar(tracker.progress_percent, width - 16),
        "",
    ]
    if tracker.current_instruction:
        lines += [f"{CYAN}> {truncate(tracker.current_instruction, width - 6)}{RESET}", ""]

    if tracker.downloads:
        lines.append(f"{DIM}Download Progress:{RESET}")
        for layer_id, dl in tracker.downloads.items():
            label = f"{layer_id[:8]}: {dl['action']}"
            lines.append(f"{DIM}  {label:<25} {dl['current']}/{dl['total']}{RESET}")
        lines.append("")

    lines.append(f"{DIM}Time: {tracker.elapsed} | Cached: {tracker.cached_steps} steps{RESET}")

    if tracker.logs:
        lines += ["", f"{DIM}Recent output:{RESET}"]
        for entry in list(tracker.logs)[-5:]:
            lines.append(f"{DIM}  {truncate(entry, width - 8)}{RESET}")

    if tracker.errors:
        lines += ["", f"{RED}Errors:{RESET}"]
        for error in tracker.errors[-3:]:
            lines.append(f"{RED}  {truncate(error, width - 8)}{RESET}")

    return box("Building Image", lines, width)


def render_build_result(tracker: BuildProgressTracker, success: bool) -> str:
    if success:
        lines = [f"{GREEN}{BOLD}Build completed successfully!{RESET}", ""]
        if tracker.image_id:
            lines.append(f"{DIM}Image ID:{RESET} {tracker.image_id}")
        if tracker.tag:
            lines.append(f"{DIM}Tagged:{RESET} {tracker.tag}")
        lines += [
            f"{DIM}Duration:{RESET} {tracker.elapsed}",
            f"{DIM}Total Steps:{RESET} {tracker.total_steps}",
            f"{DIM}Cached Steps:{RESET} {tracker.cached_steps}",
        ]
    else:
        lines = [
            f"{RED}{BOLD}Build failed!{RESET}",
            "",
            f"{DIM}Duration:{RESET} {tracker.elapsed}",
            f"{DIM}Failed at Step:{RESET} {tracker.current_step}/{tracker.total_steps}",
        ]
        if tracker.errors:
            lines += ["", f"{RED}Errors:{RESET}"]
            lines += [f"{RED}  {truncate(e, 52)}{RESET}" for e in tracker.errors]
    return box("Build Result", lines, 60)


# ── Build ──────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BuildResult:
    code: int
    tracker: BuildProgressTracker
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0


def build_image(
    context: str,
    dockerfile: str = "Dockerfile",
    tag: str | None = None,
    no_cache: bool = False,
    on_progress: Callable[[BuildProgressTracker], None] | None = None,
) -> BuildResult:
    """Run ``docker build`` and track its progress.

    Raises:
        DockerError: The docker CLI is not installed.
    """
    cmd = ["docker", "build", context, "--progress=plain"]
    if dockerfile != "Dockerfile":
        cmd += ["-f", dockerfile]
    if tag:
        cmd += ["-t", tag]
    if no_cache:
        cmd.append("--no-cache")

    tracker = BuildProgressTracker()

    def on_output(line: str) -> None:
        tracker.process_line(line)
        if on_progress is not None:
            on_progress(tracker)

    try:
        result = run_command(cmd, on_output=on_output)
    except FileNotFoundError:
        raise DockerError("build image", "docker CLI not found") from None
    return BuildResult(result.code, tracker, result.stdout)


def run_build(
    context: str,
    tag: str | None = None,
    dockerfile: str = "Dockerfile",
    no_cache: bool = False,
) -> bool:
    """Build with a live progress box, then print the result box."""
    renderer = Renderer()
    last_paint = 0.0

    def on_progress(tracker: BuildProgressTracker) -> None:
        nonlocal last_paint
        now = time.monotonic()
        if now - last_paint >= RENDER_EVERY:
            renderer.render(render_build_progress(tracker))
            last_paint = now

    result = build_image(context, dockerfile=dockerfile, tag=tag, no_cache=no_cache,
                         on_progress=on_progress)
    renderer.render(render_build_result(result.tracker, result.ok))
    return result.ok


# ── Quick rebuild ──────────────────────────────────────────────────────────


@dataclass(slots=True)
class RebuildResult:
    success: bool
    method: str = "docker"  # 'docker' or 'compose'
    container_id: str | None = None
    image: str | None = None
    project: str | None = None
    service: str | None = None
    error: str | None = None
    output: str = ""


def is_local_image(image: str) -> bool:
    """Images without a registry/namespace prefix are assumed to be built locally."""
    return "/" not in image or image.startswith("localhost")


def recreate_config(info: dict[str, Any]) -> dict[str, Any]:
    """Build a create_container config that reproduces an inspected container."""
    config = info.get("Config") or {}
    exposed = config.get("ExposedPorts") or {}
    ports = []
    for key in exposed:
        port, _, proto = key.partition("/")
        ports.append((int(port), proto or "tcp"))
    networks = (info.get("NetworkSettings") or {}).get("Networks") or {}
    return {
        "image": config.get("Image"),
        "name": (info.get("Name") or "").lstrip("/") or None,
        "hostname": config.get("Hostname"),
        "environment": config.get("Env"),
        "command": config.get("Cmd"),
        "ports": ports or None,
        "host_config": info.get("HostConfig"),
        "networking_config": {"EndpointsConfig": networks} if networks else None,
    }


def quick_rebuild(
    ref: str, no_cache: bool = False, on_output: OutputCallback | None = None
) -> RebuildResult:
    """Rebuild a container in place.

    Compose-managed containers go through ``compose build`` and
    ``up --force-recreate``. Anything else is stopped, its image re-pulled
    when it comes from a registry, and recreated with the same settings.
    """

    def say(msg: str) -> None:
        log.debug("rebuild %s: %s", ref, msg)
        if on_output is not None:
            on_output(msg + "\n")

    try:
        say("Inspecting container...")
        info = inspect_container(ref)
        labels = (info.get("Config") or {}).get("Labels") or {}
        image = (info.get("Config") or {}).get("Image") or ""
        was_running = bool((info.get("State") or {}).get("Running"))

        project = labels.get(LABEL_PROJECT)
        working_dir = labels.get(LABEL_WORKING_DIR)
        if project and working_dir:
            service = labels.get(LABEL_SERVICE)
            say(f"Detected Compose project: {project}")
            say(f"Rebuilding service: {service}")
            result = compose_rebuild(working_dir, service, no_cache=no_cache, on_output=on_output)
            return RebuildResult(
                success=result.ok,
                method="compose",
                project=project,
                service=service,
                output=result.stdout + result.stderr,
                error=None if result.ok else (result.stderr.strip() or f"exit {result.code}"),
            )

        if was_running:
            say("Stopping container...")
            stop_container(ref)

        config = recreate_config(info)

        if not is_local_image(image):
            say(f"Pulling latest image: {image}")
            for event in pull_image(image):
                if event.get("status") and on_output is not None:
                    on_output(f"{event['status']} {event.get('progress', '')}\n")

        say("Removing old container...")
        remove_container(ref)

        say("Creating new container...")
        new_id = create_container(config)

        if was_running:
            say("Starting container...")
            start_container(new_id)

        say("Rebuild complete!")
        return RebuildResult(success=True, container_id=new_id[:12], image=image)
    except DockerError as e:
        return RebuildResult(success=False, error=str(e))
