"""Shell-outs to the ``docker`` binary for things the API does poorly.

Builds, compose and interactive exec all need the CLI: its output is meant for
humans and its TTY handling is what users expect.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

log = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]


@dataclass(slots=True)
class CommandResult:
    code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.code == 0


def run_command(
    cmd: list[str],
    cwd: str | None = None,
    on_output: OutputCallback | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run *cmd*, optionally streaming each output line to *on_output*.

    When streaming, stderr is folded into stdout so lines arrive in order.

    Raises:
        FileNotFoundError: The executable is not installed.
    """
    log.debug("running %s (cwd=%s)", " ".join(cmd), cwd)
    if on_output is None:
        proc = subprocess.run(
            cmd, cwd=cwd, capture_output=True, text=True, timeout=timeout
        )
        return CommandResult(proc.returncode, proc.stdout, proc.stderr)

    lines: list[str] = []
    with subprocess.Popen(
        cmd,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        bufsize=1,
    ) as proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            lines.append(line)
            on_output(line)
        code = proc.wait()
    return CommandResult(code, "".join(lines), "")


def open_shell(
    ref: str, shell: str = "/bin/sh", workdir: str | None = None, user: str | None = None
) -> int:
    """Attach an interactive shell to a container. Returns the shell's exit code."""
    cmd = ["docker", "exec", "-it"]
    if workdir:
        cmd += ["-w", workdir]
    if user:
        cmd += ["-u", user]
    cmd += [ref, shell]
    return subprocess.run(cmd, check=False).returncode


def exec_command(ref: str, command: str, timeout: float = 30) -> CommandResult:
    """Run ``sh -c command`` inside a container and capture its output."""
    return run_command(["docker", "exec", ref, "sh", "-c", command], timeout=timeout)
