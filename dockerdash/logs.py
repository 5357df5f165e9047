"""Container log viewing: header stripping, timestamp and level formatting."""

from __future__ import annotations

import asyncio
import functools
import re
import sys
from datetime import datetime, timezone, tzinfo
from typing import TextIO

from dockerdash.banner import clear_screen, show_header, show_status
from dockerdash.charts import BLUE, DIM, GREEN, RED, RESET, YELLOW
from dockerdash.docker_api import DockerError, get_logs, open_log_stream
from dockerdash.session import LogSession

HEADER_SIZE = 8
_STREAM_TYPES = (0, 1, 2)  # stdin, stdout, stderr

_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.\d+)?Z\s*(.*)$")


def demux_chunk(chunk: bytes) -> bytes:
    """Strip Docker's 8-byte stream headers from *chunk*.

    A header is one stream-type byte (0, 1 or 2), three zero bytes and a
    big-endian payload size. A chunk may carry several frames. Chunks that
    don't start with a header (TTY containers) are returned unchanged.
    """
    parts: list[bytes] = []
    pos = 0
    while pos + HEADER_SIZE <= len(chunk):
        if chunk[pos] not in _STREAM_TYPES or chunk[pos + 1 : pos + 4] != b"\x00\x00\x00":
            break
        size = int.from_bytes(chunk[pos + 4 : pos + HEADER_SIZE], "big")
        start = pos + HEADER_SIZE
        parts.append(chunk[start : start + size])
        pos = start + size
    if pos == 0:
        return chunk
    if pos < len(chunk):
        parts.append(chunk[pos:])
    return b"".join(parts)


def colorize_log_level(message: str) -> str:
    lower = message.lower()
    if "error" in lower or "fatal" in lower:
        return f"{RED}{message}{RESET}"
    if "warn" in lower:
        return f"{YELLOW}{message}{RESET}"
    if "info" in lower:
        return f"{BLUE}{message}{RESET}"
    if "debug" in lower:
        return f"{DIM}{message}{RESET}"
    if "success" in lower:
        return f"{GREEN}{message}{RESET}"
    return message


def format_log_line(line: str, tz: tzinfo | None = None) -> str:
    """Replace a leading RFC 3339 timestamp with local ``HH:MM:SS`` and colour the rest."""
    m = _TIMESTAMP_RE.match(line)
    if m is None:
        return colorize_log_level(line)
    stamp = datetime.strptime(m.group(1), "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    local = stamp.astimezone(tz)
    return f"{DIM}{local:%H:%M:%S}{RESET} {colorize_log_level(m.group(2))}"


def chunk_lines(chunk: bytes) -> list[str]:
    text = demux_chunk(chunk).decode("utf-8", errors="replace")
    return [line for line in text.splitlines() if line.strip()]


def stream_logs(
    ref: str,
    tail: int = 100,
    follow: bool = True,
    timestamps: bool = True,
    out: TextIO | None = None,
) -> None:
    """Follow a container's logs until Q, Ctrl+C or the stream ends.

    Raises:
        DockerError: The log stream could not be opened.
    """
    out = out or sys.stdout
    clear_screen(out)
    show_header(f"Logs: {ref}", out=out)
    print(f"{DIM}Press Q to exit{RESET}\n", file=out)

    def on_chunk(chunk: bytes) -> None:
        for line in chunk_lines(chunk):
            print(format_log_line(line), file=out)
        out.flush()

    session = LogSession(
        ref,
        functools.partial(
            open_log_stream, follow=follow, tail=tail, timestamps=timestamps
        ),
        on_chunk,
        out=out,
    )
    asyncio.run(session.run())
    if isinstance(session.error, DockerError):
        raise session.error
    if session.error is not None:
        show_status(f"Error streaming logs: {session.error}", "error", out=out)


def print_logs(ref: str, tail: int = 100, out: TextIO | None = None) -> None:
    """Print the last *tail* lines without following."""
    out = out or sys.stdout
    for line in get_logs(ref, tail=tail).splitlines():
        if line.strip():
            print(format_log_line(line), file=out)
