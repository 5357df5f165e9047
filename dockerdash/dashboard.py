"""Live stats views: the multi-container dashboard and the single-container view.

Frame composition is pure: ``compose_dashboard`` and ``compose_stats_view``
turn a :class:`SessionContext` snapshot into one text buffer. The
:class:`StatsSession` decides when to compose and hands the result to the
differential renderer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import psutil

from dockerdash.banner import clear_screen, show_header
from dockerdash.charts import (
    BOLD,
    CYAN,
    DIM,
    RESET,
    YELLOW,
    box,
    fmt_bytes,
    progress_bar,
    sparkline,
)
from dockerdash.docker_api import DockerError, list_containers, open_stats_stream
from dockerdash.metrics import (
    DASHBOARD_HISTORY,
    DETAIL_HISTORY,
    DerivedMetrics,
    HistorySeries,
    SessionContext,
)
from dockerdash.session import StatsSession

log = logging.getLogger(__name__)

MAX_PANEL_WIDTH = 55
TWO_COLUMN_MIN_COLS = 110
TITLE_MAX = 20


# ── Host snapshot ──────────────────────────────────────────────────────────


@dataclass(slots=True)
class HostSnapshot:
    """Host-wide CPU and RAM, shown above the container panels."""

    cpu_percent: float = 0.0
    mem_used: int = 0
    mem_total: int = 0
    mem_percent: float = 0.0


def collect_host_snapshot() -> HostSnapshot:
    # cpu_percent(interval=None) measures since the previous call
    ram = psutil.virtual_memory()
    return HostSnapshot(
        cpu_percent=psutil.cpu_percent(interval=None),
        mem_used=ram.used,
        mem_total=ram.total,
        mem_percent=ram.percent,
    )


def host_line(host: HostSnapshot) -> str:
    return (
        f"  {BOLD}Host{RESET}  CPU {host.cpu_percent:5.1f}%"
        f"  RAM {fmt_bytes(host.mem_used, 1)}/{fmt_bytes(host.mem_total, 1)}"
        f" ({host.mem_percent:.0f}%)"
    )


# ── Frame composition ──────────────────────────────────────────────────────


def panel_width(cols: int) -> int:
    return min(MAX_PANEL_WIDTH, cols // 2 - 2)


def status_line(now: datetime, interval_s: float) -> str:
    return f"  {DIM}Last update: {now:%H:%M:%S} | Refresh: {interval_s:g}s{RESET}"


def container_panel(
    name: str, metrics: DerivedMetrics, series: HistorySeries, width: int
) -> str:
    """Four-line CPU / MEM / NET / I/O panel for one container."""
    bar_w = max(6, min(18, width - 4 - 33))
    lines = [
        f"{CYAN}CPU{RESET}  {progress_bar(metrics.cpu_percent, bar_w)} "
        f"{sparkline(series.cpu, width=10)}",
        f"{CYAN}MEM{RESET}  {progress_bar(metrics.mem_percent, bar_w)} "
        f"{fmt_bytes(metrics.mem_usage, 1)}/{fmt_bytes(metrics.mem_limit, 1)}",
        f"{DIM}NET{RESET}  ↓ {fmt_bytes(metrics.net_rx, 1):<10} "
        f"↑ {fmt_bytes(metrics.net_tx, 1):<10}",
        f"{DIM}I/O{RESET}  R {fmt_bytes(metrics.block_read, 1):<10} "
        f"W {fmt_bytes(metrics.block_write, 1):<10}",
    ]
    return box(name[:TITLE_MAX], lines, width)


def loading_panel(name: str, width: int) -> str:
    return box(name[:TITLE_MAX], [f"{DIM}Loading...{RESET}"], width)


def compose_dashboard(
    entities: Sequence[str],
    context: SessionContext,
    cols: int,
    interval_s: float,
    now: datetime,
    host: HostSnapshot | None = None,
) -> str:
    """Build the dashboard buffer: optional host line, panels, status line.

    Panels go two per row when the terminal is at least 110 columns wide and
    there is more than one container; otherwise they stack with a blank line
    between them.
    """
    width = panel_width(cols)
    panels = []
    for name in entities:
        metrics = context.current.get(name)
        if metrics is None:
            panels.append(loading_panel(name, width))
        else:
            panels.append(container_panel(name, metrics, context.history.get(name), width))

    rows: list[str] = []
    if host is not None:
        rows += [host_line(host), ""]

    if cols >= TWO_COLUMN_MIN_COLS and len(panels) > 1:
        for i in range(0, len(panels), 2):
            left = panels[i].split("\n")
            right = panels[i + 1].split("\n") if i + 1 < len(panels) else []
            for j in range(max(len(left), len(right))):
                lhs = left[j] if j < len(left) else " " * width
                rhs = right[j] if j < len(right) else ""
                rows.append(f"  {lhs}  {rhs}".rstrip(" "))
            rows.append("")
    else:
        for i, panel in enumerate(panels):
            if i:
                rows.append("")
            rows.extend(f"  {line}" for line in panel.split("\n"))
        rows.append("")

    rows.append(status_line(now, interval_s))
    return "\n".join(rows)


def compose_stats_view(
    name: str,
    metrics: DerivedMetrics | None,
    series: HistorySeries,
    cols: int,
    interval_s: float,
    now: datetime,
) -> str:
    """Build the single-container detail buffer."""
    width = max(40, min(cols - 4, 72))
    if metrics is None:
        return "\n".join(
            [f"  {line}" for line in loading_panel(name, width).split("\n")]
            + ["", status_line(now, interval_s)]
        )

    bar_w = max(10, min(40, width - 4 - 20))
    lines = [
        f"{BOLD}CPU{RESET}     {progress_bar(metrics.cpu_percent, bar_w)}",
        f"        {sparkline(series.cpu, width=min(30, bar_w), lo=0, hi=100)}",
        "",
        f"{BOLD}Memory{RESET}  {progress_bar(metrics.mem_percent, bar_w)}",
        f"        {sparkline(series.mem, width=min(30, bar_w), lo=0, hi=100)}",
        f"        {CYAN}{fmt_bytes(metrics.mem_usage)} / {fmt_bytes(metrics.mem_limit)}{RESET}",
        "",
        f"{BOLD}Network{RESET} ↓ {fmt_bytes(metrics.net_rx, 1):<12} ↑ {fmt_bytes(metrics.net_tx, 1)}",
        f"{BOLD}Block{RESET}   R {fmt_bytes(metrics.block_read, 1):<12} W {fmt_bytes(metrics.block_write, 1)}",
        f"{BOLD}PIDs{RESET}    {CYAN}{metrics.pids}{RESET}",
    ]
    rows = [f"  {line}" for line in box(name[:40], lines, width).split("\n")]
    rows += ["", status_line(now, interval_s)]
    return "\n".join(rows)


# ── Entry points ───────────────────────────────────────────────────────────


def refresh_seconds(config: dict[str, Any]) -> float:
    return config["refreshInterval"] / 1000


def show_dashboard(config: dict[str, Any]) -> None:
    """Live panels for every running container until Q or Ctrl+C."""
    interval = refresh_seconds(config)

    clear_screen()
    print(f"\n  {CYAN}{BOLD}DockerDash - Live Dashboard{RESET}")
    print(f"  {DIM}Press Q to exit{RESET}\n")

    containers = list_containers(all=False)
    if not containers:
        print(f"  {YELLOW}No running containers found.{RESET}\n")
        return

    names = [c.name for c in containers]
    psutil.cpu_percent(interval=None)  # prime the host CPU delta

    def compose(context: SessionContext, cols: int) -> str:
        return compose_dashboard(
            names, context, cols, interval, datetime.now(), host=collect_host_snapshot()
        )

    session = StatsSession(
        targets=[(c.name, c.id) for c in containers],
        open_stream=open_stats_stream,
        compose=compose,
        interval=interval,
        history_size=DASHBOARD_HISTORY,
    )
    asyncio.run(session.run())
    if session.error is not None:
        log.debug("dashboard ended with stream error: %s", session.error)
    print()


def show_container_stats(ref: str, config: dict[str, Any]) -> None:
    """Live detail view for one container.

    Raises:
        DockerError: The stats stream could not be opened.
    """
    interval = refresh_seconds(config)

    clear_screen()
    show_header(f"Stats: {ref}")
    print(f"{DIM}Press Q to go back{RESET}\n")

    def compose(context: SessionContext, cols: int) -> str:
        return compose_stats_view(
            ref,
            context.current.get(ref),
            context.history.get(ref),
            cols,
            interval,
            datetime.now(),
        )

    session = StatsSession(
        targets=[(ref, ref)],
        open_stream=open_stats_stream,
        compose=compose,
        interval=interval,
        history_size=DETAIL_HISTORY,
    )
    asyncio.run(session.run())
    print()
    if isinstance(session.error, DockerError):
        raise session.error
