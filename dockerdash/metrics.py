"""Container stats arithmetic: raw Docker stats frames → derived metrics.

The Docker stats stream reports cumulative counters. CPU percent is computed
from the delta between two consecutive frames; everything else (memory,
network, block I/O, PIDs) is reported as the absolute value carried by the
frame.
"""

from __future__ import annotations

import json
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any

# History capacities for the two live views
DASHBOARD_HISTORY = 20
DETAIL_HISTORY = 30


# ── Data types ─────────────────────────────────────────────────────────────


def _num(value: Any) -> float:
    """Coerce a JSON value to a number, treating junk, NaN and ±Infinity as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return 0


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass(slots=True)
class StatsFrame:
    """One stats snapshot as delivered by the engine, with defaults filled in."""

    cpu_total_usage: float = 0
    system_cpu_usage: float = 0
    online_cpus: int = 0
    mem_usage: float = 0
    mem_limit: float = 0
    networks: dict[str, tuple[float, float]] = field(default_factory=lambda: {})
    blkio: list[tuple[str, float]] = field(default_factory=lambda: [])
    pids: int = 0

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> StatsFrame:
        cpu = _obj(raw.get("cpu_stats"))
        mem = _obj(raw.get("memory_stats"))

        networks: dict[str, tuple[float, float]] = {}
        for name, iface in _obj(raw.get("networks")).items():
            iface = _obj(iface)
            networks[name] = (_num(iface.get("rx_bytes")), _num(iface.get("tx_bytes")))

        blkio: list[tuple[str, float]] = []
        entries = _obj(raw.get("blkio_stats")).get("io_service_bytes_recursive")
        for entry in entries if isinstance(entries, list) else []:
            entry = _obj(entry)
            op = entry.get("op")
            blkio.append((op if isinstance(op, str) else "", _num(entry.get("value"))))

        return cls(
            cpu_total_usage=_num(_obj(cpu.get("cpu_usage")).get("total_usage")),
            system_cpu_usage=_num(cpu.get("system_cpu_usage")),
            online_cpus=int(_num(cpu.get("online_cpus"))),
            mem_usage=_num(mem.get("usage")),
            mem_limit=_num(mem.get("limit")),
            networks=networks,
            blkio=blkio,
            pids=int(_num(_obj(raw.get("pids_stats")).get("current"))),
        )


def parse_stats_chunk(chunk: bytes) -> StatsFrame:
    """Decode one stats chunk. Raises ValueError on anything that isn't a JSON object."""
    raw = json.loads(chunk)
    if not isinstance(raw, dict):
        raise ValueError("stats frame is not a JSON object")
    return StatsFrame.from_api(raw)


@dataclass(slots=True, frozen=True)
class DerivedMetrics:
    """Per-frame metrics ready for display."""

    cpu_percent: float = 0.0
    mem_usage: float = 0
    mem_limit: float = 1
    mem_percent: float = 0.0
    net_rx: float = 0
    net_tx: float = 0
    block_read: float = 0
    block_write: float = 0
    pids: int = 0
    cpu_total: float = 0
    system_cpu: float = 0


# ── Calculation ────────────────────────────────────────────────────────────


def _cpu_percent(cpu_delta: float, system_delta: float, cpu_count: int) -> float:
    if system_delta <= 0:
        return 0.0
    pct = (cpu_delta / system_delta) * cpu_count * 100.0
    return max(0.0, min(100.0, pct))


def calculate_metrics(
    frame: StatsFrame, previous: DerivedMetrics | None = None
) -> DerivedMetrics:
    """Derive display metrics from a frame and the previous frame's counters.

    Without a previous frame there is nothing to diff against, so CPU is 0.
    """
    if previous is None:
        cpu_pct = 0.0
    else:
        cpu_pct = _cpu_percent(
            frame.cpu_total_usage - previous.cpu_total,
            frame.system_cpu_usage - previous.system_cpu,
            frame.online_cpus or 1,
        )

    mem_limit = frame.mem_limit or 1
    net_rx = sum(rx for rx, _ in frame.networks.values())
    net_tx = sum(tx for _, tx in frame.networks.values())

    block_read = 0.0
    block_write = 0.0
    for op, value in frame.blkio:
        op = op.lower()
        if op == "read":
            block_read += value
        elif op == "write":
            block_write += value

    return DerivedMetrics(
        cpu_percent=cpu_pct,
        mem_usage=frame.mem_usage,
        mem_limit=mem_limit,
        mem_percent=frame.mem_usage / mem_limit * 100.0,
        net_rx=net_rx,
        net_tx=net_tx,
        block_read=block_read,
        block_write=block_write,
        pids=frame.pids,
        cpu_total=frame.cpu_total_usage,
        system_cpu=frame.system_cpu_usage,
    )


# ── Rolling history ────────────────────────────────────────────────────────


@dataclass(slots=True)
class HistorySeries:
    """Recent CPU and memory percentages for one container."""

    cpu: deque[float]
    mem: deque[float]


class RollingHistory:
    """Fixed-capacity sparkline history, one series pair per container.

    Eviction is strictly FIFO. Not locked: the session guarantees a single
    writer per key.
    """

    def __init__(self, capacity: int = DASHBOARD_HISTORY) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._series: dict[str, HistorySeries] = {}

    def push(self, key: str, cpu_percent: float, mem_percent: float) -> None:
        series = self._series.get(key)
        if series is None:
            series = HistorySeries(
                cpu=deque(maxlen=self.capacity), mem=deque(maxlen=self.capacity)
            )
            self._series[key] = series
        series.cpu.append(cpu_percent)
        series.mem.append(mem_percent)

    def get(self, key: str) -> HistorySeries:
        series = self._series.get(key)
        if series is None:
            return HistorySeries(cpu=deque(), mem=deque())
        return series

    def clear(self) -> None:
        self._series.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._series

    def __len__(self) -> int:
        return len(self._series)


class SessionContext:
    """Current metrics and history for every container in one live session."""

    def __init__(self, history_size: int = DASHBOARD_HISTORY) -> None:
        self.history = RollingHistory(history_size)
        self.current: dict[str, DerivedMetrics] = {}

    def update(self, key: str, frame: StatsFrame) -> DerivedMetrics:
        metrics = calculate_metrics(frame, self.current.get(key))
        self.current[key] = metrics
        self.history.push(key, metrics.cpu_percent, metrics.mem_percent)
        return metrics

    def clear(self) -> None:
        self.history.clear()
        self.current.clear()
