"""Text-mode chart primitives: bars, sparklines, boxes and byte formatting.

Everything here returns plain strings with embedded ANSI colour codes; nothing
writes to the terminal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

# ── ANSI helpers ────────────────────────────────────────────────────────────

BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[91m"
YELLOW = "\033[93m"
GREEN = "\033[92m"
BLUE = "\033[94m"
CYAN = "\033[96m"
WHITE = "\033[97m"
RESET = "\033[0m"

SPARK = "▁▂▃▄▅▆▇█"
BAR_FILL = "█"
BAR_EMPTY = "░"

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def visible_len(text: str) -> int:
    """Length of *text* as it appears on screen (colour codes excluded)."""
    return len(strip_ansi(text))


def paint(text: str, *styles: str) -> str:
    return "".join(styles) + text + RESET


def bar_color(percent: float) -> str:
    """Green up to 60 %, yellow up to 80 %, red above."""
    if percent > 80:
        return RED
    if percent > 60:
        return YELLOW
    return GREEN


# ── Formatting helpers ─────────────────────────────────────────────────────

_UNITS = ("B", "KB", "MB", "GB", "TB")


def _scale(n: float) -> tuple[float, str]:
    v = float(n)
    i = 0
    while abs(v) >= 1024 and i < len(_UNITS) - 1:
        v /= 1024
        i += 1
    return v, _UNITS[i]


def fmt_bytes(n: int | float, decimals: int = 2) -> str:
    """Human-readable byte count (powers of 1024), trailing zeros dropped.

    >>> fmt_bytes(1536)
    '1.5 KB'
    """
    if n == 0:
        return "0 B"
    v, unit = _scale(n)
    text = f"{v:.{max(decimals, 0)}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {unit}"


def fmt_uptime(seconds: float) -> str:
    days, rem = divmod(int(seconds), 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_ports(ports: Iterable[Mapping[str, object]] | None) -> str:
    """Render published ports as ``public->private`` pairs."""
    pairs = [
        f"{p['PublicPort']}->{p.get('PrivatePort')}"
        for p in ports or []
        if p.get("PublicPort")
    ]
    return ", ".join(pairs) or "-"


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 3)] + "..."


_STATE_GLYPHS = {
    "running": "●",
    "exited": "○",
    "paused": "◐",
    "restarting": "↻",
    "dead": "✕",
}


def state_glyph(state: str) -> str:
    return _STATE_GLYPHS.get(state, "?")


def colored_bytes(n: int | float) -> str:
    """Byte count coloured by magnitude: green < MB, yellow MB, red GB+."""
    v, unit = _scale(n)
    text = f"{v:.1f} {unit}"
    idx = _UNITS.index(unit)
    if idx >= 3:
        return paint(text, RED)
    if idx >= 2:
        return paint(text, YELLOW)
    return paint(text, GREEN)


# ── Charts ─────────────────────────────────────────────────────────────────


def progress_bar(
    percent: float,
    width: int = 30,
    show_percent: bool = True,
    colorize: bool = True,
) -> str:
    """Render ``████░░░░  42.0%``, clamped to 0–100."""
    pct = min(100.0, max(0.0, percent))
    filled = int(pct / 100 * width + 0.5)
    color = bar_color(pct) if colorize else GREEN
    bar = paint(BAR_FILL * filled, color) + paint(BAR_EMPTY * (width - filled), DIM)
    return f"{bar} {pct:5.1f}%" if show_percent else bar


def sparkline(
    data: Sequence[float] | Iterable[float],
    width: int = 20,
    lo: float | None = None,
    hi: float | None = None,
) -> str:
    """Render the last *width* samples as a density line of exactly *width* glyphs.

    Short series are left-padded with the minimum so the line fills in from
    the right. An empty series is a dim dashed line.
    """
    if width <= 0:
        return ""
    values = list(data)
    if not values:
        return paint("─" * width, DIM)

    data_min = lo if lo is not None else min(values)
    data_max = hi if hi is not None else max(values)
    span = (data_max - data_min) or 1

    points = values[-width:]
    points = [data_min] * (width - len(points)) + points

    chars: list[str] = []
    for v in points:
        idx = int((v - data_min) / span * len(SPARK))
        chars.append(SPARK[max(0, min(idx, len(SPARK) - 1))])
    return paint("".join(chars), CYAN)


def mini_bar_chart(
    data: Mapping[str, float], width: int = 20, max_value: float | None = None
) -> str:
    """One labelled bar per entry, scaled against the largest value."""
    if not data:
        return ""
    top = max_value or max(data.values()) or 1
    lines = []
    for label, value in data.items():
        filled = int(value / top * width + 0.5)
        bar = paint(BAR_FILL * filled, CYAN) + paint(BAR_EMPTY * (width - filled), DIM)
        lines.append(f"{label:<10} {bar} {value:g}")
    return "\n".join(lines)


def gauge(value: float, max_value: float, label: str, width: int = 30) -> str:
    pct = value / max_value * 100 if max_value else 0.0
    bar = progress_bar(pct, width, show_percent=False)
    return f"{BOLD}{label:<12}{RESET} {bar} {value:.1f}/{max_value:.1f}"


def box(title: str, lines: Iterable[str], width: int = 50) -> str:
    """Draw a titled box of *width* columns around *lines*."""
    inner = width - 4
    top = (
        f"┌─ {BOLD}{title}{RESET} "
        + "─" * max(0, inner - len(title) - 1)
        + "┐"
    )
    body = [
        f"│ {line}{' ' * max(0, inner - visible_len(line))} │" for line in lines
    ]
    bottom = "└" + "─" * (width - 2) + "┘"
    return "\n".join([top, *body, bottom])
