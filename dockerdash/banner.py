"""Banner, section headers and one-line status messages."""

from __future__ import annotations

import sys
from typing import TextIO

from dockerdash.charts import BLUE, BOLD, CYAN, GREEN, RED, RESET, YELLOW

BANNER = r"""
╔════════════════════════════════════════════════════════════════════╗
║    ____             __             ____             __             ║
║   / __ \____  _____/ /_____  _____/ __ \____ ______/ /_            ║
║  / / / / __ \/ ___/ //_/ _ \/ ___/ / / / __ `/ ___/ __ \           ║
║ / /_/ / /_/ / /__/ ,< /  __/ /  / /_/ / /_/ (__  ) / / /           ║
║/_____/\____/\___/_/|_|\___/_/  /_____/\__,_/____/_/ /_/            ║
╚════════════════════════════════════════════════════════════════════╝
"""

_STATUS_STYLES = {
    "info": (BLUE, "ℹ"),
    "success": (GREEN, "✓"),
    "warning": (YELLOW, "⚠"),
    "error": (RED, "✕"),
}


def show_banner(out: TextIO | None = None) -> None:
    print(f"{CYAN}{BANNER}{RESET}", file=out or sys.stdout)


def show_header(title: str, out: TextIO | None = None) -> None:
    out = out or sys.stdout
    line = "─" * 60
    print(f"{CYAN}\n┌{line}┐", file=out)
    print(f"│ {BOLD}{title[:58]:<58}{RESET}{CYAN} │", file=out)
    print(f"└{line}┘{RESET}\n", file=out)


def format_status(message: str, kind: str = "info") -> str:
    color, icon = _STATUS_STYLES.get(kind, _STATUS_STYLES["info"])
    return f"{color}{icon} {message}{RESET}"


def show_status(message: str, kind: str = "info", out: TextIO | None = None) -> None:
    """Print ``ℹ``/``✓``/``⚠``/``✕`` followed by *message* in the matching colour."""
    print(format_status(message, kind), file=out or sys.stdout)


def clear_screen(out: TextIO | None = None) -> None:
    out = out or sys.stdout
    out.write("\033[2J\033[H")
    out.flush()
