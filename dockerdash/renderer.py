"""Flicker-free in-place terminal renderer.

Rather than clearing the screen on every refresh, the renderer remembers how
many rows it painted last time, moves the cursor back up over them and
overwrites each row, blanking any rows the new frame no longer uses.
"""

from __future__ import annotations

import os
import sys
from typing import TextIO

CURSOR_UP = "\033[{n}A"
CLEAR_LINE = "\033[2K"
HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"


class Renderer:
    """Repaints a block of text in place on *out*.

    One instance per live session. ``render`` assumes nothing else moves the
    cursor between calls.
    """

    def __init__(self, out: TextIO | None = None) -> None:
        self.out = out if out is not None else sys.stdout
        self.last_line_count = 0
        self.first_render = True

    def reset(self) -> None:
        """Forget the previous frame so the next render starts where the cursor is."""
        self.last_line_count = 0
        self.first_render = True

    def render(self, text: str) -> None:
        lines = text.split("\n")
        count = len(lines)
        buf: list[str] = []

        if not self.first_render and self.last_line_count > 0:
            buf.append(CURSOR_UP.format(n=self.last_line_count))

        for i, line in enumerate(lines):
            buf.append(CLEAR_LINE)
            buf.append(line)
            if i < count - 1:
                buf.append("\n")

        # Blank rows left over from a taller previous frame
        if self.last_line_count > count:
            extra = self.last_line_count - count
            buf.append(("\n" + CLEAR_LINE) * extra)
            buf.append(CURSOR_UP.format(n=extra))

        buf.append("\n")
        self.out.write("".join(buf))
        self.out.flush()

        self.last_line_count = count
        self.first_render = False

    def clear(self) -> None:
        """Blank every row painted by the last render and reset."""
        if self.last_line_count > 0:
            n = self.last_line_count
            self.out.write(
                CURSOR_UP.format(n=n) + (CLEAR_LINE + "\n") * n + CURSOR_UP.format(n=n)
            )
            self.out.flush()
        self.reset()


# ── Cursor helpers ─────────────────────────────────────────────────────────


def hide_cursor(out: TextIO | None = None) -> None:
    out = out if out is not None else sys.stdout
    out.write(HIDE_CURSOR)
    out.flush()


def show_cursor(out: TextIO | None = None) -> None:
    out = out if out is not None else sys.stdout
    out.write(SHOW_CURSOR)
    out.flush()


def move_cursor(row: int, col: int, out: TextIO | None = None) -> None:
    """Move to a 1-based screen position."""
    out = out if out is not None else sys.stdout
    out.write(f"\033[{row};{col}H")
    out.flush()


def terminal_size() -> tuple[int, int]:
    """Return (rows, cols), falling back to 24x80 when stdout isn't a terminal."""
    try:
        size = os.get_terminal_size()
    except OSError:
        return 24, 80
    return size.lines or 24, size.columns or 80
