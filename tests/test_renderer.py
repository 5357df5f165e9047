"""Tests for the differential renderer."""

from __future__ import annotations

import io
import os
from unittest.mock import patch

from dockerdash.renderer import (
    CLEAR_LINE,
    HIDE_CURSOR,
    SHOW_CURSOR,
    Renderer,
    hide_cursor,
    move_cursor,
    show_cursor,
    terminal_size,
)


def up(n: int) -> str:
    return f"\033[{n}A"


class CountingOut(io.StringIO):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def write(self, s: str) -> int:
        self.writes += 1
        return super().write(s)


class TestRender:
    def test_first_render_does_not_move_up(self) -> None:
        out = io.StringIO()
        Renderer(out).render("a\nb")
        assert out.getvalue() == f"{CLEAR_LINE}a\n{CLEAR_LINE}b\n"

    def test_second_render_moves_up_over_previous(self) -> None:
        out = io.StringIO()
        r = Renderer(out)
        r.render("a\nb\nc")
        out.seek(0)
        out.truncate()
        r.render("x\ny\nz")
        assert out.getvalue().startswith(up(3))
        assert out.getvalue() == f"{up(3)}{CLEAR_LINE}x\n{CLEAR_LINE}y\n{CLEAR_LINE}z\n"

    def test_shrinking_frame_clears_surplus_rows(self) -> None:
        out = io.StringIO()
        r = Renderer(out)
        r.render("1\n2\n3\n4\n5")
        out.seek(0)
        out.truncate()
        r.render("a\nb")
        expected = (
            up(5)
            + f"{CLEAR_LINE}a\n{CLEAR_LINE}b"
            + ("\n" + CLEAR_LINE) * 3
            + up(3)
            + "\n"
        )
        assert out.getvalue() == expected
        assert r.last_line_count == 2

    def test_single_write_per_frame(self) -> None:
        out = CountingOut()
        Renderer(out).render("a\nb\nc")
        assert out.writes == 1

    def test_reset_forgets_previous_frame(self) -> None:
        out = io.StringIO()
        r = Renderer(out)
        r.render("a\nb")
        r.reset()
        assert r.last_line_count == 0
        assert r.first_render is True
        out.seek(0)
        out.truncate()
        r.render("c")
        assert out.getvalue() == f"{CLEAR_LINE}c\n"


class TestClear:
    def test_clear_blanks_rows(self) -> None:
        out = io.StringIO()
        r = Renderer(out)
        r.render("a\nb")
        out.seek(0)
        out.truncate()
        r.clear()
        assert out.getvalue() == up(2) + (CLEAR_LINE + "\n") * 2 + up(2)
        assert r.last_line_count == 0

    def test_clear_without_frame_writes_nothing(self) -> None:
        out = io.StringIO()
        Renderer(out).clear()
        assert out.getvalue() == ""


class TestCursorHelpers:
    def test_hide_and_show(self) -> None:
        out = io.StringIO()
        hide_cursor(out)
        show_cursor(out)
        assert out.getvalue() == HIDE_CURSOR + SHOW_CURSOR

    def test_move_cursor(self) -> None:
        out = io.StringIO()
        move_cursor(3, 7, out)
        assert out.getvalue() == "\033[3;7H"


class TestTerminalSize:
    def test_falls_back_when_not_a_tty(self) -> None:
        with patch("dockerdash.renderer.os.get_terminal_size", side_effect=OSError):
            assert terminal_size() == (24, 80)

    def test_reports_rows_and_cols(self) -> None:
        with patch(
            "dockerdash.renderer.os.get_terminal_size",
            return_value=os.terminal_size((132, 40)),
        ):
            assert terminal_size() == (40, 132)
