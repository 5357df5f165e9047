"""Tests for chart primitives and formatting helpers."""

from __future__ import annotations

import pytest

from dockerdash.charts import (
    GREEN,
    RED,
    SPARK,
    YELLOW,
    bar_color,
    box,
    colored_bytes,
    fmt_bytes,
    fmt_uptime,
    format_ports,
    gauge,
    mini_bar_chart,
    progress_bar,
    sparkline,
    state_glyph,
    strip_ansi,
    truncate,
    visible_len,
)

# ── fmt_bytes ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1024 * 1024, "1 MB"),
        (1024**3, "1 GB"),
        (1024**4, "1 TB"),
        (1024**5, "1024 TB"),
        (1234567, "1.18 MB"),
    ],
)
def test_fmt_bytes(value: int, expected: str) -> None:
    assert fmt_bytes(value) == expected


def test_fmt_bytes_one_decimal() -> None:
    assert fmt_bytes(1234567, 1) == "1.2 MB"
    assert fmt_bytes(100 * 1024 * 1024, 1) == "100 MB"


# ── Small formatters ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(59, "0m"), (61, "1m"), (3 * 3600 + 120, "3h 2m"), (2 * 86400 + 3600, "2d 1h")],
)
def test_fmt_uptime(seconds: int, expected: str) -> None:
    assert fmt_uptime(seconds) == expected


def test_format_ports() -> None:
    ports = [
        {"PrivatePort": 80, "PublicPort": 8080, "Type": "tcp"},
        {"PrivatePort": 443, "Type": "tcp"},  # not published
        {"PrivatePort": 53, "PublicPort": 53, "Type": "udp"},
    ]
    assert format_ports(ports) == "8080->80, 53->53"


def test_format_ports_empty() -> None:
    assert format_ports([]) == "-"
    assert format_ports(None) == "-"


def test_truncate() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("a-very-long-container-name", 10) == "a-very-..."
    assert len(truncate("a-very-long-container-name", 10)) == 10


def test_state_glyph() -> None:
    assert state_glyph("running") == "●"
    assert state_glyph("exited") == "○"
    assert state_glyph("weird") == "?"


def test_colored_bytes_by_magnitude() -> None:
    assert colored_bytes(500).startswith(GREEN)
    assert colored_bytes(5 * 1024**2).startswith(YELLOW)
    assert colored_bytes(5 * 1024**3).startswith(RED)


@pytest.mark.parametrize(
    ("pct", "color"), [(0, GREEN), (60, GREEN), (61, YELLOW), (80, YELLOW), (81, RED)]
)
def test_bar_color(pct: float, color: str) -> None:
    assert bar_color(pct) == color


# ── progress_bar ───────────────────────────────────────────────────────────


class TestProgressBar:
    def test_width_and_label(self) -> None:
        text = strip_ansi(progress_bar(50, width=10))
        assert text == "█████░░░░░  50.0%"

    def test_clamped(self) -> None:
        assert strip_ansi(progress_bar(150, width=4)) == "████ 100.0%"
        assert strip_ansi(progress_bar(-5, width=4)) == "░░░░   0.0%"

    def test_without_percent(self) -> None:
        assert visible_len(progress_bar(30, width=12, show_percent=False)) == 12


# ── sparkline ──────────────────────────────────────────────────────────────


class TestSparkline:
    @pytest.mark.parametrize("n", [0, 1, 5, 20, 50])
    def test_always_width_glyphs(self, n: int) -> None:
        data = [float(i % 7) for i in range(n)]
        assert visible_len(sparkline(data, width=20)) == 20

    @pytest.mark.parametrize("width", [0, -3])
    def test_zero_width_is_empty(self, width: int) -> None:
        assert sparkline([1.0, 2.0, 3.0], width=width) == ""
        assert sparkline([], width=width) == ""

    def test_empty_is_dashes(self) -> None:
        assert strip_ansi(sparkline([], width=5)) == "─────"

    def test_max_maps_to_top_glyph(self) -> None:
        text = strip_ansi(sparkline([0, 50, 100], width=3))
        assert text[0] == SPARK[0]
        assert text[-1] == SPARK[-1]

    def test_short_series_padded_left_with_minimum(self) -> None:
        text = strip_ansi(sparkline([0, 100], width=4))
        assert text == SPARK[0] * 3 + SPARK[-1]

    def test_fixed_range(self) -> None:
        text = strip_ansi(sparkline([50], width=1, lo=0, hi=100))
        assert text == SPARK[4]

    def test_flat_series(self) -> None:
        text = strip_ansi(sparkline([3, 3, 3], width=3))
        assert len(set(text)) == 1


# ── box / gauge / mini_bar_chart ───────────────────────────────────────────


class TestBox:
    def test_all_rows_same_visible_width(self) -> None:
        out = box("web", ["CPU " + progress_bar(10, 8), "short"], width=40)
        widths = {visible_len(line) for line in out.split("\n")}
        assert widths == {40}

    def test_title_in_top_border(self) -> None:
        top = strip_ansi(box("api", [], width=20).split("\n")[0])
        assert top.startswith("┌─ api ")
        assert top.endswith("┐")


def test_gauge() -> None:
    text = strip_ansi(gauge(2, 4, "Load", width=10))
    assert text.startswith("Load")
    assert "█████░░░░░" in text
    assert text.endswith("2.0/4.0")


def test_mini_bar_chart() -> None:
    lines = strip_ansi(mini_bar_chart({"a": 1, "b": 2}, width=4)).split("\n")
    assert lines[0].startswith("a")
    assert "██░░" in lines[0]
    assert "████" in lines[1]


def test_mini_bar_chart_empty() -> None:
    assert mini_bar_chart({}) == ""
