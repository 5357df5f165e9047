"""Box-drawn tables for containers, images, volumes, networks and image history."""

from __future__ import annotations

from collections.abc import Sequence

from dockerdash.charts import (
    CYAN,
    DIM,
    GREEN,
    RED,
    WHITE,
    fmt_bytes,
    paint,
    state_glyph,
    truncate,
    visible_len,
)
from dockerdash.models import (
    ContainerSummary,
    ImageLayer,
    ImageSummary,
    NetworkSummary,
    VolumeSummary,
)


def cell(text: str, width: int, *styles: str) -> str:
    """Truncate *text* to fit a column of *width* (borders excluded), then style it."""
    text = truncate(text, max(1, width - 2))
    return paint(text, *styles) if styles else text


def render_table(
    headers: Sequence[str], rows: Sequence[Sequence[str]], widths: Sequence[int]
) -> str:
    """Lay out pre-styled *rows* under *headers*; every cell must already fit."""

    def border(left: str, mid: str, right: str) -> str:
        return left + mid.join("─" * w for w in widths) + right

    def line(cells: Sequence[str]) -> str:
        parts = [
            f" {c}{' ' * max(0, w - 2 - visible_len(c))} " for c, w in zip(cells, widths)
        ]
        return "│" + "│".join(parts) + "│"

    out = [
        border("┌", "┬", "┐"),
        line([cell(h, w, CYAN) for h, w in zip(headers, widths)]),
        border("├", "┼", "┤"),
    ]
    out.extend(line(row) for row in rows)
    out.append(border("└", "┴", "┘"))
    return "\n".join(out)


def containers_table(containers: Sequence[ContainerSummary]) -> str:
    widths = (3, 20, 20, 15, 25)
    rows = []
    for c in containers:
        color = GREEN if c.running else RED
        rows.append(
            [
                paint(state_glyph(c.state), color),
                cell(c.name, widths[1], WHITE),
                cell(c.image, widths[2], DIM),
                cell(c.status, widths[3], color),
                cell(c.ports, widths[4], DIM),
            ]
        )
    return render_table(["", "NAME", "IMAGE", "STATUS", "PORTS"], rows, widths)


def images_table(images: Sequence[ImageSummary]) -> str:
    widths = (30, 15, 12, 15)
    rows = [
        [
            cell(i.repository, widths[0], WHITE),
            cell(i.tag, widths[1], DIM),
            cell(fmt_bytes(i.size), widths[2], CYAN),
            cell(i.created_date, widths[3], DIM),
        ]
        for i in images
    ]
    return render_table(["REPOSITORY", "TAG", "SIZE", "CREATED"], rows, widths)


def volumes_table(volumes: Sequence[VolumeSummary]) -> str:
    widths = (30, 12, 40)
    rows = [
        [
            cell(v.name, widths[0], WHITE),
            cell(v.driver, widths[1], DIM),
            cell(v.mountpoint, widths[2], DIM),
        ]
        for v in volumes
    ]
    return render_table(["NAME", "DRIVER", "MOUNTPOINT"], rows, widths)


def networks_table(networks: Sequence[NetworkSummary]) -> str:
    widths = (25, 12, 10, 15)
    rows = [
        [
            cell(n.name, widths[0], DIM if n.is_system else WHITE),
            cell(n.driver, widths[1], DIM),
            cell(n.scope, widths[2], DIM),
            cell(n.id[:12], widths[3], DIM),
        ]
        for n in networks
    ]
    return render_table(["NAME", "DRIVER", "SCOPE", "ID"], rows, widths)


def history_table(layers: Sequence[ImageLayer]) -> str:
    widths = (14, 50, 12)
    rows = [
        [
            cell(layer.id, widths[0], DIM),
            cell(" ".join(layer.created_by.split()), widths[1]),
            cell(fmt_bytes(layer.size), widths[2], CYAN),
        ]
        for layer in layers
    ]
    return render_table(["ID", "CREATED BY", "SIZE"], rows, widths)
