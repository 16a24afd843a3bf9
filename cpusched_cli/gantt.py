from __future__ import annotations

from typing import Dict, List

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ScheduledSlice


def render_gantt(slices: List[ScheduledSlice]) -> str:
    """
    Plain-text Gantt line: ``0 | P1 | 5 | P2 | 8``.

    Each slice is shown with the cumulative time at which it ended.
    """
    parts = ["0"]
    for sl in slices:
        parts.append(f"P{sl.pid}")
        parts.append(str(sl.end_time))
    return " | ".join(parts)


def build_rich_gantt(slices: List[ScheduledSlice]) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if not slices:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    colors = ["red", "green", "yellow", "blue", "magenta", "cyan"]
    pid_to_color: Dict[int, str] = {}

    def pid_color(pid: int) -> str:
        if pid not in pid_to_color:
            idx = len(pid_to_color) % len(colors)
            pid_to_color[pid] = colors[idx]
        return pid_to_color[pid]

    timeline = Text()
    labels = Text()
    time_marks = "0"

    for sl in slices:
        width = max(len(f"P{sl.pid}"), sl.duration)

        timeline.append(" " * width, style=f"on {pid_color(sl.pid)}")
        labels.append(f"P{sl.pid}"[:width].ljust(width), style="bold")
        time_marks += f"{sl.end_time:>{width}}"

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, time_marks
