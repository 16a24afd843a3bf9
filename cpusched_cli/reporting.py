from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from .gantt import build_rich_gantt, render_gantt
from .models import ScheduleResult


class Reporter(Protocol):
    def report(self, result: ScheduleResult, summary: Dict[str, float]) -> None: ...

    def report_error(self, error: Exception) -> None: ...


class ConsoleReporter:
    """
    Renders schedule results with Rich.
    """

    def __init__(self, console: Optional[Console] = None, plain: bool = False) -> None:
        self.console = console or Console()
        self.plain = plain

    def report(self, result: ScheduleResult, summary: Dict[str, float]) -> None:
        console = self.console

        console.print(f"[bold]Algorithm:[/bold] {result.algorithm}")
        if result.quantum is not None:
            console.print(f"[bold]Quantum:[/bold] {result.quantum}")

        console.print()

        if self.plain:
            console.print(render_gantt(result.timeline), highlight=False)
        else:
            panel, time_marks = build_rich_gantt(result.timeline)
            console.print(panel)
            if time_marks:
                console.print(time_marks, highlight=False)

        console.print()

        for warning in result.starvation:
            console.print(
                f"[yellow]Starvation detected for P{warning.pid}[/yellow] "
                f"(priority {warning.priority}, waited {warning.waiting_time} > {warning.threshold})"
            )

        headers = ["PID", "Burst", "Priority", "Memory", "Start", "Complete", "Wait", "Turnaround", "Dispatches"]

        proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
        for h in headers:
            justify = "center" if h in {"PID", "Priority"} else "right"
            proc_table.add_column(h, justify=justify)

        for p in result.processes:
            proc_table.add_row(
                f"P{p.pid}",
                str(p.burst_time),
                str(p.priority),
                str(p.memory_required),
                str(p.start_time),
                str(p.completion_time),
                str(p.waiting_time),
                str(p.turnaround_time),
                str(p.dispatches),
            )

        console.print(proc_table)
        console.print()

        sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
        sys_table.add_column("Metric")
        sys_table.add_column("Value", justify="right")

        sys_table.add_row("Avg waiting", f"{summary['avg_waiting']:.2f}")
        sys_table.add_row("Avg turnaround", f"{summary['avg_turnaround']:.2f}")
        if result.system:
            sys = result.system
            sys_table.add_row("Makespan", str(sys.makespan))
            sys_table.add_row("Throughput (proc/time)", f"{sys.throughput:.3f}")
            sys_table.add_row("CPU utilization", f"{sys.cpu_utilization*100:.1f}%")
            sys_table.add_row("Starvation count", str(sys.starvation_count))

        console.print(sys_table)

    def report_error(self, error: Exception) -> None:
        self.console.print(f"[red]{error}[/red]")

    def report_comparison(self, runs: List[Tuple[ScheduleResult, Dict[str, float]]], title: str) -> None:
        summary_table = Table(title=title, box=box.SIMPLE_HEAVY)
        summary_table.add_column("Algorithm")
        summary_table.add_column("Quantum", justify="right")
        summary_table.add_column("Avg waiting", justify="right")
        summary_table.add_column("Avg turnaround", justify="right")
        summary_table.add_column("Starving", justify="right")

        for result, summary in runs:
            summary_table.add_row(
                result.algorithm,
                "" if result.quantum is None else str(result.quantum),
                f"{summary['avg_waiting']:.2f}",
                f"{summary['avg_turnaround']:.2f}",
                str(len(result.starvation)),
            )

        self.console.print(summary_table)
