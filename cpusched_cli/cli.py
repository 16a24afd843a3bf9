from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as SettingsError
from rich.console import Console
from rich.logging import RichHandler

from .admission import AdmissionController, IngestionResult
from .algorithms import ALGORITHMS
from .config import Settings
from .errors import CpuSchedError, SelectionError
from .events import SystemCallLog
from .orchestrator import MENU, Orchestrator, Selection, parse_selection
from .reporting import ConsoleReporter
from .workload_io import iter_descriptors

_MENU_LABELS = {
    Selection.FCFS: "FCFS",
    Selection.ROUND_ROBIN: "Round Robin",
    Selection.PRIORITY: "Priority",
    Selection.EXIT: "Exit",
}


def _add_workload_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to a job file (id:burst:priority:memory per line, or .csv/.json).",
    )
    parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=None,
        help="Time quantum for round-robin (default: 7, or CPUSCHED_QUANTUM).",
    )
    parser.add_argument(
        "--memory",
        "-m",
        type=int,
        default=None,
        help="Memory budget for admission (default: 2048, or CPUSCHED_MEMORY_BUDGET).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up reading the job source after this many seconds.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cpusched-cli",
        description="CPU scheduling simulator with memory admission (FCFS, Round Robin, Priority).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO, or CPUSCHED_LOG_LEVEL).",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Show system-call events (create, allocate, terminate, ...).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one scheduling algorithm on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        choices=sorted(ALGORITHMS),
        help="Algorithm to use (fcfs, rr, priority).",
    )
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Print the Gantt chart as a plain '0 | P1 | 5 | ...' line.",
    )
    _add_workload_args(run_parser)

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run several algorithms on the same admitted jobs and compare average metrics.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=["fcfs", "rr", "priority"],
        help="Algorithms to compare (default: fcfs rr priority).",
    )
    _add_workload_args(compare_parser)

    menu_parser = subparsers.add_parser(
        "menu",
        help="Interactive menu to pick an algorithm at runtime.",
    )
    _add_workload_args(menu_parser)

    return parser


def _build_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        "memory_budget": args.memory,
        "quantum": args.quantum,
        "ingest_timeout": args.timeout,
        "log_level": args.log_level,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def _configure_logging(settings: Settings, trace: bool) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    if trace:
        logging.getLogger("cpusched_cli.events").setLevel(logging.DEBUG)


def _ingest(workload: str, controller: AdmissionController, console: Console) -> IngestionResult:
    # source errors and skipped lines are already logged by the controller
    result = controller.ingest(iter_descriptors(Path(workload)))

    if result.cancelled:
        console.print("[yellow]Ingestion cancelled; continuing with the jobs admitted so far.[/yellow]")
    for p in result.pending:
        console.print(
            f"[yellow]P{p.pid} needs {p.memory_required} memory units and was not admitted "
            f"({result.used_memory}/{result.memory_budget} in use).[/yellow]"
        )

    console.print(f"[bold]Admitted:[/bold] {len(result.admitted)} job(s)")
    return result


def _ask_quantum(console: Console, default: int) -> Optional[int]:
    try:
        q_in = input(f"Quantum [{default}]: ").strip()
    except EOFError:
        return None
    if not q_in:
        return None
    try:
        quantum = int(q_in)
    except ValueError:
        console.print("[red]Invalid quantum; using default.[/red]")
        return None
    if quantum <= 0:
        console.print("[red]Quantum must be positive; using default.[/red]")
        return None
    return quantum


def _interactive_menu(orchestrator: Orchestrator, console: Console) -> None:
    quantum_default = orchestrator.settings.quantum

    while True:
        console.print("\n[bold cyan]Select scheduling algorithm[/bold cyan]")
        for key in ("1", "2", "3", "0"):
            label = _MENU_LABELS[MENU[key]]
            if MENU[key] is Selection.ROUND_ROBIN:
                label += f" (Quantum={quantum_default})"
            console.print(f"  [yellow]{key}[/yellow]. [white]{label}[/white]")

        try:
            choice = input("Enter choice (0-3): ").strip()
        except EOFError:
            return

        try:
            selection = parse_selection(choice)
        except SelectionError:
            # reported by the orchestrator below
            selection = None

        quantum = None
        if selection is Selection.ROUND_ROBIN:
            quantum = _ask_quantum(console, quantum_default)

        if not orchestrator.handle(choice, quantum=quantum):
            return


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console()

    try:
        settings = _build_settings(args)
    except SettingsError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        return 1

    _configure_logging(settings, args.trace)
    events = SystemCallLog()
    reporter = ConsoleReporter(console, plain=getattr(args, "plain", False))

    try:
        controller = AdmissionController(settings=settings, events=events)
        ingestion = _ingest(args.workload, controller, console)
        orchestrator = Orchestrator(ingestion.admitted, settings=settings, reporter=reporter, events=events)

        if args.command == "run":
            orchestrator.run(args.algorithm, quantum=args.quantum)
            return 0

        if args.command == "compare":
            runs = Orchestrator(ingestion.admitted, settings=settings, events=events).compare(
                args.algorithms, quantum=args.quantum
            )
            reporter.report_comparison(runs, title=f"Algorithm comparison: {args.workload}")
            return 0

        if args.command == "menu":
            _interactive_menu(orchestrator, console)
            return 0
    except CpuSchedError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
