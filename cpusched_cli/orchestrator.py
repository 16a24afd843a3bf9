from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .algorithms import run_algorithm
from .config import Settings, settings as default_settings
from .errors import SelectionError
from .events import SystemCallLog
from .metrics import aggregate
from .models import ProcessRecord, ScheduleResult
from .reporting import Reporter

logger = logging.getLogger(__name__)


class Selection(str, Enum):
    FCFS = "fcfs"
    ROUND_ROBIN = "rr"
    PRIORITY = "priority"
    EXIT = "exit"


MENU: Dict[str, Selection] = {
    "1": Selection.FCFS,
    "2": Selection.ROUND_ROBIN,
    "3": Selection.PRIORITY,
    "0": Selection.EXIT,
}

_ALIASES: Dict[str, Selection] = {
    "round-robin": Selection.ROUND_ROBIN,
    "round_robin": Selection.ROUND_ROBIN,
    "q": Selection.EXIT,
    "quit": Selection.EXIT,
}


def parse_selection(choice: Union[str, Selection]) -> Selection:
    """
    Accept a menu number, a policy name or a :class:`Selection`.
    """
    if isinstance(choice, Selection):
        return choice
    key = str(choice).strip().lower()
    if key in MENU:
        return MENU[key]
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Selection(key)
    except ValueError:
        raise SelectionError(choice) from None


class Orchestrator:
    def __init__(
        self,
        admitted: Iterable[ProcessRecord],
        settings: Optional[Settings] = None,
        reporter: Optional[Reporter] = None,
        events: Optional[SystemCallLog] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.reporter = reporter
        self.events = events or SystemCallLog()
        self._baseline: Tuple[ProcessRecord, ...] = tuple(admitted)

    @property
    def baseline(self) -> Tuple[ProcessRecord, ...]:
        return self._baseline

    def snapshot(self) -> List[ProcessRecord]:
        return [p.clone() for p in self._baseline]

    def run(self, choice: Union[str, Selection], quantum: Optional[int] = None) -> Tuple[ScheduleResult, Dict[str, float]]:
        selection = parse_selection(choice)
        if selection is Selection.EXIT:
            raise SelectionError(choice)

        if selection is Selection.ROUND_ROBIN and quantum is None:
            quantum = self.settings.quantum

        result = run_algorithm(
            selection.value,
            self.snapshot(),
            quantum=quantum if selection is Selection.ROUND_ROBIN else None,
            settings=self.settings,
            events=self.events,
        )
        summary = aggregate(result.processes)
        logger.info(
            f"{result.algorithm}: {len(result.processes)} job(s), "
            f"avg waiting {summary['avg_waiting']:.2f}, avg turnaround {summary['avg_turnaround']:.2f}"
        )

        if self.reporter is not None:
            self.reporter.report(result, summary)
        return result, summary

    def compare(
        self, choices: Iterable[Union[str, Selection]], quantum: Optional[int] = None
    ) -> List[Tuple[ScheduleResult, Dict[str, float]]]:
        return [self.run(choice, quantum=quantum) for choice in choices]

    def handle(self, choice: Union[str, Selection], quantum: Optional[int] = None) -> bool:
        """
        Process one selection from an interactive loop. Returns False once
        the user asks to exit; invalid choices are reported, never raised.
        """
        try:
            selection = parse_selection(choice)
        except SelectionError as exc:
            logger.warning(str(exc))
            if self.reporter is not None:
                self.reporter.report_error(exc)
            return True

        if selection is Selection.EXIT:
            return False

        self.run(selection, quantum=quantum)
        return True
