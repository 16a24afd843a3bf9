from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from .errors import IllegalTransitionError


class ProcessState(str, Enum):
    NEW = "NEW"
    READY = "READY"
    RUNNING = "RUNNING"
    TERMINATED = "TERMINATED"


_TRANSITIONS: Dict[ProcessState, FrozenSet[ProcessState]] = {
    ProcessState.NEW: frozenset({ProcessState.READY}),
    ProcessState.READY: frozenset({ProcessState.RUNNING}),
    ProcessState.RUNNING: frozenset({ProcessState.READY, ProcessState.TERMINATED}),
    ProcessState.TERMINATED: frozenset(),
}


@dataclass
class ProcessRecord:
    """
    Process control block for one job.

    Only ``pid``, ``burst_time``, ``priority`` and ``memory_required`` identify
    the job; everything else is scheduling state owned by whoever holds this
    instance.
    """

    pid: int
    burst_time: int
    priority: int
    memory_required: int
    remaining_time: int = -1
    waiting_time: int = 0
    turnaround_time: int = 0
    start_time: int = -1
    end_time: int = -1
    state: ProcessState = ProcessState.NEW

    def __post_init__(self) -> None:
        if self.remaining_time == -1:
            self.remaining_time = self.burst_time

    @property
    def label(self) -> str:
        return f"P{self.pid}"

    def transition(self, new_state: ProcessState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(self.pid, self.state, new_state)
        if new_state is ProcessState.TERMINATED and self.remaining_time != 0:
            raise IllegalTransitionError(
                self.pid, self.state, new_state, reason=f"{self.remaining_time} units still remaining"
            )
        self.state = new_state

    def run_for(self, units: int) -> int:
        """
        Consume up to ``units`` of CPU time and return how much was used.
        """
        if self.state is not ProcessState.RUNNING:
            raise IllegalTransitionError(self.pid, self.state, ProcessState.RUNNING, reason="not dispatched")
        used = min(units, self.remaining_time)
        self.remaining_time -= used
        return used

    def clone(self) -> "ProcessRecord":
        """
        Fresh copy carrying only the identity fields, admitted (READY) and
        with all scheduling state reset.
        """
        return ProcessRecord(
            pid=self.pid,
            burst_time=self.burst_time,
            priority=self.priority,
            memory_required=self.memory_required,
            state=ProcessState.READY,
        )


@dataclass
class ScheduledSlice:
    """
    One contiguous slice of execution for a process in the Gantt chart.
    """

    pid: int
    start_time: int
    end_time: int

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time


@dataclass
class ProcessMetrics:
    pid: int
    burst_time: int
    priority: int
    memory_required: int
    start_time: int
    completion_time: int
    waiting_time: int
    turnaround_time: int
    dispatches: int = 1

    @classmethod
    def from_record(cls, record: ProcessRecord, dispatches: int = 1) -> "ProcessMetrics":
        return cls(
            pid=record.pid,
            burst_time=record.burst_time,
            priority=record.priority,
            memory_required=record.memory_required,
            start_time=record.start_time,
            completion_time=record.end_time,
            waiting_time=record.waiting_time,
            turnaround_time=record.turnaround_time,
            dispatches=dispatches,
        )


@dataclass(frozen=True)
class StarvationWarning:
    pid: int
    priority: int
    waiting_time: int
    threshold: int


@dataclass
class SystemMetrics:
    cpu_busy_time: int
    makespan: int
    throughput: float
    cpu_utilization: float
    starvation_count: int = 0


@dataclass
class ScheduleResult:
    algorithm: str
    quantum: Optional[int]
    processes: List[ProcessMetrics] = field(default_factory=list)
    timeline: List[ScheduledSlice] = field(default_factory=list)
    starvation: List[StarvationWarning] = field(default_factory=list)
    system: Optional[SystemMetrics] = None
