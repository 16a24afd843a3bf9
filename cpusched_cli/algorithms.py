from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from .config import Settings, settings as default_settings
from .events import SystemCall, SystemCallLog
from .metrics import compute_system_metrics
from .models import ProcessMetrics, ProcessRecord, ProcessState, ScheduleResult, ScheduledSlice, StarvationWarning

logger = logging.getLogger(__name__)

# Every policy takes the records it owns for this run and mutates them.
SchedulingPolicy = Callable[..., ScheduleResult]


def _terminate(p: ProcessRecord, events: SystemCallLog) -> None:
    p.transition(ProcessState.TERMINATED)
    events.emit(SystemCall.TERMINATE, p)
    events.emit(SystemCall.DEALLOCATE, p, detail=f"{p.memory_required} units")


def _run_to_completion(p: ProcessRecord, time: int, timeline: List[ScheduledSlice], events: SystemCallLog) -> int:
    """
    Dispatch ``p`` at ``time`` and let it run its whole burst. Returns the
    clock after it finishes.
    """
    p.transition(ProcessState.RUNNING)
    p.start_time = time
    time += p.run_for(p.burst_time)
    p.end_time = time
    p.waiting_time = p.start_time
    p.turnaround_time = p.end_time

    timeline.append(ScheduledSlice(pid=p.pid, start_time=p.start_time, end_time=p.end_time))
    _terminate(p, events)
    return time


def schedule_fcfs(
    processes: List[ProcessRecord],
    quantum: Optional[int] = None,
    settings: Optional[Settings] = None,
    events: Optional[SystemCallLog] = None,
) -> ScheduleResult:
    """
    First-Come First-Serve (non-preemptive), in admission order.
    """
    events = events or SystemCallLog()

    time = 0
    timeline: List[ScheduledSlice] = []

    for p in processes:
        time = _run_to_completion(p, time, timeline, events)

    result = ScheduleResult(
        algorithm="FCFS",
        quantum=None,
        processes=[ProcessMetrics.from_record(p) for p in processes],
        timeline=timeline,
    )
    compute_system_metrics(result)
    return result


def schedule_rr(
    processes: List[ProcessRecord],
    quantum: Optional[int] = None,
    settings: Optional[Settings] = None,
    events: Optional[SystemCallLog] = None,
) -> ScheduleResult:
    """
    Round Robin scheduling with a fixed time quantum.

    The ready queue is seeded in admission order and is strictly FIFO: an
    unfinished process goes back to the tail, nothing else reorders it.
    """
    settings = settings or default_settings
    events = events or SystemCallLog()
    if quantum is None:
        quantum = settings.quantum
    if quantum <= 0:
        raise ValueError("Round Robin requires a positive quantum (use --quantum)")

    ready: Deque[ProcessRecord] = deque(processes)
    dispatches: Dict[int, int] = {p.pid: 0 for p in processes}

    time = 0
    timeline: List[ScheduledSlice] = []

    while ready:
        p = ready.popleft()
        p.transition(ProcessState.RUNNING)
        dispatches[p.pid] += 1

        # start time is the first dispatch only
        if p.start_time == -1:
            p.start_time = time

        slice_start = time
        time += p.run_for(quantum)
        timeline.append(ScheduledSlice(pid=p.pid, start_time=slice_start, end_time=time))

        if p.remaining_time > 0:
            p.transition(ProcessState.READY)
            ready.append(p)
        else:
            p.end_time = time
            p.turnaround_time = p.end_time
            p.waiting_time = p.turnaround_time - p.burst_time
            _terminate(p, events)

    result = ScheduleResult(
        algorithm="Round Robin",
        quantum=quantum,
        processes=[ProcessMetrics.from_record(p, dispatches=dispatches[p.pid]) for p in processes],
        timeline=timeline,
    )
    compute_system_metrics(result)
    return result


def schedule_priority(
    processes: List[ProcessRecord],
    quantum: Optional[int] = None,
    settings: Optional[Settings] = None,
    events: Optional[SystemCallLog] = None,
) -> ScheduleResult:
    """
    Static Priority scheduling (non-preemptive).

    By default a higher numeric priority runs first; equal priorities keep
    their admission order. A process is flagged as starving when it waits
    longer than ``(10 - priority) * 10``, so low-priority jobs tolerate more
    waiting before they are reported.
    """
    settings = settings or default_settings
    events = events or SystemCallLog()

    # sorted() is stable, reverse=True included
    ordered = sorted(processes, key=lambda p: settings.priority_rank(p.priority), reverse=True)

    time = 0
    timeline: List[ScheduledSlice] = []
    starvation: List[StarvationWarning] = []

    for p in ordered:
        time = _run_to_completion(p, time, timeline, events)

        threshold = settings.starvation_threshold(p.priority)
        if p.waiting_time > threshold:
            logger.warning(f"Starvation detected for {p.label}: waited {p.waiting_time} (limit {threshold})")
            starvation.append(
                StarvationWarning(pid=p.pid, priority=p.priority, waiting_time=p.waiting_time, threshold=threshold)
            )

    result = ScheduleResult(
        algorithm="Priority",
        quantum=None,
        processes=[ProcessMetrics.from_record(p) for p in ordered],
        timeline=timeline,
        starvation=starvation,
    )
    compute_system_metrics(result)
    return result


ALGORITHMS: Dict[str, SchedulingPolicy] = {
    "fcfs": schedule_fcfs,
    "rr": schedule_rr,
    "priority": schedule_priority,
}


def run_algorithm(
    name: str,
    processes: List[ProcessRecord],
    quantum: Optional[int] = None,
    settings: Optional[Settings] = None,
    events: Optional[SystemCallLog] = None,
) -> ScheduleResult:
    """
    Dispatch to the requested algorithm. The caller hands over ownership of
    ``processes``: they are mutated by the run.
    """
    name = name.lower()
    if name not in ALGORITHMS:
        raise ValueError(f"Unknown or unimplemented algorithm '{name}'")

    func = ALGORITHMS[name]
    return func(processes, quantum=quantum, settings=settings, events=events)
