from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import Settings, settings as default_settings
from .errors import SourceUnavailableError, ValidationError
from .events import SystemCall, SystemCallLog
from .models import ProcessRecord, ProcessState

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = re.compile(r"[:;]")

Descriptor = Union[str, bytes, Sequence[object]]


def parse_descriptor(descriptor: Descriptor) -> Tuple[int, int, int, int]:
    """
    Split a descriptor into its ``(id, burst, priority, memory)`` integers.

    Strings use ``:`` or ``;`` between fields; raw ``bytes`` lines must be
    UTF-8. Sequences (CSV rows, JSON entries) are taken field by field.
    """
    if isinstance(descriptor, bytes):
        try:
            descriptor = descriptor.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError(descriptor, "line is not valid UTF-8") from None

    if isinstance(descriptor, str):
        fields = FIELD_SEPARATOR.split(descriptor.strip())
    else:
        fields = list(descriptor)

    if len(fields) != 4:
        raise ValidationError(descriptor, f"expected 4 fields, got {len(fields)}")

    try:
        pid, burst, priority, memory = (int(str(f).strip()) for f in fields)
    except ValueError:
        raise ValidationError(descriptor, "all fields must be integers") from None

    return pid, burst, priority, memory


# Shared by the producer and the memory manager; every field below is
# guarded by one lock, held for a single append or check-and-move.
class AdmissionState:
    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.producer_done = threading.Event()
        self._lock = threading.Lock()
        self._pending: List[ProcessRecord] = []
        self._ready: List[ProcessRecord] = []
        self._rejected: List[ValidationError] = []
        self._source_error: Optional[SourceUnavailableError] = None
        self._used_memory = 0
        # Used memory only grows, so records skipped by an earlier scan can
        # never fit later; scanning resumes where the last admission happened.
        self._scan_from = 0

    def add_pending(self, record: ProcessRecord) -> None:
        with self._lock:
            self._pending.append(record)

    def reject(self, error: ValidationError) -> None:
        with self._lock:
            self._rejected.append(error)

    def fail(self, error: SourceUnavailableError) -> None:
        with self._lock:
            self._source_error = error

    def admit_next(self) -> Optional[ProcessRecord]:
        """
        Admit the first pending record (in arrival order) that fits the
        remaining budget, or return None when nothing fits.
        """
        with self._lock:
            for idx in range(self._scan_from, len(self._pending)):
                record = self._pending[idx]
                if self._used_memory + record.memory_required <= self.capacity:
                    del self._pending[idx]
                    record.transition(ProcessState.READY)
                    self._ready.append(record)
                    self._used_memory += record.memory_required
                    self._scan_from = idx
                    return record
            self._scan_from = len(self._pending)
            return None

    @property
    def pending(self) -> List[ProcessRecord]:
        with self._lock:
            return list(self._pending)

    @property
    def ready(self) -> List[ProcessRecord]:
        with self._lock:
            return list(self._ready)

    @property
    def used_memory(self) -> int:
        with self._lock:
            return self._used_memory

    @property
    def rejected(self) -> List[ValidationError]:
        with self._lock:
            return list(self._rejected)

    @property
    def source_error(self) -> Optional[SourceUnavailableError]:
        with self._lock:
            return self._source_error


@dataclass
class IngestionResult:
    memory_budget: int
    admitted: List[ProcessRecord] = field(default_factory=list)
    pending: List[ProcessRecord] = field(default_factory=list)
    rejected: List[ValidationError] = field(default_factory=list)
    used_memory: int = 0
    source_error: Optional[SourceUnavailableError] = None
    cancelled: bool = False


class AdmissionController:
    def __init__(self, settings: Optional[Settings] = None, events: Optional[SystemCallLog] = None) -> None:
        self.settings = settings or default_settings
        self.events = events or SystemCallLog()

    def validate(self, descriptor: Descriptor) -> ProcessRecord:
        record = self._build(descriptor)
        self.events.emit(SystemCall.CREATE, record)
        return record

    def admit(self, records: Iterable[ProcessRecord], memory_budget: Optional[int] = None) -> List[ProcessRecord]:
        """
        One-shot first-fit admission of ``records`` in arrival order.

        Records that never fit are left untouched (still NEW).
        """
        state = AdmissionState(self.settings.memory_budget if memory_budget is None else memory_budget)
        for record in records:
            state.add_pending(record)
        state.producer_done.set()

        admitted = []
        while True:
            record = state.admit_next()
            if record is None:
                break
            self._emit_admitted(record)
            admitted.append(record)
        return admitted

    def ingest(
        self,
        source: Iterable[Descriptor],
        memory_budget: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> IngestionResult:
        """
        Run the producer and the memory manager concurrently over ``source``.

        ``timeout`` bounds how long the producer may take; when it runs out,
        or when ``cancel`` is set, both stages stop and the result holds
        whatever was admitted so far.
        """
        budget = self.settings.memory_budget if memory_budget is None else memory_budget
        if timeout is None:
            timeout = self.settings.ingest_timeout
        cancel = cancel or threading.Event()

        state = AdmissionState(budget)
        result = IngestionResult(memory_budget=budget)

        producer = threading.Thread(
            target=self._produce, args=(source, state, cancel), name="job-producer", daemon=True
        )
        manager = threading.Thread(
            target=self._manage_memory, args=(state, cancel), name="memory-manager", daemon=True
        )
        producer.start()
        manager.start()

        producer.join(timeout)
        if producer.is_alive():
            logger.error(f"Job source stalled for more than {timeout}s, cancelling ingestion")
            cancel.set()
        manager.join()

        result.cancelled = cancel.is_set()
        result.admitted = state.ready
        result.pending = state.pending
        result.used_memory = state.used_memory
        # copies: a stalled producer may still be running after we return
        result.rejected = state.rejected
        result.source_error = state.source_error

        logger.info(
            f"Admitted {len(result.admitted)} job(s) using {result.used_memory}/{budget} memory; "
            f"{len(result.pending)} pending, {len(result.rejected)} rejected"
        )
        return result

    def _build(self, descriptor: Descriptor) -> ProcessRecord:
        pid, burst, priority, memory = parse_descriptor(descriptor)

        if burst <= 0:
            raise ValidationError(descriptor, f"burst time must be positive, got {burst}")
        low, high = self.settings.priority_min, self.settings.priority_max
        if not low <= priority <= high:
            raise ValidationError(descriptor, f"priority must be in [{low}, {high}], got {priority}")
        if memory <= 0:
            raise ValidationError(descriptor, f"memory must be positive, got {memory}")

        return ProcessRecord(pid=pid, burst_time=burst, priority=priority, memory_required=memory)

    def _emit_admitted(self, record: ProcessRecord) -> None:
        self.events.emit(SystemCall.ALLOCATE, record, detail=f"{record.memory_required} units")
        self.events.emit(SystemCall.SET_STATE, record, detail=record.state.value)

    def _produce(
        self,
        source: Iterable[Descriptor],
        state: AdmissionState,
        cancel: threading.Event,
    ) -> None:
        seen = set()
        try:
            for descriptor in source:
                if cancel.is_set():
                    break
                try:
                    record = self._build(descriptor)
                    if record.pid in seen:
                        raise ValidationError(descriptor, f"duplicate process id {record.pid}")
                except ValidationError as exc:
                    logger.warning(f"Skipping job: {exc}")
                    state.reject(exc)
                    continue

                seen.add(record.pid)
                self.events.emit(SystemCall.CREATE, record)
                state.add_pending(record)
        except SourceUnavailableError as exc:
            logger.error(str(exc))
            state.fail(exc)
        except Exception as exc:
            error = SourceUnavailableError(type(source).__name__, f"{type(exc).__name__}: {exc}")
            logger.error(str(error), exc_info=True)
            state.fail(error)
        finally:
            state.producer_done.set()

    def _manage_memory(self, state: AdmissionState, cancel: threading.Event) -> None:
        while not cancel.is_set():
            # read before scanning so an append racing the scan is not lost
            producer_finished = state.producer_done.is_set()
            record = state.admit_next()
            if record is not None:
                self._emit_admitted(record)
                continue
            if producer_finished:
                return
            cancel.wait(self.settings.admission_poll_interval)
