from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .models import ProcessRecord

logger = logging.getLogger(__name__)


class SystemCall(str, Enum):
    CREATE = "create"
    ALLOCATE = "allocate"
    SET_STATE = "set_state"
    TERMINATE = "terminate"
    DEALLOCATE = "deallocate"


@dataclass(frozen=True)
class SystemCallEvent:
    call: SystemCall
    pid: int
    detail: Optional[str] = None

    def __str__(self) -> str:
        text = f"System call: {self.call.value} P{self.pid}"
        if self.detail:
            text += f" -> {self.detail}"
        return text


class SystemCallLog:
    def __init__(self, record: bool = False) -> None:
        self._record = record
        # producer and consumer threads both emit during ingestion
        self._lock = threading.Lock()
        self._events: List[SystemCallEvent] = []

    def emit(self, call: SystemCall, process: ProcessRecord, detail: Optional[str] = None) -> None:
        event = SystemCallEvent(call=call, pid=process.pid, detail=detail)
        logger.debug(str(event))
        if self._record:
            with self._lock:
                self._events.append(event)

    @property
    def events(self) -> List[SystemCallEvent]:
        with self._lock:
            return list(self._events)
