from __future__ import annotations

from typing import Any, Optional


class CpuSchedError(Exception):
    """Base class for every error raised by the scheduler package."""


class ValidationError(CpuSchedError, ValueError):
    def __init__(self, descriptor: Any, reason: str) -> None:
        self.descriptor = descriptor
        self.reason = reason
        super().__init__(f"Invalid job descriptor {descriptor!r}: {reason}")


class SourceUnavailableError(CpuSchedError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Job source {source} unavailable: {reason}")


class SelectionError(CpuSchedError, ValueError):
    def __init__(self, choice: Any) -> None:
        self.choice = choice
        super().__init__(f"Invalid selection {choice!r}")


class IllegalTransitionError(CpuSchedError, RuntimeError):
    def __init__(self, pid: int, current: Any, target: Any, reason: Optional[str] = None) -> None:
        self.pid = pid
        self.current = current
        self.target = target
        message = f"P{pid}: illegal state transition {current.value} -> {target.value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
