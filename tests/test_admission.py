import threading
import time

import pytest

from cpusched_cli.admission import AdmissionController, AdmissionState, parse_descriptor
from cpusched_cli.config import Settings
from cpusched_cli.errors import SourceUnavailableError, ValidationError
from cpusched_cli.events import SystemCall, SystemCallLog
from cpusched_cli.models import ProcessRecord, ProcessState


def _controller(**overrides):
    settings = Settings(admission_poll_interval=0.01, **overrides)
    return AdmissionController(settings=settings, events=SystemCallLog(record=True))


def _new(pid, memory):
    return ProcessRecord(pid=pid, burst_time=5, priority=3, memory_required=memory)


def test_parse_descriptor_accepts_both_separators():
    assert parse_descriptor("1:5:3:100") == (1, 5, 3, 100)
    assert parse_descriptor(" 2;3;5;100 ") == (2, 3, 5, 100)
    assert parse_descriptor("3:4;2: 64") == (3, 4, 2, 64)
    assert parse_descriptor(("4", 1, "8", "10")) == (4, 1, 8, 10)


@pytest.mark.parametrize(
    "descriptor",
    [
        "1:5:3",
        "1:5:3:100:7",
        "1:x:3:100",
        "1:5.5:3:100",
        "",
        (1, None, 3, 10),
    ],
)
def test_parse_descriptor_rejects_malformed(descriptor):
    with pytest.raises(ValidationError):
        parse_descriptor(descriptor)


@pytest.mark.parametrize(
    "descriptor",
    ["1:0:3:100", "1:-2:3:100", "1:5:0:100", "1:5:9:100", "1:5:3:0", "1:5:3:-1"],
)
def test_validate_rejects_out_of_range(descriptor):
    with pytest.raises(ValidationError):
        _controller().validate(descriptor)


def test_validate_is_deterministic_and_emits_create():
    controller = _controller()
    a = controller.validate("1:5:3:100")
    b = controller.validate("1:5:3:100")
    assert a == b
    assert a is not b
    assert a.state is ProcessState.NEW
    assert [e.call for e in controller.events.events] == [SystemCall.CREATE, SystemCall.CREATE]


def test_validate_respects_configured_priority_range():
    controller = _controller(priority_min=0, priority_max=20)
    assert controller.validate("1:5:15:100").priority == 15


def test_admit_both_fit():
    controller = _controller()
    records = [controller.validate("1:5:3:100"), controller.validate("2:3:5:100")]
    admitted = controller.admit(records, memory_budget=2048)
    assert [p.pid for p in admitted] == [1, 2]
    assert all(p.state is ProcessState.READY for p in admitted)


def test_admit_leaves_non_fitting_job_pending():
    controller = _controller()
    first, second = _new(1, 60), _new(2, 50)
    admitted = controller.admit([first, second], memory_budget=100)
    assert admitted == [first]
    assert second.state is ProcessState.NEW


def test_admit_is_first_fit_in_arrival_order():
    controller = _controller()
    records = [_new(1, 70), _new(2, 50), _new(3, 20), _new(4, 10), _new(5, 5)]
    admitted = controller.admit(records, memory_budget=100)
    # 70 fits, 50 does not, 20 fits, 10 fits -> 100 used, 5 does not
    assert [p.pid for p in admitted] == [1, 3, 4]
    assert sum(p.memory_required for p in admitted) == 100


def test_admit_emits_allocate_and_ready():
    controller = _controller()
    controller.admit([_new(9, 10)])
    events = controller.events.events
    assert [(e.call, e.detail) for e in events] == [
        (SystemCall.ALLOCATE, "10 units"),
        (SystemCall.SET_STATE, "READY"),
    ]


def test_state_never_exceeds_capacity():
    state = AdmissionState(capacity=150)
    for pid, memory in [(1, 100), (2, 80), (3, 50), (4, 1)]:
        state.add_pending(_new(pid, memory))
    while state.admit_next() is not None:
        assert state.used_memory <= 150
    assert [p.pid for p in state.ready] == [1, 3]
    assert [p.pid for p in state.pending] == [2, 4]


def test_ingest_skips_invalid_lines():
    controller = _controller()
    result = controller.ingest(["1:5:3:100", "garbage", "2:3:9:100", "3:3:5:100", "1:2:2:2"])
    assert [p.pid for p in result.admitted] == [1, 3]
    assert len(result.rejected) == 3
    assert "duplicate" in result.rejected[-1].reason
    assert result.source_error is None
    assert not result.cancelled


def test_ingest_reports_pending_jobs():
    controller = _controller()
    result = controller.ingest(["1:5:3:60", "2:5:3:50"], memory_budget=100)
    assert [p.pid for p in result.admitted] == [1]
    assert [p.pid for p in result.pending] == [2]
    assert result.used_memory == 60


def test_ingest_with_slow_producer():
    def slow_source():
        for line in ["1:5:3:100", "2:3:5:100", "3:1:1:100"]:
            time.sleep(0.02)
            yield line

    result = _controller().ingest(slow_source())
    assert [p.pid for p in result.admitted] == [1, 2, 3]
    assert result.pending == []


def test_ingest_source_failure_keeps_admitted_jobs():
    def failing_source():
        yield "1:5:3:100"
        raise SourceUnavailableError("jobs.txt", "disk went away")

    result = _controller().ingest(failing_source())
    assert [p.pid for p in result.admitted] == [1]
    assert isinstance(result.source_error, SourceUnavailableError)


def test_ingest_timeout_cancels_stalled_source():
    release = threading.Event()

    def stalled_source():
        yield "1:5:3:100"
        release.wait(5)
        yield "2:5:3:100"

    try:
        result = _controller().ingest(stalled_source(), timeout=0.2)
    finally:
        release.set()
    assert result.cancelled
    assert [p.pid for p in result.admitted] in ([], [1])
    assert 2 not in [p.pid for p in result.admitted]


def test_parse_descriptor_bytes():
    assert parse_descriptor(b"5:2:1:64") == (5, 2, 1, 64)
    with pytest.raises(ValidationError, match="UTF-8"):
        parse_descriptor(b"5:2:1:6\xff4")


def test_ingest_turns_unexpected_source_errors_into_source_error():
    def broken_source():
        yield "1:5:3:100"
        raise RuntimeError("reader crashed")

    result = _controller().ingest(broken_source())
    assert [p.pid for p in result.admitted] == [1]
    assert isinstance(result.source_error, SourceUnavailableError)
    assert "reader crashed" in str(result.source_error)


def test_state_hands_out_copies_of_rejections():
    state = AdmissionState(capacity=10)
    first = ValidationError("x", "bad")
    state.reject(first)
    snapshot = state.rejected

    # a producer still running after ingest returned
    state.reject(ValidationError("y", "bad"))
    assert snapshot == [first]
    assert len(state.rejected) == 2
