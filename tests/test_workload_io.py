from pathlib import Path

import pytest

from cpusched_cli.admission import AdmissionController
from cpusched_cli.config import Settings
from cpusched_cli.errors import SourceUnavailableError
from cpusched_cli.workload_io import iter_descriptors


def test_load_text(tmp_path: Path):
    p = tmp_path / "job.txt"
    p.write_text("1:5:3:100\n\n2;3;5;100\nbroken line\n")
    assert list(iter_descriptors(p)) == ["1:5:3:100", "2;3;5;100", "broken line"]


def test_load_json(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"id":1,"burst_time":5,"priority":3,"memory":100},'
                 '{"id":2,"burst_time":3,"priority":5}]')
    descriptors = list(iter_descriptors(p))
    assert descriptors[0] == (1, 5, 3, 100)
    assert descriptors[1] == (2, 3, 5, None)


def test_load_csv(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("id,burst_time,priority,memory\n1,5,3,100\n2,3,5,\n")
    descriptors = list(iter_descriptors(p))
    assert descriptors[0] == ("1", "5", "3", "100")
    assert descriptors[1] == ("2", "3", "5", "")


def test_malformed_records_are_skipped_during_ingestion(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("id,burst_time,priority,memory\n1,5,3,100\n2,3,5,\n3,1,1,10\n")
    result = AdmissionController(settings=Settings(admission_poll_interval=0.01)).ingest(iter_descriptors(p))
    assert [r.pid for r in result.admitted] == [1, 3]
    assert len(result.rejected) == 1


def test_missing_file(tmp_path: Path):
    with pytest.raises(SourceUnavailableError):
        list(iter_descriptors(tmp_path / "nope.txt"))


def test_json_must_be_a_list(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('{"id": 1}')
    with pytest.raises(SourceUnavailableError):
        list(iter_descriptors(p))


def test_undecodable_line_is_passed_on_raw(tmp_path: Path):
    p = tmp_path / "job.txt"
    p.write_bytes(b"1:5:3:100\n2:3:5:1\xff00\n3:4:2:100\n")
    assert list(iter_descriptors(p)) == ["1:5:3:100", b"2:3:5:1\xff00", "3:4:2:100"]


def test_undecodable_line_is_skipped_during_ingestion(tmp_path: Path):
    p = tmp_path / "job.txt"
    p.write_bytes(b"1:5:3:100\n2:3:5:1\xff00\n3:4:2:100\n")
    result = AdmissionController(settings=Settings(admission_poll_interval=0.01)).ingest(iter_descriptors(p))
    assert [r.pid for r in result.admitted] == [1, 3]
    assert [e.reason for e in result.rejected] == ["line is not valid UTF-8"]
    assert result.source_error is None


def test_undecodable_json_is_unavailable(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_bytes(b'[{"id": "\xff"}]')
    with pytest.raises(SourceUnavailableError):
        list(iter_descriptors(p))
