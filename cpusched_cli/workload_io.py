from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Iterator, Mapping, Tuple

from .admission import Descriptor
from .errors import SourceUnavailableError

logger = logging.getLogger(__name__)

FIELDS = ("id", "burst_time", "priority", "memory")


def iter_descriptors(path: str | Path) -> Iterator[Descriptor]:
    """
    Yield raw job descriptors from a workload file.

    ``.json`` and ``.csv`` files hold records with the keys/columns
    ``id, burst_time, priority, memory``; anything else is read as one
    ``id:burst:priority:memory`` descriptor per line. Nothing is validated
    here: a text line that is not UTF-8 is passed on as raw bytes and
    rejected on its own. Raises SourceUnavailableError when the file cannot
    be read or a JSON/CSV file cannot be decoded.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        if suffix == ".json":
            yield from _iter_json(path)
        elif suffix == ".csv":
            yield from _iter_csv(path)
        else:
            yield from _iter_lines(path)
    except OSError as exc:
        raise SourceUnavailableError(str(path), exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise SourceUnavailableError(str(path), f"not valid UTF-8 ({exc.reason})") from exc


def _iter_lines(path: Path) -> Iterator[Descriptor]:
    with path.open("rb") as f:
        for raw in f:
            raw = raw.strip()
            if not raw:
                continue
            try:
                yield raw.decode("utf-8")
            except UnicodeDecodeError:
                yield raw


def _iter_json(path: Path) -> Iterator[Tuple[object, ...]]:
    with path.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise SourceUnavailableError(str(path), f"invalid JSON ({exc.msg})") from exc

    if not isinstance(raw, list):
        raise SourceUnavailableError(str(path), "JSON workload must be a list of job objects")

    for entry in raw:
        yield _fields_from_mapping(entry)


def _iter_csv(path: Path) -> Iterator[Tuple[object, ...]]:
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            yield _fields_from_mapping(row)


def _fields_from_mapping(mapping: object) -> Tuple[object, ...]:
    if not isinstance(mapping, Mapping):
        logger.debug(f"Workload entry is not a mapping: {mapping!r}")
        return (mapping,)
    return tuple(mapping.get(key) for key in FIELDS)
