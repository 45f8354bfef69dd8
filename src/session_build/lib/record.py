# src/session_build/lib/record.py
# ---------------------------------
# Persisted build records. A record is a gzip text file whose first three
# lines are the sources stamp, the parent heap stamp and the own heap stamp,
# followed by the captured build output. It exists only after a success.

from __future__ import annotations

import gzip
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .digest import is_heap_stamp, is_sources_stamp
from .paths import OutputLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stamps:
    sources: str
    parent_heap: str
    heap: str


def write_record(path: Path, stamps: Stamps, output: str) -> None:
    """
    Write a record atomically: build it next to the target, then rename.

    A crash mid-write leaves at most a stray ``.tmp`` file, never a record
    that claims success.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    text = "\n".join([stamps.sources, stamps.parent_heap, stamps.heap, output])
    try:
        with gzip.open(tmp, "wt", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def read_stamps(path: Path) -> Optional[Stamps]:
    """Return the three header stamps, or None if absent or malformed."""
    if not path.is_file():
        return None
    try:
        with gzip.open(path, "rt", encoding="utf-8") as fh:
            lines = [fh.readline().rstrip("\n") for _ in range(3)]
    except (OSError, EOFError, UnicodeDecodeError) as e:
        logger.warning("Unreadable build record %s: %s", path, e)
        return None
    s, h1, h2 = lines
    if is_sources_stamp(s) and is_heap_stamp(h1) and is_heap_stamp(h2):
        return Stamps(s, h1, h2)
    return None


def read_output(path: Path) -> str:
    """Captured build output stored after the header lines."""
    with gzip.open(path, "rt", encoding="utf-8") as fh:
        return "".join(fh.readlines()[3:])


def record_success(
    layout: OutputLayout, name: str, stamps: Stamps, output: str
) -> Path:
    """Drop any old failure log, then write the fresh record."""
    layout.log(name).unlink(missing_ok=True)
    record = layout.log_gz(name)
    write_record(record, stamps, output)
    return record


def record_failure(layout: OutputLayout, name: str, output: str) -> Path:
    """
    Remove the heap and any success record first, then keep the output as a
    plain log so nothing left on disk implies the session is built.
    """
    layout.heap(name).unlink(missing_ok=True)
    layout.log_gz(name).unlink(missing_ok=True)
    log_path = layout.log(name)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(output, encoding="utf-8")
    return log_path
