# src/session_build/lib/digest.py
# ---------------------------------
# SHA-1 digests of files and declarations, and the string "stamps" that are
# compared across runs to decide whether a session is up to date.

from __future__ import annotations

import hashlib  # for SHA-1 digests
import json     # to serialize declarations consistently
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

__all__ = [
    "NO_HEAP",
    "sha1_path",
    "sha1_text",
    "entry_digest",
    "sources_stamp",
    "heap_stamp",
    "is_sources_stamp",
    "is_heap_stamp",
]

SOURCES_PREFIX = "sources: "
HEAP_PREFIX = "heap: "
NO_HEAP = HEAP_PREFIX + "-"


def sha1_text(txt: str) -> str:
    """Return the SHA-1 hex digest of a UTF-8 string."""
    return hashlib.sha1(txt.encode("utf-8")).hexdigest()


def sha1_path(p: Path, bs: int = 2**20) -> str:
    """
    Hash the contents of a file with SHA-1, reading in binary chunks.

    Raises any IO error if the file is missing or unreadable.
    """
    h = hashlib.sha1()
    with open(p, "rb") as f:
        for chunk in iter(lambda: f.read(bs), b""):
            h.update(chunk)
    return h.hexdigest()


def entry_digest(
    name: str,
    parent: Optional[str],
    options: Mapping[str, Any],
    source_groups: Sequence[Tuple[Mapping[str, Any], Sequence[str]]],
) -> str:
    """
    Digest of a session declaration.

    Covers the full name, the parent, the declared options and the declared
    source groups. Option tables are serialized with sorted keys so that the
    digest does not depend on dict ordering; source order is significant.
    """
    payload = [
        name,
        parent,
        dict(options),
        [[dict(opts), list(srcs)] for opts, srcs in source_groups],
    ]
    return sha1_text(json.dumps(payload, sort_keys=True, separators=(",", ":")))


def sources_stamp(digests: Iterable[str]) -> str:
    """Sorted, space-joined digests; independent of enumeration order."""
    return SOURCES_PREFIX + " ".join(sorted(digests))


def heap_stamp(heap: Optional[Path]) -> str:
    """
    Coarse stamp of a produced output: byte size and modification time.

    Returns ``NO_HEAP`` when there is no path or the path is not a file.
    """
    if heap is None or not heap.is_file():
        return NO_HEAP
    st = heap.stat()
    return f"{HEAP_PREFIX}{st.st_size} {st.st_mtime_ns // 1_000_000}"


def is_sources_stamp(line: Optional[str]) -> bool:
    return line is not None and line.startswith(SOURCES_PREFIX)


def is_heap_stamp(line: Optional[str]) -> bool:
    return line is not None and line.startswith(HEAP_PREFIX)
