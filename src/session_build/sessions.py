# src/session_build/sessions.py
# -------------------------------
# Discover session declarations (ROOT.toml files and etc/sessions catalogs)
# and turn them into a SessionQueue.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from .config_loader import iter_catalog, load_root, merge_options
from .config_schema import SessionEntry
from .errors import BadParentReference, BadSessionEntry, BuildError
from .lib.digest import entry_digest
from .lib.queue import SessionInfo, SessionQueue

logger = logging.getLogger(__name__)

ROOT = "ROOT.toml"
CATALOG = Path("etc") / "sessions"


def full_name(entry: SessionEntry, queue: SessionQueue) -> str:
    """
    A child's name is prefixed with its parent's unless ``this_name`` is
    set; sessions without a parent keep their base name.
    """
    if not entry.name:
        raise BadSessionEntry("Bad session name")
    if entry.parent is None:
        return entry.name
    if entry.parent not in queue:
        raise BadParentReference(entry.name, entry.parent)
    return entry.name if entry.this_name else f"{entry.parent}-{entry.name}"


def session_info(
    entry: SessionEntry, name: str, dir: Path, options: Dict[str, str]
) -> SessionInfo:
    session_options = merge_options(options, entry.options)
    return SessionInfo(
        dir=dir / (entry.path if entry.path is not None else entry.name),
        parent=entry.parent,
        groups=tuple(entry.groups),
        description=entry.description,
        options=session_options,
        sources=tuple(
            (merge_options(session_options, g.options), tuple(g.files))
            for g in entry.sources
        ),
        files=tuple(entry.files),
        entry_digest=entry_digest(
            name,
            entry.parent,
            entry.options,
            [(g.options, g.files) for g in entry.sources],
        ),
    )


def sessions_root(
    options: Dict[str, str], dir: Path, root: Path, queue: SessionQueue
) -> SessionQueue:
    for entry in load_root(root):
        try:
            name = full_name(entry, queue)
            queue = queue.insert(name, session_info(entry, name, dir, options))
        except BuildError as e:
            e.add_note(
                f"The error(s) above occurred in session entry {entry.name!r} ({root})"
            )
            raise
    return queue


def sessions_dir(
    options: Dict[str, str], strict: bool, dir: Path, queue: SessionQueue
) -> SessionQueue:
    root = dir / ROOT
    if root.is_file():
        logger.info("Reading %s", root)
        return sessions_root(options, dir, root, queue)
    if strict:
        raise BadSessionEntry(f"Bad session root file: {root}")
    return queue


def sessions_catalog(
    options: Dict[str, str], dir: Path, catalog: Path, queue: SessionQueue
) -> SessionQueue:
    for line in iter_catalog(catalog):
        try:
            dir2 = dir / line
            if not dir2.is_dir():
                raise BadSessionEntry(f"Bad session directory: {dir2}")
            queue = sessions_dir(options, True, dir2, queue)
        except BuildError as e:
            e.add_note(f"The error(s) above occurred in session catalog {catalog}")
            raise
    return queue


def find_sessions(
    options: Dict[str, str],
    more_dirs: Iterable[Path] = (),
    component_dirs: Iterable[Path] = (),
    queue: Optional[SessionQueue] = None,
) -> SessionQueue:
    """
    Components are scanned leniently (ROOT.toml, then etc/sessions); every
    directory in ``more_dirs`` must hold a ROOT.toml.
    """
    queue = queue if queue is not None else SessionQueue()
    for dir in component_dirs:
        dir = Path(dir).expanduser()
        queue = sessions_dir(options, False, dir, queue)
        catalog = dir / CATALOG
        if catalog.is_file():
            queue = sessions_catalog(options, dir, catalog, queue)

    for dir in more_dirs:
        queue = sessions_dir(options, True, Path(dir).expanduser(), queue)

    return queue
