# src/session_build/sources.py
# ------------------------------
# Resolve every session's source files and their digests, parents first,
# so that a child does not list sources its ancestors already loaded.

from __future__ import annotations

import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Tuple

import click

from .errors import MissingSourceFile
from .lib.digest import sha1_path, sources_stamp
from .lib.queue import SessionInfo, SessionQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceNode:
    loaded: FrozenSet[str] = frozenset()
    sources: Tuple[Tuple[Path, str], ...] = ()


@dataclass
class Deps:
    deps: Dict[str, SourceNode] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.deps

    def sources(self, name: str) -> List[str]:
        return [digest for _, digest in self.deps[name].sources]

    def stamp(self, queue: SessionQueue, name: str) -> str:
        """Sources stamp: the entry digest plus every source digest."""
        return sources_stamp([queue[name].entry_digest] + self.sources(name))


def resolve_reference(name: str, dir: Path, ref: str) -> List[Path]:
    """
    Expand one source reference relative to ``dir``. Glob patterns expand to
    their sorted matches; anything that resolves to no file is an error.
    """
    pattern = dir / ref
    if any(c in ref for c in "*?["):
        matches = [Path(p) for p in sorted(glob.glob(str(pattern), recursive=True))]
        files = [p for p in matches if p.is_file()]
        if not files:
            raise MissingSourceFile(name, pattern)
        return files
    if not pattern.is_file():
        raise MissingSourceFile(name, pattern)
    return [pattern]


def session_files(name: str, info: SessionInfo, preloaded: FrozenSet[str]) -> Tuple[List[Path], FrozenSet[str]]:
    """Source files not yet loaded by an ancestor, plus auxiliary files."""
    loaded = set(preloaded)
    files: List[Path] = []
    for _opts, refs in info.sources:
        for ref in refs:
            for p in resolve_reference(name, info.dir, ref):
                key = str(p.resolve())
                if key in loaded:
                    continue
                loaded.add(key)
                files.append(p)
    for ref in info.files:
        files.extend(resolve_reference(name, info.dir, ref))
    return files, frozenset(loaded)


def dependencies(queue: SessionQueue, verbose: bool = False) -> Deps:
    deps: Dict[str, SourceNode] = {}
    for name, info in queue.topological_order():
        preloaded = deps[info.parent].loaded if info.parent in deps else frozenset()

        if verbose:
            groups = f" ({' '.join(info.groups)})" if info.groups else ""
            click.echo(f"Checking {name}{groups} ...")

        files, loaded = session_files(name, info, preloaded)
        sources = []
        for p in files:
            try:
                sources.append((p, sha1_path(p)))
            except OSError as e:
                raise MissingSourceFile(name, p) from e
        logger.info("%s: %d source file(s)", name, len(sources))
        deps[name] = SourceNode(loaded, tuple(sources))
    return Deps(deps)
