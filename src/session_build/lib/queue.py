# src/session_build/lib/queue.py
# --------------------------------
# Resolved session metadata and the build queue: a Graph of sessions whose
# edges run from parent to child.

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import UndefinedUnit
from .graph import Graph


@dataclass(frozen=True)
class SessionInfo:
    """
    Everything known about one declared session after resolution.

    ``sources`` holds the declared source groups as (merged options,
    references relative to ``dir``); ``files`` lists auxiliary files.
    """

    dir: Path
    parent: Optional[str] = None
    groups: Tuple[str, ...] = ()
    description: str = ""
    options: Dict[str, str] = field(default_factory=dict)
    sources: Tuple[Tuple[Dict[str, str], Tuple[str, ...]], ...] = ()
    files: Tuple[str, ...] = ()
    entry_digest: str = ""


class SessionQueue:
    """Build queue over a session Graph. All updates return a new queue."""

    def __init__(self, graph: Optional[Graph[SessionInfo]] = None):
        self.graph: Graph[SessionInfo] = graph if graph is not None else Graph()

    def __getitem__(self, name: str) -> SessionInfo:
        return self.graph.get_node(name)

    def __contains__(self, name: object) -> bool:
        return name in self.graph

    def __len__(self) -> int:
        return len(self.graph)

    @property
    def is_empty(self) -> bool:
        return self.graph.is_empty

    def keys(self) -> List[str]:
        return self.graph.keys()

    def insert(
        self, name: str, info: SessionInfo, deps: Optional[Iterable[str]] = None
    ) -> "SessionQueue":
        """
        Add a session with edges from each dependency (default: its parent).

        Raises DuplicateUnit, UndefinedUnit or CycleDetected; on failure the
        receiver is unchanged.
        """
        if deps is None:
            deps = [info.parent] if info.parent else []
        graph = self.graph.new_node(name, info).add_deps_acyclic(name, deps)
        return SessionQueue(graph)

    def remove(self, name: str) -> "SessionQueue":
        return SessionQueue(self.graph.del_node(name))

    def required(
        self,
        all_sessions: bool = False,
        session_groups: Iterable[str] = (),
        sessions: Iterable[str] = (),
    ) -> Tuple[List[str], "SessionQueue"]:
        """
        Resolve a selection into (descendants, restricted queue).

        ``descendants`` is every name reachable forward from the selection,
        sorted; they are reported and cleaned but not built. The restricted
        queue holds the selection together with every ancestor needed to
        build it.
        """
        wanted = list(sessions)
        bad = [n for n in wanted if n not in self.graph]
        if bad:
            raise UndefinedUnit(bad)

        if all_sessions:
            selected = self.graph.keys()
        else:
            sel_groups = set(session_groups)
            sel = set(wanted)
            selected = [
                name
                for name, info, _ in self.graph.entries()
                if name in sel or sel_groups.intersection(info.groups)
            ]
        descendants = self.graph.all_succs(selected)
        restricted = self.graph.restrict(self.graph.all_preds(selected))
        return sorted(descendants), SessionQueue(restricted)

    def dequeue(self, skip: Callable[[str], bool]) -> Optional[Tuple[str, SessionInfo]]:
        """First session (by name) with no pending dependency and not skipped."""
        for name, info, deps in self.graph.entries():
            if not deps and not skip(name):
                return name, info
        return None

    def is_leaf(self, name: str) -> bool:
        return self.graph.is_maximal(name)

    def is_inner(self, name: str) -> bool:
        return not self.is_leaf(name)

    def topological_order(self) -> List[Tuple[str, SessionInfo]]:
        return [(name, self[name]) for name in self.graph.topological_order()]
