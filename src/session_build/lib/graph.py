# src/session_build/lib/graph.py
# --------------------------------
# A small persistent directed graph keyed by name. Every mutating operation
# returns a new Graph; the receiver is never changed, so a failed insertion
# cannot leave a half-updated graph behind.
#
# Edges point from a dependency (pred) to its dependent (succ).

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Set, Tuple, TypeVar

from ..errors import CycleDetected, DuplicateUnit, UndefinedUnit

T = TypeVar("T")


@dataclass(frozen=True)
class _Node(Generic[T]):
    info: T
    preds: frozenset = field(default_factory=frozenset)
    succs: frozenset = field(default_factory=frozenset)


class Graph(Generic[T]):
    """
    Immutable-per-version graph of named nodes.

    Iteration (``keys``/``entries``) is in ascending name order, which keeps
    every derived ordering deterministic for identical graphs.
    """

    def __init__(self, nodes: Optional[Dict[str, _Node[T]]] = None):
        self._nodes: Dict[str, _Node[T]] = dict(nodes or {})

    # ─────────────────────────────── Queries ───────────────────────────────

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    @property
    def is_empty(self) -> bool:
        return not self._nodes

    def keys(self) -> List[str]:
        return sorted(self._nodes)

    def entries(self) -> Iterator[Tuple[str, T, frozenset]]:
        """Yield ``(name, info, imm_preds)`` in ascending name order."""
        for name in self.keys():
            node = self._nodes[name]
            yield name, node.info, node.preds

    def get_node(self, name: str) -> T:
        return self._get(name).info

    def imm_preds(self, name: str) -> frozenset:
        return self._get(name).preds

    def imm_succs(self, name: str) -> frozenset:
        return self._get(name).succs

    def is_maximal(self, name: str) -> bool:
        """True if nothing depends on ``name``."""
        return not self._get(name).succs

    def all_preds(self, names: Iterable[str]) -> Set[str]:
        """Reflexive-transitive closure backwards (ancestors plus the seeds)."""
        return self._reachable(names, lambda n: self._nodes[n].preds)

    def all_succs(self, names: Iterable[str]) -> Set[str]:
        """Reflexive-transitive closure forwards (descendants plus the seeds)."""
        return self._reachable(names, lambda n: self._nodes[n].succs)

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm over the ascending name order: every ancestor comes
        strictly before its descendants, ties broken by name.
        """
        indeg = {n: len(node.preds) for n, node in self._nodes.items()}
        ready = sorted(n for n, d in indeg.items() if d == 0)
        ordered: List[str] = []
        while ready:
            name = ready.pop(0)
            ordered.append(name)
            released = []
            for child in self._nodes[name].succs:
                indeg[child] -= 1
                if indeg[child] == 0:
                    released.append(child)
            if released:
                ready = sorted(ready + released)
        return ordered

    # ─────────────────────────────── Updates ───────────────────────────────

    def new_node(self, name: str, info: T) -> "Graph[T]":
        if name in self._nodes:
            raise DuplicateUnit(name)
        nodes = dict(self._nodes)
        nodes[name] = _Node(info)
        return Graph(nodes)

    def del_node(self, name: str) -> "Graph[T]":
        """Remove ``name`` and every edge touching it; dependents stay."""
        node = self._get(name)
        nodes = dict(self._nodes)
        del nodes[name]
        for p in node.preds:
            nodes[p] = _Node(nodes[p].info, nodes[p].preds, nodes[p].succs - {name})
        for s in node.succs:
            nodes[s] = _Node(nodes[s].info, nodes[s].preds - {name}, nodes[s].succs)
        return Graph(nodes)

    def add_edge_acyclic(self, pred: str, succ: str) -> "Graph[T]":
        """Add ``pred -> succ``; raise CycleDetected if it would close a loop."""
        missing = [n for n in (pred, succ) if n not in self._nodes]
        if missing:
            raise UndefinedUnit(missing)
        if succ in self._nodes[pred].succs:
            return self
        path = self._path(succ, pred)
        if path is not None:
            # succ ->* pred already exists, so pred -> succ closes the loop
            raise CycleDetected(path + [succ])
        nodes = dict(self._nodes)
        p, s = nodes[pred], nodes[succ]
        nodes[pred] = _Node(p.info, p.preds, p.succs | {succ})
        nodes[succ] = _Node(s.info, s.preds | {pred}, s.succs)
        return Graph(nodes)

    def add_deps_acyclic(self, name: str, deps: Iterable[str]) -> "Graph[T]":
        graph = self
        for dep in deps:
            graph = graph.add_edge_acyclic(dep, name)
        return graph

    def restrict(self, keep: Iterable[str]) -> "Graph[T]":
        """Induced sub-graph on ``keep``."""
        keep_set = set(keep) & set(self._nodes)
        nodes = {
            n: _Node(
                self._nodes[n].info,
                self._nodes[n].preds & keep_set,
                self._nodes[n].succs & keep_set,
            )
            for n in keep_set
        }
        return Graph(nodes)

    # ─────────────────────────────── Internals ─────────────────────────────

    def _get(self, name: str) -> _Node[T]:
        try:
            return self._nodes[name]
        except KeyError:
            raise UndefinedUnit([name]) from None

    def _reachable(self, names: Iterable[str], step) -> Set[str]:
        seeds = list(names)
        undefined = [n for n in seeds if n not in self._nodes]
        if undefined:
            raise UndefinedUnit(undefined)
        seen: Set[str] = set(seeds)
        todo = deque(seeds)
        while todo:
            for nxt in step(todo.popleft()):
                if nxt not in seen:
                    seen.add(nxt)
                    todo.append(nxt)
        return seen

    def _path(self, start: str, goal: str) -> Optional[List[str]]:
        """Shortest forward path ``start ->* goal`` (inclusive), if any."""
        if start == goal:
            return [start]
        parent: Dict[str, str] = {}
        todo = deque([start])
        seen = {start}
        while todo:
            cur = todo.popleft()
            for nxt in sorted(self._nodes[cur].succs):
                if nxt in seen:
                    continue
                parent[nxt] = cur
                if nxt == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parent[path[-1]])
                    return list(reversed(path))
                seen.add(nxt)
                todo.append(nxt)
        return None
