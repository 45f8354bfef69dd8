"""
Central logic for deciding whether a session is current:

 • the first search location holding a record for the session is used
 • the record is current only if its three stamps match fresh values
 • a session that must keep its heap is never current without one

The object is intentionally tiny so the scheduler funnels every decision
through one place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .digest import NO_HEAP, heap_stamp
from .paths import OutputLayout
from .record import read_stamps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    current: bool
    heap: str


class Reinstate:
    """Stateless helper used by the scheduler before starting a job."""

    @staticmethod
    def decide(
        layout: OutputLayout,
        name: str,
        sources: str,
        parent_heap: str,
        do_output: bool,
    ) -> Decision:
        """
        Parameters
        ----------
        layout       : output location plus search locations
        name         : session name
        sources      : freshly computed sources stamp
        parent_heap  : heap stamp the parent produced (or found) in this run
        do_output    : does this session have to keep its heap?

        Returns
        -------
        Decision(current, heap) where ``heap`` is the stamp of the heap found
        next to the matching record (``NO_HEAP`` if there is none).
        """
        base = layout.find_record(name)
        if base is None:
            logger.info("[Reinstate] %s: no build record", name)
            return Decision(False, NO_HEAP)

        stamps = read_stamps(layout.log_gz(name, base))
        if stamps is None:
            logger.info("[Reinstate] %s: malformed record in %s", name, base)
            return Decision(False, NO_HEAP)

        heap = heap_stamp(layout.heap(name, base))
        sources_ok = stamps.sources == sources
        parent_ok = stamps.parent_heap == parent_heap
        heap_ok = stamps.heap == heap
        missing_heap = do_output and heap == NO_HEAP

        logger.info("[Reinstate] Session: %s (record in %s)", name, base)
        logger.info("  sources match? %s", sources_ok)
        logger.info("  parent heap match? %s", parent_ok)
        logger.info("  own heap match? %s", heap_ok)
        if missing_heap:
            logger.info("  heap required but missing")

        return Decision(sources_ok and parent_ok and heap_ok and not missing_heap, heap)
