# src/session_build/lib/scheduler.py
# ------------------------------------
# The polling build loop. One control loop owns the pending queue, the
# running jobs and the results; jobs are external processes it only polls.
#
# Each step either harvests one finished job, or (if below the parallelism
# bound) resolves the next ready session, or sleeps for a poll interval.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Tuple

import click

from ..errors import BuildError, BuildProcessCancelled, BuildProcessFailed
from .digest import NO_HEAP, heap_stamp
from .paths import OutputLayout, format_path
from .queue import SessionInfo, SessionQueue
from .record import Stamps, record_failure, record_success
from .reinstate import Reinstate

logger = logging.getLogger(__name__)


class Status(Enum):
    CURRENT = auto()    # already up to date, skipped
    BUILT = auto()
    FAILED = auto()
    CANCELLED = auto()  # an ancestor did not succeed
    OUTDATED = auto()   # no-build mode and a rebuild would be needed


@dataclass(frozen=True)
class Result:
    current: bool
    heap: str
    rc: int
    status: Status
    error: Optional[BuildError] = None


ROOT_RESULT = Result(current=True, heap=NO_HEAP, rc=0, status=Status.CURRENT)


class RunningJob(Protocol):
    parent_heap: str

    @property
    def output_path(self) -> Optional[Path]: ...

    @property
    def elapsed(self) -> Optional[float]: ...

    def is_finished(self) -> bool: ...

    def join(self) -> Tuple[str, str, int]: ...

    def terminate(self) -> None: ...


# (name, info, parent_heap, output, do_output) -> job
JobStarter = Callable[[str, SessionInfo, str, Path, bool], RunningJob]


class Scheduler:
    """
    Drive ``queue`` to completion.

    ``stamp(name)`` returns the current sources stamp of a session and is
    evaluated at most once per session. ``start`` spawns a job.
    """

    def __init__(
        self,
        queue: SessionQueue,
        stamp: Callable[[str], str],
        layout: OutputLayout,
        start: JobStarter,
        *,
        max_jobs: int = 1,
        no_build: bool = False,
        build_heap: bool = False,
        poll_interval: float = 0.5,
        log_tail_lines: int = 20,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.queue = queue
        self.layout = layout
        self.max_jobs = max(1, max_jobs)
        self.no_build = no_build
        self.build_heap = build_heap
        self.poll_interval = poll_interval
        self.log_tail_lines = log_tail_lines
        self._stamp = stamp
        self._start = start
        self._sleep = sleep
        self._stamps: Dict[str, str] = {}

        self.pending = queue
        self.running: Dict[str, RunningJob] = {}
        self.results: Dict[str, Result] = {}

    # ─────────────────────────────── Main loop ─────────────────────────────────

    def run(self) -> Dict[str, Result]:
        try:
            while not self.pending.is_empty:
                finished = self._finished_job()
                if finished is not None:
                    self._harvest(finished)
                elif not (len(self.running) < self.max_jobs and self._start_next()):
                    self._sleep(self.poll_interval)
        except BaseException:
            # interrupt or an error while harvesting: no process may outlive the run
            self.terminate_all()
            raise
        return self.results

    def terminate_all(self) -> None:
        """Terminate every running job, then reap it so its temp files go away."""
        names = sorted(self.running)
        for name in names:
            logger.warning("Aborting: terminating %s", name)
            self.running[name].terminate()
        for name in names:
            try:
                self.running.pop(name).join()
            except OSError as e:
                logger.error("Could not reap %s: %s", name, e)

    def stamp(self, name: str) -> str:
        if name not in self._stamps:
            self._stamps[name] = self._stamp(name)
        return self._stamps[name]

    def do_output(self, name: str) -> bool:
        """Keep the heap if asked to, or if another session builds on it."""
        return self.build_heap or self.queue.is_inner(name)

    # ─────────────────────────────── Steps ─────────────────────────────────────

    def _finished_job(self) -> Optional[str]:
        for name in sorted(self.running):
            if self.running[name].is_finished():
                return name
        return None

    def _harvest(self, name: str) -> None:
        job = self.running[name]
        out, err, rc = job.join()
        if err.strip():
            click.echo(err.rstrip())

        if rc == 0:
            heap = heap_stamp(job.output_path)
            stamps = Stamps(self.stamp(name), job.parent_heap, heap)
            record = record_success(self.layout, name, stamps, out)
            click.echo(f"Finished {name} ({job.elapsed}s)")
            logger.info("Built %s (record %s)", name, record)
            result = Result(False, heap, 0, Status.BUILT)
        else:
            code = rc if rc > 0 else 1
            log_path = record_failure(self.layout, name, out)
            click.echo(f"{name} FAILED")
            click.echo(f"(see also {format_path(log_path)})")
            lines = out.splitlines()
            tail = lines[-self.log_tail_lines:] if self.log_tail_lines > 0 else []
            click.echo("\n" + "\n".join(tail))
            logger.error("%s failed with exit code %s", name, rc)
            result = Result(
                False, NO_HEAP, code, Status.FAILED, BuildProcessFailed(name, rc, log_path)
            )

        self._resolve(name, result)
        del self.running[name]

    def _start_next(self) -> bool:
        """Resolve or start the next ready session; False if none is ready."""
        entry = self.pending.dequeue(lambda n: n in self.running)
        if entry is None:
            return False
        name, info = entry

        parent_result = ROOT_RESULT if info.parent is None else self.results[info.parent]
        do_output = self.do_output(name)
        decision = Reinstate.decide(
            self.layout, name, self.stamp(name), parent_result.heap, do_output
        )

        if decision.current and parent_result.current:
            logger.info("Skipping %s: up to date", name)
            self._resolve(name, Result(True, decision.heap, 0, Status.CURRENT))
        elif self.no_build:
            logger.info("%s is outdated (no-build mode)", name)
            self._resolve(name, Result(False, decision.heap, 1, Status.OUTDATED))
        elif parent_result.rc == 0:
            click.echo(("Building " if do_output else "Running ") + name + " ...")
            self.running[name] = self._start(
                name, info, parent_result.heap, self.layout.heap(name), do_output
            )
        else:
            click.echo(f"{name} CANCELLED")
            logger.warning("Cancelled %s: parent %s did not succeed", name, info.parent)
            self._resolve(
                name,
                Result(
                    False,
                    decision.heap,
                    1,
                    Status.CANCELLED,
                    BuildProcessCancelled(name, info.parent),
                ),
            )
        return True

    def _resolve(self, name: str, result: Result) -> None:
        self.results[name] = result
        self.pending = self.pending.remove(name)


def exit_code(results: Dict[str, Result]) -> int:
    """Maximum per-session code; 0 if everything is current or built."""
    return max((r.rc for r in results.values()), default=0)


def unfinished(results: Dict[str, Result]) -> list[str]:
    return sorted(name for name, r in results.items() if r.rc != 0)
