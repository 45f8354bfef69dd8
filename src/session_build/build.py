# src/session_build/build.py
# ----------------------------
# Build a selection of sessions: discover declarations, resolve sources,
# optionally purge old outputs, then run the scheduler and report.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import click

from .config_loader import merge_options, parse_option_specs
from .config_schema import BuildSettings
from .lib.jobs import start_job
from .lib.paths import OutputLayout, format_path
from .lib.scheduler import JobStarter, Result, Scheduler, exit_code, unfinished
from .sessions import find_sessions
from .sources import dependencies

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    results: Dict[str, Result] = field(default_factory=dict)
    rc: int = 0

    @property
    def unfinished(self) -> List[str]:
        return unfinished(self.results)


def output_layout(
    settings: BuildSettings, system_mode: bool = False, heap_dirs: Iterable[Path] = ()
) -> OutputLayout:
    """
    System mode reads and writes only the shared location. Otherwise the
    user location is written and searched first, then extra heap
    directories, then the shared location.
    """
    if system_mode:
        output_dir = Path(settings.system_output_dir).expanduser()
        return OutputLayout(output_dir, [output_dir])
    output_dir = Path(settings.output_dir).expanduser()
    system_dir = Path(settings.system_output_dir).expanduser()
    extra = [Path(d).expanduser() for d in [*settings.heap_dirs, *heap_dirs]]
    dirs = [output_dir]
    for d in [*extra, system_dir]:
        if d not in dirs:
            dirs.append(d)
    return OutputLayout(output_dir, dirs)


def clean(layout: OutputLayout, names: Iterable[str]) -> None:
    """Delete heap, record and failure log of every session in ``names``."""
    for name in names:
        files = [p for p in layout.session_files(name) if p.is_file()]
        if files:
            click.echo(f"Cleaning {name} ...")
        failed = False
        for p in files:
            try:
                p.unlink()
            except OSError as e:
                logger.error("Could not delete %s: %s", p, e)
                failed = True
        if failed:
            click.echo(f"{name} FAILED to delete")


def build(
    settings: Optional[BuildSettings] = None,
    *,
    all_sessions: bool = False,
    build_heap: bool = False,
    clean_build: bool = False,
    more_dirs: Iterable[Path] = (),
    session_groups: Iterable[str] = (),
    max_jobs: int = 1,
    no_build: bool = False,
    build_options: Iterable[str] = (),
    system_mode: bool = False,
    verbose: bool = False,
    sessions: Iterable[str] = (),
    heap_dirs: Iterable[Path] = (),
    start: Optional[JobStarter] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BuildReport:
    """
    Build the selected sessions and return per-session results.

    Structural errors (duplicate, cycle, undefined, bad parent, missing
    source) are raised before any job starts.
    """
    settings = settings or BuildSettings()
    options = merge_options(settings.options, parse_option_specs(build_options))

    found = find_sessions(
        options,
        more_dirs=more_dirs,
        component_dirs=[Path(d) for d in settings.component_dirs],
    )
    descendants, queue = found.required(all_sessions, session_groups, sessions)
    logger.info("Selected %d session(s), %d in queue", len(descendants), len(queue))
    deps = dependencies(queue, verbose)

    layout = output_layout(settings, system_mode, heap_dirs)
    layout.prepare()
    logger.info("Output: %s (search: %s)", layout.output_dir,
                ", ".join(format_path(d) for d in layout.input_dirs))

    if clean_build:
        clean(layout, descendants)

    if deps.is_empty:
        click.echo("### Nothing to build")
        results: Dict[str, Result] = {}
    else:
        starter = start or partial(
            start_job, script=settings.build_command, verbose=verbose
        )
        scheduler = Scheduler(
            queue,
            partial(deps.stamp, queue),
            layout,
            starter,
            max_jobs=max_jobs,
            no_build=no_build,
            build_heap=build_heap,
            poll_interval=settings.poll_interval,
            log_tail_lines=settings.log_tail_lines,
            sleep=sleep,
        )
        results = scheduler.run()

    report = BuildReport(results, exit_code(results))
    if report.rc != 0 and (verbose or not no_build):
        click.echo("Unfinished session(s): " + ", ".join(report.unfinished))
    return report
