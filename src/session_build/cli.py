# src/session_build/cli.py

import sys
import logging
from pathlib import Path
from typing import Tuple

import click
from pydantic import ValidationError

from .build import build, output_layout
from .config_loader import load_settings
from .errors import BuildError
from .lib.logging import run_log_path, setup_run_logging
from .lib.paths import format_path


logger = logging.getLogger(__name__)


# ────────────────────────── helpers ──────────────────────────
def _report_error(e: BaseException) -> None:
    click.echo(f"*** {e}", err=True)
    for note in getattr(e, "__notes__", []):
        click.echo(f"*** {note}", err=True)


def _prepare_logfile(settings, system_mode: bool, verbose: bool) -> Path:
    layout = output_layout(settings, system_mode)
    log_path = setup_run_logging(run_log_path(layout.log_dir()), mode="a", quiet=not verbose)
    logger.info("Run summary: %s", format_path(log_path))
    return log_path


# ────────────────────────── entry point ──────────────────────────
@click.command()
@click.option("-a", "--all", "all_sessions", is_flag=True, help="Select all sessions.")
@click.option("-b", "--build-heap", is_flag=True, help="Keep the heap of every built session.")
@click.option("-c", "--clean-build", is_flag=True, help="Purge outputs of selected sessions first.")
@click.option("-d", "--dir", "more_dirs", multiple=True,
              type=click.Path(file_okay=False, path_type=Path),
              help="Additional directory holding a ROOT.toml (repeatable).")
@click.option("-g", "--group", "session_groups", multiple=True,
              help="Select sessions in this group (repeatable).")
@click.option("-j", "--jobs", "max_jobs", default=1, show_default=True,
              type=click.IntRange(min=1), help="Maximum number of parallel jobs.")
@click.option("-n", "--no-build", is_flag=True, help="Only check whether sessions are current.")
@click.option("-o", "--option", "build_options", multiple=True, metavar="NAME=VALUE",
              help="Override a build option (repeatable).")
@click.option("-s", "--system", "system_mode", is_flag=True,
              help="Read and write the shared system output location.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output.")
@click.option("--heap-dir", "heap_dirs", multiple=True,
              type=click.Path(file_okay=False, path_type=Path),
              help="Additional directory searched for pre-built heaps (repeatable).")
@click.option("--settings", "settings_path", default=None,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="TOML file with a [build] table.")
@click.argument("sessions", nargs=-1)
def main(
    all_sessions: bool,
    build_heap: bool,
    clean_build: bool,
    more_dirs: Tuple[Path, ...],
    session_groups: Tuple[str, ...],
    max_jobs: int,
    no_build: bool,
    build_options: Tuple[str, ...],
    system_mode: bool,
    verbose: bool,
    heap_dirs: Tuple[Path, ...],
    settings_path: Path,
    sessions: Tuple[str, ...],
) -> None:
    """Build sessions and their ancestors, skipping those already current."""
    try:
        settings = load_settings(settings_path)
        _prepare_logfile(settings, system_mode, verbose)
        report = build(
            settings,
            all_sessions=all_sessions,
            build_heap=build_heap,
            clean_build=clean_build,
            more_dirs=list(more_dirs),
            session_groups=list(session_groups),
            max_jobs=max_jobs,
            no_build=no_build,
            build_options=list(build_options),
            system_mode=system_mode,
            verbose=verbose,
            sessions=list(sessions),
            heap_dirs=list(heap_dirs),
        )
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.warning("Interrupted by user")
        sys.exit(130)
    except (BuildError, ValidationError, ValueError, OSError) as e:
        logger.error("Build aborted: %s", e)
        _report_error(e)
        sys.exit(2)

    if report.rc == 0:
        logger.info("All selected sessions are current or built.")
    else:
        logger.error("Unfinished session(s): %s", ", ".join(report.unfinished))
    sys.exit(report.rc)


if __name__ == "__main__":  # pragma: no cover
    main()
