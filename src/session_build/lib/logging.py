# src/session_build/lib/logging.py
# ----------------------------------
# Per-run log file. Every invocation appends to <output_dir>/log/run_summary.log;
# progress meant for the user goes through click.echo, so log records only
# reach the console in verbose mode.

import logging
import os
import warnings
from pathlib import Path

RUN_LOG = "run_summary.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def run_log_path(log_dir: Path) -> Path:
    return Path(log_dir) / RUN_LOG


def setup_run_logging(log_path: Path, mode: str = "a", quiet: bool = False) -> Path:
    """Route logging for one build run into ``log_path``.

    Handlers left over from an earlier run in the same process are closed
    first. With ``quiet`` the console gets nothing.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [logging.FileHandler(log_path, mode=mode)]
    if not quiet:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        handlers.append(console)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=handlers)
    logging.captureWarnings(True)
    warnings.filterwarnings("default")

    logging.getLogger(__name__).info("==== session-build run (pid %d) ====", os.getpid())
    return log_path
