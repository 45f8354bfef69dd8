# src/session_build/lib/jobs.py
# -------------------------------
# One external build process per session: start without blocking, poll,
# join once, terminate on request.

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

from .queue import SessionInfo

logger = logging.getLogger(__name__)


class Job:
    """
    A running (or finished) bash script bound to one session.

    stdout/stderr are spooled to anonymous temporary files so the process
    never stalls on a full pipe while the scheduler is only polling.
    """

    def __init__(
        self,
        name: str,
        cwd: Path,
        env: Dict[str, str],
        script: str,
        args: str,
        parent_heap: str,
        output: Path,
        do_output: bool,
    ):
        self.name = name
        self.parent_heap = parent_heap
        self.output = output
        self.do_output = do_output
        self._result: Optional[Tuple[str, str, int]] = None

        # unique per job: concurrent jobs share the temp directory
        fd, args_path = tempfile.mkstemp(prefix=f"args-{name}-", suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(args)
        self.args_file = Path(args_path)

        full_env = dict(os.environ)
        full_env.update(env)
        full_env["ARGS_FILE"] = str(self.args_file)

        self._stdout = tempfile.TemporaryFile()
        self._stderr = tempfile.TemporaryFile()
        self.started = time.monotonic()
        self.elapsed: Optional[float] = None
        logger.info("[%s] Running in %s: %s", name, cwd, script.strip())
        try:
            self._proc = subprocess.Popen(
                ["bash", "-c", script],
                cwd=str(cwd),
                env=full_env,
                stdout=self._stdout,
                stderr=self._stderr,
            )
        except OSError:
            self._cleanup()
            raise

    @property
    def output_path(self) -> Optional[Path]:
        return self.output if self.do_output else None

    @property
    def pid(self) -> int:
        return self._proc.pid

    def is_finished(self) -> bool:
        return self._result is not None or self._proc.poll() is not None

    def join(self) -> Tuple[str, str, int]:
        """Wait for the process and return (stdout, stderr, returncode)."""
        if self._result is None:
            rc = self._proc.wait()
            self.elapsed = round(time.monotonic() - self.started, 2)
            out, err = self._read(self._stdout), self._read(self._stderr)
            self._cleanup()
            self._result = (out, err, rc)
            logger.info("[%s] finished in %ss (exit %s)", self.name, self.elapsed, rc)
        return self._result

    def terminate(self) -> None:
        if self._result is None and self._proc.poll() is None:
            logger.warning("[%s] terminating pid %s", self.name, self.pid)
            self._proc.terminate()

    # ─────────────────────────────── Internal helpers ───────────────────────────

    @staticmethod
    def _read(fh) -> str:
        fh.seek(0)
        return fh.read().decode("utf-8", errors="replace")

    def _cleanup(self) -> None:
        self.args_file.unlink(missing_ok=True)
        self._stdout.close()
        self._stderr.close()


def job_args(
    name: str,
    info: SessionInfo,
    do_output: bool,
    verbose: bool,
) -> str:
    """JSON argument file content handed to the build script."""
    return json.dumps(
        {
            "do_output": do_output,
            "options": info.options,
            "verbose": verbose,
            "parent": info.parent or "",
            "name": name,
            "sources": [
                [opts, [str(info.dir / s) for s in srcs]] for opts, srcs in info.sources
            ],
        },
        indent=2,
        sort_keys=True,
    )


def start_job(
    name: str,
    info: SessionInfo,
    parent_heap: str,
    output: Path,
    do_output: bool,
    script: str,
    verbose: bool = False,
) -> Job:
    """Spawn the build script for ``name`` in the session directory."""
    if not do_output:
        output.unlink(missing_ok=True)
    output.parent.mkdir(parents=True, exist_ok=True)
    env = {
        "INPUT": info.parent or "",
        "TARGET": name,
        "OUTPUT": str(output.resolve()),
        "DO_OUTPUT": "true" if do_output else "false",
    }
    return Job(
        name,
        info.dir,
        env,
        script,
        job_args(name, info, do_output, verbose),
        parent_heap,
        output,
        do_output,
    )
