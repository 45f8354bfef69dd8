# src/session_build/errors.py
# ---------------------------
# Error kinds raised while loading, resolving and building sessions.
# Structural errors abort the run before any job starts; process errors are
# recorded per session and never raised by the scheduler.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


def _quote(name: str) -> str:
    return f'"{name}"'


class BuildError(Exception):
    """Base class for every session-build error."""


class DuplicateUnit(BuildError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate session: {_quote(name)}")


class CycleDetected(BuildError):
    """Adding a dependency edge would close a loop.

    ``cycle`` is the ordered list of names forming the loop, starting and
    ending with the same session.
    """

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(
            "Cyclic session dependency of "
            + " via ".join(_quote(c) for c in self.cycle)
        )


class UndefinedUnit(BuildError):
    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            "Undefined session(s): " + ", ".join(_quote(n) for n in self.names)
        )


class BadSessionEntry(BuildError):
    """A declaration entry is malformed (e.g. an empty name)."""


class BadParentReference(BuildError):
    def __init__(self, session: str, parent: Optional[str]):
        self.session = session
        self.parent = parent
        super().__init__(f"Bad parent session {_quote(parent or '')} for {_quote(session)}")


class MissingSourceFile(BuildError):
    def __init__(self, session: str, path: Path | str):
        self.session = session
        self.path = Path(path)
        super().__init__(
            f"Missing source file: {self.path}\n"
            f"The error(s) above occurred in session {_quote(session)}"
        )


class BuildProcessFailed(BuildError):
    def __init__(self, session: str, returncode: int, log_path: Path | None = None):
        self.session = session
        self.returncode = returncode
        self.log_path = log_path
        msg = f"{session} FAILED (exit {returncode})"
        if log_path is not None:
            msg += f", see also {log_path}"
        super().__init__(msg)


class BuildProcessCancelled(BuildError):
    def __init__(self, session: str, parent: Optional[str]):
        self.session = session
        self.parent = parent
        super().__init__(f"{session} CANCELLED (parent {_quote(parent or '')} did not succeed)")
