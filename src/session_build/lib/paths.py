# src/session_build/lib/paths.py
# --------------------------------
# Where heaps, build records and failure logs live on disk.
# OutputLayout encapsulates the per-session file names inside one output
# location plus the ordered list of locations searched for prior builds.

from __future__ import annotations
import os
from pathlib import Path
from typing import Iterable, List, Optional


def format_path(p: Path, root: Path | None = None) -> str:
    """Return a user-friendly string for ``p``.

    Paths inside ``root`` are rendered relative to it. The current user's home
    directory is collapsed to ``~``.
    """
    p = Path(p).expanduser()
    if root is not None:
        try:
            p = p.resolve().relative_to(Path(root).resolve())
        except ValueError:
            p = Path(os.path.relpath(p, root))
    home = Path.home()
    try:
        p = Path("~") / p.relative_to(home)
    except ValueError:
        pass
    return str(p)


class OutputLayout:
    """
    Canonical paths for one build invocation:
      - output_dir:  where heaps and records of this run are written
      - input_dirs:  locations searched for existing records, in order
                     (output_dir first unless given otherwise)

    Inside any location:
      <dir>/<name>          heap (persistent output) of a session
      <dir>/log/<name>.gz   build record written on success
      <dir>/log/<name>      plain failure log
    """

    LOG = "log"

    def __init__(self, output_dir: Path, input_dirs: Optional[Iterable[Path]] = None):
        self.output_dir = Path(output_dir).expanduser()
        dirs: List[Path] = [Path(d).expanduser() for d in (input_dirs or [])]
        if not dirs:
            dirs = [self.output_dir]
        self.input_dirs = dirs

    def heap(self, name: str, base: Path | None = None) -> Path:
        return (base or self.output_dir) / name

    def log_dir(self, base: Path | None = None) -> Path:
        return (base or self.output_dir) / self.LOG

    def log(self, name: str, base: Path | None = None) -> Path:
        return self.log_dir(base) / name

    def log_gz(self, name: str, base: Path | None = None) -> Path:
        return self.log_dir(base) / f"{name}.gz"

    def session_files(self, name: str) -> List[Path]:
        """Every file a session may own in the output location."""
        return [self.heap(name), self.log(name), self.log_gz(name)]

    def find_record(self, name: str) -> Optional[Path]:
        """Directory of the first search location holding a record for ``name``."""
        for d in self.input_dirs:
            if self.log_gz(name, d).is_file():
                return d
        return None

    def prepare(self) -> None:
        self.log_dir().mkdir(parents=True, exist_ok=True)
