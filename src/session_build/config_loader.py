import tomllib
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .config_schema import BuildSettings, RootFile, SessionEntry, _stringify_options


def load_settings(path: str | Path | None = None) -> BuildSettings:
    """Load the [build] table of a settings TOML; defaults when ``path`` is None."""
    if path is None:
        return BuildSettings()
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    return BuildSettings.model_validate(data.get("build", {}))


def load_root(path: str | Path) -> List[SessionEntry]:
    """Parse a ROOT.toml file into its session entries (in file order)."""
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    return RootFile.model_validate(data).session


def iter_catalog(catalog: Path) -> Iterator[str]:
    """Yield directory entries of a catalog file, skipping blanks and comments."""
    for raw in catalog.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        yield line


def parse_option_specs(specs: Iterable[str]) -> Dict[str, str]:
    """Turn ``NAME=VALUE`` (or bare ``NAME`` meaning true) specs into options."""
    raw: Dict[str, object] = {}
    for spec in specs:
        name, sep, value = spec.partition("=")
        name = name.strip()
        if not name:
            raise ValueError(f"Bad option specification: {spec!r}")
        raw[name] = value.strip() if sep else True
    return _stringify_options(raw)


def merge_options(*layers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Later layers override earlier ones."""
    merged: Dict[str, str] = {}
    for layer in layers:
        merged.update(layer or {})
    return merged
