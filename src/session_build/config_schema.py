from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any


def _stringify_options(v: Any) -> Dict[str, str]:
    """
    Option values are kept as strings, the way they reach build scripts.
    Booleans become "true"/"false" so TOML and -o NAME=VALUE agree.
    """
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise TypeError("options must be a table of name = value")
    out: Dict[str, str] = {}
    for k, val in v.items():
        if isinstance(val, bool):
            out[str(k)] = "true" if val else "false"
        elif isinstance(val, (str, int, float)):
            out[str(k)] = str(val)
        else:
            raise TypeError(f"option {k!r} must be a string, number or boolean")
    return out


class SourceGroup(BaseModel):
    """One declared group of sources sharing option overrides."""
    model_config = ConfigDict(extra="forbid")

    options: Dict[str, str] = Field(default_factory=dict)
    files: List[str] = Field(min_length=1)

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v):
        return _stringify_options(v)


class SessionEntry(BaseModel):
    """A [[session]] table of a ROOT.toml file."""
    model_config = ConfigDict(extra="forbid")

    name: str
    this_name: bool = False
    groups: List[str] = Field(default_factory=list)
    path: Optional[str] = None
    parent: Optional[str] = None
    description: str = ""
    options: Dict[str, str] = Field(default_factory=dict)
    sources: List[SourceGroup] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list)

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v):
        return _stringify_options(v)


class RootFile(BaseModel):
    session: List[SessionEntry] = Field(default_factory=list)


class BuildSettings(BaseModel):
    """The [build] table of a settings file; every field has a default."""
    model_config = ConfigDict(extra="forbid")

    output_dir: str = "~/.session_build/output"
    system_output_dir: str = "~/.session_build/system"
    heap_dirs: List[str] = Field(default_factory=list)
    component_dirs: List[str] = Field(default_factory=list)
    build_command: str = 'exec ./build "$TARGET" "$ARGS_FILE"'
    options: Dict[str, str] = Field(default_factory=dict)
    poll_interval: float = Field(default=0.5, gt=0)
    log_tail_lines: int = Field(default=20, ge=0)

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v):
        return _stringify_options(v)
