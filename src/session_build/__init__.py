# src/session_build/__init__.py
# -----------------------------
# Top-level package initializer for session-build.
# Controls which submodules are exported when doing:
#   from session_build import *

__all__ = [
    "build",
    "cli",
    "config_loader",
    "errors",
    "lib",
    "sessions",
    "sources",
]
