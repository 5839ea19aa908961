"""
archtrace - Architecture traces for multi-package repositories

archtrace maintains a module dependency graph and per-module symbol
tables (exports and imports per file) as JSON stores with editable
Markdown renderings, syncs document edits back into the stores, and
gates edits and commits on the traces being read and up to date.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("archtrace")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__author__ = "Anspar"
__license__ = "MIT"

from archtrace.core.models import (
    HighLevelTrace,
    LowLevelTrace,
    ModuleConfig,
    ModuleDefinition,
    SyncResult,
)

__all__ = [
    "__version__",
    "HighLevelTrace",
    "LowLevelTrace",
    "ModuleConfig",
    "ModuleDefinition",
    "SyncResult",
]
