"""
archtrace.core - Trace models, generation, sync, queries and gating
"""

from archtrace.core.models import (
    ExportEntry,
    FileTrace,
    HighLevelModule,
    HighLevelTrace,
    ImportEntry,
    LowLevelTrace,
    ModuleConfig,
    ModuleDefinition,
    ModuleEdge,
    SyncResult,
)

__all__ = [
    "ExportEntry",
    "FileTrace",
    "HighLevelModule",
    "HighLevelTrace",
    "ImportEntry",
    "LowLevelTrace",
    "ModuleConfig",
    "ModuleDefinition",
    "ModuleEdge",
    "SyncResult",
]
