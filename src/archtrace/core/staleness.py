"""
archtrace.core.staleness - Detect modules whose source outran their trace.

A touched module is stale when the newest modification time among the
files under its globs is later than its low-level trace's
``lastGenerated``, or when it has no low-level trace at all. Files that
match no module are ignored.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from archtrace.core.generator import TraceGenerator
from archtrace.core.models import ModuleConfig
from archtrace.core.module_config import find_module_for_file, glob_base, to_glob_path
from archtrace.core.store import TraceProject
from archtrace.utilities.timestamps import from_mtime, parse_iso, to_iso


@dataclass
class StaleModule:
    """One module whose trace must be regenerated.

    Attributes:
        module: Module id
        last_generated: Trace timestamp, or None when no trace exists
        newest_source: Newest source modification time (ISO), if any
        command: Command that regenerates the trace
    """

    module: str
    last_generated: str | None
    newest_source: str | None
    command: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "lastGenerated": self.last_generated,
            "newestSource": self.newest_source,
            "command": self.command,
        }


@dataclass
class StalenessReport:
    checked_modules: list[str] = field(default_factory=list)
    stale: list[StaleModule] = field(default_factory=list)

    @property
    def is_stale(self) -> bool:
        return bool(self.stale)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkedModules": list(self.checked_modules),
            "stale": [s.to_dict() for s in self.stale],
        }

    def format_message(self) -> str:
        lines = ["Blocked: architecture traces are out of date for the modules below."]
        for entry in self.stale:
            if entry.last_generated is None:
                reason = "no low-level trace"
            else:
                reason = f"trace {entry.last_generated}, source {entry.newest_source}"
            lines.append(f"  - {entry.module} ({reason}): run `{entry.command}`")
        lines.append("Regenerate, review the updated traces, then commit again.")
        return "\n".join(lines)


def regenerate_command(module_id: str) -> str:
    return f"archtrace generate {module_id}"


class StalenessChecker:
    def __init__(self, project: TraceProject, config: ModuleConfig | None):
        self.project = project
        self.config = config
        self._generator = TraceGenerator(project, config) if config else None

    def newest_source_mtime(self, module_id: str) -> datetime | None:
        """Newest modification time among a module's files."""
        module = self.config.get(module_id)
        base = glob_base(self.project, self.config)
        newest: float | None = None
        for rel_path in self._generator.module_files(module):
            try:
                mtime = os.stat(base / rel_path).st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest:
                newest = mtime
        return from_mtime(newest) if newest is not None else None

    def touched_modules(self, files: list[str | Path]) -> list[str]:
        """Distinct owning modules of the given files, in first-seen order."""
        touched: list[str] = []
        for path in files:
            module = find_module_for_file(self.config, to_glob_path(self.project, self.config, path))
            if module is not None and module.id not in touched:
                touched.append(module.id)
        return touched

    def check(self, files: list[str | Path]) -> StalenessReport:
        report = StalenessReport()
        if self.config is None:
            return report
        for module_id in self.touched_modules(files):
            report.checked_modules.append(module_id)
            newest = self.newest_source_mtime(module_id)
            newest_iso = to_iso(newest) if newest else None
            trace = self.project.load_low_level(module_id)
            if trace is None:
                report.stale.append(
                    StaleModule(module_id, None, newest_iso, regenerate_command(module_id))
                )
                continue
            generated = parse_iso(trace.last_generated)
            if generated is None or (newest is not None and newest > generated):
                report.stale.append(
                    StaleModule(
                        module_id, trace.last_generated, newest_iso, regenerate_command(module_id)
                    )
                )
        return report


def check_staleness(
    project: TraceProject,
    config: ModuleConfig | None,
    files: list[str | Path],
) -> StalenessReport:
    """Convenience wrapper around ``StalenessChecker.check``."""
    return StalenessChecker(project, config).check(files)
