"""
archtrace.core.query - Read-only questions against the trace stores.

- ``query_module``: what a module depends on and what depends on it
- ``analyze_impact``: which modules are affected by changing one file,
  with the file's own exports/imports when the low-level trace has them
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from archtrace.core.models import (
    FileTrace,
    HighLevelModule,
    ModuleConfig,
    ModuleEdge,
)
from archtrace.core.module_config import find_module_for_file, to_glob_path
from archtrace.core.renderer import SIDE_EFFECT
from archtrace.core.store import TraceProject


@dataclass
class ModuleQuery:
    """Dependencies and dependents of one module."""

    module: HighLevelModule
    dependencies: list[ModuleEdge] = field(default_factory=list)
    dependents: list[ModuleEdge] = field(default_factory=list)
    files: list[FileTrace] | None = None


@dataclass
class ImpactReport:
    """Blast radius of changing one file."""

    file_path: str
    owning_module: str | None = None
    affected_modules: list[ModuleEdge] = field(default_factory=list)
    file_detail: FileTrace | None = None


class QueryEngine:
    def __init__(self, project: TraceProject, config: ModuleConfig | None):
        self.project = project
        self.config = config

    def _high_level(self):
        trace = self.project.load_high_level()
        if trace is None:
            raise FileNotFoundError(
                f"No high-level trace at {self.project.relative(self.project.high_level_store_path)}. "
                "Run 'archtrace generate' first."
            )
        return trace

    def query_module(self, module_id: str, detail: bool = False) -> ModuleQuery:
        """Look up a module's edges in the high-level store.

        Raises:
            FileNotFoundError: If no high-level trace exists.
            KeyError: If the module is not in the high-level trace.
        """
        trace = self._high_level()
        module = trace.get(module_id)
        if module is None:
            known = ", ".join(m.id for m in trace.modules) or "(none)"
            raise KeyError(f"Unknown module '{module_id}'. Known modules: {known}")
        return ModuleQuery(
            module=module,
            dependencies=list(module.dependencies),
            dependents=list(module.dependents),
            files=self._file_summary(module_id) if detail else None,
        )

    def _file_summary(self, module_id: str) -> list[FileTrace]:
        trace = self.project.load_low_level(module_id)
        return list(trace.files) if trace else []

    def analyze_impact(self, file_path: str | Path) -> ImpactReport:
        """Map a file to its module and collect the modules that depend on it.

        Raises:
            FileNotFoundError: If no module config exists.
        """
        if self.config is None:
            raise FileNotFoundError("No module config; nothing is traced yet.")
        rel_path = to_glob_path(self.project, self.config, file_path)
        report = ImpactReport(file_path=rel_path)
        module = find_module_for_file(self.config, rel_path)
        if module is None:
            return report
        report.owning_module = module.id

        high_level = self.project.load_high_level()
        node = high_level.get(module.id) if high_level else None
        if node is not None:
            report.affected_modules = list(node.dependents)

        low_level = self.project.load_low_level(module.id)
        if low_level is not None:
            report.file_detail = low_level.get_file(rel_path)
        return report


# =============================================================================
# Markdown formatting
# =============================================================================


def _edge_lines(edges: list[ModuleEdge]) -> list[str]:
    if not edges:
        return ["_None_", ""]
    lines = ["| Module | Relationship | Description |", "| --- | --- | --- |"]
    for edge in edges:
        lines.append(f"| {edge.target_id} | {edge.relationship_type} | {edge.description} |")
    lines.append("")
    return lines


def _file_detail_lines(entry: FileTrace) -> list[str]:
    lines = ["**Exports**:"]
    if entry.exports:
        lines.extend(f"- `{e.symbol}` ({e.type})" for e in entry.exports)
    else:
        lines.append("- _none_")
    lines.append("")
    lines.append("**Imports**:")
    if entry.imports:
        for imp in entry.imports:
            symbols = ", ".join(imp.symbols) if imp.symbols else SIDE_EFFECT
            lines.append(f"- `{imp.source}`: {symbols}")
    else:
        lines.append("- _none_")
    lines.append("")
    return lines


def format_module_query(result: ModuleQuery) -> str:
    module = result.module
    lines = [f"# Module: {module.name} (`{module.id}`)", ""]
    if module.description:
        lines.extend([module.description, ""])
    lines.extend(["## Depends On", ""])
    lines.extend(_edge_lines(result.dependencies))
    lines.extend(["## Depended On By", ""])
    lines.extend(_edge_lines(result.dependents))
    if result.files is not None:
        lines.extend(
            [
                "## Files",
                "",
                "| File | Exports | Imports |",
                "| --- | --- | --- |",
            ]
        )
        for entry in result.files:
            lines.append(f"| {entry.file_path} | {len(entry.exports)} | {len(entry.imports)} |")
        lines.append("")
    return "\n".join(lines)


def format_impact_report(report: ImpactReport) -> str:
    lines = [f"# Impact: `{report.file_path}`", ""]
    if report.owning_module is None:
        lines.append("This file is not owned by any traced module.")
        return "\n".join(lines) + "\n"
    lines.extend([f"**Owning module**: {report.owning_module}", ""])
    lines.extend(["## Affected Modules", ""])
    lines.extend(_edge_lines(report.affected_modules))
    lines.extend(["## File Detail", ""])
    if report.file_detail is None:
        lines.extend(["_Not in the low-level trace. Regenerate the module to include it._", ""])
    else:
        lines.extend(_file_detail_lines(report.file_detail))
    return "\n".join(lines)
