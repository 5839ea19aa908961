"""
archtrace.core.renderer - Render traces as structured Markdown documents.

A trace document has three parts:
- an HTML comment metadata header (module, version, lastGenerated,
  generatedBy) that the sync engine uses for divergence detection
- structured sections made of pipe tables, synchronized back to the store
- a ``## Notes (freeform)`` section that is never synchronized

The table layouts are declared once in ``TABLES`` and shared with the
parser in ``archtrace.core.md_parser``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from archtrace.core.models import (
    HIGH_LEVEL_ID,
    ExportEntry,
    FileTrace,
    HighLevelTrace,
    ImportEntry,
    LowLevelTrace,
    ModuleEdge,
)

METADATA_OPEN = "<!-- archtrace:metadata"
METADATA_CLOSE = "-->"
FREEFORM_MARKER = "(freeform)"
NOTES_HEADING = f"## Notes {FREEFORM_MARKER}"
SIDE_EFFECT = "(side-effect)"
MODULE_HEADING = "## Module: "
FILE_HEADING = "## File: "

DEFAULT_NOTES = "_Freeform notes. This section is never synchronized back to the store._"


def escape_cell(text: str) -> str:
    """Escape a value for use inside a pipe-table cell."""
    return str(text).replace("\\", "\\\\").replace("|", "\\|").replace("\n", "<br>")


def unescape_cell(text: str) -> str:
    """Reverse ``escape_cell``."""
    result: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text) and text[i + 1] in "\\|":
            result.append(text[i + 1])
            i += 2
            continue
        if text.startswith("<br>", i):
            result.append("\n")
            i += 4
            continue
        result.append(char)
        i += 1
    return "".join(result)


def _symbols_to_cell(symbols: list[str]) -> str:
    return ", ".join(symbols) if symbols else SIDE_EFFECT


def _symbols_from_cell(cell: str) -> list[str]:
    if cell.strip() == SIDE_EFFECT:
        return []
    return [s.strip() for s in cell.split(",") if s.strip()]


@dataclass(frozen=True)
class TableLayout:
    """Layout of one synchronized table.

    Attributes:
        field: Store field the table mirrors
        heading: ``###`` heading text
        columns: Column titles
        required: Per-column flag; blank required cells are row errors
        to_cells: Convert one stored value to cell strings
        from_cells: Convert parsed cell strings back to a stored value
    """

    field: str
    heading: str
    columns: tuple[str, ...]
    required: tuple[bool, ...]
    to_cells: Callable[[Any], list[str]]
    from_cells: Callable[[list[str]], Any]


TABLES: dict[str, TableLayout] = {
    "dependencies": TableLayout(
        field="dependencies",
        heading="Dependencies",
        columns=("Target", "Relationship", "Description"),
        required=(True, True, False),
        to_cells=lambda e: [e.target_id, e.relationship_type, e.description],
        from_cells=lambda c: ModuleEdge(c[0], c[1], c[2]),
    ),
    "dependents": TableLayout(
        field="dependents",
        heading="Dependents",
        columns=("Target", "Relationship", "Description"),
        required=(True, True, False),
        to_cells=lambda e: [e.target_id, e.relationship_type, e.description],
        from_cells=lambda c: ModuleEdge(c[0], c[1], c[2]),
    ),
    "exports": TableLayout(
        field="exports",
        heading="Exports",
        columns=("Symbol", "Type"),
        required=(True, True),
        to_cells=lambda e: [e.symbol, e.type],
        from_cells=lambda c: ExportEntry(c[0], c[1]),
    ),
    "imports": TableLayout(
        field="imports",
        heading="Imports",
        columns=("Source", "Symbols"),
        required=(True, True),
        to_cells=lambda i: [i.source, _symbols_to_cell(i.symbols)],
        from_cells=lambda c: ImportEntry(c[0], _symbols_from_cell(c[1])),
    ),
    "calls": TableLayout(
        field="calls",
        heading="Function Calls",
        columns=("Caller", "Callee"),
        required=(True, True),
        to_cells=lambda c: [c.get("caller", ""), c.get("callee", "")],
        from_cells=lambda c: {"caller": c[0], "callee": c[1]},
    ),
    "events": TableLayout(
        field="events",
        heading="Events",
        columns=("Event", "Direction"),
        required=(True, True),
        to_cells=lambda e: [e.get("name", ""), e.get("direction", "")],
        from_cells=lambda c: {"name": c[0], "direction": c[1]},
    ),
}

HIGH_LEVEL_TABLES = ("dependencies", "dependents")
LOW_LEVEL_TABLES = ("exports", "imports", "calls", "events")


def render_metadata(module_id: str, version: int, last_generated: str, generated_by: str) -> str:
    return "\n".join(
        [
            METADATA_OPEN,
            f"module: {module_id}",
            f"version: {version}",
            f"lastGenerated: {last_generated}",
            f"generatedBy: {generated_by}",
            METADATA_CLOSE,
        ]
    )


def render_table(layout: TableLayout, values: list[Any]) -> list[str]:
    lines = [
        f"### {layout.heading}",
        "",
        "| " + " | ".join(layout.columns) + " |",
        "| " + " | ".join("---" for _ in layout.columns) + " |",
    ]
    for value in values:
        cells = [escape_cell(cell) for cell in layout.to_cells(value)]
        lines.append("| " + " | ".join(cells) + " |")
    lines.append("")
    return lines


def _notes_section(notes: str | None) -> list[str]:
    body = notes.strip("\n") if notes and notes.strip() else DEFAULT_NOTES
    return [NOTES_HEADING, "", body, ""]


def render_high_level(trace: HighLevelTrace, notes: str | None = None) -> str:
    """Render the high-level trace document."""
    lines = [
        render_metadata(HIGH_LEVEL_ID, trace.version, trace.last_generated, trace.generated_by),
        "",
        "# High-Level Architecture Trace",
        "",
        "Edit the tables below, then run `archtrace sync` to apply them.",
        "",
    ]
    for module in trace.modules:
        lines.append(f"{MODULE_HEADING}{escape_cell(module.name)}")
        lines.append("")
        lines.append(f"**ID**: {module.id}")
        description = escape_cell(module.description)
        lines.append(f"**Description**: {description}".rstrip())
        lines.append("")
        for key in HIGH_LEVEL_TABLES:
            lines.extend(render_table(TABLES[key], getattr(module, key)))
    lines.extend(_notes_section(notes))
    return "\n".join(lines)


def render_file_section(entry: FileTrace) -> list[str]:
    lines = [f"{FILE_HEADING}{entry.file_path}", ""]
    for key in LOW_LEVEL_TABLES:
        lines.extend(render_table(TABLES[key], getattr(entry, key)))
    return lines


def render_low_level(trace: LowLevelTrace, module_name: str = "", notes: str | None = None) -> str:
    """Render one module's low-level trace document."""
    lines = [
        render_metadata(trace.module_id, trace.version, trace.last_generated, trace.generated_by),
        "",
        f"# Low-Level Trace: {module_name or trace.module_id}",
        "",
        f"**Module ID**: {trace.module_id}",
        f"**Files**: {len(trace.files)}",
        "",
    ]
    for entry in trace.files:
        lines.extend(render_file_section(entry))
    lines.extend(_notes_section(notes))
    return "\n".join(lines)


def extract_notes(document: str) -> str | None:
    """Return the body of an existing document's freeform notes section."""
    marker = document.find(NOTES_HEADING)
    if marker == -1:
        return None
    body = document[marker + len(NOTES_HEADING) :].strip("\n")
    return body or None
