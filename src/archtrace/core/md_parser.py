"""
archtrace.core.md_parser - Parse structured trace documents back into data.

Reads the metadata header and the synchronized tables of a document
rendered by ``archtrace.core.renderer``. Anything under a heading marked
``(freeform)`` is skipped.

Problems are collected rather than raised:
- a row with the wrong column count or a blank required cell is skipped
  and its whole table is marked unusable, so a skipped row can never be
  mistaken for a deletion
- a section without its ``**ID**:`` line, or a duplicate section, is
  skipped
- a missing or malformed metadata header makes the document unusable
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from archtrace.core.models import SyncError
from archtrace.core.renderer import (
    FILE_HEADING,
    FREEFORM_MARKER,
    HIGH_LEVEL_TABLES,
    LOW_LEVEL_TABLES,
    METADATA_CLOSE,
    METADATA_OPEN,
    MODULE_HEADING,
    TABLES,
    TableLayout,
    unescape_cell,
)

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_ID_LINE = re.compile(r"^\*\*ID\*\*:\s*(.*?)\s*$")
_DESCRIPTION_LINE = re.compile(r"^\*\*Description\*\*:\s?(.*?)\s*$")
_SEPARATOR_CELL = re.compile(r"^:?-{3,}:?$")
_REQUIRED_METADATA = ("module", "version", "lastGenerated")


@dataclass
class ParsedEntity:
    """One module (high-level) or file (low-level) section.

    Attributes:
        key: Module id or file path
        line: 1-based line of the section heading
        name: Section title (high-level module name)
        description: Description line, if present
        values: Field name -> parsed value, only for tables that parsed cleanly
    """

    key: str
    line: int
    name: str = ""
    description: str | None = None
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedDocument:
    metadata: dict[str, str] = field(default_factory=dict)
    entities: list[ParsedEntity] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)
    usable: bool = True

    def get(self, key: str) -> ParsedEntity | None:
        for entity in self.entities:
            if entity.key == key:
                return entity
        return None


def split_row(line: str) -> list[str]:
    """Split a pipe-table row into raw cells, honouring ``\\|`` escapes."""
    text = line.strip()
    if text.startswith("|"):
        text = text[1:]
    if text.endswith("|") and not text.endswith("\\|"):
        text = text[:-1]
    cells: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            current.append(text[i : i + 2])
            i += 2
            continue
        if char == "|":
            cells.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    cells.append("".join(current))
    return [cell.strip() for cell in cells]


def parse_metadata(text: str) -> dict[str, str] | None:
    """Parse the ``<!-- archtrace:metadata ... -->`` header."""
    start = text.find(METADATA_OPEN)
    if start == -1:
        return None
    end = text.find(METADATA_CLOSE, start + len(METADATA_OPEN))
    if end == -1:
        return None
    metadata: dict[str, str] = {}
    for raw in text[start + len(METADATA_OPEN) : end].splitlines():
        if ":" not in raw:
            continue
        key, value = raw.split(":", 1)
        metadata[key.strip()] = value.strip()
    return metadata


def replace_metadata(text: str, header: str) -> str:
    """Swap a document's metadata header for a new one."""
    start = text.find(METADATA_OPEN)
    end = text.find(METADATA_CLOSE, start + len(METADATA_OPEN)) if start != -1 else -1
    if start == -1 or end == -1:
        return header + "\n\n" + text
    return text[:start] + header + text[end + len(METADATA_CLOSE) :]


class _TableReader:
    """Collects rows of one table and converts them with its TableLayout."""

    def __init__(self, layout: TableLayout, document: str, heading_line: int):
        self.layout = layout
        self.document = document
        self.heading_line = heading_line
        self.rows: list[tuple[int, list[str]]] = []
        self.errors: list[SyncError] = []
        self.ended = False

    def feed(self, line_no: int, line: str) -> bool:
        """Consume a line; return False once the table has ended."""
        stripped = line.strip()
        if self.ended:
            return False
        if stripped.startswith("|"):
            self.rows.append((line_no, split_row(stripped)))
            return True
        if not stripped and not self.rows:
            return True
        self.ended = bool(self.rows) or bool(stripped)
        return not self.ended

    def result(self) -> tuple[list[Any] | None, list[SyncError]]:
        rows = list(self.rows)
        width = len(self.layout.columns)
        if not rows:
            self.errors.append(
                SyncError(self.document, f"table '{self.layout.heading}' has no header row", self.heading_line)
            )
            return None, self.errors
        header_line, header = rows[0]
        if [h.lower() for h in header] != [c.lower() for c in self.layout.columns]:
            self.errors.append(
                SyncError(
                    self.document,
                    f"table '{self.layout.heading}' expects columns "
                    f"{' | '.join(self.layout.columns)}",
                    header_line,
                )
            )
            return None, self.errors
        body = rows[1:]
        if body and all(_SEPARATOR_CELL.match(c) for c in body[0][1]):
            body = body[1:]

        values: list[Any] = []
        for line_no, cells in body:
            if len(cells) != width:
                self.errors.append(
                    SyncError(
                        self.document,
                        f"'{self.layout.heading}' row has {len(cells)} columns, expected {width}",
                        line_no,
                    )
                )
                continue
            cells = [unescape_cell(c) for c in cells]
            blank = [
                self.layout.columns[i]
                for i, (cell, required) in enumerate(zip(cells, self.layout.required))
                if required and not cell.strip()
            ]
            if blank:
                self.errors.append(
                    SyncError(
                        self.document,
                        f"'{self.layout.heading}' row has blank required field(s): {', '.join(blank)}",
                        line_no,
                    )
                )
                continue
            values.append(self.layout.from_cells(cells))
        if self.errors:
            return None, self.errors
        return values, self.errors


def _parse_sections(
    text: str,
    document: str,
    section_prefix: str,
    table_keys: tuple[str, ...],
    keyed_by_id_line: bool,
) -> ParsedDocument:
    parsed = ParsedDocument()
    metadata = parse_metadata(text)
    if metadata is None:
        parsed.usable = False
        parsed.errors.append(SyncError(document, "missing or unterminated metadata header", 1))
        return parsed
    missing = [k for k in _REQUIRED_METADATA if not metadata.get(k)]
    if missing:
        parsed.usable = False
        parsed.errors.append(
            SyncError(document, f"metadata header missing {', '.join(missing)}", 1)
        )
        return parsed
    parsed.metadata = metadata

    headings_to_field = {TABLES[k].heading.lower(): k for k in table_keys}
    current: ParsedEntity | None = None
    current_valid = False
    reader: _TableReader | None = None
    freeform_level: int | None = None
    in_metadata = False

    def close_table() -> None:
        nonlocal reader
        if reader is None:
            return
        values, errors = reader.result()
        parsed.errors.extend(errors)
        if current is not None and current_valid and values is not None:
            current.values[reader.layout.field] = values
        reader = None

    def close_entity() -> None:
        nonlocal current, current_valid
        close_table()
        if current is not None:
            if not current_valid:
                parsed.errors.append(
                    SyncError(document, f"section '{current.key}' has no **ID** line", current.line)
                )
            elif parsed.get(current.key) is not None:
                parsed.errors.append(
                    SyncError(document, f"duplicate section for '{current.key}'", current.line)
                )
            else:
                parsed.entities.append(current)
        current = None
        current_valid = False

    for line_no, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if stripped.startswith(METADATA_OPEN):
            in_metadata = True
        if in_metadata:
            if METADATA_CLOSE in stripped:
                in_metadata = False
            continue

        heading = _HEADING.match(stripped)
        if heading:
            level = len(heading.group(1))
            title = heading.group(2)
            if freeform_level is not None and level > freeform_level:
                continue
            freeform_level = None
            close_table()
            if FREEFORM_MARKER in title.lower():
                if level <= 2:
                    close_entity()
                freeform_level = level
                continue
            if level <= 2:
                close_entity()
                if f"{'#' * level} {title}".startswith(section_prefix):
                    key = unescape_cell(title[len(section_prefix) - level - 1 :].strip())
                    current = ParsedEntity(key=key, line=line_no, name=key)
                    current_valid = not keyed_by_id_line
                continue
            if current is not None and title.lower() in headings_to_field:
                layout = TABLES[headings_to_field[title.lower()]]
                reader = _TableReader(layout, document, line_no)
            continue

        if freeform_level is not None or current is None:
            continue

        if reader is not None:
            if reader.feed(line_no, line):
                continue
            close_table()

        if keyed_by_id_line:
            id_match = _ID_LINE.match(stripped)
            if id_match and not current_valid:
                current.key = id_match.group(1)
                current_valid = bool(current.key)
                continue
            description = _DESCRIPTION_LINE.match(stripped)
            if description:
                current.description = unescape_cell(description.group(1))

    close_entity()
    return parsed


def parse_high_level_document(text: str, document: str = "high-level.md") -> ParsedDocument:
    """Parse a high-level document into per-module entities keyed by **ID**."""
    return _parse_sections(text, document, MODULE_HEADING, HIGH_LEVEL_TABLES, keyed_by_id_line=True)


def parse_low_level_document(text: str, document: str = "low-level.md") -> ParsedDocument:
    """Parse a low-level document into per-file entities keyed by path."""
    return _parse_sections(text, document, FILE_HEADING, LOW_LEVEL_TABLES, keyed_by_id_line=False)
