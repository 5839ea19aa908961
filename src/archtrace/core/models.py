"""
archtrace.core.models - Data models for modules, traces and sync results.

Provides dataclasses for:
- Module definitions and the module config that owns them
- High-level traces (the inter-module dependency graph)
- Low-level traces (per-file export/import inventories)
- Sync outcomes (changes, conflicts, errors)

Every persisted model has ``to_dict``/``from_dict`` using the camelCase
keys of the on-disk JSON format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

HIGH_LEVEL_ID = "high-level"

EXPORT_KINDS = (
    "function",
    "class",
    "interface",
    "type",
    "const",
    "enum",
    "default",
    "reexport",
)


@dataclass
class ModuleDefinition:
    """
    A named, glob-defined ownership region of the file tree.

    Attributes:
        id: Stable kebab-case identifier (e.g., "web-app")
        name: Human-readable name
        description: One-line summary
        file_globs: Project-relative glob patterns owned by the module
    """

    id: str
    name: str
    description: str = ""
    file_globs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "fileGlobs": list(self.file_globs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModuleDefinition:
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            description=data.get("description", ""),
            file_globs=list(data.get("fileGlobs", [])),
        )


@dataclass
class ModuleConfig:
    """Declarative map of module id to definition."""

    modules: list[ModuleDefinition] = field(default_factory=list)
    version: int = 1
    project_root: str = "."

    def get(self, module_id: str) -> ModuleDefinition | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    @property
    def module_ids(self) -> list[str]:
        return [m.id for m in self.modules]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "projectRoot": self.project_root,
            "modules": [m.to_dict() for m in self.modules],
        }


@dataclass
class ModuleEdge:
    """A dependency or dependent edge between two modules."""

    target_id: str
    relationship_type: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetId": self.target_id,
            "relationshipType": self.relationship_type,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModuleEdge:
        return cls(
            target_id=data["targetId"],
            relationship_type=data.get("relationshipType", ""),
            description=data.get("description", ""),
        )


@dataclass
class HighLevelModule:
    """One node of the high-level graph."""

    id: str
    name: str
    description: str = ""
    dependencies: list[ModuleEdge] = field(default_factory=list)
    dependents: list[ModuleEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dependencies": [e.to_dict() for e in self.dependencies],
            "dependents": [e.to_dict() for e in self.dependents],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HighLevelModule:
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            description=data.get("description", ""),
            dependencies=[ModuleEdge.from_dict(e) for e in data.get("dependencies", [])],
            dependents=[ModuleEdge.from_dict(e) for e in data.get("dependents", [])],
        )


@dataclass
class HighLevelTrace:
    """The inter-module dependency graph."""

    modules: list[HighLevelModule] = field(default_factory=list)
    version: int = 0
    last_generated: str = ""
    generated_by: str = ""

    def get(self, module_id: str) -> HighLevelModule | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastGenerated": self.last_generated,
            "generatedBy": self.generated_by,
            "modules": [m.to_dict() for m in self.modules],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HighLevelTrace:
        return cls(
            modules=[HighLevelModule.from_dict(m) for m in data.get("modules", [])],
            version=int(data.get("version", 0)),
            last_generated=data.get("lastGenerated", ""),
            generated_by=data.get("generatedBy", ""),
        )


@dataclass
class ExportEntry:
    """An exported symbol and its declaration kind."""

    symbol: str
    type: str

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportEntry:
        return cls(symbol=data["symbol"], type=data.get("type", ""))


@dataclass
class ImportEntry:
    """Symbols imported from one source.

    Symbol strings carry the import form: ``name`` for named imports,
    ``default as X`` for default imports, ``* as ns`` for namespace
    imports. Side-effect imports have no symbols.
    """

    source: str
    symbols: list[str] = field(default_factory=list)

    @property
    def is_side_effect(self) -> bool:
        return not self.symbols

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "symbols": list(self.symbols)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportEntry:
        return cls(source=data["source"], symbols=list(data.get("symbols", [])))


@dataclass
class FileTrace:
    """Exports, imports, calls and events recorded for one file."""

    file_path: str
    exports: list[ExportEntry] = field(default_factory=list)
    imports: list[ImportEntry] = field(default_factory=list)
    calls: list[dict[str, str]] = field(default_factory=list)
    events: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "exports": [e.to_dict() for e in self.exports],
            "imports": [i.to_dict() for i in self.imports],
            "calls": [dict(c) for c in self.calls],
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileTrace:
        return cls(
            file_path=data["filePath"],
            exports=[ExportEntry.from_dict(e) for e in data.get("exports", [])],
            imports=[ImportEntry.from_dict(i) for i in data.get("imports", [])],
            calls=[dict(c) for c in data.get("calls", [])],
            events=[dict(e) for e in data.get("events", [])],
        )


@dataclass
class LowLevelTrace:
    """Per-file symbol inventory for one module."""

    module_id: str
    version: int = 0
    last_generated: str = ""
    generated_by: str = ""
    files: list[FileTrace] = field(default_factory=list)

    def get_file(self, file_path: str) -> FileTrace | None:
        for entry in self.files:
            if entry.file_path == file_path:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "moduleId": self.module_id,
            "version": self.version,
            "lastGenerated": self.last_generated,
            "generatedBy": self.generated_by,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LowLevelTrace:
        return cls(
            module_id=data["moduleId"],
            version=int(data.get("version", 0)),
            last_generated=data.get("lastGenerated", ""),
            generated_by=data.get("generatedBy", ""),
            files=[FileTrace.from_dict(f) for f in data.get("files", [])],
        )


@dataclass
class FileAnalysis:
    """Result of statically analyzing one source file."""

    exports: list[ExportEntry] = field(default_factory=list)
    imports: list[ImportEntry] = field(default_factory=list)


@dataclass
class SyncChange:
    """A field applied from a document to its store."""

    trace: str
    identity: str
    field: str
    old: Any
    new: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace": self.trace,
            "identity": self.identity,
            "field": self.field,
            "old": self.old,
            "new": self.new,
        }


@dataclass
class SyncConflict:
    """A field that differs while the store was regenerated independently."""

    trace: str
    identity: str
    field: str
    json_value: Any
    markdown_value: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace": self.trace,
            "identity": self.identity,
            "field": self.field,
            "jsonValue": self.json_value,
            "markdownValue": self.markdown_value,
        }


@dataclass
class SyncError:
    """A structural problem found while reading a store or document."""

    document: str
    message: str
    line: int | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.document}:{self.line}: {self.message}"
        return f"{self.document}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"document": self.document, "line": self.line, "message": self.message}


@dataclass
class SyncResult:
    """Aggregated outcome of a sync run."""

    changes: list[SyncChange] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)
    conflicts: list[SyncConflict] = field(default_factory=list)
    files_updated: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def modules_updated(self) -> list[str]:
        seen: list[str] = []
        for change in self.changes:
            if change.trace not in seen:
                seen.append(change.trace)
        return seen

    @property
    def ok(self) -> bool:
        return not self.errors and not self.conflicts

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "dryRun": self.dry_run,
            "modulesUpdated": self.modules_updated,
            "filesUpdated": list(self.files_updated),
            "changes": [c.to_dict() for c in self.changes],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "errors": [e.to_dict() for e in self.errors],
        }
