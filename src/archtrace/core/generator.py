"""
archtrace.core.generator - Build low-level and high-level traces.

For each module, every file matching its globs is analyzed from scratch
and written to the module's low-level store and document. The high-level
trace is rebuilt by a ``HighLevelBuilder`` after the low-level pass
unless the caller asks for low-level output only.

Public API
----------
- ``TraceGenerator.generate_module``: regenerate one module
- ``TraceGenerator.generate_high_level``: rebuild the module graph
- ``TraceGenerator.generate_all``: one module or all modules, plus graph
- ``bootstrap_module_config``: infer a starter module config
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from archtrace.core.models import (
    FileTrace,
    HighLevelModule,
    HighLevelTrace,
    LowLevelTrace,
    ModuleConfig,
    ModuleDefinition,
    ModuleEdge,
)
from archtrace.core.md_parser import (
    ParsedDocument,
    parse_high_level_document,
    parse_low_level_document,
)
from archtrace.core.module_config import (
    find_overlaps,
    glob_base,
    load_module_config,
    save_module_config,
)
from archtrace.core.renderer import (
    HIGH_LEVEL_TABLES,
    LOW_LEVEL_TABLES,
    extract_notes,
    render_high_level,
    render_low_level,
)
from archtrace.core.store import TraceProject, atomic_write_text
from archtrace.core.sync import diff_document
from archtrace.utilities.globs import matches_any
from archtrace.utilities.import_analyzer import analyze_file
from archtrace.utilities.timestamps import to_iso, utc_now


@dataclass
class GenerationSummary:
    """Outcome of a generate run."""

    modules_processed: list[str] = field(default_factory=list)
    files_generated: int = 0
    duration_seconds: float = 0.0
    high_level_version: int | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "modulesProcessed": list(self.modules_processed),
            "filesGenerated": self.files_generated,
            "durationSeconds": round(self.duration_seconds, 3),
            "highLevelVersion": self.high_level_version,
            "warnings": list(self.warnings),
        }


class HighLevelBuilder:
    """Builds the module graph from the module config.

    Inter-module edges are maintained by people through the high-level
    document, so the builder keeps the previous generation's edges and
    only drops those whose endpoints left the config. Names and
    descriptions always come from the module config.
    """

    def build(
        self,
        config: ModuleConfig,
        previous: HighLevelTrace | None,
        generated_at: str,
        generated_by: str,
    ) -> HighLevelTrace:
        known = set(config.module_ids)
        modules: list[HighLevelModule] = []
        for definition in config.modules:
            old = previous.get(definition.id) if previous else None
            modules.append(
                HighLevelModule(
                    id=definition.id,
                    name=definition.name.strip() or definition.id,
                    description=definition.description.strip(),
                    dependencies=self._keep_edges(old.dependencies if old else [], known),
                    dependents=self._keep_edges(old.dependents if old else [], known),
                )
            )
        return HighLevelTrace(
            modules=modules,
            version=(previous.version if previous else 0) + 1,
            last_generated=generated_at,
            generated_by=generated_by,
        )

    @staticmethod
    def _keep_edges(edges: list[ModuleEdge], known: set[str]) -> list[ModuleEdge]:
        return [
            ModuleEdge(e.target_id, e.relationship_type, e.description)
            for e in edges
            if e.target_id in known
        ]


class TraceGenerator:
    """Regenerates traces for a project."""

    def __init__(
        self,
        project: TraceProject,
        config: ModuleConfig,
        builder: HighLevelBuilder | None = None,
    ):
        self.project = project
        self.config = config
        self.builder = builder or HighLevelBuilder()
        generate = project.settings.get("generate", {})
        self.generated_by: str = generate.get("generated_by", "archtrace")
        self.exclude_dirs: set[str] = set(generate.get("exclude_dirs", []))
        # Documents left untouched because they hold unsynced edits
        self.held_documents: list[str] = []
        self._files: list[str] | None = None

    # -- file enumeration --------------------------------------------------

    def list_files(self) -> list[str]:
        """All candidate files under the glob base, sorted, relative to it.

        Excluded directory names and the trace directory are skipped.
        """
        if self._files is not None:
            return self._files
        base = glob_base(self.project, self.config)
        trace_dir = self.project.trace_dir.resolve()
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(base):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in self.exclude_dirs and (current / d).resolve() != trace_dir
            )
            for filename in filenames:
                found.append((current / filename).relative_to(base).as_posix())
        self._files = sorted(found)
        return self._files

    def module_files(self, module: ModuleDefinition) -> list[str]:
        return [f for f in self.list_files() if matches_any(module.file_globs, f)]

    def check_overlaps(self) -> list[str]:
        """Warn about files claimed by several modules (first match owns them)."""
        overlaps = find_overlaps(self.config, self.list_files())
        return [
            f"{path} matches modules {', '.join(owners)}; '{owners[0]}' owns it"
            for path, owners in overlaps.items()
        ]

    # -- generation --------------------------------------------------------

    def generate_module(
        self,
        module: ModuleDefinition,
        now: datetime | None = None,
    ) -> LowLevelTrace:
        """Regenerate one module's low-level store and document.

        A document whose tables differ from the previous store holds edits
        that were never synced. Only the store is rewritten then; the
        document keeps its old ``lastGenerated`` so the next sync reports
        the differences as conflicts.

        Raises:
            ValueError: If the previous store is not valid JSON.
        """
        previous = self.project.load_low_level(module.id)
        base = glob_base(self.project, self.config)
        files: list[FileTrace] = []
        for rel_path in self.module_files(module):
            analysis = analyze_file(base / rel_path)
            files.append(
                FileTrace(file_path=rel_path, exports=analysis.exports, imports=analysis.imports)
            )

        trace = LowLevelTrace(
            module_id=module.id,
            version=(previous.version if previous else 0) + 1,
            last_generated=to_iso(now or utc_now()),
            generated_by=self.generated_by,
            files=files,
        )
        self.project.save_low_level(trace)
        doc_path = self.project.low_level_doc_path(module.id)
        if _has_unsynced_edits(
            doc_path,
            previous,
            parse_low_level_document,
            lambda store, key: store.get_file(key),
            LOW_LEVEL_TABLES,
        ):
            self.held_documents.append(self.project.relative(doc_path))
            return trace
        notes = _existing_notes(doc_path)
        atomic_write_text(doc_path, render_low_level(trace, module.name, notes))
        return trace

    def generate_high_level(self, now: datetime | None = None) -> HighLevelTrace:
        previous = self.project.load_high_level()
        trace = self.builder.build(
            self.config, previous, to_iso(now or utc_now()), self.generated_by
        )
        self.project.save_high_level(trace)
        doc_path = self.project.high_level_doc_path
        if _has_unsynced_edits(
            doc_path,
            previous,
            parse_high_level_document,
            lambda store, key: store.get(key),
            HIGH_LEVEL_TABLES,
        ):
            self.held_documents.append(self.project.relative(doc_path))
            return trace
        atomic_write_text(doc_path, render_high_level(trace, _existing_notes(doc_path)))
        return trace

    def generate_all(
        self,
        target_module_id: str | None = None,
        low_level_only: bool = False,
        now: datetime | None = None,
    ) -> GenerationSummary:
        """Regenerate one module (or all) and, unless skipped, the graph.

        Raises:
            ValueError: If target_module_id is not in the module config.
        """
        started = time.monotonic()
        if target_module_id is not None:
            module = self.config.get(target_module_id)
            if module is None:
                raise ValueError(
                    f"Unknown module '{target_module_id}'. "
                    f"Known modules: {', '.join(self.config.module_ids) or '(none)'}"
                )
            modules = [module]
        else:
            modules = list(self.config.modules)

        summary = GenerationSummary()
        summary.warnings.extend(self.check_overlaps())
        for module in modules:
            trace = self.generate_module(module, now=now)
            summary.modules_processed.append(module.id)
            summary.files_generated += len(trace.files)
            if not trace.files:
                summary.warnings.append(f"module '{module.id}' matched no files")

        if not low_level_only:
            summary.high_level_version = self.generate_high_level(now=now).version

        for doc in self.held_documents:
            summary.warnings.append(
                f"{doc} has unsynced edits and was left as is; "
                "run 'archtrace sync' to review them as conflicts "
                "or 'archtrace sync --force' to apply them"
            )
        self.held_documents = []
        summary.duration_seconds = time.monotonic() - started
        return summary


def _has_unsynced_edits(
    doc_path: Path,
    previous: HighLevelTrace | LowLevelTrace | None,
    parse: Callable[[str, str], ParsedDocument],
    lookup: Callable[[Any, str], Any],
    fields: tuple[str, ...],
) -> bool:
    """True when a document's tables differ from the store it was rendered from."""
    if previous is None or not doc_path.exists():
        return False
    try:
        text = doc_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    parsed = parse(text, doc_path.name)
    if not parsed.usable:
        return False
    pending, _ = diff_document(parsed, previous, lookup, fields)
    return bool(pending)


def _existing_notes(doc_path: Path) -> str | None:
    if not doc_path.exists():
        return None
    try:
        return extract_notes(doc_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError):
        return None


# =============================================================================
# Bootstrap
# =============================================================================


def _module_id(name: str) -> str:
    slug = re.sub(r"[^a-z0-9._-]+", "-", name.lower()).strip("-")
    return slug or "module"


def _display_name(name: str) -> str:
    words = re.split(r"[-_.\s]+", name)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


def _package_description(directory: Path) -> str:
    manifest = directory / "package.json"
    if not manifest.is_file():
        return ""
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ""
    description = data.get("description") if isinstance(data, dict) else None
    return description.strip() if isinstance(description, str) else ""


def _subdirs(directory: Path, exclude: set[str]) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir() if p.is_dir() and p.name not in exclude and not p.name.startswith(".")
    )


def _is_grouping_dir(directory: Path, exclude: set[str]) -> bool:
    """A directory without a manifest whose children are packages."""
    if (directory / "package.json").exists():
        return False
    return any((child / "package.json").exists() for child in _subdirs(directory, exclude))


def infer_modules(project_root: Path, settings: dict[str, Any]) -> list[ModuleDefinition]:
    """Infer modules from application, package and tooling directories."""
    bootstrap = settings.get("bootstrap", {})
    exclude = set(settings.get("generate", {}).get("exclude_dirs", []))
    candidates: list[tuple[Path, str | None]] = []

    for rel in bootstrap.get("app_dirs", []):
        for child in _subdirs(project_root / rel, exclude):
            candidates.append((child, None))
    for rel in bootstrap.get("package_dirs", []):
        for child in _subdirs(project_root / rel, exclude):
            if _is_grouping_dir(child, exclude):
                for grandchild in _subdirs(child, exclude):
                    candidates.append((grandchild, child.name))
            else:
                candidates.append((child, None))

    modules: list[ModuleDefinition] = []
    used: set[str] = set()
    for directory, group in candidates:
        module_id = _module_id(directory.name)
        if module_id in used and group:
            module_id = _module_id(f"{group}-{directory.name}")
        suffix = 2
        base_id = module_id
        while module_id in used:
            module_id = f"{base_id}-{suffix}"
            suffix += 1
        used.add(module_id)
        rel = directory.relative_to(project_root).as_posix()
        modules.append(
            ModuleDefinition(
                id=module_id,
                name=_display_name(directory.name),
                description=_package_description(directory),
                file_globs=[f"{rel}/**"],
            )
        )

    for rel in bootstrap.get("tooling_dirs", []):
        directory = project_root / rel
        if not directory.is_dir() or not any(directory.iterdir()):
            continue
        module_id = _module_id(Path(rel).name)
        if module_id in used:
            module_id = f"{module_id}-tooling"
        used.add(module_id)
        modules.append(
            ModuleDefinition(
                id=module_id,
                name=_display_name(Path(rel).name),
                description="Repository tooling scripts",
                file_globs=[f"{Path(rel).as_posix()}/**"],
            )
        )
    return modules


def bootstrap_module_config(project: TraceProject) -> ModuleConfig:
    """Write a starter module config inferred from the directory layout.

    Raises:
        FileExistsError: If a module config already exists.
        ValueError: If no module directories were found.
    """
    if project.module_config_path.exists():
        raise FileExistsError(
            f"Module config already exists at {project.relative(project.module_config_path)}; "
            "edit it by hand instead of bootstrapping"
        )
    modules = infer_modules(project.root, project.settings)
    if not modules:
        dirs = project.settings.get("bootstrap", {})
        searched = [*dirs.get("app_dirs", []), *dirs.get("package_dirs", []), *dirs.get("tooling_dirs", [])]
        raise ValueError(f"No module directories found (searched: {', '.join(searched)})")
    config = ModuleConfig(modules=modules, version=1, project_root=".")
    save_module_config(project, config)
    return config


def load_generator(project: TraceProject) -> TraceGenerator:
    """Load the module config and build a generator.

    Raises:
        FileNotFoundError: If there is no module config yet.
    """
    config = load_module_config(project)
    if config is None:
        raise FileNotFoundError(
            f"No module config at {project.relative(project.module_config_path)}. "
            "Run 'archtrace generate --bootstrap' to create one."
        )
    return TraceGenerator(project, config)
