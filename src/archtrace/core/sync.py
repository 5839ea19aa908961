"""
archtrace.core.sync - Reconcile trace documents with their JSON stores.

For every trace that has both a store and a document, the document's
tables are parsed and compared with the store field by field.

Divergence is detected from the ``lastGenerated`` value in the document's
metadata header:
- equal to the store's: the store has not been regenerated since the
  document was produced, so differences are ordinary edits and are applied
- different: the store was regenerated independently, so every
  difference is a conflict and nothing is applied unless ``force`` is set.
  With ``force`` the document wins and is then re-rendered from the
  updated store, which ends the divergence.

Public API
----------
- ``SyncEngine.sync_all``: reconcile the high-level and all low-level traces
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from archtrace.core.md_parser import (
    ParsedDocument,
    ParsedEntity,
    parse_high_level_document,
    parse_low_level_document,
)
from archtrace.core.models import (
    HIGH_LEVEL_ID,
    HighLevelTrace,
    LowLevelTrace,
    ModuleConfig,
    SyncChange,
    SyncConflict,
    SyncError,
    SyncResult,
)
from archtrace.core.renderer import (
    HIGH_LEVEL_TABLES,
    LOW_LEVEL_TABLES,
    extract_notes,
    render_high_level,
    render_low_level,
)
from archtrace.core.store import LOW_LEVEL_DIR, TraceProject, atomic_write_text


def _plain(values: list[Any]) -> list[Any]:
    """JSON-comparable form of a list of table values."""
    return [v.to_dict() if hasattr(v, "to_dict") else dict(v) for v in values]


class _PendingDiff:
    __slots__ = ("identity", "field", "target", "old", "new", "values")

    def __init__(self, identity: str, field: str, target: Any, old: list, new: list, values: list):
        self.identity = identity
        self.field = field
        self.target = target
        self.old = old
        self.new = new
        self.values = values


def diff_document(
    parsed: ParsedDocument,
    store: Any,
    lookup: Callable[[Any, str], Any],
    fields: tuple[str, ...],
) -> tuple[list[_PendingDiff], list[ParsedEntity]]:
    """Compare a parsed document with a store, field by field.

    Returns:
        The differing fields, and the document entities the store lacks.
    """
    pending: list[_PendingDiff] = []
    unknown: list[ParsedEntity] = []
    for entity in parsed.entities:
        target = lookup(store, entity.key)
        if target is None:
            unknown.append(entity)
            continue
        for field_name in fields:
            if field_name not in entity.values:
                continue
            values = entity.values[field_name]
            old = _plain(getattr(target, field_name))
            new = _plain(values)
            if old != new:
                pending.append(_PendingDiff(entity.key, field_name, target, old, new, values))
    return pending, unknown


class SyncEngine:
    """Applies document edits to trace stores."""

    def __init__(self, project: TraceProject, config: ModuleConfig | None = None):
        self.project = project
        self.config = config

    def module_ids(self) -> list[str]:
        """Module ids to sync: config order first, then stray stores."""
        ids = list(self.config.module_ids) if self.config else []
        low_dir = self.project.trace_dir / LOW_LEVEL_DIR
        if low_dir.is_dir():
            for store in sorted(low_dir.glob("*.json")):
                if store.stem not in ids:
                    ids.append(store.stem)
        return ids

    def sync_all(self, force: bool = False, dry_run: bool = False) -> SyncResult:
        result = SyncResult(dry_run=dry_run)
        project = self.project

        self._sync_trace(
            result,
            trace_id=HIGH_LEVEL_ID,
            store_path=project.high_level_store_path,
            doc_path=project.high_level_doc_path,
            load=project.load_high_level,
            parse=parse_high_level_document,
            lookup=lambda trace, key: trace.get(key),
            fields=HIGH_LEVEL_TABLES,
            save=project.save_high_level,
            render=lambda trace, notes: render_high_level(trace, notes),
            force=force,
            dry_run=dry_run,
        )

        for module_id in self.module_ids():
            definition = self.config.get(module_id) if self.config else None
            name = definition.name if definition else module_id
            self._sync_trace(
                result,
                trace_id=module_id,
                store_path=project.low_level_store_path(module_id),
                doc_path=project.low_level_doc_path(module_id),
                load=lambda mid=module_id: project.load_low_level(mid),
                parse=parse_low_level_document,
                lookup=lambda trace, key: trace.get_file(key),
                fields=LOW_LEVEL_TABLES,
                save=project.save_low_level,
                render=lambda trace, notes, n=name: render_low_level(trace, n, notes),
                force=force,
                dry_run=dry_run,
            )
        return result

    def _sync_trace(
        self,
        result: SyncResult,
        trace_id: str,
        store_path: Path,
        doc_path: Path,
        load: Callable[[], HighLevelTrace | LowLevelTrace | None],
        parse: Callable[[str, str], ParsedDocument],
        lookup: Callable[[Any, str], Any],
        fields: tuple[str, ...],
        save: Callable[[Any], None],
        render: Callable[[Any, str | None], str],
        force: bool,
        dry_run: bool,
    ) -> None:
        if not store_path.exists() or not doc_path.exists():
            return
        store_name = self.project.relative(store_path)
        doc_name = self.project.relative(doc_path)

        try:
            store = load()
        except (ValueError, KeyError, TypeError) as e:
            result.errors.append(SyncError(store_name, f"unreadable store: {e}"))
            return
        try:
            text = doc_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            result.errors.append(SyncError(doc_name, f"unreadable document: {e}"))
            return

        parsed = parse(text, doc_name)
        result.errors.extend(parsed.errors)
        if not parsed.usable:
            return
        if parsed.metadata.get("module") != trace_id:
            result.errors.append(
                SyncError(
                    doc_name,
                    f"metadata names module '{parsed.metadata.get('module')}', expected '{trace_id}'",
                    1,
                )
            )
            return

        diverged = parsed.metadata.get("lastGenerated") != store.last_generated
        pending, unknown = diff_document(parsed, store, lookup, fields)
        for entity in unknown:
            result.errors.append(
                SyncError(doc_name, f"'{entity.key}' is not in {store_name}", entity.line)
            )

        if not pending:
            return

        if diverged and not force:
            for diff in pending:
                result.conflicts.append(
                    SyncConflict(
                        trace=trace_id,
                        identity=diff.identity,
                        field=diff.field,
                        json_value=diff.old,
                        markdown_value=diff.new,
                    )
                )
            return

        for diff in pending:
            setattr(diff.target, diff.field, diff.values)
            result.changes.append(
                SyncChange(
                    trace=trace_id, identity=diff.identity, field=diff.field, old=diff.old, new=diff.new
                )
            )

        result.files_updated.append(store_name)
        if diverged:
            result.files_updated.append(doc_name)
        if dry_run:
            return
        save(store)
        if diverged:
            atomic_write_text(doc_path, render(store, extract_notes(text)))


def sync_project(
    project: TraceProject,
    config: ModuleConfig | None,
    force: bool = False,
    dry_run: bool = False,
) -> SyncResult:
    """Convenience wrapper around ``SyncEngine.sync_all``."""
    return SyncEngine(project, config).sync_all(force=force, dry_run=dry_run)
