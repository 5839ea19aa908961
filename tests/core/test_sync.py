"""Tests for the document -> store sync engine."""

from datetime import datetime, timezone

from archtrace.core.generator import TraceGenerator
from archtrace.core.models import ExportEntry, ModuleEdge
from archtrace.core.sync import SyncEngine, sync_project

MAIN = "apps/web/src/main.tsx"
WEB_STORE = "docs/architecture/low-level/web.json"
WEB_DOC = "docs/architecture/low-level/web.md"
REGENERATED_AT = "2024-05-03T08:00:00.000+00:00"


def edit(path, old, new):
    text = path.read_text(encoding="utf-8")
    assert old in text
    path.write_text(text.replace(old, new, 1), encoding="utf-8")


def add_edge_row(path, module_id, row):
    """Insert a row into the first edge table of a high-level module section."""
    text = path.read_text(encoding="utf-8")
    separator = "| --- | --- | --- |\n"
    pos = text.index(separator, text.index(f"**ID**: {module_id}")) + len(separator)
    path.write_text(text[:pos] + row + "\n" + text[pos:], encoding="utf-8")


def add_export(project):
    edit(project.low_level_doc_path("web"), "| App | class |", "| App | class |\n| Shell | function |")


def regenerate_store_only(project, module_id="web"):
    """Simulate the store being regenerated after the document was rendered."""
    trace = project.load_low_level(module_id)
    trace.last_generated = REGENERATED_AT
    trace.version += 1
    project.save_low_level(trace)


class TestIdempotence:
    def test_fresh_generation_has_no_changes(self, generated, module_config):
        result = sync_project(generated, module_config)
        assert result.ok
        assert result.changes == [] and result.files_updated == []

    def test_second_sync_is_noop(self, generated, module_config):
        add_export(generated)
        first = sync_project(generated, module_config)
        assert len(first.changes) == 1
        second = sync_project(generated, module_config)
        assert second.changes == [] and second.conflicts == [] and second.ok


class TestApplyEdits:
    def test_low_level_edit_applied(self, generated, module_config):
        add_export(generated)
        result = sync_project(generated, module_config)

        assert result.ok
        change = result.changes[0]
        assert (change.trace, change.identity, change.field) == ("web", MAIN, "exports")
        assert change.old == [{"symbol": "App", "type": "class"}]
        assert result.files_updated == [WEB_STORE]
        assert result.modules_updated == ["web"]
        assert generated.load_low_level("web").get_file(MAIN).exports == [
            ExportEntry("App", "class"),
            ExportEntry("Shell", "function"),
        ]

    def test_store_metadata_untouched(self, generated, module_config):
        before = generated.load_low_level("web")
        add_export(generated)
        sync_project(generated, module_config)
        after = generated.load_low_level("web")
        assert (after.version, after.last_generated) == (before.version, before.last_generated)

    def test_high_level_edit_applied_and_kept_on_regeneration(self, generated, module_config):
        add_edge_row(generated.high_level_doc_path, "web", "| core | uses | domain types |")
        result = sync_project(generated, module_config)
        assert [(c.trace, c.identity, c.field) for c in result.changes] == [
            ("high-level", "web", "dependencies")
        ]
        assert generated.load_high_level().get("web").dependencies == [
            ModuleEdge("core", "uses", "domain types")
        ]

        TraceGenerator(generated, module_config).generate_all(
            now=datetime(2024, 6, 1, tzinfo=timezone.utc)
        )
        assert generated.load_high_level().get("web").dependencies == [
            ModuleEdge("core", "uses", "domain types")
        ]
        assert "| core | uses | domain types |" in generated.high_level_doc_path.read_text(
            encoding="utf-8"
        )


class TestConflicts:
    def test_divergence_blocks_and_reports_both_values(self, generated, module_config):
        add_export(generated)
        regenerate_store_only(generated)
        result = sync_project(generated, module_config)

        assert not result.ok
        assert result.changes == []
        conflict = result.conflicts[0]
        assert (conflict.trace, conflict.identity, conflict.field) == ("web", MAIN, "exports")
        assert conflict.json_value == [{"symbol": "App", "type": "class"}]
        assert conflict.markdown_value[-1] == {"symbol": "Shell", "type": "function"}
        assert generated.load_low_level("web").get_file(MAIN).exports == [ExportEntry("App", "class")]

    def test_conflict_persists_on_retry(self, generated, module_config):
        add_export(generated)
        regenerate_store_only(generated)
        sync_project(generated, module_config)
        assert len(sync_project(generated, module_config).conflicts) == 1

    def test_force_document_wins_and_rerenders(self, generated, module_config):
        add_export(generated)
        regenerate_store_only(generated)
        result = sync_project(generated, module_config, force=True)

        assert result.ok and result.conflicts == []
        assert result.files_updated == [WEB_STORE, WEB_DOC]
        assert [e.symbol for e in generated.load_low_level("web").get_file(MAIN).exports] == [
            "App",
            "Shell",
        ]
        doc = generated.low_level_doc_path("web").read_text(encoding="utf-8")
        assert f"lastGenerated: {REGENERATED_AT}" in doc
        followup = sync_project(generated, module_config)
        assert followup.ok and followup.changes == []

    def test_divergence_without_edits_is_quiet(self, generated, module_config):
        regenerate_store_only(generated)
        result = sync_project(generated, module_config)
        assert result.ok and result.conflicts == []


class TestEditsThenGenerate:
    JUNE = datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_unsynced_edit_survives_as_conflict(self, generated, module_config):
        add_export(generated)
        summary = TraceGenerator(generated, module_config).generate_all(now=self.JUNE)

        assert any(w.startswith(f"{WEB_DOC} has unsynced edits") for w in summary.warnings)
        assert "| Shell | function |" in generated.low_level_doc_path("web").read_text(encoding="utf-8")

        result = sync_project(generated, module_config)
        assert not result.ok
        conflict = result.conflicts[0]
        assert (conflict.trace, conflict.identity, conflict.field) == ("web", MAIN, "exports")
        assert conflict.markdown_value[-1] == {"symbol": "Shell", "type": "function"}

    def test_force_applies_held_edit(self, generated, module_config):
        add_export(generated)
        TraceGenerator(generated, module_config).generate_all(now=self.JUNE)

        result = sync_project(generated, module_config, force=True)
        assert result.ok
        assert [e.symbol for e in generated.load_low_level("web").get_file(MAIN).exports] == [
            "App",
            "Shell",
        ]
        doc = generated.low_level_doc_path("web").read_text(encoding="utf-8")
        assert "lastGenerated: 2024-06-01T00:00:00.000+00:00" in doc
        assert sync_project(generated, module_config).changes == []

    def test_high_level_edit_survives_as_conflict(self, generated, module_config):
        add_edge_row(generated.high_level_doc_path, "web", "| core | uses | domain types |")
        TraceGenerator(generated, module_config).generate_all(now=self.JUNE)

        result = sync_project(generated, module_config)
        assert [(c.trace, c.identity, c.field) for c in result.conflicts] == [
            ("high-level", "web", "dependencies")
        ]


class TestDryRun:
    def test_reports_without_writing(self, generated, module_config):
        add_export(generated)
        store_before = generated.low_level_store_path("web").read_text(encoding="utf-8")
        result = sync_project(generated, module_config, dry_run=True)

        assert result.dry_run
        assert len(result.changes) == 1
        assert result.files_updated == [WEB_STORE]
        assert generated.low_level_store_path("web").read_text(encoding="utf-8") == store_before


class TestErrors:
    def test_malformed_row_skips_table(self, generated, module_config):
        add_export(generated)
        edit(generated.low_level_doc_path("web"), "| Shell | function |", "| Shell |")
        result = sync_project(generated, module_config)

        assert not result.ok
        assert len(result.errors) == 1
        assert result.errors[0].document == WEB_DOC
        assert result.errors[0].line is not None
        assert result.changes == []
        assert generated.load_low_level("web").get_file(MAIN).exports == [ExportEntry("App", "class")]

    def test_unknown_file_section(self, generated, module_config):
        edit(generated.low_level_doc_path("web"), f"## File: {MAIN}", "## File: apps/web/src/ghost.tsx")
        result = sync_project(generated, module_config)
        assert any("ghost.tsx" in e.message for e in result.errors)

    def test_metadata_for_other_module(self, generated, module_config):
        edit(generated.low_level_doc_path("web"), "module: web", "module: core")
        result = sync_project(generated, module_config)
        assert any("expected 'web'" in e.message for e in result.errors)

    def test_unreadable_store_does_not_stop_other_traces(self, generated, module_config):
        generated.low_level_store_path("core").write_text("{bad", encoding="utf-8")
        add_export(generated)
        result = sync_project(generated, module_config)
        assert any("unreadable store" in e.message for e in result.errors)
        assert [c.trace for c in result.changes] == ["web"]

    def test_missing_document_is_skipped(self, generated, module_config):
        generated.low_level_doc_path("web").unlink()
        assert sync_project(generated, module_config).ok


class TestModuleIds:
    def test_includes_stray_stores(self, generated, module_config):
        (generated.trace_dir / "low-level" / "legacy.json").write_text("{}", encoding="utf-8")
        ids = SyncEngine(generated, module_config).module_ids()
        assert ids == ["core", "web", "scripts", "legacy"]

    def test_without_config_uses_stores(self, generated):
        assert SyncEngine(generated, None).module_ids() == ["core", "scripts", "web"]
