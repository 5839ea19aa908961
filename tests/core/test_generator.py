"""Tests for trace generation and bootstrap."""

import json
from datetime import datetime, timezone

import pytest

from archtrace.core.generator import (
    HighLevelBuilder,
    TraceGenerator,
    bootstrap_module_config,
    infer_modules,
    load_generator,
)
from archtrace.core.models import HighLevelModule, HighLevelTrace, ModuleEdge
from archtrace.core.store import TraceProject

from conftest import GENERATED_AT, write

LATER = datetime(2024, 5, 2, 9, 30, tzinfo=timezone.utc)


class TestListFiles:
    def test_sorted_and_excludes(self, project, module_config):
        write(project.root, "node_modules/pkg/index.js", "export const x = 1;\n")
        write(project.root, "apps/web/dist/bundle.js", "export const y = 1;\n")
        generator = TraceGenerator(project, module_config)
        files = generator.list_files()
        assert files == sorted(files)
        assert "node_modules/pkg/index.js" not in files
        assert "apps/web/dist/bundle.js" not in files
        assert "docs/architecture/modules.json" not in files

    def test_module_files(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        assert generator.module_files(module_config.get("core")) == [
            "packages/core/package.json",
            "packages/core/src/index.ts",
            "packages/core/src/util.ts",
        ]


class TestGenerateModule:
    def test_completeness(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        trace = generator.generate_module(module_config.get("core"), now=GENERATED_AT)

        assert [f.file_path for f in trace.files] == generator.module_files(module_config.get("core"))
        index = trace.get_file("packages/core/src/index.ts")
        assert [(e.symbol, e.type) for e in index.exports] == [
            ("User", "interface"),
            ("createUser", "function"),
            ("DEFAULT_ROLE", "const"),
        ]
        assert trace.get_file("packages/core/package.json").exports == []

    def test_writes_store_and_document(self, project, module_config):
        TraceGenerator(project, module_config).generate_module(
            module_config.get("web"), now=GENERATED_AT
        )
        data = json.loads(project.low_level_store_path("web").read_text(encoding="utf-8"))
        assert data["moduleId"] == "web"
        assert data["version"] == 1
        assert data["lastGenerated"] == "2024-05-01T12:00:00.000+00:00"
        assert data["files"][0]["calls"] == [] and data["files"][0]["events"] == []
        doc = project.low_level_doc_path("web").read_text(encoding="utf-8")
        assert "module: web" in doc
        assert "## File: apps/web/src/main.tsx" in doc

    def test_version_increments_by_one(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        module = module_config.get("web")
        assert generator.generate_module(module, now=GENERATED_AT).version == 1
        assert generator.generate_module(module, now=LATER).version == 2
        assert project.load_low_level("web").last_generated.startswith("2024-05-02T09:30")

    def test_regeneration_is_from_scratch(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        module = module_config.get("web")
        generator.generate_module(module, now=GENERATED_AT)
        write(project.root, "apps/web/src/main.tsx", "export function only() {}\n")
        trace = TraceGenerator(project, module_config).generate_module(module, now=LATER)
        assert [e.symbol for e in trace.files[0].exports] == ["only"]
        assert trace.files[0].imports == []

    def test_notes_survive_regeneration(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        module = module_config.get("web")
        generator.generate_module(module, now=GENERATED_AT)
        doc_path = project.low_level_doc_path("web")
        text = doc_path.read_text(encoding="utf-8")
        head, _, _ = text.partition("## Notes (freeform)")
        doc_path.write_text(head + "## Notes (freeform)\n\nKeep App thin.\n", encoding="utf-8")

        generator.generate_module(module, now=LATER)
        assert "Keep App thin." in doc_path.read_text(encoding="utf-8")

    def test_document_with_unsynced_edits_is_left_alone(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        module = module_config.get("web")
        generator.generate_module(module, now=GENERATED_AT)
        doc_path = project.low_level_doc_path("web")
        edited = doc_path.read_text(encoding="utf-8").replace("| App | class |", "| App | function |")
        doc_path.write_text(edited, encoding="utf-8")

        trace = generator.generate_module(module, now=LATER)
        assert doc_path.read_text(encoding="utf-8") == edited
        assert trace.files[0].exports[0].type == "class"
        assert project.load_low_level("web").last_generated == trace.last_generated
        assert generator.held_documents == ["docs/architecture/low-level/web.md"]

    def test_unedited_document_is_rerendered(self, project, module_config):
        generator = TraceGenerator(project, module_config)
        module = module_config.get("web")
        generator.generate_module(module, now=GENERATED_AT)
        generator.generate_module(module, now=LATER)
        text = project.low_level_doc_path("web").read_text(encoding="utf-8")
        assert "lastGenerated: 2024-05-02T09:30:00.000+00:00" in text
        assert generator.held_documents == []

    def test_corrupt_previous_store_fails_loud(self, project, module_config):
        path = project.low_level_store_path("web")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ValueError):
            TraceGenerator(project, module_config).generate_module(module_config.get("web"))


class TestGenerateAll:
    def test_all_modules_and_high_level(self, project, module_config):
        summary = TraceGenerator(project, module_config).generate_all(now=GENERATED_AT)
        assert summary.modules_processed == ["core", "web", "scripts"]
        assert summary.files_generated == 5
        assert summary.high_level_version == 1
        assert summary.duration_seconds >= 0
        high = project.load_high_level()
        assert [m.id for m in high.modules] == ["core", "web", "scripts"]
        assert high.get("core").description == "Shared domain primitives"
        assert project.high_level_doc_path.exists()

    def test_single_module(self, project, module_config):
        summary = TraceGenerator(project, module_config).generate_all("web", now=GENERATED_AT)
        assert summary.modules_processed == ["web"]
        assert not project.low_level_store_path("core").exists()
        assert summary.high_level_version == 1

    def test_low_level_only(self, project, module_config):
        summary = TraceGenerator(project, module_config).generate_all(low_level_only=True)
        assert summary.high_level_version is None
        assert not project.high_level_store_path.exists()

    def test_unknown_module(self, project, module_config):
        with pytest.raises(ValueError, match="Unknown module 'nope'"):
            TraceGenerator(project, module_config).generate_all("nope")

    def test_empty_module_warning(self, project, module_config):
        module_config.get("scripts").file_globs = ["missing/**"]
        summary = TraceGenerator(project, module_config).generate_all(now=GENERATED_AT)
        assert "module 'scripts' matched no files" in summary.warnings

    def test_overlap_warning(self, project, module_config):
        module_config.get("scripts").file_globs.append("apps/web/**")
        summary = TraceGenerator(project, module_config).generate_all(now=GENERATED_AT)
        assert any("apps/web/src/main.tsx" in w and "'web' owns it" in w for w in summary.warnings)

    def test_load_generator_requires_config(self, repo, settings):
        with pytest.raises(FileNotFoundError, match="--bootstrap"):
            load_generator(TraceProject(repo, settings))


class TestHighLevelBuilder:
    def test_keeps_edges_and_prunes_unknown(self, module_config):
        previous = HighLevelTrace(
            modules=[
                HighLevelModule(
                    "web",
                    "Old name",
                    "",
                    dependencies=[
                        ModuleEdge("core", "uses", "domain types"),
                        ModuleEdge("gone", "uses", ""),
                    ],
                )
            ],
            version=4,
        )
        trace = HighLevelBuilder().build(module_config, previous, "2024-05-01T00:00:00.000+00:00", "test")
        web = trace.get("web")
        assert trace.version == 5
        assert web.name == "Web"
        assert [e.target_id for e in web.dependencies] == ["core"]
        assert trace.get("core").dependencies == []


class TestBootstrap:
    def test_infers_layout(self, tmp_path, settings):
        write(tmp_path, "apps/web/package.json", '{"description": "Web app"}')
        write(tmp_path, "apps/web/src/main.ts", "")
        write(tmp_path, "packages/ui/package.json", "{}")
        write(tmp_path, "packages/core/auth/package.json", "{}")
        write(tmp_path, "packages/core/db/package.json", "{}")
        write(tmp_path, "scripts/release.sh", "")
        modules = infer_modules(tmp_path, settings)
        assert [(m.id, m.file_globs) for m in modules] == [
            ("web", ["apps/web/**"]),
            ("auth", ["packages/core/auth/**"]),
            ("db", ["packages/core/db/**"]),
            ("ui", ["packages/ui/**"]),
            ("scripts", ["scripts/**"]),
        ]
        assert modules[0].description == "Web app"

    def test_group_prefix_on_collision(self, tmp_path, settings):
        write(tmp_path, "apps/auth/index.ts", "")
        write(tmp_path, "packages/core/auth/package.json", "{}")
        ids = [m.id for m in infer_modules(tmp_path, settings)]
        assert ids == ["auth", "core-auth"]

    def test_writes_config(self, repo, settings):
        project = TraceProject(repo, settings)
        config = bootstrap_module_config(project)
        assert project.module_config_path.exists()
        assert "web" in config.module_ids and "core" in config.module_ids

    def test_refuses_existing_config(self, project):
        before = project.module_config_path.read_text(encoding="utf-8")
        with pytest.raises(FileExistsError):
            bootstrap_module_config(project)
        assert project.module_config_path.read_text(encoding="utf-8") == before

    def test_nothing_found(self, tmp_path, settings):
        with pytest.raises(ValueError, match="No module directories"):
            bootstrap_module_config(TraceProject(tmp_path, settings))
