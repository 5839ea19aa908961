"""Tests for the session read tracker."""

import json
from datetime import datetime, timezone

from archtrace.core.read_tracker import ReadTracker

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestRecordRead:
    def test_low_level_document_stamps_its_module(self, generated, module_config):
        tracker = ReadTracker(generated, module_config)
        stamped = tracker.record_read("s1", generated.low_level_doc_path("web"), now=T0)
        assert stamped == ["web"]
        assert tracker.last_read("s1", "web") == T0
        assert tracker.last_read("s1", "core") is None

    def test_high_level_document_stamps_every_module(self, generated, module_config):
        tracker = ReadTracker(generated, module_config)
        stamped = tracker.record_read("s1", "docs/architecture/high-level.md", now=T0)
        assert stamped == ["core", "web", "scripts"]
        assert all(tracker.last_read("s1", m) == T0 for m in stamped)

    def test_other_files_are_ignored(self, generated, module_config):
        tracker = ReadTracker(generated, module_config)
        assert tracker.record_read("s1", "apps/web/src/main.tsx", now=T0) == []
        assert not generated.session_file.exists()

    def test_record_format(self, generated, module_config):
        ReadTracker(generated, module_config).record_read(
            "s1", generated.low_level_doc_path("core"), now=T0
        )
        data = json.loads(generated.session_file.read_text(encoding="utf-8"))
        assert data == {"session_id": "s1", "reads": {"core": "2024-05-01T12:00:00.000+00:00"}}


class TestSessions:
    def test_new_session_resets_record(self, generated, module_config):
        tracker = ReadTracker(generated, module_config)
        tracker.record_read("s1", generated.low_level_doc_path("web"), now=T0)
        tracker.record_read("s2", generated.low_level_doc_path("core"), now=T0)
        assert tracker.last_read("s2", "web") is None
        assert tracker.last_read("s2", "core") == T0
        assert tracker.last_read("s1", "web") is None

    def test_corrupt_session_file_is_empty(self, generated, module_config):
        generated.session_file.parent.mkdir(parents=True, exist_ok=True)
        generated.session_file.write_text("not json", encoding="utf-8")
        tracker = ReadTracker(generated, module_config)
        assert tracker.last_read("s1", "web") is None
        tracker.record_read("s1", generated.low_level_doc_path("web"), now=T0)
        assert tracker.last_read("s1", "web") == T0

    def test_malformed_reads_discarded(self, generated, module_config):
        generated.session_file.parent.mkdir(parents=True, exist_ok=True)
        generated.session_file.write_text(json.dumps({"session_id": "s1", "reads": []}), encoding="utf-8")
        assert ReadTracker(generated, module_config).load().reads == {}


class TestTtl:
    def test_configured_ttl(self, generated, module_config):
        generated.settings["enforcement"]["read_ttl_seconds"] = 60
        assert ReadTracker(generated, module_config).ttl.total_seconds() == 60
