"""Tests for the commit staleness checker."""

import os
from datetime import datetime, timezone

import pytest

from archtrace.core.staleness import StalenessChecker, check_staleness

BEFORE = datetime(2024, 4, 1, tzinfo=timezone.utc).timestamp()
AFTER = datetime(2024, 5, 2, tzinfo=timezone.utc).timestamp()


def set_mtime(path, timestamp):
    os.utime(path, (timestamp, timestamp))


@pytest.fixture
def fresh(generated):
    """Generated project whose sources all predate their traces."""
    for dirpath, _, filenames in os.walk(generated.root):
        for name in filenames:
            set_mtime(os.path.join(dirpath, name), BEFORE)
    return generated


class TestCheckStaleness:
    def test_up_to_date(self, fresh, module_config):
        report = check_staleness(fresh, module_config, ["apps/web/src/main.tsx"])
        assert not report.is_stale
        assert report.checked_modules == ["web"]

    def test_source_newer_than_trace(self, fresh, module_config):
        set_mtime(fresh.root / "apps/web/src/main.tsx", AFTER)
        report = check_staleness(fresh, module_config, ["apps/web/src/main.tsx"])
        assert report.is_stale
        stale = report.stale[0]
        assert stale.module == "web"
        assert stale.last_generated == "2024-05-01T12:00:00.000+00:00"
        assert stale.newest_source == "2024-05-02T00:00:00.000+00:00"
        assert stale.command == "archtrace generate web"

    def test_any_file_in_module_counts(self, fresh, module_config):
        set_mtime(fresh.root / "packages/core/src/util.ts", AFTER)
        report = check_staleness(fresh, module_config, ["packages/core/src/index.ts"])
        assert [s.module for s in report.stale] == ["core"]

    def test_only_touched_modules_checked(self, fresh, module_config):
        set_mtime(fresh.root / "packages/core/src/util.ts", AFTER)
        report = check_staleness(fresh, module_config, ["apps/web/src/main.tsx"])
        assert not report.is_stale

    def test_untraced_files_never_block(self, fresh, module_config):
        set_mtime(fresh.root / "README.md", AFTER)
        report = check_staleness(fresh, module_config, ["README.md", "docs/other.md"])
        assert not report.is_stale
        assert report.checked_modules == []

    def test_missing_trace_is_stale(self, fresh, module_config):
        fresh.low_level_store_path("scripts").unlink()
        report = check_staleness(fresh, module_config, ["scripts/build.js"])
        assert report.stale[0].module == "scripts"
        assert report.stale[0].last_generated is None

    def test_distinct_modules_in_order(self, fresh, module_config):
        set_mtime(fresh.root / "apps/web/src/main.tsx", AFTER)
        set_mtime(fresh.root / "scripts/build.js", AFTER)
        report = check_staleness(
            fresh,
            module_config,
            ["scripts/build.js", "apps/web/src/main.tsx", "scripts/build.js"],
        )
        assert [s.module for s in report.stale] == ["scripts", "web"]

    def test_no_config_is_noop(self, fresh):
        assert not check_staleness(fresh, None, ["apps/web/src/main.tsx"]).is_stale


class TestReport:
    def test_message_names_commands(self, fresh, module_config):
        set_mtime(fresh.root / "apps/web/src/main.tsx", AFTER)
        fresh.low_level_store_path("scripts").unlink()
        report = StalenessChecker(fresh, module_config).check(
            ["apps/web/src/main.tsx", "scripts/build.js"]
        )
        message = report.format_message()
        assert "run `archtrace generate web`" in message
        assert "scripts (no low-level trace): run `archtrace generate scripts`" in message

    def test_to_dict(self, fresh, module_config):
        set_mtime(fresh.root / "apps/web/src/main.tsx", AFTER)
        data = check_staleness(fresh, module_config, ["apps/web/src/main.tsx"]).to_dict()
        assert data["stale"][0]["command"] == "archtrace generate web"
        assert data["checkedModules"] == ["web"]
