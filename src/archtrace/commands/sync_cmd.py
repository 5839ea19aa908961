"""
archtrace.commands.sync_cmd - Apply trace document edits to the stores.

Prints a summary to stdout and the conflict report to stderr. Exits 1
when parse errors or unresolved conflicts remain.
"""

from __future__ import annotations

import argparse
import json
import sys

from archtrace.core.models import SyncResult
from archtrace.core.module_config import load_module_config
from archtrace.core.store import open_project
from archtrace.core.sync import sync_project


def run(args: argparse.Namespace) -> int:
    """Run the sync command."""
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    config = load_module_config(project)
    result = sync_project(
        project,
        config,
        force=getattr(args, "force", False),
        dry_run=getattr(args, "dry_run", False),
    )

    if getattr(args, "json", False):
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_summary(result, quiet=getattr(args, "quiet", False))
    _print_problems(result)
    return 0 if result.ok else 1


def _format_value(value) -> str:
    return json.dumps(value, sort_keys=True)


def _print_summary(result: SyncResult, quiet: bool = False) -> None:
    if quiet:
        return
    prefix = "[dry run] " if result.dry_run else ""
    modules = result.modules_updated
    print(f"{prefix}Modules updated: {len(modules)}{': ' + ', '.join(modules) if modules else ''}")
    print(f"{prefix}Fields changed: {len(result.changes)}")
    for change in result.changes:
        print(f"  {change.trace} / {change.identity} / {change.field}")
    print(f"{prefix}Conflicts: {len(result.conflicts)}")
    print(f"{prefix}Parse errors: {len(result.errors)}")
    if result.files_updated:
        verb = "Would write" if result.dry_run else "Wrote"
        for path in result.files_updated:
            print(f"  {verb} {path}")


def _print_problems(result: SyncResult) -> None:
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    if not result.conflicts:
        return
    print(
        "\nConflicts: the stores were regenerated after these documents were "
        "rendered. Nothing was applied.",
        file=sys.stderr,
    )
    for conflict in result.conflicts:
        print(f"  {conflict.trace} / {conflict.identity} / {conflict.field}", file=sys.stderr)
        print(f"    json:     {_format_value(conflict.json_value)}", file=sys.stderr)
        print(f"    markdown: {_format_value(conflict.markdown_value)}", file=sys.stderr)
    print(
        "Regenerate and re-apply the edits, or rerun with --force to let the documents win.",
        file=sys.stderr,
    )
