"""
archtrace.commands.hooks - Editor hook entry points.

Each hook reads one JSON event line from stdin::

    {"session_id": "...", "tool_input": {"file_path": "..."}}
    {"session_id": "...", "tool_input": {"command": "git commit ..."}}

and answers through the exit code: 0 lets the operation continue,
``EXIT_BLOCK`` blocks it, with the reason on stderr.

Hooks are advisory and fail open. A missing or malformed event, module
config or session file, or any internal error, exits 0.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, TextIO

from archtrace.core.enforcement import EnforcementGate
from archtrace.core.module_config import load_module_config
from archtrace.core.read_tracker import ReadTracker
from archtrace.core.staleness import check_staleness
from archtrace.core.store import TraceProject, open_project
from archtrace.utilities.git import get_commit_files, get_staged_files, is_commit_command

EXIT_ALLOW = 0
EXIT_BLOCK = 2
GIT_TIMEOUT_DEFAULT = 10
GIT_TIMEOUT_MIN = 5
GIT_TIMEOUT_MAX = 30


def read_event(stream: TextIO | None = None) -> dict[str, Any] | None:
    """Read the first non-empty JSON line from stream (default: stdin)."""
    stream = stream or sys.stdin
    for line in stream:
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            return None
        return event if isinstance(event, dict) else None
    return None


def _tool_input(event: dict[str, Any], key: str) -> str | None:
    tool_input = event.get("tool_input")
    if not isinstance(tool_input, dict):
        return None
    value = tool_input.get(key)
    return value if isinstance(value, str) and value else None


def _session_id(event: dict[str, Any]) -> str:
    value = event.get("session_id")
    return value if isinstance(value, str) else ""


def _git_timeout(project: TraceProject) -> float:
    """Configured git timeout, held within GIT_TIMEOUT_MIN..GIT_TIMEOUT_MAX seconds."""
    value = project.settings.get("git", {}).get("timeout_seconds", GIT_TIMEOUT_DEFAULT)
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = GIT_TIMEOUT_DEFAULT
    return min(max(seconds, GIT_TIMEOUT_MIN), GIT_TIMEOUT_MAX)


def enforce(args: argparse.Namespace, event: dict[str, Any]) -> int:
    file_path = _tool_input(event, "file_path")
    if file_path is None:
        return EXIT_ALLOW
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    gate = EnforcementGate(project, load_module_config(project))
    decision = gate.check_edit(file_path, _session_id(event))
    if decision.message and not (decision.allowed and getattr(args, "quiet", False)):
        print(decision.message, file=sys.stderr)
    return EXIT_ALLOW if decision.allowed else EXIT_BLOCK


def track_read(args: argparse.Namespace, event: dict[str, Any]) -> int:
    file_path = _tool_input(event, "file_path")
    if file_path is None:
        return EXIT_ALLOW
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    tracker = ReadTracker(project, load_module_config(project))
    stamped = tracker.record_read(_session_id(event), file_path)
    if stamped and getattr(args, "verbose", False):
        print(f"Recorded trace read for: {', '.join(stamped)}", file=sys.stderr)
    return EXIT_ALLOW


def check_stale_hook(args: argparse.Namespace, event: dict[str, Any]) -> int:
    command = _tool_input(event, "command")
    if command is None or not is_commit_command(command):
        return EXIT_ALLOW
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    config = load_module_config(project)
    if config is None:
        return EXIT_ALLOW
    files = get_commit_files(project.root, command, _git_timeout(project))
    report = check_staleness(project, config, files)
    if report.is_stale:
        print(report.format_message(), file=sys.stderr)
        return EXIT_BLOCK
    return EXIT_ALLOW


HOOKS = {
    "enforce": enforce,
    "track-read": track_read,
    "check-stale": check_stale_hook,
}


def run(args: argparse.Namespace, stream: TextIO | None = None) -> int:
    """Run a hook. Never raises; internal failures allow the operation."""
    handler = HOOKS.get(getattr(args, "hook_action", None) or "")
    if handler is None:
        print(f"Usage: archtrace hook <{'|'.join(HOOKS)}>", file=sys.stderr)
        return EXIT_ALLOW
    try:
        event = read_event(stream)
        if event is None:
            return EXIT_ALLOW
        return handler(args, event)
    except Exception as e:
        if getattr(args, "verbose", False):
            print(f"archtrace hook {args.hook_action}: {e} (allowing)", file=sys.stderr)
        return EXIT_ALLOW


def run_check_stale(args: argparse.Namespace) -> int:
    """Manual staleness check of the given files, or the staged files."""
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    config = load_module_config(project)
    if config is None:
        if not getattr(args, "quiet", False):
            print("No module config; nothing to check.")
        return 0
    files: list[str | Path] = list(getattr(args, "files", None) or [])
    if not files:
        files = list(get_staged_files(project.root, _git_timeout(project)))
    report = check_staleness(project, config, files)

    if getattr(args, "json", False):
        print(json.dumps(report.to_dict(), indent=2))
    elif report.is_stale:
        print(report.format_message(), file=sys.stderr)
    elif not getattr(args, "quiet", False):
        checked = ", ".join(report.checked_modules) or "none"
        print(f"Traces are up to date (modules checked: {checked})")
    return EXIT_BLOCK if report.is_stale else 0
