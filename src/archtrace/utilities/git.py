"""Git helpers for archtrace.

Provides the few git queries the staleness checker and root discovery
need:
- Repository root lookup
- Files staged for the next commit
- Tracked files with unstaged modifications (for ``git commit -a``)

Every call is bounded by a timeout. A timeout, a missing git binary, or a
failing command all degrade to an empty answer rather than an exception,
since the callers are advisory hooks that must never hang an editor.
"""

from __future__ import annotations

import os
import re
import shlex
import subprocess
from pathlib import Path

DEFAULT_TIMEOUT_SECONDS = 10

_COMMIT_RE = re.compile(r"(?:^|[;&|()\s])git(?:\s+-[cC]\s+\S+)*\s+commit\b")


def _clean_git_env() -> dict[str, str]:
    """Return environment with GIT_DIR/GIT_WORK_TREE removed.

    Use when running git commands with explicit cwd to prevent
    inherited git context from overriding the provided path.
    """
    env = os.environ.copy()
    env.pop("GIT_DIR", None)
    env.pop("GIT_WORK_TREE", None)
    return env


def _run_git(
    args: list[str],
    cwd: Path,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str | None:
    """Run a git command and return its stdout, or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            env=_clean_git_env(),
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return None
    return result.stdout


def _split_names(output: str | None) -> list[str]:
    if not output:
        return []
    return [line.strip() for line in output.split("\n") if line.strip()]


def get_repo_root(start_path: Path | None = None, timeout: float = 5) -> Path | None:
    """Find the git repository root.

    Args:
        start_path: Path to start searching from (default: current directory)
        timeout: Seconds to wait for git

    Returns:
        Path to repository root, or None if not in a git repository
    """
    output = _run_git(["rev-parse", "--show-toplevel"], start_path or Path.cwd(), timeout)
    if not output or not output.strip():
        return None
    return Path(output.strip())


def get_staged_files(repo_root: Path, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> list[str]:
    """Return paths staged for commit (added, copied, modified, renamed).

    Paths are relative to repo_root, which may sit below the git
    top-level; staged files outside it are left out. Deleted files are
    excluded: they have no source left to be stale.
    """
    output = _run_git(
        ["diff", "--cached", "--name-only", "--relative", "--diff-filter=ACMR"],
        repo_root,
        timeout,
    )
    return _split_names(output)


def get_unstaged_tracked_files(
    repo_root: Path, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> list[str]:
    """Return tracked files with unstaged modifications."""
    output = _run_git(
        ["diff", "--name-only", "--relative", "--diff-filter=ACMR"],
        repo_root,
        timeout,
    )
    return _split_names(output)


def is_commit_command(command: str) -> bool:
    """Return True if a shell command line runs ``git commit``."""
    if not command:
        return False
    return _COMMIT_RE.search(command) is not None


def commit_includes_all(command: str) -> bool:
    """Return True if a ``git commit`` command stages tracked changes itself.

    Detects ``-a``, ``--all`` and combined short flags such as ``-am``.
    """
    try:
        tokens = shlex.split(command)
    except ValueError:
        tokens = command.split()
    if "commit" not in tokens:
        return False
    for token in tokens[tokens.index("commit") + 1 :]:
        if token in (";", "&&", "||", "|"):
            break
        if token == "--all":
            return True
        if token.startswith("-") and not token.startswith("--") and "a" in token[1:]:
            # -m consumes the rest of a combined flag, so "-ma" is a message
            flags = token[1:]
            if "m" in flags and flags.index("m") < flags.index("a"):
                continue
            return True
    return False


def get_commit_files(
    repo_root: Path,
    command: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[str]:
    """Return the files a ``git commit`` command line would record."""
    files = get_staged_files(repo_root, timeout)
    if commit_includes_all(command):
        for path in get_unstaged_tracked_files(repo_root, timeout):
            if path not in files:
                files.append(path)
    return files
