"""
archtrace.config - Configuration loading and defaults.

Tool settings live in ``.archtrace.toml`` (found by walking up from the
working directory), merged over ``DEFAULT_CONFIG`` and then overridden by
``ARCHTRACE_<SECTION>_<KEY>`` environment variables.

Module ownership is *not* configured here: it lives in the JSON module
config inside the trace directory (see ``archtrace.core.module_config``).
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError

CONFIG_FILENAME = ".archtrace.toml"
ENV_PREFIX = "ARCHTRACE_"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "trace_dir": "docs/architecture",
        "module_config": "modules.json",
        "session_file": ".archtrace/trace-reads.json",
    },
    "generate": {
        "exclude_dirs": [
            ".git",
            "node_modules",
            "dist",
            "build",
            "coverage",
            ".next",
            ".turbo",
            "cdk.out",
        ],
        "generated_by": "archtrace",
    },
    "enforcement": {
        "read_ttl_seconds": 300,
    },
    "bootstrap": {
        "app_dirs": ["apps"],
        "package_dirs": ["packages"],
        "tooling_dirs": ["scripts"],
    },
    "git": {
        "timeout_seconds": 10,
    },
}


def find_config_file(start_path: Path) -> Path | None:
    """Find ``.archtrace.toml`` in start_path or any parent directory."""
    current = Path(start_path).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge override into a copy of base; override wins on scalars."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _try_parse_env_value(value: str) -> Any:
    """Parse an environment value into a typed Python value.

    JSON arrays/objects, booleans and integers are converted; anything
    else (including malformed JSON) is returned unchanged.
    """
    stripped = value.strip()
    if stripped.startswith(("[", "{")):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if stripped.lstrip("-").isdigit():
        return int(stripped)
    return value


def apply_env_overrides(
    config: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """Apply ``ARCHTRACE_<SECTION>_<KEY>`` overrides to known sections.

    Example: ``ARCHTRACE_ENFORCEMENT_READ_TTL_SECONDS=60``.
    """
    environ = os.environ if environ is None else environ
    result = copy.deepcopy(config)
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        remainder = name[len(ENV_PREFIX) :].lower()
        for section, values in result.items():
            if not isinstance(values, dict) or not remainder.startswith(section + "_"):
                continue
            key = remainder[len(section) + 1 :]
            if key:
                values[key] = _try_parse_env_value(raw)
            break
    return result


def _unwrap(value: Any) -> Any:
    """Convert tomlkit containers into plain Python values."""
    if hasattr(value, "unwrap"):
        return value.unwrap()
    return value


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a TOML config file and merge it over the defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid TOML.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    content = config_path.read_text(encoding="utf-8")
    try:
        document = tomlkit.parse(content)
    except ParseError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e
    return merge_configs(DEFAULT_CONFIG, _unwrap(document))


def get_config(config_path: Path | None = None, start_path: Path | None = None) -> dict[str, Any]:
    """Resolve the effective configuration.

    Uses the explicit path when given, otherwise searches upward from
    start_path (default: cwd). Environment overrides are applied last.
    """
    path = config_path or find_config_file(start_path or Path.cwd())
    config = load_config(path) if path else copy.deepcopy(DEFAULT_CONFIG)
    config = apply_env_overrides(config)
    if path:
        config["_config_path"] = str(Path(path).resolve())
    return config


def resolve_project_root(
    config: dict[str, Any],
    root_override: Path | None = None,
    start_path: Path | None = None,
) -> Path:
    """Pick the project root.

    Order: explicit override, directory of the config file, git
    top-level, then the start path (default: cwd).
    """
    if root_override:
        return Path(root_override).resolve()
    config_path = config.get("_config_path")
    if config_path:
        return Path(config_path).parent
    from archtrace.utilities.git import get_repo_root

    start = start_path or Path.cwd()
    repo_root = get_repo_root(start, timeout=config.get("git", {}).get("timeout_seconds", 5))
    return repo_root or Path(start).resolve()


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "apply_env_overrides",
    "find_config_file",
    "get_config",
    "load_config",
    "merge_configs",
    "resolve_project_root",
]
