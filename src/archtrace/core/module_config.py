"""
archtrace.core.module_config - Module config loading and file ownership.

The module config is the JSON map from module id to name, description
and ownership globs. It is loaded and validated before any other
component runs. File ownership is resolved in config order: the first
module whose globs match a path owns it.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from archtrace.core.models import ModuleConfig, ModuleDefinition
from archtrace.core.store import TraceProject, read_json, write_json
from archtrace.utilities.globs import matches_any, normalize_path

_MODULE_ID = re.compile(r"^[a-z0-9][a-z0-9._-]*$")


class ModuleConfigError(ValueError):
    """Raised when a module config is structurally invalid."""


def validate_module_config(data: Any) -> list[str]:
    """Return a list of validation problems (empty when valid)."""
    problems: list[str] = []
    if not isinstance(data, dict):
        return ["module config must be a JSON object"]
    modules = data.get("modules")
    if not isinstance(modules, list):
        return ["'modules' must be a list"]

    seen: set[str] = set()
    for index, module in enumerate(modules):
        where = f"modules[{index}]"
        if not isinstance(module, dict):
            problems.append(f"{where} must be an object")
            continue
        module_id = module.get("id")
        if not isinstance(module_id, str) or not module_id:
            problems.append(f"{where} is missing 'id'")
            continue
        where = f"module '{module_id}'"
        if not _MODULE_ID.match(module_id):
            problems.append(f"{where}: id must be lowercase letters, digits, '.', '_' or '-'")
        if module_id in seen:
            problems.append(f"{where}: duplicate id")
        seen.add(module_id)
        if "name" in module and not isinstance(module["name"], str):
            problems.append(f"{where}: 'name' must be a string")
        if "description" in module and not isinstance(module["description"], str):
            problems.append(f"{where}: 'description' must be a string")
        globs = module.get("fileGlobs")
        if not isinstance(globs, list) or not all(isinstance(g, str) and g for g in globs):
            problems.append(f"{where}: 'fileGlobs' must be a list of non-empty strings")
    return problems


def parse_module_config(data: dict[str, Any]) -> ModuleConfig:
    """Validate raw JSON data and build a ModuleConfig.

    Raises:
        ModuleConfigError: If the data fails validation.
    """
    problems = validate_module_config(data)
    if problems:
        raise ModuleConfigError("Invalid module config: " + "; ".join(problems))
    modules = [ModuleDefinition.from_dict(m) for m in data["modules"]]
    for module in modules:
        module.file_globs = [normalize_path(g) for g in module.file_globs]
    return ModuleConfig(
        modules=modules,
        version=int(data.get("version", 1)),
        project_root=data.get("projectRoot", "."),
    )


def load_module_config(project: TraceProject) -> ModuleConfig | None:
    """Load the project's module config.

    Returns:
        The config, or None when no module config file exists.

    Raises:
        ValueError: If the file is not valid JSON or fails validation.
    """
    path = project.module_config_path
    if not path.exists():
        return None
    return parse_module_config(read_json(path))


def save_module_config(project: TraceProject, config: ModuleConfig) -> Path:
    path = project.module_config_path
    write_json(path, config.to_dict())
    return path


def glob_base(project: TraceProject, config: ModuleConfig) -> Path:
    """Directory that module globs are relative to."""
    base = Path(config.project_root or ".")
    if base.is_absolute():
        return base
    return (project.root / base).resolve()


def to_glob_path(project: TraceProject, config: ModuleConfig, path: Path | str) -> str:
    """Express a path relative to the glob base directory."""
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = project.root / candidate
    try:
        return candidate.resolve().relative_to(glob_base(project, config)).as_posix()
    except ValueError:
        return normalize_path(str(path))


def find_module_for_file(config: ModuleConfig, rel_path: str) -> ModuleDefinition | None:
    """Return the first module (in config order) whose globs match the path."""
    rel_path = normalize_path(rel_path)
    for module in config.modules:
        if matches_any(module.file_globs, rel_path):
            return module
    return None


def find_owners(config: ModuleConfig, rel_path: str) -> list[ModuleDefinition]:
    """Return every module whose globs match the path."""
    rel_path = normalize_path(rel_path)
    return [m for m in config.modules if matches_any(m.file_globs, rel_path)]


def find_overlaps(config: ModuleConfig, rel_paths: list[str]) -> dict[str, list[str]]:
    """Map each path owned by more than one module to the owning module ids."""
    overlaps: dict[str, list[str]] = {}
    for rel_path in rel_paths:
        owners = find_owners(config, rel_path)
        if len(owners) > 1:
            overlaps[rel_path] = [m.id for m in owners]
    return overlaps
