"""
archtrace.core.store - Locations and I/O for trace stores and documents.

Layout inside the trace directory (default ``docs/architecture``)::

    modules.json            module config
    high-level.json         high-level store
    high-level.md           high-level document
    low-level/<id>.json     low-level store per module
    low-level/<id>.md       low-level document per module

Every write goes through ``atomic_write_text``: the content lands in a
temporary file in the target directory and is renamed over the target,
so readers never observe a partially written file.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archtrace.config import DEFAULT_CONFIG
from archtrace.core.models import HIGH_LEVEL_ID, HighLevelTrace, LowLevelTrace
from archtrace.utilities.globs import normalize_path

HIGH_LEVEL_STEM = "high-level"
LOW_LEVEL_DIR = "low-level"


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to path via a temporary file and an atomic rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_json(path: Path, data: Any) -> None:
    atomic_write_text(path, json.dumps(data, indent=2) + "\n")


def read_json(path: Path) -> Any:
    """Read a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON.
    """
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e


@dataclass
class TraceProject:
    """Resolved locations for one repository's traces.

    Attributes:
        root: Project root; module globs are relative to it
        settings: Effective tool configuration
        trace_dir: Directory holding stores and documents
    """

    root: Path
    settings: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))
    trace_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        paths = self.settings.get("paths", DEFAULT_CONFIG["paths"])
        self.trace_dir = self.root / paths.get("trace_dir", DEFAULT_CONFIG["paths"]["trace_dir"])

    # -- paths -------------------------------------------------------------

    @property
    def module_config_path(self) -> Path:
        paths = self.settings.get("paths", {})
        return self.trace_dir / paths.get("module_config", "modules.json")

    @property
    def session_file(self) -> Path:
        paths = self.settings.get("paths", {})
        value = Path(paths.get("session_file", DEFAULT_CONFIG["paths"]["session_file"]))
        return value if value.is_absolute() else self.root / value

    @property
    def high_level_store_path(self) -> Path:
        return self.trace_dir / f"{HIGH_LEVEL_STEM}.json"

    @property
    def high_level_doc_path(self) -> Path:
        return self.trace_dir / f"{HIGH_LEVEL_STEM}.md"

    def low_level_store_path(self, module_id: str) -> Path:
        return self.trace_dir / LOW_LEVEL_DIR / f"{module_id}.json"

    def low_level_doc_path(self, module_id: str) -> Path:
        return self.trace_dir / LOW_LEVEL_DIR / f"{module_id}.md"

    def relative(self, path: Path | str) -> str:
        """Return a project-relative POSIX path (unchanged if outside the root)."""
        candidate = Path(path)
        if not candidate.is_absolute():
            return normalize_path(str(candidate))
        try:
            return candidate.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return normalize_path(str(candidate))

    def trace_dir_relative(self) -> str:
        return self.relative(self.trace_dir)

    def doc_owner(self, path: Path | str) -> str | None:
        """Identify which trace a document or store path belongs to.

        Returns:
            ``HIGH_LEVEL_ID`` for the high-level trace, the module id for a
            low-level trace, or None for any other path.
        """
        rel = self.relative(path)
        prefix = self.trace_dir_relative().rstrip("/") + "/"
        if not rel.startswith(prefix):
            return None
        inner = rel[len(prefix) :]
        if inner in (f"{HIGH_LEVEL_STEM}.md", f"{HIGH_LEVEL_STEM}.json"):
            return HIGH_LEVEL_ID
        if inner.startswith(LOW_LEVEL_DIR + "/"):
            name = inner[len(LOW_LEVEL_DIR) + 1 :]
            if "/" not in name and name.endswith((".md", ".json")):
                return name.rsplit(".", 1)[0]
        return None

    # -- stores ------------------------------------------------------------

    def load_high_level(self) -> HighLevelTrace | None:
        path = self.high_level_store_path
        if not path.exists():
            return None
        return HighLevelTrace.from_dict(read_json(path))

    def save_high_level(self, trace: HighLevelTrace) -> None:
        write_json(self.high_level_store_path, trace.to_dict())

    def load_low_level(self, module_id: str) -> LowLevelTrace | None:
        path = self.low_level_store_path(module_id)
        if not path.exists():
            return None
        return LowLevelTrace.from_dict(read_json(path))

    def save_low_level(self, trace: LowLevelTrace) -> None:
        write_json(self.low_level_store_path(trace.module_id), trace.to_dict())


def open_project(
    root: Path | None = None,
    config_path: Path | None = None,
) -> TraceProject:
    """Build a TraceProject from the effective configuration."""
    from archtrace.config import get_config, resolve_project_root

    start = Path(root) if root else None
    settings = get_config(config_path, start_path=start)
    project_root = resolve_project_root(settings, root_override=root)
    return TraceProject(root=project_root, settings=settings)
