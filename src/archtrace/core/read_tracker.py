"""
archtrace.core.read_tracker - Per-session record of trace documents read.

The record lives in a small JSON side file::

    {"session_id": "...", "reads": {"<module id>": "<ISO timestamp>"}}

Only one session is remembered: a read from a different session id
replaces the record instead of merging into it. Reading the high-level
document stamps every module; reading a low-level document stamps only
its module. Writes are atomic (temp file + rename) but unlocked, so
concurrent sessions may overwrite each other; the record is advisory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from archtrace.core.models import HIGH_LEVEL_ID, ModuleConfig
from archtrace.core.store import TraceProject, read_json, write_json
from archtrace.utilities.timestamps import parse_iso, to_iso, utc_now

DEFAULT_TTL_SECONDS = 300


@dataclass
class TraceReadRecord:
    session_id: str = ""
    reads: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"session_id": self.session_id, "reads": dict(self.reads)}

    @classmethod
    def from_dict(cls, data: Any) -> TraceReadRecord:
        """Build a record, discarding anything malformed."""
        if not isinstance(data, dict):
            return cls()
        session_id = data.get("session_id")
        reads = data.get("reads")
        if not isinstance(session_id, str) or not isinstance(reads, dict):
            return cls()
        return cls(
            session_id=session_id,
            reads={k: v for k, v in reads.items() if isinstance(k, str) and isinstance(v, str)},
        )


class ReadTracker:
    """Records and answers "was this module's trace read recently?"."""

    def __init__(self, project: TraceProject, config: ModuleConfig | None = None):
        self.project = project
        self.config = config
        enforcement = project.settings.get("enforcement", {})
        self.ttl = timedelta(seconds=enforcement.get("read_ttl_seconds", DEFAULT_TTL_SECONDS))

    @property
    def path(self) -> Path:
        return self.project.session_file

    def load(self) -> TraceReadRecord:
        """Load the record; a missing or corrupt file yields an empty one."""
        if not self.path.exists():
            return TraceReadRecord()
        try:
            return TraceReadRecord.from_dict(read_json(self.path))
        except (OSError, ValueError):
            return TraceReadRecord()

    def save(self, record: TraceReadRecord) -> None:
        write_json(self.path, record.to_dict())

    def modules_for_document(self, file_path: Path | str) -> list[str]:
        """Module ids unlocked by reading the given path."""
        owner = self.project.doc_owner(file_path)
        if owner is None:
            return []
        if owner == HIGH_LEVEL_ID:
            return list(self.config.module_ids) if self.config else []
        return [owner]

    def record_read(
        self,
        session_id: str,
        file_path: Path | str,
        now: datetime | None = None,
    ) -> list[str]:
        """Stamp the modules unlocked by reading file_path.

        Returns:
            The module ids stamped (empty when the path is not a trace).
        """
        modules = self.modules_for_document(file_path)
        if not modules:
            return []
        record = self.load()
        if record.session_id != session_id:
            record = TraceReadRecord(session_id=session_id)
        stamp = to_iso(now or utc_now())
        for module_id in modules:
            record.reads[module_id] = stamp
        self.save(record)
        return modules

    def last_read(self, session_id: str, module_id: str) -> datetime | None:
        record = self.load()
        if record.session_id != session_id:
            return None
        value = record.reads.get(module_id)
        return parse_iso(value) if value else None

    def is_expired(self, read_at: datetime, now: datetime) -> bool:
        return now - read_at >= self.ttl
