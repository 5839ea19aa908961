"""
archtrace.core.enforcement - Gate edits on a recent read of the module trace.

Per (session, module) the state is one of:

- ``unread``: no read recorded for this session
- ``read``: read less than the TTL ago; the edit is allowed
- ``expired``: read, but at least the TTL ago

Files outside any module are ``untraced`` and always allowed (with an
advisory message). Without a module config everything is
``unconfigured`` and allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from archtrace.core.models import ModuleConfig
from archtrace.core.module_config import find_module_for_file, to_glob_path
from archtrace.core.read_tracker import ReadTracker
from archtrace.core.store import TraceProject
from archtrace.utilities.timestamps import utc_now

STATE_UNREAD = "unread"
STATE_READ = "read"
STATE_EXPIRED = "expired"
STATE_UNTRACED = "untraced"
STATE_UNCONFIGURED = "unconfigured"


@dataclass
class GateDecision:
    """Outcome of an edit check.

    Attributes:
        allowed: Whether the edit may proceed
        state: One of the STATE_* constants
        module: Owning module id, if any
        message: Human-readable explanation (empty when nothing to say)
    """

    allowed: bool
    state: str
    module: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "state": self.state,
            "module": self.module,
            "message": self.message,
        }


class EnforcementGate:
    def __init__(
        self,
        project: TraceProject,
        config: ModuleConfig | None,
        tracker: ReadTracker | None = None,
    ):
        self.project = project
        self.config = config
        self.tracker = tracker or ReadTracker(project, config)

    def check_edit(
        self,
        file_path: Path | str,
        session_id: str,
        now: datetime | None = None,
    ) -> GateDecision:
        if self.config is None:
            return GateDecision(allowed=True, state=STATE_UNCONFIGURED)

        # Trace documents themselves are always editable
        if self.project.doc_owner(file_path) is not None:
            return GateDecision(allowed=True, state=STATE_UNTRACED)

        rel_path = to_glob_path(self.project, self.config, file_path)
        module = find_module_for_file(self.config, rel_path)
        if module is None:
            return GateDecision(
                allowed=True,
                state=STATE_UNTRACED,
                message=f"Note: {rel_path} is not covered by any traced module.",
            )

        doc = self.project.relative(self.project.low_level_doc_path(module.id))
        read_at = self.tracker.last_read(session_id, module.id)
        if read_at is None:
            return GateDecision(
                allowed=False,
                state=STATE_UNREAD,
                module=module.id,
                message=(
                    f"Blocked: {rel_path} belongs to module '{module.id}', whose trace "
                    f"has not been read in this session. Read {doc} (or the high-level "
                    "trace) before editing."
                ),
            )

        now = now or utc_now()
        if self.tracker.is_expired(read_at, now):
            minutes = int(self.tracker.ttl.total_seconds() // 60)
            return GateDecision(
                allowed=False,
                state=STATE_EXPIRED,
                module=module.id,
                message=(
                    f"Blocked: the trace for module '{module.id}' was read more than "
                    f"{minutes} minute(s) ago and has expired. Re-read {doc} before editing "
                    f"{rel_path}."
                ),
            )
        return GateDecision(allowed=True, state=STATE_READ, module=module.id)


def check_edit(
    project: TraceProject,
    config: ModuleConfig | None,
    file_path: Path | str,
    session_id: str,
    now: datetime | None = None,
) -> GateDecision:
    """Convenience wrapper around ``EnforcementGate.check_edit``."""
    return EnforcementGate(project, config).check_edit(file_path, session_id, now)
