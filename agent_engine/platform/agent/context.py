"""Per-run mutable state threaded through every component call."""

import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from agent_engine.platform.agent.usage import Usage


class ApprovalStatus(StrEnum):
    """Outcome of an approval lookup for one tool call."""

    UNKNOWN = "unknown"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ToolApprovals:
    """Approval decisions recorded for a single tool name.

    Attributes:
        approved_ids: Call ids approved individually
        rejected_ids: Call ids rejected individually
        always_approved: Every call to the tool is approved
        always_rejected: Every call to the tool is rejected
    """

    approved_ids: set[str] = field(default_factory=set)
    rejected_ids: set[str] = field(default_factory=set)
    always_approved: bool = False
    always_rejected: bool = False

    def status(self, tool_call_id: str) -> ApprovalStatus:
        if self.always_approved:
            return ApprovalStatus.APPROVED
        if self.always_rejected:
            return ApprovalStatus.REJECTED
        if tool_call_id in self.approved_ids:
            return ApprovalStatus.APPROVED
        if tool_call_id in self.rejected_ids:
            return ApprovalStatus.REJECTED
        return ApprovalStatus.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved_ids": sorted(self.approved_ids),
            "rejected_ids": sorted(self.rejected_ids),
            "always_approved": self.always_approved,
            "always_rejected": self.always_rejected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolApprovals":
        return cls(
            approved_ids=set(data.get("approved_ids", [])),
            rejected_ids=set(data.get("rejected_ids", [])),
            always_approved=bool(data.get("always_approved", False)),
            always_rejected=bool(data.get("always_rejected", False)),
        )


class RunContext[T]:
    """Mutable state owned by a run.

    Holds the caller's opaque payload, the running usage totals and the
    approval table. The same context may be threaded through several
    concurrent runs to aggregate usage and approvals, so every mutation
    goes through a lock.
    """

    def __init__(self, context: T | None = None, usage: Usage | None = None) -> None:
        self.context = context
        self._usage = usage or Usage()
        self._approvals: dict[str, ToolApprovals] = {}
        self._lock = threading.Lock()

    @property
    def usage(self) -> Usage:
        return self._usage

    def add_usage(self, usage: Usage) -> Usage:
        """Accumulate usage and return the new totals."""
        with self._lock:
            self._usage = self._usage.add(usage)
            return self._usage

    def approve_tool(self, tool_name: str, tool_call_id: str | None = None, always: bool = False) -> None:
        """Record an approval for one call, or for every call when ``always`` is set.

        Raises:
            ValueError: If neither a call id nor ``always`` is given
        """
        if tool_call_id is None and not always:
            raise ValueError("approve_tool needs a tool_call_id or always=True")
        with self._lock:
            entry = self._approvals.setdefault(tool_name, ToolApprovals())
            if always:
                entry.always_approved = True
                entry.always_rejected = False
            if tool_call_id is not None:
                entry.approved_ids.add(tool_call_id)
                entry.rejected_ids.discard(tool_call_id)

    def reject_tool(self, tool_name: str, tool_call_id: str | None = None, always: bool = False) -> None:
        """Record a rejection for one call, or for every call when ``always`` is set.

        Raises:
            ValueError: If neither a call id nor ``always`` is given
        """
        if tool_call_id is None and not always:
            raise ValueError("reject_tool needs a tool_call_id or always=True")
        with self._lock:
            entry = self._approvals.setdefault(tool_name, ToolApprovals())
            if always:
                entry.always_rejected = True
                entry.always_approved = False
            if tool_call_id is not None:
                entry.rejected_ids.add(tool_call_id)
                entry.approved_ids.discard(tool_call_id)

    def approval_status(self, tool_name: str, tool_call_id: str) -> ApprovalStatus:
        with self._lock:
            entry = self._approvals.get(tool_name)
            if entry is None:
                return ApprovalStatus.UNKNOWN
            return entry.status(tool_call_id)

    def is_tool_approved(self, tool_name: str, tool_call_id: str) -> bool | None:
        """Return True/False for a recorded decision, None when undecided."""
        status = self.approval_status(tool_name, tool_call_id)
        if status is ApprovalStatus.UNKNOWN:
            return None
        return status is ApprovalStatus.APPROVED

    def to_dict(self) -> dict[str, Any]:
        """Serialize usage and approvals; the payload is left to the caller."""
        with self._lock:
            return {
                "usage": self._usage.to_dict(),
                "approvals": {name: entry.to_dict() for name, entry in self._approvals.items()},
            }

    def rebuild_approvals(self, approvals: dict[str, dict[str, Any]]) -> None:
        """Replace the approval table with a previously serialized one."""
        with self._lock:
            self._approvals = {
                name: ToolApprovals.from_dict(data) for name, data in approvals.items()
            }
