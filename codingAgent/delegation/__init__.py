"""Task delegation: specialized sub-agents with snapshot/diff change tracking."""

from .snapshots import GitSnapshotService, SnapshotError, SnapshotService
from .tools import DelegateTaskTool, ProposeChangesTool
from .workflow import (
    ChangeProposal,
    DelegationMode,
    DelegationResult,
    ProposedChange,
    TaskDelegationWorkflow,
)

__all__ = [
    "ChangeProposal",
    "DelegateTaskTool",
    "DelegationMode",
    "DelegationResult",
    "GitSnapshotService",
    "ProposeChangesTool",
    "ProposedChange",
    "SnapshotError",
    "SnapshotService",
    "TaskDelegationWorkflow",
]
