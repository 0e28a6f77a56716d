"""Persistence contract for workflows, message audit rows and CT claims."""

from datetime import datetime
from typing import Protocol

from approvalhub.models.message import Message
from approvalhub.models.workflow import Workflow, WorkflowStatus


class ApprovalStore(Protocol):
    """Durable store shared by every worker.

    `resolve_if_pending`, `expire_if_pending` and `expire_overdue` are the
    only status writes and each is a compare-and-set on `status = 'pending'`;
    exactly-once resolution across processes rests on them alone.
    """

    async def insert_workflow(self, workflow: Workflow) -> None: ...

    async def get_workflow(self, workflow_id: str) -> Workflow | None: ...

    async def list_workflows(
        self, status: WorkflowStatus | None = None, limit: int = 100
    ) -> list[Workflow]: ...

    async def resolve_if_pending(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        resolved_by: str,
        resolved_at: datetime,
        notes: str | None,
    ) -> bool:
        """Set a terminal status iff the workflow is still pending. True if this call won."""
        ...

    async def expire_if_pending(self, workflow_id: str, now: datetime) -> bool: ...

    async def expire_overdue(self, now: datetime) -> int:
        """Expire every pending workflow with `expires_at < now`; returns the count."""
        ...

    async def insert_message(self, message: Message) -> None: ...

    async def list_messages(self, workflow_id: str | None = None, limit: int = 100) -> list[Message]: ...

    async def claim_ct_number(self, ct_number: str, subject_ref: str) -> str | None:
        """Atomically bind a CT number to a subject.

        Returns None when the claim succeeded (or the subject already holds it),
        otherwise the subject_ref that owns the number.
        """
        ...

    async def close(self) -> None: ...


__all__ = ["ApprovalStore"]
