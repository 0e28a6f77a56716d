"""Dictionary-backed store for tests and single-process deployments."""

import copy
from datetime import datetime
import threading

from approvalhub.models.message import Message
from approvalhub.models.workflow import Workflow, WorkflowStatus


class InMemoryApprovalStore:
    """ApprovalStore kept in process memory.

    Every conditional write runs under the store's own lock, which plays the
    role of the database's row-level atomicity. Reads return copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workflows: dict[str, Workflow] = {}
        self._messages: list[Message] = []
        self._ct_claims: dict[str, str] = {}

    async def insert_workflow(self, workflow: Workflow) -> None:
        with self._lock:
            if workflow.id in self._workflows:
                raise ValueError(f"Workflow {workflow.id} already exists")
            self._workflows[workflow.id] = copy.deepcopy(workflow)

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return copy.deepcopy(workflow) if workflow is not None else None

    async def list_workflows(
        self, status: WorkflowStatus | None = None, limit: int = 100
    ) -> list[Workflow]:
        with self._lock:
            rows = [
                copy.deepcopy(w)
                for w in self._workflows.values()
                if status is None or w.status is status
            ]
        rows.sort(key=lambda w: w.created_at, reverse=True)
        return rows[:limit]

    async def resolve_if_pending(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        resolved_by: str,
        resolved_at: datetime,
        notes: str | None,
    ) -> bool:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.status is not WorkflowStatus.PENDING:
                return False
            workflow.status = status
            workflow.resolved_by = resolved_by
            workflow.resolved_at = resolved_at
            workflow.notes = notes
            return True

    async def expire_if_pending(self, workflow_id: str, now: datetime) -> bool:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.status is not WorkflowStatus.PENDING:
                return False
            workflow.status = WorkflowStatus.EXPIRED
            workflow.resolved_at = now
            return True

    async def expire_overdue(self, now: datetime) -> int:
        expired = 0
        with self._lock:
            for workflow in self._workflows.values():
                if workflow.status is WorkflowStatus.PENDING and workflow.expires_at < now:
                    workflow.status = WorkflowStatus.EXPIRED
                    workflow.resolved_at = now
                    expired += 1
        return expired

    async def insert_message(self, message: Message) -> None:
        with self._lock:
            self._messages.append(copy.deepcopy(message))

    async def list_messages(self, workflow_id: str | None = None, limit: int = 100) -> list[Message]:
        with self._lock:
            rows = [
                copy.deepcopy(m)
                for m in self._messages
                if workflow_id is None or m.workflow_id == workflow_id
            ]
        return rows[-limit:]

    async def claim_ct_number(self, ct_number: str, subject_ref: str) -> str | None:
        with self._lock:
            owner = self._ct_claims.setdefault(ct_number, subject_ref)
        return None if owner == subject_ref else owner

    async def close(self) -> None:
        return None


__all__ = ["InMemoryApprovalStore"]
