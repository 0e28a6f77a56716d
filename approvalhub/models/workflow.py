"""Approval workflow records and the transition vocabulary."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
import uuid

DEFAULT_TTL = timedelta(hours=24)


class WorkflowType(str, Enum):
    """Kinds of human sign-off the engine knows how to request."""

    DUPLICATE_RESOLUTION = "duplicate_resolution"
    REJECTION_APPROVAL = "rejection_approval"
    MAPPING_APPROVAL = "mapping_approval"
    TRANSFER_AUTHORIZATION = "transfer_authorization"


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkflowStatus.PENDING


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def resulting_status(self) -> WorkflowStatus:
        """Terminal status a successful transition with this action produces."""
        if self is ApprovalAction.APPROVE:
            return WorkflowStatus.APPROVED
        return WorkflowStatus.REJECTED


@dataclass
class Workflow:
    """A pending or resolved request for human sign-off.

    `status` leaves `pending` exactly once; `expires_at` is fixed at creation.
    """

    type: WorkflowType
    subject_ref: str
    requested_by: str
    created_at: datetime
    expires_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    approver_groups: list[str] = field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    notes: str | None = None

    @classmethod
    def new(
        cls,
        workflow_type: WorkflowType,
        subject_ref: str,
        requested_by: str,
        payload: dict[str, Any],
        approver_groups: list[str],
        now: datetime,
        ttl: timedelta = DEFAULT_TTL,
    ) -> "Workflow":
        return cls(
            type=workflow_type,
            subject_ref=subject_ref,
            requested_by=requested_by,
            payload=dict(payload),
            approver_groups=list(approver_groups),
            created_at=now,
            expires_at=now + ttl,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is WorkflowStatus.PENDING

    def is_overdue(self, now: datetime) -> bool:
        return now > self.expires_at


class TransitionOutcome(str, Enum):
    """Result of a transition request.

    Only RESOLVED changed state; the others are safe no-ops for callers.
    """

    RESOLVED = "resolved"
    ALREADY_RESOLVED = "already_resolved"
    EXPIRED = "expired"


@dataclass
class TransitionResult:
    outcome: TransitionOutcome
    workflow: Workflow
    side_effect_error: str | None = None

    @property
    def changed_state(self) -> bool:
        return self.outcome is TransitionOutcome.RESOLVED


__all__ = [
    "DEFAULT_TTL",
    "ApprovalAction",
    "TransitionOutcome",
    "TransitionResult",
    "Workflow",
    "WorkflowStatus",
    "WorkflowType",
]
