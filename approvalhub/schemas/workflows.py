"""Approval workflow request and response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from approvalhub.models.message import Priority
from approvalhub.models.workflow import (
    ApprovalAction,
    TransitionOutcome,
    WorkflowStatus,
    WorkflowType,
)


class CreateWorkflowRequest(BaseModel):
    """Request model for opening an approval workflow."""

    model_config = ConfigDict(
        title="Approval request (type, subject, approvers)",
        json_schema_extra={
            "examples": [
                {
                    "type": "rejection_approval",
                    "subject_ref": "ORD-1042",
                    "requested_by": "qc.operator",
                    "payload": {"ct_numbers": ["AB12CD34EF56GH"], "rejection_reason": "Scratched housing"},
                    "approver_groups": ["qc_managers"],
                }
            ]
        },
    )

    type: WorkflowType = Field(..., description="Kind of approval requested")
    subject_ref: str = Field(..., min_length=1, description="Business key, e.g. an order uid")
    requested_by: str = Field(..., min_length=1, description="Who asked for the approval")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Data the approval text and side effect need",
    )
    approver_groups: list[str] = Field(
        ...,
        min_length=1,
        description="Recipient groups that receive the request",
    )
    ttl_hours: float | None = Field(
        default=None,
        gt=0,
        description="Request lifetime in hours; defaults to the configured TTL",
    )
    priority: Priority | None = Field(
        default=None,
        description="Routing priority; defaults per workflow type",
    )


class CreateWorkflowResponse(BaseModel):
    workflow_id: str = Field(..., description="Id of the new pending workflow")


class TransitionRequest(BaseModel):
    """A human decision on a pending workflow."""

    action: ApprovalAction = Field(..., description="approve or reject")
    actor_id: str = Field(..., min_length=1, description="Who decided")
    notes: str | None = Field(default=None, max_length=2000, description="Optional reviewer notes")


class WorkflowResponse(BaseModel):
    """Current state of a workflow."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Workflow id")
    type: WorkflowType = Field(..., description="Kind of approval")
    subject_ref: str = Field(..., description="Business key")
    requested_by: str = Field(..., description="Requester")
    status: WorkflowStatus = Field(..., description="pending, approved, rejected or expired")
    payload: dict[str, Any] = Field(default_factory=dict, description="Workflow data")
    approver_groups: list[str] = Field(default_factory=list, description="Approver groups")
    created_at: datetime = Field(..., description="Creation time")
    expires_at: datetime = Field(..., description="Deadline for a decision")
    resolved_by: str | None = Field(default=None, description="Actor who resolved it")
    resolved_at: datetime | None = Field(default=None, description="Resolution time")
    notes: str | None = Field(default=None, description="Reviewer notes")


class TransitionResponse(BaseModel):
    """Outcome of a transition call.

    `already_resolved` and `expired` are normal answers, not errors; the
    workflow field always carries the authoritative state.
    """

    outcome: TransitionOutcome = Field(..., description="resolved, already_resolved or expired")
    workflow: WorkflowResponse = Field(..., description="Workflow after the call")
    side_effect_error: str | None = Field(
        default=None,
        description="Set when the decision stood but its downstream action failed",
    )


class SweepResponse(BaseModel):
    expired: int = Field(..., ge=0, description="Number of workflows moved to expired")
