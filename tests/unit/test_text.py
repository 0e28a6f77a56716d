"""Tests for approval message text."""

from datetime import timedelta

from approvalhub.models.message import Button
from approvalhub.models.workflow import Workflow, WorkflowStatus, WorkflowType
from approvalhub.services.text import (
    APPROVAL_COPY,
    approval_buttons,
    compose_numbered_reply_text,
    confirmation_text,
    expired_notice,
)

from conftest import T0


def _workflow(workflow_type: WorkflowType, payload: dict) -> Workflow:
    return Workflow.new(workflow_type, "ORD-1042", "qc.lead", payload, ["managers"], now=T0, ttl=timedelta(hours=1))


def test_numbered_reply_text() -> None:
    """Test numbered-reply text composition."""
    text = compose_numbered_reply_text(
        "Title", "Body", [Button(id="a", title="Yes"), Button(id="b", title="No")]
    )

    assert text == "Title\n\nBody\n\nReply with the number of your choice:\n1. Yes\n2. No"


def test_every_workflow_type_has_copy() -> None:
    """Test that every workflow type has request copy."""
    assert set(APPROVAL_COPY) == set(WorkflowType)


def test_body_joins_lists_and_marks_missing_fields(rejection_payload) -> None:
    """Test body rendering of lists and missing fields."""
    workflow = _workflow(WorkflowType.REJECTION_APPROVAL, {"ct_numbers": rejection_payload["ct_numbers"]})

    body = APPROVAL_COPY[WorkflowType.REJECTION_APPROVAL].render_body(workflow)

    assert "Order: ORD-1042" in body
    assert "CT Numbers: AB12CD34EF56GH, ZX98CV76BN54ML" in body
    assert "Rejection Reason: -" in body


def test_buttons_carry_workflow_id() -> None:
    """Test that button ids embed the workflow id."""
    workflow = _workflow(WorkflowType.MAPPING_APPROVAL, {})

    buttons = approval_buttons(workflow)

    assert [b.id for b in buttons] == [f"{workflow.id}:approve", f"{workflow.id}:reject"]
    assert [b.title for b in buttons] == ["Approve Mapping", "Request Changes"]


def test_confirmation_and_expiry_text() -> None:
    """Test confirmation and expiry notice text."""
    workflow = _workflow(WorkflowType.TRANSFER_AUTHORIZATION, {})
    workflow.status = WorkflowStatus.APPROVED

    assert confirmation_text(workflow) == "✅ Transfer authorization approved for ORD-1042"
    assert expired_notice(workflow) == "⏰ The transfer authorization request for ORD-1042 has expired."
