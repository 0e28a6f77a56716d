"""Message text for approval requests, confirmations and numbered-reply fallbacks.

Everything here is pure string composition so that the output can be compared
verbatim in tests.
"""

from typing import Any

from approvalhub.models.message import Button
from approvalhub.models.workflow import ApprovalAction, Workflow, WorkflowType

NUMBERED_REPLY_INSTRUCTION = "Reply with the number of your choice:"


def compose_numbered_reply_text(title: str, body: str, buttons: list[Button]) -> str:
    """Render an interactive message for channels without reply buttons.

    The n-th button is answered by replying with the number n.
    """
    lines = [title, "", body, "", NUMBERED_REPLY_INSTRUCTION]
    lines.extend(f"{index}. {button.title}" for index, button in enumerate(buttons, start=1))
    return "\n".join(lines)


def encode_reply_id(workflow_id: str, button_id: str) -> str:
    return f"{workflow_id}:{button_id}"


class ApprovalCopy:
    """Title, body and button labels for one workflow type."""

    def __init__(self, title: str, body: str, approve_label: str, reject_label: str) -> None:
        self.title = title
        self.body = body
        self.approve_label = approve_label
        self.reject_label = reject_label

    def render_body(self, workflow: Workflow) -> str:
        fields: dict[str, Any] = {"subject_ref": workflow.subject_ref}
        for key, value in workflow.payload.items():
            fields[key] = ", ".join(map(str, value)) if isinstance(value, (list, tuple)) else value
        return self.body.format_map(_Missing(fields))


class _Missing(dict):
    """format_map helper that renders absent payload keys as "-"."""

    def __missing__(self, key: str) -> str:
        return "-"


APPROVAL_COPY: dict[WorkflowType, ApprovalCopy] = {
    WorkflowType.DUPLICATE_RESOLUTION: ApprovalCopy(
        title="CT Number Duplicate Approval Required",
        body=(
            "CT Number: {ct_number}\n\n"
            "New Order: {subject_ref}\n"
            "Existing Order: {existing_subject_ref}\n\n"
            "Approve duplicate CT usage?"
        ),
        approve_label="Approve Duplicate",
        reject_label="Generate New CT",
    ),
    WorkflowType.REJECTION_APPROVAL: ApprovalCopy(
        title="QC Rejection Approval Required",
        body=(
            "Order: {subject_ref}\n"
            "CT Numbers: {ct_numbers}\n\n"
            "Rejection Reason: {rejection_reason}\n\n"
            "Approve QC rejection?"
        ),
        approve_label="Approve Rejection",
        reject_label="Return to QC",
    ),
    WorkflowType.MAPPING_APPROVAL: ApprovalCopy(
        title="Part Mapping Approval Required",
        body=(
            "Order: {subject_ref}\n\n"
            "Customer Part: {customer_part_number}\n"
            "Proposed Description: {proposed_description}\n\n"
            "Approve part mapping?"
        ),
        approve_label="Approve Mapping",
        reject_label="Request Changes",
    ),
    WorkflowType.TRANSFER_AUTHORIZATION: ApprovalCopy(
        title="Transfer Authorization Required",
        body=(
            "Order: {subject_ref}\n"
            "Quantity: {quantity}\n"
            "CT Numbers: {ct_numbers}\n"
            "Destination: {destination}\n\n"
            "Authorize transfer?"
        ),
        approve_label="Authorize Transfer",
        reject_label="Reject Transfer",
    ),
}

_missing_copy = set(WorkflowType) - set(APPROVAL_COPY)
if _missing_copy:
    raise RuntimeError(f"Approval text missing for workflow types: {sorted(_missing_copy)}")


def approval_buttons(workflow: Workflow) -> list[Button]:
    """Reply buttons for a workflow; ids are `<workflow_id>:<action>`."""
    copy = APPROVAL_COPY[workflow.type]
    return [
        Button(id=encode_reply_id(workflow.id, ApprovalAction.APPROVE.value), title=copy.approve_label),
        Button(id=encode_reply_id(workflow.id, ApprovalAction.REJECT.value), title=copy.reject_label),
    ]


def confirmation_text(workflow: Workflow) -> str:
    """Summary sent to the responder once a workflow is resolved."""
    marker = "✅" if workflow.status.value == "approved" else "❌"
    label = workflow.type.value.replace("_", " ").capitalize()
    return f"{marker} {label} {workflow.status.value} for {workflow.subject_ref}"


def expired_notice(workflow: Workflow) -> str:
    label = workflow.type.value.replace("_", " ")
    return f"⏰ The {label} request for {workflow.subject_ref} has expired."


__all__ = [
    "APPROVAL_COPY",
    "NUMBERED_REPLY_INSTRUCTION",
    "ApprovalCopy",
    "approval_buttons",
    "compose_numbered_reply_text",
    "confirmation_text",
    "encode_reply_id",
    "expired_notice",
]
