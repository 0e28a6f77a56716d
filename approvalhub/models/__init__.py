"""Domain models module."""

from approvalhub.models.message import (
    Button,
    Message,
    MessageKind,
    MessageStatus,
    Priority,
    ProviderName,
    ProviderReceipt,
)
from approvalhub.models.workflow import (
    DEFAULT_TTL,
    ApprovalAction,
    TransitionOutcome,
    TransitionResult,
    Workflow,
    WorkflowStatus,
    WorkflowType,
)

__all__ = [
    "DEFAULT_TTL",
    "ApprovalAction",
    "Button",
    "Message",
    "MessageKind",
    "MessageStatus",
    "Priority",
    "ProviderName",
    "ProviderReceipt",
    "TransitionOutcome",
    "TransitionResult",
    "Workflow",
    "WorkflowStatus",
    "WorkflowType",
]
