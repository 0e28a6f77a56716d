"""Request and response schemas for the HTTP API."""

from approvalhub.schemas.common import ErrorResponse
from approvalhub.schemas.ct_numbers import (
    AssignCTRequest,
    AssignCTResponse,
    ValidateCTRequest,
    ValidateCTResponse,
)
from approvalhub.schemas.health import HealthResponse
from approvalhub.schemas.messages import MessageResponse, SendMessageRequest, SendTemplateRequest
from approvalhub.schemas.providers import (
    ProviderStatus,
    ProvidersStatusResponse,
    ValidateProviderResponse,
)
from approvalhub.schemas.workflows import (
    CreateWorkflowRequest,
    CreateWorkflowResponse,
    SweepResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowResponse,
)

__all__ = [
    "AssignCTRequest",
    "AssignCTResponse",
    "CreateWorkflowRequest",
    "CreateWorkflowResponse",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "ProviderStatus",
    "ProvidersStatusResponse",
    "SendMessageRequest",
    "SendTemplateRequest",
    "SweepResponse",
    "TransitionRequest",
    "TransitionResponse",
    "ValidateCTRequest",
    "ValidateCTResponse",
    "ValidateProviderResponse",
    "WorkflowResponse",
]
