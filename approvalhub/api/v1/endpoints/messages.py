"""Outbound message endpoints."""

from fastapi import APIRouter, Depends, Query
import structlog

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services
from approvalhub.schemas import MessageResponse, SendMessageRequest, SendTemplateRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post(
    "",
    response_model=MessageResponse,
    summary="Send Text Message",
    description=(
        "Send a text message through the routed provider. "
        "On failure the send is retried once through the fallback provider."
    ),
    responses={
        200: {"description": "Message accepted by a provider"},
        502: {"description": "Every attempt failed"},
        503: {"description": "No provider configured for this route"},
    },
)
async def send_message(
    payload: SendMessageRequest,
    services: Services = Depends(get_services),
) -> MessageResponse:
    message = await services.dispatcher.send(
        payload.to,
        payload.content,
        priority=payload.priority,
        preferred_provider=payload.preferred_provider,
        allow_fallback=payload.allow_fallback,
    )
    return MessageResponse.model_validate(message)


@router.post(
    "/template",
    response_model=MessageResponse,
    summary="Send Template Message",
    responses={
        200: {"description": "Template accepted by a provider"},
        502: {"description": "Every attempt failed"},
        503: {"description": "No provider configured for this route"},
    },
)
async def send_template(
    payload: SendTemplateRequest,
    services: Services = Depends(get_services),
) -> MessageResponse:
    message = await services.dispatcher.send_template(
        payload.to,
        payload.template_name,
        payload.params,
        priority=payload.priority,
        preferred_provider=payload.preferred_provider,
        allow_fallback=payload.allow_fallback,
    )
    return MessageResponse.model_validate(message)


@router.get(
    "",
    response_model=list[MessageResponse],
    summary="List Message Attempts",
    description="Recorded send attempts in the order they were made, optionally for one workflow.",
)
async def list_messages(
    workflow_id: str | None = Query(default=None, description="Only attempts for this workflow"),
    limit: int = Query(default=100, ge=1, le=1000),
    services: Services = Depends(get_services),
) -> list[MessageResponse]:
    messages = await services.store.list_messages(workflow_id=workflow_id, limit=limit)
    return [MessageResponse.model_validate(m) for m in messages]
