"""Approval workflow endpoints."""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status
import structlog

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services
from approvalhub.models.workflow import WorkflowStatus
from approvalhub.schemas import (
    CreateWorkflowRequest,
    CreateWorkflowResponse,
    SweepResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


@router.post(
    "",
    response_model=CreateWorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Approval Workflow",
    description=(
        "Persist a pending workflow and send the approval request to every "
        "member of the approver groups."
    ),
    responses={
        201: {"description": "Workflow created"},
        422: {"description": "Validation error in request"},
        503: {"description": "No provider configured; nothing was created"},
    },
)
async def create_workflow(
    payload: CreateWorkflowRequest,
    services: Services = Depends(get_services),
) -> CreateWorkflowResponse:
    workflow_id = await services.engine.create(
        payload.type,
        payload.subject_ref,
        payload.requested_by,
        payload.payload,
        payload.approver_groups,
        ttl=timedelta(hours=payload.ttl_hours) if payload.ttl_hours else None,
        priority=payload.priority,
    )
    return CreateWorkflowResponse(workflow_id=workflow_id)


@router.get(
    "",
    response_model=list[WorkflowResponse],
    summary="List Workflows",
)
async def list_workflows(
    status_filter: WorkflowStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    services: Services = Depends(get_services),
) -> list[WorkflowResponse]:
    workflows = await services.engine.list_workflows(status=status_filter, limit=limit)
    return [WorkflowResponse.model_validate(w) for w in workflows]


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Expire Overdue Workflows",
    description="Run the expiry sweep now instead of waiting for the next interval.",
)
async def sweep_workflows(services: Services = Depends(get_services)) -> SweepResponse:
    return SweepResponse(expired=await services.sweeper.sweep())


@router.get(
    "/{workflow_id}",
    response_model=WorkflowResponse,
    summary="Get Workflow",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow(
    workflow_id: str,
    services: Services = Depends(get_services),
) -> WorkflowResponse:
    return WorkflowResponse.model_validate(await services.engine.get(workflow_id))


@router.post(
    "/{workflow_id}/transition",
    response_model=TransitionResponse,
    summary="Resolve Workflow",
    description=(
        "Approve or reject a pending workflow. Repeated or late calls are "
        "answered with `already_resolved` or `expired` and change nothing."
    ),
    responses={404: {"description": "Workflow not found"}},
)
async def transition_workflow(
    workflow_id: str,
    payload: TransitionRequest,
    services: Services = Depends(get_services),
) -> TransitionResponse:
    result = await services.engine.transition(
        workflow_id, payload.action, payload.actor_id, payload.notes
    )
    return TransitionResponse(
        outcome=result.outcome,
        workflow=WorkflowResponse.model_validate(result.workflow),
        side_effect_error=result.side_effect_error,
    )
