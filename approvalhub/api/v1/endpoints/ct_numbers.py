"""CT number endpoints."""

from fastapi import APIRouter, Depends

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services
from approvalhub.schemas import (
    AssignCTRequest,
    AssignCTResponse,
    ValidateCTRequest,
    ValidateCTResponse,
)
from approvalhub.services.ct_numbers import format_for_display, validate_ct_number

router = APIRouter(prefix="/ct-numbers", tags=["CT Numbers"])


@router.post(
    "/validate",
    response_model=ValidateCTResponse,
    summary="Validate CT Number",
)
async def validate(payload: ValidateCTRequest) -> ValidateCTResponse:
    result = validate_ct_number(payload.ct_number)
    return ValidateCTResponse(
        is_valid=result.is_valid,
        formatted=result.formatted,
        display=format_for_display(result.formatted),
        errors=result.errors,
    )


@router.post(
    "/assign",
    response_model=AssignCTResponse,
    summary="Assign CT Number",
    description=(
        "Claim a CT number for an order. If another order already holds it, "
        "a duplicate-resolution approval is opened instead."
    ),
)
async def assign(
    payload: AssignCTRequest,
    services: Services = Depends(get_services),
) -> AssignCTResponse:
    assignment = await services.ct_numbers.assign(
        payload.subject_ref,
        payload.ct_number,
        payload.requested_by,
        payload.approver_groups,
    )
    return AssignCTResponse.model_validate(assignment)
