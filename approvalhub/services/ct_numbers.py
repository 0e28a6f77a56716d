"""CT number validation and duplicate-guarded assignment."""

import re
from dataclasses import dataclass, field
from typing import Literal

import structlog

from approvalhub.models.workflow import WorkflowType
from approvalhub.services.approvals import ApprovalWorkflowEngine
from approvalhub.storage.base import ApprovalStore

logger = structlog.get_logger(__name__)

CT_LENGTH = 14
_NON_ALNUM = re.compile(r"[^A-Z0-9]")

AssignmentStatus = Literal["assigned", "pending_approval", "invalid"]


@dataclass(frozen=True)
class CTValidationResult:
    is_valid: bool
    formatted: str
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CTAssignment:
    status: AssignmentStatus
    ct_number: str
    workflow_id: str | None = None
    existing_subject_ref: str | None = None
    errors: list[str] = field(default_factory=list)


def validate_ct_number(raw: str) -> CTValidationResult:
    """Normalise a CT number and check it is exactly 14 letters or digits.

    Input is upper-cased and stripped of anything that is not A-Z or 0-9.
    Over-long input is truncated to 14 characters but still reported
    invalid, so the caller can show the operator what was kept.
    """
    formatted = _NON_ALNUM.sub("", raw.strip().upper())
    errors: list[str] = []
    if not formatted:
        errors.append("CT number cannot be empty")
    elif len(formatted) != CT_LENGTH:
        errors.append(
            f"CT number must be exactly {CT_LENGTH} characters (currently {len(formatted)})"
        )
        formatted = formatted[:CT_LENGTH]
    return CTValidationResult(is_valid=not errors, formatted=formatted, errors=errors)


def format_for_display(ct_number: str) -> str:
    """XXXX-XXXX-XXXX-XX; anything that is not 14 characters is returned as is."""
    if len(ct_number) != CT_LENGTH:
        return ct_number
    return f"{ct_number[0:4]}-{ct_number[4:8]}-{ct_number[8:12]}-{ct_number[12:14]}"


class CTNumberService:
    """Assigns CT numbers to orders, routing duplicates to a human.

    The store claim is atomic, so two orders racing for the same number
    cannot both be told it is theirs.
    """

    def __init__(self, store: ApprovalStore, engine: ApprovalWorkflowEngine) -> None:
        self.store = store
        self.engine = engine

    validate = staticmethod(validate_ct_number)
    format_for_display = staticmethod(format_for_display)

    async def assign(
        self,
        subject_ref: str,
        raw_ct: str,
        requested_by: str,
        approver_groups: list[str],
    ) -> CTAssignment:
        validation = validate_ct_number(raw_ct)
        if not validation.is_valid:
            return CTAssignment(
                status="invalid", ct_number=validation.formatted, errors=validation.errors
            )

        ct_number = validation.formatted
        owner = await self.store.claim_ct_number(ct_number, subject_ref)
        if owner is None:
            logger.info("CT number assigned", ct_number=ct_number, subject_ref=subject_ref)
            return CTAssignment(status="assigned", ct_number=ct_number)

        logger.warning(
            "Duplicate CT number, requesting approval",
            ct_number=ct_number,
            subject_ref=subject_ref,
            existing_subject_ref=owner,
        )
        workflow_id = await self.engine.create(
            WorkflowType.DUPLICATE_RESOLUTION,
            subject_ref,
            requested_by,
            {"ct_number": ct_number, "existing_subject_ref": owner},
            approver_groups,
        )
        return CTAssignment(
            status="pending_approval",
            ct_number=ct_number,
            workflow_id=workflow_id,
            existing_subject_ref=owner,
        )


__all__ = [
    "CT_LENGTH",
    "CTAssignment",
    "CTNumberService",
    "CTValidationResult",
    "format_for_display",
    "validate_ct_number",
]
