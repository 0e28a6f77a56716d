"""CT number request and response schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ValidateCTRequest(BaseModel):
    ct_number: str = Field(..., description="CT number as typed or scanned")


class ValidateCTResponse(BaseModel):
    """Normalised CT number with any rule violations."""

    model_config = ConfigDict(from_attributes=True)

    is_valid: bool = Field(..., description="Whether the number is 14 letters or digits")
    formatted: str = Field(..., description="Upper-cased number with separators removed")
    display: str = Field(..., description="XXXX-XXXX-XXXX-XX rendering")
    errors: list[str] = Field(default_factory=list, description="Rule violations")


class AssignCTRequest(BaseModel):
    """Assign a CT number to an order."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "subject_ref": "ORD-1042",
                    "ct_number": "ab12-cd34-ef56-gh",
                    "requested_by": "packing.station.3",
                    "approver_groups": ["production_managers"],
                }
            ]
        },
    )

    subject_ref: str = Field(..., min_length=1, description="Order the CT number goes on")
    ct_number: str = Field(..., description="CT number as typed or scanned")
    requested_by: str = Field(..., min_length=1, description="Operator assigning the number")
    approver_groups: list[str] = Field(
        ...,
        min_length=1,
        description="Who approves a duplicate",
    )


class AssignCTResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: Literal["assigned", "pending_approval", "invalid"] = Field(
        ...,
        description="assigned, pending_approval when another order holds it, or invalid",
    )
    ct_number: str = Field(..., description="Normalised CT number")
    workflow_id: str | None = Field(default=None, description="Duplicate-resolution workflow")
    existing_subject_ref: str | None = Field(default=None, description="Order holding the number")
    errors: list[str] = Field(default_factory=list, description="Validation errors")
