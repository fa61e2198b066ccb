"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
"""

import base64
import binascii
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lumi_agent.agent_core.schemas.domain import Agent, ApprovalDecision, ExecutionStatus


class SessionCreate(BaseModel):
    """
    Schema for starting a new execution session.

    The agent definition travels with the request; the server does not store agents.
    """

    agent: Agent = Field(..., description="The agent that executes the task.")
    prompt: str = Field(
        ...,
        min_length=1,
        description="The natural-language task for the agent.",
        examples=["List the files in my home directory."],
    )
    image_base64: Optional[str] = Field(
        default=None,
        description="Optional base64-encoded image attached to the prompt.",
    )

    @field_validator("image_base64")
    @classmethod
    def _valid_base64(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("image_base64 is not valid base64") from exc
        return value

    def image_bytes(self) -> Optional[bytes]:
        return base64.b64decode(self.image_base64) if self.image_base64 else None


class SessionStarted(BaseModel):
    """Response returned when a session has been scheduled."""

    session_id: str
    agent_id: str
    status: ExecutionStatus


class ApprovalSubmit(BaseModel):
    """
    Schema for resolving a pending approval.
    """

    decision: ApprovalDecision = Field(..., description="Approve or reject the pending tool call.")
    decided_by: Optional[str] = Field(default=None, description="Who made the decision.", examples=["alice"])

    model_config = ConfigDict(json_schema_extra={"example": {"decision": "approved", "decided_by": "alice"}})


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool
