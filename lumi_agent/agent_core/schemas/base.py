"""Shared pydantic base for Lumi domain and conversation models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base model for sessions, policies, tool calls and provider messages.

    - ``populate_by_name``: fields accept either their name or their alias.
    - ``extra="forbid"``: unknown keys in API payloads or stored rows are rejected.
    - ``validate_assignment``: the engine mutates sessions in place, and every
      assignment is checked against the field type.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )
