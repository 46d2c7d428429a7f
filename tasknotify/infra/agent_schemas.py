# tasknotify/infra/agent_schemas.py
"""
Wire models for the WhatsApp delivery agent.

Both models are fail-closed: a field that is missing or not a real JSON
boolean reads as ``False``.  A string ``"true"`` does not count.
"""
from __future__ import annotations

from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool


class SendRequest(BaseModel):
    to: str = Field(min_length=1)
    message: str = Field(min_length=1)
    sender: Optional[str] = Field(default=None, serialization_alias="from")


class SendResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: StrictBool = False
    error: Optional[str] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    connected: StrictBool = False
    uptime: Optional[Union[str, float]] = None
    agent_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("agentAddress", "botNumber", "agent_address"),
    )
