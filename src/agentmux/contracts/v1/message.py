from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

from ...util.time import utc_now_iso

Priority = Literal["low", "normal", "high"]
PRIORITIES = get_args(Priority)


class Message(BaseModel):
    """One mailbox entry. `sender` is the sending agent id as text ("0" = orchestrator)."""

    sender: str
    recipient: int = Field(ge=0)
    timestamp: str = Field(default_factory=utc_now_iso)
    priority: Priority = "normal"
    body: str = ""

    model_config = ConfigDict(extra="forbid")


class ResponseRecord(BaseModel):
    """Artifact left behind by mark_complete; overwritten on each completion."""

    sender: str
    timestamp: str = Field(default_factory=utc_now_iso)
    status: Literal["complete"] = "complete"
    summary: str = ""

    model_config = ConfigDict(extra="forbid")
