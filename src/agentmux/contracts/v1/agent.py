from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    IDLE = "idle"
    BLOCKED = "blocked"
    COMPLETE = "complete"
    STOPPED = "stopped"

    def can_transition_to(self, target: "AgentStatus") -> bool:
        return target in _TRANSITIONS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]


# Statuses an agent may set on itself through the tool server.
AGENT_SETTABLE: FrozenSet[AgentStatus] = frozenset(
    {AgentStatus.RUNNING, AgentStatus.IDLE, AgentStatus.BLOCKED, AgentStatus.COMPLETE}
)

_ACTIVE = AGENT_SETTABLE | {AgentStatus.STOPPED}

# Nothing ever returns to PENDING; STOPPED only leaves through a relaunch.
_TRANSITIONS: Dict[AgentStatus, FrozenSet[AgentStatus]] = {
    AgentStatus.PENDING: _ACTIVE,
    AgentStatus.RUNNING: _ACTIVE,
    AgentStatus.IDLE: _ACTIVE,
    AgentStatus.BLOCKED: _ACTIVE,
    AgentStatus.COMPLETE: _ACTIVE,
    AgentStatus.STOPPED: frozenset({AgentStatus.RUNNING, AgentStatus.STOPPED}),
}

_ICONS: Dict[AgentStatus, str] = {
    AgentStatus.PENDING: "⏳",
    AgentStatus.RUNNING: "🟢",
    AgentStatus.IDLE: "💤",
    AgentStatus.BLOCKED: "🚧",
    AgentStatus.COMPLETE: "✅",
    AgentStatus.STOPPED: "⏹",
}


class AgentDefinition(BaseModel):
    """Static role description of one worker agent, copied from a session config."""

    id: int = Field(ge=1)
    name: str = Field(min_length=1)
    role: str = ""
    description: str = ""
    focus: List[str] = Field(default_factory=list)
    branch: Optional[str] = None
    depends_on: List[int] = Field(default_factory=list)
    blocks: List[int] = Field(default_factory=list)
    template: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class AgentState(BaseModel):
    """Mutable status record of one agent, persisted with camelCase keys."""

    agent_id: int = Field(alias="agentId", ge=0)
    agent_name: str = Field(default="", alias="agentName")
    status: AgentStatus = AgentStatus.PENDING
    last_active: Optional[str] = Field(default=None, alias="lastActive")
    current_task: Optional[str] = Field(default=None, alias="currentTask")
    restarts: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_doc(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
