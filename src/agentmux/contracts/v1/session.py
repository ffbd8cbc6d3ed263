from __future__ import annotations

from typing import Dict, List, Literal, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ...util.time import utc_now_iso
from .agent import AgentDefinition

SessionStatus = Literal["initialized", "running", "stopped"]


class SessionMeta(BaseModel):
    v: int = 1
    name: str
    config: str
    target_repo: str
    use_worktrees: bool = False
    agent_count: int = Field(ge=0)
    created_at: str = Field(default_factory=utc_now_iso)
    status: SessionStatus = "initialized"

    model_config = ConfigDict(extra="ignore")


class SessionConfig(BaseModel):
    """A named team configuration: who the agents are and how to launch them."""

    name: str = ""
    description: str = ""
    agents: List[AgentDefinition] = Field(default_factory=list)
    agent_command: List[str] = Field(default_factory=lambda: ["claude"])
    orchestrator_command: List[str] = Field(default_factory=lambda: ["claude"])
    # Appended to both commands; "{mcp_config}" becomes the per-agent tool server config file.
    mcp_args: List[str] = Field(default_factory=lambda: ["--mcp-config", "{mcp_config}"])

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_agents(self) -> "SessionConfig":
        ids: Set[int] = set()
        names: Set[str] = set()
        for a in self.agents:
            if a.id in ids:
                raise ValueError(f"duplicate agent id: {a.id}")
            ids.add(a.id)
            key = a.name.strip().casefold()
            if key in names or key == "orchestrator":
                raise ValueError(f"duplicate or reserved agent name: {a.name}")
            names.add(key)

        for a in self.agents:
            for ref in [*a.depends_on, *a.blocks]:
                if ref not in ids:
                    raise ValueError(f"agent {a.id} references unknown agent id: {ref}")
                if ref == a.id:
                    raise ValueError(f"agent {a.id} references itself")

        expected = list(range(1, len(self.agents) + 1))
        if sorted(ids) != expected:
            raise ValueError(f"agent ids must be exactly 1..{len(self.agents)}, got {sorted(ids)}")

        cycle = _find_cycle(self.agents)
        if cycle:
            raise ValueError("dependency cycle: " + " -> ".join(str(x) for x in cycle))
        return self

    def agent(self, agent_id: int) -> AgentDefinition:
        for a in self.agents:
            if a.id == agent_id:
                return a
        raise KeyError(agent_id)

    def agent_ids(self) -> List[int]:
        return sorted(a.id for a in self.agents)


def _find_cycle(agents: List[AgentDefinition]) -> List[int]:
    # "X blocks Y" is the same edge as "Y depends on X".
    edges: Dict[int, Set[int]] = {a.id: set(a.depends_on) for a in agents}
    for a in agents:
        for b in a.blocks:
            edges.setdefault(b, set()).add(a.id)

    white, grey, black = 0, 1, 2
    color = {k: white for k in edges}
    stack: List[int] = []

    def visit(node: int) -> List[int]:
        color[node] = grey
        stack.append(node)
        for nxt in sorted(edges.get(node, ())):
            if color.get(nxt, white) == grey:
                return stack[stack.index(nxt):] + [nxt]
            if color.get(nxt, white) == white:
                found = visit(nxt)
                if found:
                    return found
        stack.pop()
        color[node] = black
        return []

    for node in sorted(edges):
        if color[node] == white:
            found = visit(node)
            if found:
                return found
    return []
