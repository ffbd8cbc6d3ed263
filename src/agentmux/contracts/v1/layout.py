from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PaneKind = Literal["orchestrator", "agent", "monitor"]


class Pane(BaseModel):
    kind: PaneKind
    agent_id: Optional[int] = None
    row: int = 0
    col: int = 0
    command: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)


class Tab(BaseModel):
    name: str
    panes: List[Pane] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def rows(self) -> List[List[Pane]]:
        out: List[List[Pane]] = []
        for p in sorted(self.panes, key=lambda x: (x.row, x.col)):
            while len(out) <= p.row:
                out.append([])
            out[p.row].append(p)
        return [r for r in out if r]


class LayoutPlan(BaseModel):
    agent_count: int = Field(ge=0)
    tabs: List[Tab] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def worker_tabs(self) -> List[Tab]:
        return [t for t in self.tabs if any(p.kind == "agent" for p in t.panes)]

    def agent_ids(self) -> List[int]:
        return [p.agent_id for t in self.tabs for p in t.panes if p.kind == "agent" and p.agent_id is not None]
