"""Pack N agents into terminal tabs and panes.

Tab 1 always holds the orchestrator (agent 0). Workers follow in tabs of at
most four, each laid out as an up-to-2x2 grid, and a Monitor tab closes the
plan. The plan is pure data; `render_kdl` turns it into a zellij layout.
"""

from __future__ import annotations

import math
import shlex
from typing import List, Sequence

from ..contracts.v1 import LayoutPlan, Pane, Tab

TAB_CAPACITY = 4
GRID_COLUMNS = 2

DEFAULT_SHIM_COMMAND = ("agentmux", "run")
DEFAULT_MONITOR_COMMAND = ("agentmux", "monitor")


def _worker_tab(name: str, agent_ids: Sequence[int], shim_command: Sequence[str]) -> Tab:
    panes = [
        Pane(
            kind="agent",
            agent_id=aid,
            row=i // GRID_COLUMNS,
            col=i % GRID_COLUMNS,
            command=[*shim_command, str(aid)],
        )
        for i, aid in enumerate(agent_ids)
    ]
    return Tab(name=name, panes=panes)


def pack(
    agent_count: int,
    *,
    shim_command: Sequence[str] = DEFAULT_SHIM_COMMAND,
    monitor_command: Sequence[str] = DEFAULT_MONITOR_COMMAND,
) -> LayoutPlan:
    if agent_count < 0:
        raise ValueError(f"agent count must be >= 0, got {agent_count}")

    tabs: List[Tab] = [
        Tab(
            name="Orchestrator",
            panes=[Pane(kind="orchestrator", agent_id=0, command=[*shim_command, "0"])],
        )
    ]

    ids = list(range(1, agent_count + 1))
    if 0 < agent_count <= TAB_CAPACITY:
        tabs.append(_worker_tab("Agents", ids, shim_command))
    elif agent_count > TAB_CAPACITY:
        for i in range(math.ceil(agent_count / TAB_CAPACITY)):
            chunk = ids[i * TAB_CAPACITY : (i + 1) * TAB_CAPACITY]
            tabs.append(_worker_tab(f"Agents-{i + 1}", chunk, shim_command))

    tabs.append(Tab(name="Monitor", panes=[Pane(kind="monitor", command=list(monitor_command))]))
    return LayoutPlan(agent_count=agent_count, tabs=tabs)


def _kdl_str(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _kdl_pane(p: Pane, indent: str) -> List[str]:
    if not p.command:
        return [f"{indent}pane"]
    name = "orchestrator" if p.kind == "orchestrator" else ("monitor" if p.kind == "monitor" else f"agent-{p.agent_id}")
    lines = [f"{indent}pane name={_kdl_str(name)} command={_kdl_str(p.command[0])} {{"]
    if len(p.command) > 1:
        lines.append(f"{indent}    args " + " ".join(_kdl_str(a) for a in p.command[1:]))
    lines.append(f"{indent}}}")
    return lines


def render_kdl(plan: LayoutPlan) -> str:
    """Render a plan as a zellij KDL layout.

    A row of two panes is a vertical split (side by side); a 2x2 grid is a
    horizontal split of two such rows.
    """
    out: List[str] = ["layout {"]
    for i, tab in enumerate(plan.tabs):
        focus = " focus=true" if i == 0 else ""
        out.append(f"    tab name={_kdl_str(tab.name)}{focus} {{")
        rows = tab.rows()
        if len(rows) == 1 and len(rows[0]) == 1:
            out.extend(_kdl_pane(rows[0][0], " " * 8))
        else:
            if len(rows) > 1:
                out.append('        pane split_direction="horizontal" {')
                base = " " * 12
            else:
                base = " " * 8
            for row in rows:
                if len(row) == 1:
                    out.extend(_kdl_pane(row[0], base))
                    continue
                out.append(f'{base}pane split_direction="vertical" {{')
                for p in row:
                    out.extend(_kdl_pane(p, base + "    "))
                out.append(f"{base}}}")
            if len(rows) > 1:
                out.append("        }")
        out.append("    }")
    out.append("}")
    return "\n".join(out) + "\n"


def describe(plan: LayoutPlan) -> str:
    """One line per tab, for the CLI."""
    lines = []
    for tab in plan.tabs:
        cells = []
        for row in tab.rows():
            cells.append(" | ".join(shlex.join(p.command) for p in row))
        lines.append(f"{tab.name}: " + " / ".join(cells))
    return "\n".join(lines)
