"""Per-agent bootstrap run in each terminal pane.

Validates the session, marks the agent running, hands the terminal to the
agent's interactive process, and records it as stopped once that exits.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from ..contracts.v1 import AgentState, AgentStatus, SessionConfig, SessionMeta
from ..errors import NotFound, ShimError
from ..kernel.handle import SessionHandle
from ..kernel.mailbox import ORCHESTRATOR_ID
from ..kernel.store import load_session, read_agent_state, read_config, write_agent_state
from ..util.fs import atomic_write_json
from ..util.time import utc_now_iso
from . import tmux, zellij

logger = logging.getLogger("agentmux.shim")

INITIAL_INSTRUCTION = "Read your instructions at {instructions}, then check your mailbox with check_queries."
DELIVERY_DELAY_S = 3.0

MCP_SERVER_NAME = "agentmux"
MCP_SERVER_COMMAND = ("agentmux", "mcp")

Runner = Callable[..., int]


@dataclass
class LaunchPlan:
    agent_id: int
    agent_name: str
    workdir: Path
    instructions: Path
    mailbox: Path
    mcp_config: Path
    command: List[str]
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def initial_instruction(self) -> str:
        return INITIAL_INSTRUCTION.format(instructions=self.instructions)


def _default_runner(command: List[str], *, cwd: Path, env: Dict[str, str]) -> int:
    try:
        return subprocess.call(command, cwd=str(cwd), env=env)
    except FileNotFoundError as e:
        raise ShimError(f"agent command not found: {command[0]}") from e


def _load(handle: SessionHandle) -> tuple[SessionMeta, SessionConfig]:
    try:
        return load_session(handle), read_config(handle)
    except NotFound as e:
        raise ShimError(f"session not found: {handle.path}") from e


def _agent_env(handle: SessionHandle, tool_root: Path, agent_id: int) -> Dict[str, str]:
    env = dict(os.environ)
    env.update(
        {
            "AGENTMUX_SESSION_DIR": str(handle.path),
            "AGENTMUX_ROOT": str(tool_root),
            "AGENTMUX_AGENT_ID": str(agent_id),
            "AGENTMUX_INSTRUCTIONS": str(handle.instructions_path(agent_id)),
            "AGENTMUX_MAILBOX": str(handle.mailbox_path(agent_id)),
        }
    )
    return env


def _with_tool_server(command: List[str], mcp_args: List[str], mcp_config: Path) -> List[str]:
    return [*command, *(a.replace("{mcp_config}", str(mcp_config)) for a in mcp_args)]


def write_mcp_config(
    handle: SessionHandle,
    agent_id: int,
    *,
    tool_root: Path,
    server_command: Sequence[str] = MCP_SERVER_COMMAND,
) -> Path:
    """Register the coordination tool server for one agent.

    Written as an `mcpServers` document scoped to this session and agent id;
    the agent command receives it through the config's `mcp_args`.
    """
    path = handle.mcp_config_path(agent_id)
    doc = {
        "mcpServers": {
            MCP_SERVER_NAME: {
                "command": server_command[0],
                "args": list(server_command[1:]),
                "env": {
                    "AGENTMUX_SESSION_DIR": str(handle.path),
                    "AGENTMUX_ROOT": str(tool_root),
                    "AGENTMUX_AGENT_ID": str(agent_id),
                },
            }
        }
    }
    atomic_write_json(path, doc)
    logger.info("tool server registered", extra={"session": handle.name, "agent_id": agent_id, "path": str(path)})
    return path


def prepare(handle: SessionHandle, agent_id: int, *, tool_root: Path) -> LaunchPlan:
    """Check every launch precondition. Raises ShimError; never touches state."""
    _, config = _load(handle)
    try:
        agent = config.agent(agent_id)
    except KeyError as e:
        raise ShimError(f"agent {agent_id} is not declared in session {handle.name}") from e

    workdir = handle.workdir_path(agent_id)
    if not workdir.exists():
        raise ShimError(f"working directory missing for agent {agent_id}: {workdir}")
    instructions = handle.instructions_path(agent_id)
    if not instructions.is_file():
        raise ShimError(f"instruction document missing for agent {agent_id}: {instructions}")
    if not config.agent_command:
        raise ShimError("session config has an empty agent_command")

    return LaunchPlan(
        agent_id=agent_id,
        agent_name=agent.name,
        workdir=workdir.resolve(strict=True),
        instructions=instructions,
        mailbox=handle.mailbox_path(agent_id),
        mcp_config=handle.mcp_config_path(agent_id),
        command=_with_tool_server(list(config.agent_command), config.mcp_args, handle.mcp_config_path(agent_id)),
        env=_agent_env(handle, tool_root, agent_id),
    )


def mark_running(handle: SessionHandle, agent_id: int, agent_name: str) -> AgentState:
    try:
        state = read_agent_state(handle, agent_id)
    except NotFound:
        state = AgentState(agent_id=agent_id, agent_name=agent_name)
    if state.status != AgentStatus.PENDING:
        state.restarts += 1
    state.status = AgentStatus.RUNNING
    state.last_active = utc_now_iso()
    write_agent_state(handle, state)
    logger.info("agent running", extra={"session": handle.name, "agent_id": agent_id, "status": "running"})
    return state


def mark_stopped(handle: SessionHandle, agent_id: int) -> None:
    """Best-effort: the process is already gone, so failures are only logged."""
    try:
        state = read_agent_state(handle, agent_id)
        state.status = AgentStatus.STOPPED
        state.last_active = utc_now_iso()
        write_agent_state(handle, state)
        logger.info("agent stopped", extra={"session": handle.name, "agent_id": agent_id, "status": "stopped"})
    except Exception:
        logger.warning("could not record stopped state", extra={"session": handle.name, "agent_id": agent_id}, exc_info=True)


def _print_hint(text: str, out: TextIO) -> None:
    print("Paste this into the agent once it is ready:", file=out)
    print(f"  {text}", file=out)
    out.flush()


def _deliver_zellij(pane: str, text: str) -> None:
    if not zellij.write_text(pane, text):
        logger.warning("initial instruction not delivered: pane %s is not focused", pane)


def _schedule_delivery(text: str, out: TextIO) -> Optional[threading.Timer]:
    """Type the initial instruction into this pane once the agent is up.

    zellij first (the generated layout), tmux second, otherwise print it.
    """
    pane = zellij.current_pane()
    if pane is not None:
        # zellij only types into the focused pane, so keep the hint visible too.
        _print_hint(text, out)
        timer = threading.Timer(DELIVERY_DELAY_S, _deliver_zellij, args=(pane, text))
    else:
        pane = tmux.current_pane()
        if pane is None:
            _print_hint(text, out)
            return None
        timer = threading.Timer(DELIVERY_DELAY_S, tmux.paste_text, args=(pane, text), kwargs={"post_keys": ["Enter"]})
    timer.daemon = True
    timer.start()
    return timer


def run_agent(
    handle: SessionHandle,
    agent_id: int,
    *,
    tool_root: Path,
    runner: Runner = _default_runner,
    out: TextIO = sys.stdout,
) -> int:
    if agent_id == ORCHESTRATOR_ID:
        return run_orchestrator(handle, tool_root=tool_root, runner=runner, out=out)

    plan = prepare(handle, agent_id, tool_root=tool_root)
    write_mcp_config(handle, agent_id, tool_root=tool_root)
    mark_running(handle, agent_id, plan.agent_name)

    print(f"[agentmux] agent {agent_id} ({plan.agent_name}) in {plan.workdir}", file=out)
    timer = None
    try:
        timer = _schedule_delivery(plan.initial_instruction, out)
        code = runner(plan.command, cwd=plan.workdir, env=plan.env)
        logger.info("agent process exited with %s", code, extra={"session": handle.name, "agent_id": agent_id})
        return int(code)
    finally:
        if timer is not None:
            timer.cancel()
        mark_stopped(handle, agent_id)


def run_orchestrator(
    handle: SessionHandle,
    *,
    tool_root: Path,
    runner: Runner = _default_runner,
    out: TextIO = sys.stdout,
) -> int:
    """Agent 0: print the session summary and drop into the orchestrator's own session."""
    meta, config = _load(handle)
    print(f"[agentmux] session {meta.name} (config {meta.config})", file=out)
    print(f"  repository: {meta.target_repo}", file=out)
    print(f"  worktrees:  {'isolated' if meta.use_worktrees else 'shared'}", file=out)
    print(f"  agents:     {meta.agent_count}", file=out)
    for a in config.agents:
        print(f"    [{a.id}] {a.name} - {a.role}", file=out)
    print(f"  mailbox:    {handle.mailbox_path(ORCHESTRATOR_ID)}", file=out)
    out.flush()

    repo = Path(meta.target_repo)
    if not repo.is_dir():
        raise ShimError(f"target repository missing: {repo}")
    if not config.orchestrator_command:
        return 0
    mcp_config = write_mcp_config(handle, ORCHESTRATOR_ID, tool_root=tool_root)
    command = _with_tool_server(list(config.orchestrator_command), config.mcp_args, mcp_config)
    return int(runner(command, cwd=repo, env=_agent_env(handle, tool_root, ORCHESTRATOR_ID)))
