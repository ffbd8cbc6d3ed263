from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List

import yaml  # type: ignore

from ..contracts.v1 import AgentState, AgentStatus, LayoutPlan, SessionConfig, SessionMeta
from ..errors import AlreadyExists, InvalidArgument, NotFound
from ..util.fs import atomic_write_json, atomic_write_text
from .handle import SessionHandle

logger = logging.getLogger("agentmux.store")

_SUBDIRS = ("state", "mailbox", "responses", "instructions", "worktrees", "mcp", "logs")
_SESSION_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


def _dump_yaml(path: Path, doc: Dict[str, Any]) -> None:
    atomic_write_text(path, yaml.safe_dump(doc, allow_unicode=True, sort_keys=False))


def _load_yaml(path: Path) -> Dict[str, Any]:
    doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(doc, dict):
        raise ValueError(f"expected a mapping in {path}")
    return doc


def claim_session_dir(handle: SessionHandle) -> Path:
    """Create the session directory, failing if it already exists.

    `mkdir` without `exist_ok` is the only guard: of two concurrent
    initializers of the same name exactly one succeeds.
    """
    if not _SESSION_NAME_RE.match(handle.name or ""):
        raise InvalidArgument(f"invalid session name: {handle.name!r}")
    handle.root.mkdir(parents=True, exist_ok=True)
    try:
        handle.path.mkdir()
    except FileExistsError as e:
        raise AlreadyExists(
            f"session already exists: {handle.name} (tear it down first)",
            details={"path": str(handle.path)},
        ) from e
    for sub in _SUBDIRS:
        (handle.path / sub).mkdir()
    return handle.path


def create_session(
    handle: SessionHandle,
    meta: SessionMeta,
    config: SessionConfig,
    layout: LayoutPlan,
    *,
    claimed: bool = False,
) -> SessionMeta:
    """Persist a new session: config, layout, one pending state per agent, then metadata.

    session.yaml is written last; a directory without it is not a usable session.
    """
    if not claimed:
        claim_session_dir(handle)

    _dump_yaml(handle.config_path, config.model_dump(mode="json"))
    _dump_yaml(handle.layout_path, layout.model_dump(mode="json"))
    for a in config.agents:
        write_agent_state(handle, AgentState(agent_id=a.id, agent_name=a.name, status=AgentStatus.PENDING))
    _dump_yaml(handle.meta_path, meta.model_dump(mode="json"))
    logger.info("session created", extra={"session": handle.name, "op": "create_session"})
    return meta


def session_exists(handle: SessionHandle) -> bool:
    return handle.meta_path.is_file()


def load_session(handle: SessionHandle) -> SessionMeta:
    if not handle.meta_path.is_file():
        raise NotFound(f"session not found: {handle.name}", details={"path": str(handle.path)})
    return SessionMeta.model_validate(_load_yaml(handle.meta_path))


def read_config(handle: SessionHandle) -> SessionConfig:
    if not handle.config_path.is_file():
        raise NotFound(f"session config not found: {handle.name}", details={"path": str(handle.config_path)})
    return SessionConfig.model_validate(_load_yaml(handle.config_path))


def read_layout(handle: SessionHandle) -> LayoutPlan:
    if not handle.layout_path.is_file():
        raise NotFound(f"session layout not found: {handle.name}")
    return LayoutPlan.model_validate(_load_yaml(handle.layout_path))


def read_agent_state(handle: SessionHandle, agent_id: int) -> AgentState:
    p = handle.state_path(agent_id)
    try:
        raw = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFound(f"no state for agent {agent_id}", details={"path": str(p)}) from e
    return AgentState.model_validate(json.loads(raw))


def write_agent_state(handle: SessionHandle, state: AgentState) -> None:
    if state.agent_id < 1:
        raise InvalidArgument(f"agent {state.agent_id} is not a worker and has no state record")
    atomic_write_json(handle.state_path(state.agent_id), state.to_doc())


def list_agent_states(handle: SessionHandle) -> List[AgentState]:
    out: List[AgentState] = []
    state_dir = handle.path / "state"
    if not state_dir.is_dir():
        return out
    for p in state_dir.glob("agent-*.json"):
        try:
            state = AgentState.model_validate(json.loads(p.read_text(encoding="utf-8")))
        except Exception:
            logger.debug("skipping unreadable state record", extra={"session": handle.name, "path": str(p)})
            continue
        # Only workers (ids 1..N) are tracked; agent 0 is the orchestrator.
        if state.agent_id < 1:
            logger.debug("skipping non-worker state record", extra={"session": handle.name, "path": str(p)})
            continue
        out.append(state)
    return out


def list_sessions(root: Path) -> List[str]:
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_dir() and (p / "session.yaml").is_file())


def delete_session(handle: SessionHandle) -> None:
    if not handle.path.exists():
        raise NotFound(f"session not found: {handle.name}")
    shutil.rmtree(handle.path)
    logger.info("session deleted", extra={"session": handle.name, "op": "delete_session"})
