from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from ..contracts.v1 import AgentDefinition, SessionMeta
from ..errors import NotFound
from ..paths import templates_dir
from ..util.fs import atomic_write_text
from .config import load_config
from .git import add_worktree, git_root, prune_worktrees, remove_worktree
from .handle import SessionHandle
from .instructions import materialize
from .layout import DEFAULT_MONITOR_COMMAND, DEFAULT_SHIM_COMMAND, pack, render_kdl
from .store import claim_session_dir, create_session, delete_session, load_session

logger = logging.getLogger("agentmux.initializer")


def allocate_workdir(handle: SessionHandle, agent: AgentDefinition, repo: Path, *, use_worktrees: bool) -> bool:
    """Create the agent's working directory. Returns True for an isolated checkout.

    Falls back to a symlink into the shared repository when no branch is
    declared, worktrees are off, or `git worktree add` fails.
    """
    dest = handle.workdir_path(agent.id)
    if use_worktrees and agent.branch:
        try:
            add_worktree(repo, dest, agent.branch)
            logger.info(
                "worktree created for branch %s",
                agent.branch,
                extra={"session": handle.name, "agent_id": agent.id, "path": str(dest)},
            )
            return True
        except RuntimeError as e:
            logger.warning(
                "worktree unavailable, sharing target repository: %s",
                e,
                extra={"session": handle.name, "agent_id": agent.id},
            )
            if dest.exists() and not dest.is_symlink():
                shutil.rmtree(dest, ignore_errors=True)
    os.symlink(repo, dest, target_is_directory=True)
    return False


def _discard(handle: SessionHandle, repo: Path, worktrees: List[Path]) -> None:
    for wt in worktrees:
        remove_worktree(repo, wt)
    try:
        shutil.rmtree(handle.path)
    except FileNotFoundError:
        pass
    if worktrees:
        prune_worktrees(repo)


def initialize(
    handle: SessionHandle,
    config_name: str,
    target_repo: Path,
    use_worktrees: bool,
    *,
    tool_root: Path,
    shim_command: Sequence[str] = DEFAULT_SHIM_COMMAND,
    monitor_command: Sequence[str] = DEFAULT_MONITOR_COMMAND,
) -> SessionMeta:
    """Create a session from a named config.

    Not retryable: an existing session directory raises AlreadyExists and must
    be torn down first. On any later failure the directory is removed again.
    """
    config = load_config(tool_root, config_name)
    repo = Path(target_repo).expanduser().resolve()
    if not repo.is_dir():
        raise NotFound(f"target repository not found: {repo}")
    if use_worktrees and git_root(repo) is None:
        logger.warning(
            "target is not a git repository, every agent will share it",
            extra={"session": handle.name, "path": str(repo)},
        )

    claim_session_dir(handle)
    worktrees: List[Path] = []
    try:
        for agent in config.agents:
            if allocate_workdir(handle, agent, repo, use_worktrees=use_worktrees):
                worktrees.append(handle.workdir_path(agent.id))

        templates = templates_dir(tool_root)
        for agent in config.agents:
            materialize(handle, config, agent, target_repo=repo, templates=templates)

        layout = pack(len(config.agents), shim_command=shim_command, monitor_command=monitor_command)
        atomic_write_text(handle.layout_kdl_path, render_kdl(layout))

        meta = SessionMeta(
            name=handle.name,
            config=config_name,
            target_repo=str(repo),
            use_worktrees=bool(use_worktrees),
            agent_count=len(config.agents),
        )
        create_session(handle, meta, config, layout, claimed=True)
    except BaseException:
        logger.error("initialization failed, removing session directory", extra={"session": handle.name}, exc_info=True)
        _discard(handle, repo, worktrees)
        raise

    logger.info(
        "session initialized with %d agents (%d isolated worktrees)",
        len(config.agents),
        len(worktrees),
        extra={"session": handle.name, "config": config_name},
    )
    return meta


def teardown(handle: SessionHandle) -> None:
    """Remove a session, including any git worktrees it checked out."""
    repo: Optional[Path]
    try:
        repo = Path(load_session(handle).target_repo)
    except NotFound:
        repo = None
    wt_dir = handle.path / "worktrees"
    removed = False
    if repo is not None and wt_dir.is_dir():
        for p in sorted(wt_dir.iterdir()):
            if p.is_dir() and not p.is_symlink():
                remove_worktree(repo, p)
                removed = True
    delete_session(handle)
    if repo is not None and removed:
        prune_worktrees(repo)
