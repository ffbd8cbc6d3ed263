from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def tool_root() -> Path:
    """Root of the tooling tree holding `configs/` and `templates/`."""
    env = os.environ.get("AGENTMUX_ROOT", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve()


def sessions_root(root: Optional[Path] = None) -> Path:
    env = os.environ.get("AGENTMUX_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (root or tool_root()) / "sessions"


def configs_dir(root: Path) -> Path:
    return root / "configs"


def templates_dir(root: Path) -> Path:
    return root / "templates"


def session_dir_from_env() -> Optional[Path]:
    env = os.environ.get("AGENTMUX_SESSION_DIR", "").strip()
    if not env:
        return None
    return Path(env).expanduser().resolve()


def agent_id_from_env() -> Optional[int]:
    env = os.environ.get("AGENTMUX_AGENT_ID", "").strip()
    if not env:
        return None
    try:
        return int(env)
    except ValueError:
        return None
