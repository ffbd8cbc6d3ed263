from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger("agentmux.git")


def _run_git(args: list[str], *, cwd: Path, timeout_s: float = 60.0) -> tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or "").strip(), (p.stderr or "").strip()
    except subprocess.TimeoutExpired:
        return 124, "", "git timeout"
    except Exception as e:
        return 1, "", str(e)


def git_root(path: Path) -> Optional[Path]:
    code, out, _ = _run_git(["rev-parse", "--show-toplevel"], cwd=path)
    if code != 0 or not out:
        return None
    try:
        return Path(out).resolve()
    except Exception:
        return None


def branch_exists(repo: Path, branch: str) -> bool:
    code, _, _ = _run_git(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"], cwd=repo)
    return code == 0


def add_worktree(repo: Path, dest: Path, branch: str) -> None:
    """Check `branch` out into `dest`, creating the branch from HEAD if needed.

    Raises RuntimeError with git's message on failure (for example when the
    branch is already checked out in another worktree).
    """
    if branch_exists(repo, branch):
        args = ["worktree", "add", str(dest), branch]
    else:
        args = ["worktree", "add", "-b", branch, str(dest), "HEAD"]
    code, _, err = _run_git(args, cwd=repo)
    if code != 0:
        raise RuntimeError(f"git worktree add failed: {err or code}")


def remove_worktree(repo: Path, dest: Path) -> None:
    code, _, err = _run_git(["worktree", "remove", "--force", str(dest)], cwd=repo)
    if code != 0:
        logger.warning("git worktree remove failed: %s", err, extra={"path": str(dest)})


def prune_worktrees(repo: Path) -> None:
    _run_git(["worktree", "prune"], cwd=repo)
