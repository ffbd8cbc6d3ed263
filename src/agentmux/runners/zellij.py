"""Type into a zellij pane through `zellij action`.

`write-chars` targets the focused pane of the session, so text is only sent
when the focused pane is the caller's own (`ZELLIJ_PANE_ID`).
"""

from __future__ import annotations

import os
import subprocess
from typing import List, Optional, Tuple

ENTER = "13"


def _run_zellij(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["zellij", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "zellij timeout"
    except Exception as e:
        return 1, "", str(e)


def current_pane() -> Optional[str]:
    """The zellij terminal pane id this process runs in, or None outside zellij."""
    if not os.environ.get("ZELLIJ", "").strip():
        return None
    pane = os.environ.get("ZELLIJ_PANE_ID", "").strip()
    return pane or None


def focused_pane() -> Optional[str]:
    """Pane id focused by the first attached client (`list-clients`), if any."""
    code, out, _ = _run_zellij(["action", "list-clients"])
    if code != 0:
        return None
    # CLIENT_ID ZELLIJ_PANE_ID RUNNING_COMMAND
    for line in out.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 2:
            pane = parts[1]
            return pane.split("_", 1)[1] if pane.startswith("terminal_") else pane
    return None


def write_text(pane: str, text: str, *, submit: bool = True) -> bool:
    if focused_pane() != pane:
        return False
    code, _, _ = _run_zellij(["action", "write-chars", text])
    if code != 0:
        return False
    if submit:
        code, _, _ = _run_zellij(["action", "write", ENTER])
    return code == 0
