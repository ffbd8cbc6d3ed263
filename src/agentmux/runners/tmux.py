from __future__ import annotations

import os
import subprocess
import tempfile
import time
from typing import List, Optional, Tuple


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except Exception as e:
        return 1, "", str(e)


def current_pane() -> Optional[str]:
    """The tmux pane this process runs in, or None outside tmux."""
    if not os.environ.get("TMUX", "").strip():
        return None
    pane = os.environ.get("TMUX_PANE", "").strip()
    return pane or None


def paste_text(pane: str, text: str, *, post_keys: Optional[List[str]] = None) -> bool:
    # Ensure pane is not in copy-mode
    code, out, _ = _run_tmux(["display-message", "-p", "-t", pane, "#{pane_in_mode}"])
    if code == 0 and (out or "").strip() in ("1", "on", "yes", "true"):
        _run_tmux(["send-keys", "-t", pane, "-X", "cancel"])

    with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8") as f:
        f.write(text)
        fname = f.name

    buf = f"agentmux-{int(time.time() * 1000)}"
    try:
        code, _, _ = _run_tmux(["load-buffer", "-b", buf, fname])
        if code != 0:
            return False
        code, _, _ = _run_tmux(["paste-buffer", "-p", "-t", pane, "-b", buf])
        if code != 0:
            return False
        time.sleep(0.15)
        for k in post_keys or []:
            if isinstance(k, str) and k.strip():
                _run_tmux(["send-keys", "-t", pane, k.strip()])
        return True
    finally:
        _run_tmux(["delete-buffer", "-b", buf])
        try:
            os.unlink(fname)
        except OSError:
            pass
