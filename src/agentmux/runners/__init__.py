from __future__ import annotations

from . import shim, tmux, zellij

__all__ = ["shim", "tmux", "zellij"]
