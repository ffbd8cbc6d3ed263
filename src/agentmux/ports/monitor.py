"""Live status table of every agent in a session.

Usage:
  agentmux monitor [--interval 5] [--once]

Reads session metadata once, then on every tick re-reads each agent's state
and the role configuration. Unreadable rows are skipped for that tick.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, List, Optional, Sequence, TextIO

from ..contracts.v1 import AgentState, SessionConfig, SessionMeta
from ..kernel.handle import SessionHandle
from ..kernel.store import load_session, read_agent_state, read_config
from ..util.time import utc_now_iso

logger = logging.getLogger("agentmux.monitor")

DEFAULT_INTERVAL_S = 5.0
_CLEAR = "\033[2J\033[H"


def _role(config: Optional[SessionConfig], agent_id: int) -> str:
    if config is None:
        return "?"
    try:
        return config.agent(agent_id).role or "-"
    except KeyError:
        return "-"


def _clip(s: str, width: int) -> str:
    return s if len(s) <= width else s[: width - 1] + "…"


def render(meta: SessionMeta, states: Sequence[AgentState], config: Optional[SessionConfig], *, now: str = "") -> str:
    lines: List[str] = []
    lines.append(f"agentmux monitor | session {meta.name} | {meta.agent_count} agents | {now or utc_now_iso()}")
    lines.append("=" * 78)
    lines.append(f"{'ID':>3}  {'NAME':<14} {'STATUS':<12} {'ROLE':<24} {'ACTIVITY':<8} TASK")
    for s in sorted(states, key=lambda x: x.agent_id):
        status = f"{s.status.icon} {s.status.value}"
        activity = "active" if s.last_active else "never"
        task = _clip(s.current_task or "", 40)
        lines.append(
            f"{s.agent_id:>3}  {_clip(s.agent_name, 14):<14} {status:<12} {_clip(_role(config, s.agent_id), 24):<24} {activity:<8} {task}".rstrip()
        )
    missing = meta.agent_count - len(states)
    if missing > 0:
        lines.append(f"({missing} agent(s) unreadable this tick)")
    return "\n".join(lines) + "\n"


class Monitor:
    def __init__(
        self,
        handle: SessionHandle,
        *,
        interval: float = DEFAULT_INTERVAL_S,
        out: TextIO = sys.stdout,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.handle = handle
        self.interval = max(0.1, float(interval))
        self.out = out
        self._sleep = sleep
        self.meta: Optional[SessionMeta] = None

    def frame(self) -> str:
        if self.meta is None:
            self.meta = load_session(self.handle)
        try:
            config: Optional[SessionConfig] = read_config(self.handle)
        except Exception:
            logger.debug("config unreadable this tick", extra={"session": self.handle.name})
            config = None
        states: List[AgentState] = []
        for aid in range(1, self.meta.agent_count + 1):
            try:
                states.append(read_agent_state(self.handle, aid))
            except Exception:
                logger.debug("state unreadable this tick", extra={"session": self.handle.name, "agent_id": aid})
                continue
        return render(self.meta, states, config)

    def tick(self) -> None:
        text = self.frame()
        if self.out.isatty():
            text = _CLEAR + text
        self.out.write(text)
        self.out.flush()

    def run(self, *, max_ticks: Optional[int] = None) -> int:
        """Render until interrupted (or `max_ticks` frames have been drawn)."""
        self.meta = load_session(self.handle)
        ticks = 0
        try:
            while max_ticks is None or ticks < max_ticks:
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                self._sleep(self.interval)
        except KeyboardInterrupt:
            pass
        return 0
