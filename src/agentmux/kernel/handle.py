from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SessionHandle:
    """Names one session on disk. Every store, mailbox and tool call takes one."""

    name: str
    root: Path

    @classmethod
    def from_dir(cls, session_dir: Path) -> "SessionHandle":
        p = Path(session_dir).expanduser().resolve()
        return cls(name=p.name, root=p.parent)

    @property
    def path(self) -> Path:
        return self.root / self.name

    @property
    def meta_path(self) -> Path:
        return self.path / "session.yaml"

    @property
    def config_path(self) -> Path:
        return self.path / "config.yaml"

    @property
    def layout_path(self) -> Path:
        return self.path / "layout.yaml"

    @property
    def layout_kdl_path(self) -> Path:
        return self.path / "layout.kdl"

    @property
    def logs_dir(self) -> Path:
        return self.path / "logs"

    def state_path(self, agent_id: int) -> Path:
        return self.path / "state" / f"agent-{int(agent_id)}.json"

    def mailbox_path(self, agent_id: int) -> Path:
        return self.path / "mailbox" / f"agent-{int(agent_id)}.md"

    def response_path(self, agent_id: int) -> Path:
        return self.path / "responses" / f"agent-{int(agent_id)}.md"

    def instructions_path(self, agent_id: int) -> Path:
        return self.path / "instructions" / f"agent-{int(agent_id)}.md"

    def mcp_config_path(self, agent_id: int) -> Path:
        return self.path / "mcp" / f"agent-{int(agent_id)}.json"

    def workdir_path(self, agent_id: int) -> Path:
        return self.path / "worktrees" / f"agent-{int(agent_id)}"
