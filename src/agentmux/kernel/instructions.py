from __future__ import annotations

import importlib.resources
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import jinja2

from ..contracts.v1 import AgentDefinition, SessionConfig
from ..errors import ConfigError
from ..util.fs import atomic_write_text
from .handle import SessionHandle

logger = logging.getLogger("agentmux.instructions")

_GENERIC_TEMPLATE = "agent-instructions.md"
_MAX_TEMPLATE_BYTES = 512 * 1024


@dataclass(frozen=True)
class InstructionContext:
    """Every key a role template may reference."""

    agent_id: int
    agent_name: str
    role: str
    description: str
    session_name: str
    target_repo: str
    workdir: str
    mailbox_path: str
    response_path: str
    state_path: str
    instructions_path: str
    focus: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    blocks: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _label(config: SessionConfig, agent_id: int) -> str:
    try:
        return f"{config.agent(agent_id).name} (agent {agent_id})"
    except KeyError:
        return f"agent {agent_id}"


def build_context(
    handle: SessionHandle,
    config: SessionConfig,
    agent: AgentDefinition,
    *,
    target_repo: Path,
) -> InstructionContext:
    return InstructionContext(
        agent_id=agent.id,
        agent_name=agent.name,
        role=agent.role,
        description=agent.description.strip(),
        session_name=handle.name,
        target_repo=str(target_repo),
        workdir=str(handle.workdir_path(agent.id)),
        mailbox_path=str(handle.mailbox_path(agent.id)),
        response_path=str(handle.response_path(agent.id)),
        state_path=str(handle.state_path(agent.id)),
        instructions_path=str(handle.instructions_path(agent.id)),
        focus=list(agent.focus),
        depends_on=[_label(config, x) for x in agent.depends_on],
        blocks=[_label(config, x) for x in agent.blocks],
    )


def slugify(name: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", (name or "").strip().lower()).strip("-")
    return s or "agent"


def find_role_template(templates: Path, agent: AgentDefinition) -> Optional[Path]:
    """Role-specific template: the agent's `template` field, else `<slug(name)>.md`."""
    candidates = [agent.template] if agent.template else [f"{slugify(agent.name)}.md"]
    for c in candidates:
        p = (templates / c).expanduser()
        if p.is_file():
            return p
    if agent.template:
        logger.warning("role template not found: %s", agent.template, extra={"agent_id": agent.id})
    return None


def load_generic_template() -> str:
    return importlib.resources.files("agentmux.resources").joinpath(_GENERIC_TEMPLATE).read_text(encoding="utf-8")


_ENV = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


def render(template_text: str, ctx: InstructionContext, *, source: str = "<template>") -> str:
    try:
        return _ENV.from_string(template_text).render(**ctx.as_dict())
    except jinja2.TemplateError as e:
        raise ConfigError(f"cannot render {source} for agent {ctx.agent_id}: {e}", details={"template": source}) from e


def materialize(
    handle: SessionHandle,
    config: SessionConfig,
    agent: AgentDefinition,
    *,
    target_repo: Path,
    templates: Path,
) -> Path:
    """Write the agent's instruction document and return its path."""
    ctx = build_context(handle, config, agent, target_repo=target_repo)
    role_tpl = find_role_template(templates, agent)
    if role_tpl is not None:
        raw = role_tpl.read_bytes()[:_MAX_TEMPLATE_BYTES]
        text = render(raw.decode("utf-8", errors="replace"), ctx, source=role_tpl.name)
    else:
        text = render(load_generic_template(), ctx, source=_GENERIC_TEMPLATE)
    out = handle.instructions_path(agent.id)
    atomic_write_text(out, text)
    logger.debug(
        "instructions written",
        extra={"session": handle.name, "agent_id": agent.id, "path": str(role_tpl or _GENERIC_TEMPLATE)},
    )
    return out
