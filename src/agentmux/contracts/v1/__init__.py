from __future__ import annotations

from .agent import AGENT_SETTABLE, AgentDefinition, AgentState, AgentStatus
from .layout import LayoutPlan, Pane, PaneKind, Tab
from .message import PRIORITIES, Message, Priority, ResponseRecord
from .session import SessionConfig, SessionMeta, SessionStatus
from .tool import ToolError, ToolResult

__all__ = [
    "AGENT_SETTABLE",
    "AgentDefinition",
    "AgentState",
    "AgentStatus",
    "LayoutPlan",
    "Message",
    "PRIORITIES",
    "Pane",
    "PaneKind",
    "Priority",
    "ResponseRecord",
    "SessionConfig",
    "SessionMeta",
    "SessionStatus",
    "Tab",
    "ToolError",
    "ToolResult",
]
