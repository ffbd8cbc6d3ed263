"""
agentmux MCP Server: per-agent coordination tools

Tools exposed to one agent process (session and agent id are fixed at launch):
- check_queries: Consume the pending message in your mailbox
- send_query: Send a message to another agent (by id or name)
- update_status: Report running/idle/blocked/complete plus a task note
- list_agents: One-line status of every agent in the session
- mark_complete: Mark your task complete and leave a summary

Every tool returns a ToolResult and never raises.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from ...contracts.v1 import AGENT_SETTABLE, AgentState, AgentStatus, ResponseRecord, ToolResult
from ...errors import AgentmuxError, InvalidArgument, InvalidTransition, NotFound
from ...kernel import mailbox
from ...kernel.handle import SessionHandle
from ...kernel.store import list_agent_states, read_agent_state, read_config, write_agent_state
from ...util.fs import atomic_write_text
from ...util.time import utc_now_iso

logger = logging.getLogger("agentmux.mcp")

NO_PENDING = "No pending queries."


def _guard(op: str) -> Callable[[Callable[..., ToolResult]], Callable[..., ToolResult]]:
    """Turn raised errors into structured failures for one tool method."""

    def wrap(fn: Callable[..., ToolResult]) -> Callable[..., ToolResult]:
        def inner(self: "ToolServer", *args: Any, **kwargs: Any) -> ToolResult:
            try:
                return fn(self, *args, **kwargs)
            except AgentmuxError as e:
                logger.info("%s rejected: %s", op, e.message, extra=self._log_extra(op))
                return ToolResult.failure(e.code, e.message, e.details)
            except Exception as e:
                logger.error("%s failed", op, extra=self._log_extra(op), exc_info=True)
                return ToolResult.failure("internal_error", str(e) or e.__class__.__name__)

        inner.__name__ = fn.__name__
        inner.__doc__ = fn.__doc__
        return inner

    return wrap


def format_response(record: ResponseRecord) -> str:
    header = [
        mailbox.DELIMITER,
        f"from: {record.sender}",
        f"timestamp: {record.timestamp}",
        f"status: {record.status}",
        mailbox.DELIMITER,
    ]
    return "\n".join(header) + "\n\n" + record.summary + "\n"


def format_agent_line(state: AgentState) -> str:
    line = f"{state.status.icon} [{state.agent_id}] {state.agent_name}: {state.status.value}"
    if state.current_task:
        line += f" | {state.current_task}"
    return line


class ToolServer:
    def __init__(self, handle: SessionHandle, agent_id: int):
        self.handle = handle
        self.agent_id = int(agent_id)

    def _log_extra(self, op: str) -> Dict[str, Any]:
        return {"session": self.handle.name, "agent_id": self.agent_id, "op": op}

    def _load_own_state(self) -> AgentState:
        try:
            return read_agent_state(self.handle, self.agent_id)
        except NotFound:
            name = ""
            try:
                name = read_config(self.handle).agent(self.agent_id).name
            except (KeyError, NotFound):
                pass
            return AgentState(agent_id=self.agent_id, agent_name=name, status=AgentStatus.RUNNING)

    def _require_worker(self) -> None:
        if self.agent_id == mailbox.ORCHESTRATOR_ID:
            raise InvalidArgument(
                "the orchestrator (agent 0) has no status record",
                details={"agent_id": self.agent_id},
            )

    def _transition(self, state: AgentState, target: AgentStatus) -> None:
        if not state.status.can_transition_to(target):
            raise InvalidTransition(
                f"cannot move from {state.status.value} to {target.value}",
                details={"from": state.status.value, "to": target.value},
            )
        state.status = target
        state.last_active = utc_now_iso()

    @_guard("check_queries")
    def check_queries(self) -> ToolResult:
        """Consume and return the pending message, if any."""
        msg = mailbox.check(self.handle, self.agent_id)
        if msg is None:
            return ToolResult.success(NO_PENDING)
        try:
            config = read_config(self.handle)
        except Exception:
            config = None
        return ToolResult.success(mailbox.render_message(msg, config))

    @_guard("send_query")
    def send_query(self, to_agent: str, message: str, priority: str = "normal") -> ToolResult:
        if not str(message or "").strip():
            raise InvalidArgument("message is empty")
        config = read_config(self.handle)
        msg = mailbox.send(self.handle, self.agent_id, to_agent, message, priority, config=config)
        if msg.recipient == mailbox.ORCHESTRATOR_ID:
            target = "orchestrator (agent 0)"
        else:
            target = f"{config.agent(msg.recipient).name} (agent {msg.recipient})"
        return ToolResult.success(f"Message sent to {target} with {msg.priority} priority.")

    @_guard("update_status")
    def update_status(self, status: str, current_task: Optional[str] = None) -> ToolResult:
        self._require_worker()
        try:
            target = AgentStatus(str(status or "").strip().lower())
        except ValueError:
            target = None
        if target is None or target not in AGENT_SETTABLE:
            allowed = ", ".join(sorted(s.value for s in AGENT_SETTABLE))
            return ToolResult.failure("invalid_status", f"status must be one of: {allowed}", {"status": status})

        state = self._load_own_state()
        self._transition(state, target)
        if current_task is not None:
            state.current_task = current_task
        write_agent_state(self.handle, state)
        logger.info("status updated", extra={**self._log_extra("update_status"), "status": target.value})
        text = f"Status updated to {target.value}"
        if state.current_task:
            text += f": {state.current_task}"
        return ToolResult.success(text + ".")

    @_guard("list_agents")
    def list_agents(self) -> ToolResult:
        states = sorted(list_agent_states(self.handle), key=lambda s: s.agent_id)
        if not states:
            return ToolResult.success("No agents found.")
        return ToolResult.success("\n".join(format_agent_line(s) for s in states))

    @_guard("mark_complete")
    def mark_complete(self, summary: str) -> ToolResult:
        self._require_worker()
        state = self._load_own_state()
        self._transition(state, AgentStatus.COMPLETE)
        state.current_task = summary
        write_agent_state(self.handle, state)

        # The state change stands even if the response artifact cannot be written.
        record = ResponseRecord(sender=str(self.agent_id), summary=summary)
        try:
            atomic_write_text(self.handle.response_path(self.agent_id), format_response(record))
        except Exception as e:
            logger.warning("response write failed", extra=self._log_extra("mark_complete"), exc_info=True)
            return ToolResult.success(f"Marked complete, but the response record was not written: {e}")
        return ToolResult.success("Marked complete. Summary recorded.")


MCP_TOOLS: List[Dict[str, Any]] = [
    {
        "name": "check_queries",
        "description": "Check your mailbox. Returns the pending message (and removes it) or 'No pending queries.'",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "send_query",
        "description": "Send a message to another agent. A newer message replaces one the recipient has not read yet.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "to_agent": {"type": "string", "description": "Recipient agent id or name (e.g. '3' or 'PLAT')"},
                "message": {"type": "string", "description": "Message content"},
                "priority": {
                    "type": "string",
                    "enum": ["low", "normal", "high"],
                    "description": "Message priority",
                    "default": "normal",
                },
            },
            "required": ["to_agent", "message"],
        },
    },
    {
        "name": "update_status",
        "description": "Report your current status and, optionally, what you are working on.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": ["running", "idle", "blocked", "complete"],
                    "description": "running=working, idle=waiting for work, blocked=waiting on someone, complete=done",
                },
                "current_task": {"type": "string", "description": "Short description of the current task (optional)"},
            },
            "required": ["status"],
        },
    },
    {
        "name": "list_agents",
        "description": "List every agent in the session with its status and current task.",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "mark_complete",
        "description": "Mark your task complete and record a summary for the orchestrator.",
        "inputSchema": {
            "type": "object",
            "properties": {"summary": {"type": "string", "description": "What you delivered"}},
            "required": ["summary"],
        },
    },
]


def handle_tool_call(server: ToolServer, name: str, arguments: Dict[str, Any]) -> ToolResult:
    """Dispatch one MCP tool call to the server."""

    if name == "check_queries":
        return server.check_queries()

    if name == "send_query":
        return server.send_query(
            to_agent=str(arguments.get("to_agent") or ""),
            message=str(arguments.get("message") or ""),
            priority=str(arguments.get("priority") or "normal"),
        )

    if name == "update_status":
        task = arguments.get("current_task")
        return server.update_status(
            status=str(arguments.get("status") or ""),
            current_task=str(task) if task is not None else None,
        )

    if name == "list_agents":
        return server.list_agents()

    if name == "mark_complete":
        return server.mark_complete(summary=str(arguments.get("summary") or ""))

    return ToolResult.failure("unknown_tool", f"unknown tool: {name}")
