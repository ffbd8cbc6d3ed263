from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable

from . import __version__
from .errors import AgentmuxError, InvalidArgument, ShimError
from .kernel import mailbox
from .kernel.handle import SessionHandle
from .kernel.initializer import initialize, teardown
from .kernel.layout import describe, pack, render_kdl
from .kernel.config import list_configs
from .kernel.store import list_agent_states, list_sessions, load_session, read_config, read_layout, session_exists
from .paths import session_dir_from_env, sessions_root, tool_root
from .util.obslog import setup_file_json_logging, setup_root_json_logging


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _fail(e: AgentmuxError, code: int = 1) -> int:
    _print_json({"ok": False, "error": e.to_dict()})
    return code


def _resolve_handle(args: argparse.Namespace) -> SessionHandle:
    name = str(getattr(args, "session", "") or "").strip()
    if name:
        return SessionHandle(name=name, root=sessions_root())
    env_dir = session_dir_from_env()
    if env_dir is not None:
        return SessionHandle.from_dir(env_dir)
    raise InvalidArgument("no session given (use --session or set AGENTMUX_SESSION_DIR)")


def _handles_errors(fn: Callable[[argparse.Namespace], int]) -> Callable[[argparse.Namespace], int]:
    def inner(args: argparse.Namespace) -> int:
        try:
            return fn(args)
        except ShimError as e:
            print(f"agentmux: {e.message}", file=sys.stderr)
            return 2
        except AgentmuxError as e:
            return _fail(e)

    inner.__name__ = fn.__name__
    return inner


@_handles_errors
def cmd_init(args: argparse.Namespace) -> int:
    setup_root_json_logging(component="cli")
    root = tool_root()
    handle = SessionHandle(name=args.session_name, root=sessions_root(root))
    meta = initialize(handle, args.config, Path(args.repo), bool(args.worktrees), tool_root=root)
    _print_json(
        {
            "ok": True,
            "result": {
                **meta.model_dump(mode="json"),
                "path": str(handle.path),
                "layout": str(handle.layout_kdl_path),
                "launch": f"AGENTMUX_SESSION_DIR={handle.path} AGENTMUX_ROOT={root} zellij --layout {handle.layout_kdl_path}",
            },
        }
    )
    return 0


@_handles_errors
def cmd_teardown(args: argparse.Namespace) -> int:
    setup_root_json_logging(component="cli")
    handle = SessionHandle(name=args.session_name, root=sessions_root())
    teardown(handle)
    _print_json({"ok": True, "result": {"removed": handle.name}})
    return 0


def cmd_sessions(args: argparse.Namespace) -> int:
    _print_json({"ok": True, "result": {"sessions": list_sessions(sessions_root())}})
    return 0


def cmd_configs(args: argparse.Namespace) -> int:
    _print_json({"ok": True, "result": {"configs": list_configs(tool_root())}})
    return 0


@_handles_errors
def cmd_layout(args: argparse.Namespace) -> int:
    if args.count is None:
        plan = read_layout(_resolve_handle(args))
    else:
        try:
            plan = pack(int(args.count))
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
    print(render_kdl(plan) if args.kdl else describe(plan))
    return 0


@_handles_errors
def cmd_run(args: argparse.Namespace) -> int:
    from .runners.shim import run_agent

    handle = _resolve_handle(args)
    if session_exists(handle):
        setup_file_json_logging(component="shim", path=handle.logs_dir / f"shim-agent-{args.agent_id}.jsonl")
    return run_agent(handle, int(args.agent_id), tool_root=tool_root())


@_handles_errors
def cmd_monitor(args: argparse.Namespace) -> int:
    from .ports.monitor import Monitor

    handle = _resolve_handle(args)
    setup_file_json_logging(component="monitor", path=handle.logs_dir / "monitor.jsonl")
    mon = Monitor(handle, interval=float(args.interval))
    return mon.run(max_ticks=1 if args.once else None)


def cmd_mcp(args: argparse.Namespace) -> int:
    from .ports.mcp.main import main as mcp_main

    return int(mcp_main())


@_handles_errors
def cmd_send(args: argparse.Namespace) -> int:
    setup_root_json_logging(component="cli")
    handle = _resolve_handle(args)
    load_session(handle)
    msg = mailbox.send(handle, int(args.from_id), args.to, args.message, args.priority)
    _print_json({"ok": True, "result": msg.model_dump(mode="json")})
    return 0


@_handles_errors
def cmd_check(args: argparse.Namespace) -> int:
    handle = _resolve_handle(args)
    load_session(handle)
    msg = mailbox.check(handle, int(args.agent))
    _print_json({"ok": True, "result": msg.model_dump(mode="json") if msg is not None else None})
    return 0


@_handles_errors
def cmd_status(args: argparse.Namespace) -> int:
    handle = _resolve_handle(args)
    meta = load_session(handle)
    config = read_config(handle)
    agents = []
    for s in sorted(list_agent_states(handle), key=lambda x: x.agent_id):
        doc = s.to_doc()
        try:
            doc["role"] = config.agent(s.agent_id).role
        except KeyError:
            doc["role"] = ""
        doc["pendingMessage"] = mailbox.peek(handle, s.agent_id) is not None
        agents.append(doc)
    _print_json({"ok": True, "result": {"session": meta.model_dump(mode="json"), "agents": agents}})
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="agentmux", description="Coordinate a team of coding agents in terminal panes")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="Create a session from a named config")
    p_init.add_argument("config", help="Config name (configs/<name>.yaml under AGENTMUX_ROOT)")
    p_init.add_argument("session_name", help="New session name")
    p_init.add_argument("--repo", required=True, help="Target repository path")
    p_init.add_argument("--worktrees", action="store_true", help="Give agents with a branch their own git worktree")
    p_init.set_defaults(func=cmd_init)

    p_teardown = sub.add_parser("teardown", help="Remove a session and its worktrees")
    p_teardown.add_argument("session_name", help="Session name")
    p_teardown.set_defaults(func=cmd_teardown)

    p_sessions = sub.add_parser("sessions", help="List sessions")
    p_sessions.set_defaults(func=cmd_sessions)

    p_configs = sub.add_parser("configs", help="List available team configs")
    p_configs.set_defaults(func=cmd_configs)

    p_layout = sub.add_parser("layout", help="Show the pane layout for N agents (or for a session)")
    p_layout.add_argument("count", type=int, nargs="?", default=None, help="Agent count (default: the session's stored layout)")
    p_layout.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_layout.add_argument("--kdl", action="store_true", help="Print the zellij KDL layout")
    p_layout.set_defaults(func=cmd_layout)

    p_run = sub.add_parser("run", help="Launch one agent in this terminal (0 = orchestrator)")
    p_run.add_argument("agent_id", type=int, help="Agent id")
    p_run.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_run.set_defaults(func=cmd_run)

    p_monitor = sub.add_parser("monitor", help="Live status table")
    p_monitor.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_monitor.add_argument("--interval", type=float, default=5.0, help="Seconds between refreshes (default: 5)")
    p_monitor.add_argument("--once", action="store_true", help="Render one frame and exit")
    p_monitor.set_defaults(func=cmd_monitor)

    p_mcp = sub.add_parser("mcp", help="Run the coordination tool server over stdio")
    p_mcp.set_defaults(func=cmd_mcp)

    p_send = sub.add_parser("send", help="Put a message in an agent's mailbox")
    p_send.add_argument("to", help="Recipient id or name")
    p_send.add_argument("message", help="Message text")
    p_send.add_argument("--from", dest="from_id", type=int, default=0, help="Sender id (default: 0, orchestrator)")
    p_send.add_argument("--priority", choices=["low", "normal", "high"], default="normal")
    p_send.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_send.set_defaults(func=cmd_send)

    p_check = sub.add_parser("check", help="Consume the pending message of a mailbox")
    p_check.add_argument("--agent", type=int, default=0, help="Mailbox owner (default: 0, orchestrator)")
    p_check.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_check.set_defaults(func=cmd_check)

    p_status = sub.add_parser("status", help="Show every agent's state")
    p_status.add_argument("--session", default="", help="Session name (default: AGENTMUX_SESSION_DIR)")
    p_status.set_defaults(func=cmd_status)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
