"""
agentmux MCP Server: main entry

Runs over stdio for the agent runtime. Session and agent come from the
launch environment (AGENTMUX_SESSION_DIR, AGENTMUX_AGENT_ID).

Usage:
    python -m agentmux.ports.mcp.main

or via the CLI:
    agentmux mcp
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from ... import __version__
from ...kernel.handle import SessionHandle
from ...paths import agent_id_from_env, session_dir_from_env
from ...util.obslog import setup_file_json_logging
from .server import MCP_TOOLS, ToolServer, handle_tool_call

logger = logging.getLogger("agentmux.mcp")

PROTOCOL_VERSION = "2024-11-05"


def _read_message(stream: TextIO) -> Optional[Dict[str, Any]]:
    """Read one JSON-RPC message; returns None at EOF, {} for an unparsable line."""
    line = stream.readline()
    if not line:
        return None
    try:
        obj = json.loads(line.strip())
    except json.JSONDecodeError:
        return {}
    return obj if isinstance(obj, dict) else {}


def _write_message(stream: TextIO, msg: Dict[str, Any]) -> None:
    stream.write(json.dumps(msg, ensure_ascii=False) + "\n")
    stream.flush()


def _make_response(id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": id, "result": result}


def _make_error(id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def handle_request(server: ToolServer, req: Dict[str, Any]) -> Dict[str, Any]:
    """Handle one MCP JSON-RPC request. Returns {} for notifications."""
    if not req:
        return _make_error(None, -32700, "Parse error")

    req_id = req.get("id")
    method = str(req.get("method") or "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        params = {}

    if method == "initialize":
        return _make_response(req_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
            "serverInfo": {"name": "agentmux", "version": __version__},
        })

    if method.startswith("notifications/"):
        return {}

    if method == "tools/list":
        return _make_response(req_id, {"tools": MCP_TOOLS})

    # Some clients request these even if unused.
    if method == "resources/list":
        return _make_response(req_id, {"resources": []})

    if method == "prompts/list":
        return _make_response(req_id, {"prompts": []})

    if method in ("ping", "logging/setLevel"):
        return _make_response(req_id, {})

    if method == "tools/call":
        tool_name = str(params.get("name") or "")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            arguments = {}
        result = handle_tool_call(server, tool_name, arguments)
        payload: Dict[str, Any] = {"content": [{"type": "text", "text": result.text}]}
        if not result.ok:
            payload["isError"] = True
            payload["structuredContent"] = {"error": result.error.model_dump() if result.error else {}}
        return _make_response(req_id, payload)

    return _make_error(req_id, -32601, f"Method not found: {method}")


def serve(server: ToolServer, *, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> int:
    while True:
        msg = _read_message(stdin)
        if msg is None:
            break
        resp = handle_request(server, msg)
        if resp:
            _write_message(stdout, resp)
    return 0


def main() -> int:
    session_dir = session_dir_from_env()
    agent_id = agent_id_from_env()
    if session_dir is None or agent_id is None:
        print("agentmux mcp: AGENTMUX_SESSION_DIR and AGENTMUX_AGENT_ID must be set", file=sys.stderr)
        return 2
    handle = SessionHandle.from_dir(session_dir)
    setup_file_json_logging(component="mcp", path=handle.logs_dir / f"mcp-agent-{agent_id}.jsonl")
    logger.info("mcp server started", extra={"session": handle.name, "agent_id": agent_id})
    return serve(ToolServer(handle, agent_id))


if __name__ == "__main__":
    raise SystemExit(main())
