"""Single-slot, last-writer-wins mailboxes.

Each recipient owns at most one pending message file. `send` overwrites it;
`check` claims it with an atomic rename, deletes the claim, and parses what
it read. Earlier unconsumed sends are lost by design of the protocol.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..contracts.v1 import PRIORITIES, Message, SessionConfig
from ..errors import InvalidArgument, RecipientNotFound
from ..util.fs import atomic_write_text, unlink_quiet
from ..util.time import utc_now_iso
from .handle import SessionHandle
from .store import read_config

logger = logging.getLogger("agentmux.mailbox")

ORCHESTRATOR_ID = 0
ORCHESTRATOR_NAME = "orchestrator"

DELIMITER = "---"
_HEADER_KEYS = ("from", "to", "timestamp", "priority")


def format_message(msg: Message) -> str:
    header = [
        DELIMITER,
        f"from: {msg.sender}",
        f"to: {msg.recipient}",
        f"timestamp: {msg.timestamp}",
        f"priority: {msg.priority}",
        DELIMITER,
    ]
    return "\n".join(header) + "\n\n" + msg.body + "\n"


def _parse_header(lines: List[str]) -> Optional[Dict[str, str]]:
    fields: Dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or key not in _HEADER_KEYS or key in fields:
            return None
        fields[key] = value.strip()
    if set(fields) != set(_HEADER_KEYS):
        return None
    return fields


def parse_message(text: str) -> Optional[Message]:
    """Parse one mailbox file. Anything not in the exact framed shape is None."""
    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != DELIMITER:
        return None
    try:
        close = lines.index(DELIMITER, 1)
    except ValueError:
        return None

    fields = _parse_header([ln.rstrip("\r") for ln in lines[1:close]])
    if fields is None:
        return None

    rest = lines[close + 1 :]
    if not rest or rest[0].strip():
        return None
    body = "\n".join(rest[1:])
    if body.endswith("\n"):
        body = body[:-1]

    if fields["priority"] not in PRIORITIES:
        return None
    try:
        recipient = int(fields["to"])
    except ValueError:
        return None
    if recipient < 0 or not fields["from"] or not fields["timestamp"]:
        return None

    return Message(
        sender=fields["from"],
        recipient=recipient,
        timestamp=fields["timestamp"],
        priority=fields["priority"],  # type: ignore[arg-type]
        body=body,
    )


def resolve_recipient(config: SessionConfig, token: Union[str, int]) -> int:
    """Map a numeric id or a case-insensitive agent name to a declared agent id."""
    t = str(token).strip()
    if t.startswith("@"):
        t = t[1:].strip()
    if not t:
        raise RecipientNotFound("missing recipient")

    ids = set(config.agent_ids())
    if t.isdigit():
        aid = int(t)
        if aid == ORCHESTRATOR_ID or aid in ids:
            return aid
        raise RecipientNotFound(f"unknown recipient: {t}", details={"recipient": t})

    key = t.casefold()
    if key == ORCHESTRATOR_NAME:
        return ORCHESTRATOR_ID
    for a in config.agents:
        if a.name.strip().casefold() == key:
            return a.id
    raise RecipientNotFound(f"unknown recipient: {t}", details={"recipient": t})


def send(
    handle: SessionHandle,
    from_id: int,
    to: Union[str, int],
    body: str,
    priority: str = "normal",
    *,
    config: Optional[SessionConfig] = None,
) -> Message:
    if priority not in PRIORITIES:
        raise InvalidArgument(f"invalid priority: {priority} (expected one of {', '.join(PRIORITIES)})")
    cfg = config if config is not None else read_config(handle)
    recipient = resolve_recipient(cfg, to)

    msg = Message(sender=str(int(from_id)), recipient=recipient, timestamp=utc_now_iso(), priority=priority, body=body)  # type: ignore[arg-type]
    path = handle.mailbox_path(recipient)
    if path.exists():
        logger.info(
            "overwriting unconsumed message",
            extra={"session": handle.name, "agent_id": from_id, "recipient": recipient, "op": "send"},
        )
    atomic_write_text(path, format_message(msg))
    logger.info("message sent", extra={"session": handle.name, "agent_id": from_id, "recipient": recipient, "op": "send"})
    return msg


def _claim(path: Path) -> Optional[Path]:
    claim = path.with_name(f".{path.name}.claim-{os.getpid()}-{uuid.uuid4().hex[:8]}")
    try:
        os.rename(path, claim)
    except FileNotFoundError:
        return None
    return claim


def check(handle: SessionHandle, agent_id: int) -> Optional[Message]:
    """Consume the pending message for `agent_id`, if any.

    The claim file is deleted whatever its content so a malformed message
    cannot block the mailbox.
    """
    claim = _claim(handle.mailbox_path(agent_id))
    if claim is None:
        return None
    try:
        text = claim.read_text(encoding="utf-8", errors="replace")
    finally:
        unlink_quiet(claim)

    msg = parse_message(text)
    if msg is None:
        logger.warning("discarded malformed message", extra={"session": handle.name, "agent_id": agent_id, "op": "check"})
    return msg


def peek(handle: SessionHandle, agent_id: int) -> Optional[Message]:
    """Read the pending message without consuming it."""
    try:
        text = handle.mailbox_path(agent_id).read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    return parse_message(text)


def render_message(msg: Message, config: Optional[SessionConfig] = None) -> str:
    who = msg.sender
    if config is not None and msg.sender.isdigit():
        sid = int(msg.sender)
        if sid == ORCHESTRATOR_ID:
            who = f"{ORCHESTRATOR_NAME} (agent 0)"
        else:
            try:
                who = f"{config.agent(sid).name} (agent {sid})"
            except KeyError:
                who = f"agent {sid}"
    return f"[{msg.priority}] from {who} at {msg.timestamp}:\n{msg.body}"
