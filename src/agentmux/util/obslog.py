from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO


_CONFIGURED: Dict[str, bool] = {}

# Correlation keys copied from `extra={...}` into the JSON payload when present.
_CORRELATION_KEYS = ("op", "session", "agent_id", "recipient", "config", "status", "path")


def _utc_ts_iso(ts: float) -> str:
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")
    except Exception:
        return ""


class JsonlFormatter(logging.Formatter):
    """Minimal JSONL formatter for local-first debugging.

    Keep fields stable and small; extra fields can be added via `logger.*(..., extra={...})`.
    """

    def __init__(self, *, component: str):
        super().__init__()
        self._component = str(component or "").strip() or "agentmux"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utc_ts_iso(getattr(record, "created", 0.0) or 0.0),
            "level": str(getattr(record, "levelname", "") or ""),
            "logger": str(getattr(record, "name", "") or ""),
            "component": self._component,
            "msg": record.getMessage(),
        }

        for k in _CORRELATION_KEYS:
            v = getattr(record, k, None)
            if v is None:
                continue
            sv = str(v).strip()
            if sv:
                payload[k] = sv

        if record.exc_info:
            try:
                payload["exc"] = self.formatException(record.exc_info)
            except Exception:
                payload["exc"] = "exception"

        try:
            return json.dumps(payload, ensure_ascii=False)
        except Exception:
            # Last resort: never crash logging.
            return '{"component":"%s","level":"%s","msg":"(log serialization failed)"}' % (
                self._component,
                payload.get("level", "INFO"),
            )


def _parse_level(level: str, default: int = logging.INFO) -> int:
    s = str(level or "").strip().upper()
    if not s:
        return default
    value = getattr(logging, s, default)
    return value if isinstance(value, int) else default


def default_level() -> str:
    return os.environ.get("AGENTMUX_LOG_LEVEL", "").strip() or "INFO"


def _install(handler: logging.Handler, *, component: str, level: str) -> None:
    root = logging.getLogger()
    root.setLevel(_parse_level(level))
    handler.setLevel(_parse_level(level))
    handler.setFormatter(JsonlFormatter(component=component))
    root.addHandler(handler)


def setup_root_json_logging(
    *,
    component: str,
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """Configure root logging once per process.

    - Uses a single StreamHandler with JSONL formatter.
    - `force=True` clears existing handlers.
    """
    key = f"root:{component}"
    if _CONFIGURED.get(key) and not force:
        return
    _CONFIGURED[key] = True

    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)

    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler) and isinstance(getattr(h, "formatter", None), JsonlFormatter):
            h.setLevel(_parse_level(level or default_level()))
            root.setLevel(_parse_level(level or default_level()))
            return

    _install(logging.StreamHandler(stream or sys.stderr), component=component, level=level or default_level())


def setup_file_json_logging(*, component: str, path: Path, level: Optional[str] = None) -> None:
    """Send JSONL logs to a file instead of stderr.

    Used by processes whose stdout/stderr belong to someone else (an agent's
    terminal pane, a JSON-RPC stream).
    """
    key = f"file:{component}:{path}"
    if _CONFIGURED.get(key):
        return
    _CONFIGURED[key] = True

    path.parent.mkdir(parents=True, exist_ok=True)
    _install(logging.FileHandler(path, encoding="utf-8"), component=component, level=level or default_level())
