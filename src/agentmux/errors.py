from __future__ import annotations

from typing import Any, Dict, Optional


class AgentmuxError(RuntimeError):
    """Base error carrying a stable machine-readable code."""

    code = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class AlreadyExists(AgentmuxError):
    code = "already_exists"


class NotFound(AgentmuxError):
    code = "not_found"


class ConfigNotFound(AgentmuxError):
    code = "config_not_found"


class ConfigError(AgentmuxError):
    code = "config_invalid"


class RecipientNotFound(AgentmuxError):
    code = "recipient_not_found"


class InvalidArgument(AgentmuxError):
    code = "invalid_argument"


class InvalidTransition(AgentmuxError):
    code = "invalid_transition"


class ShimError(AgentmuxError):
    """A launch precondition failed; nothing was started."""

    code = "precondition_failed"
