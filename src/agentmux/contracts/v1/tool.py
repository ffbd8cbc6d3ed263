from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolError(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ToolResult(BaseModel):
    """Outcome of one coordination tool call. Tool calls never raise."""

    ok: bool
    text: str = ""
    error: Optional[ToolError] = None

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ToolResult":
        return cls(ok=False, text=f"Error ({code}): {message}", error=ToolError(code=code, message=message, details=details or {}))
