"""
Error types for step_agent.

Every failure the agent loop can hit is an AgentError with a short
machine-readable code, a human message, and a details dict carrying the
context needed to diagnose a run (raw model text, tool name, input, ...).

Example:
    ```python
    from step_agent import AgentLoop, AgentError

    try:
        result = loop.run("What is the weather of Patiala?")
    except AgentError as e:
        print(e.to_json())
    ```
"""

from __future__ import annotations
import json
from typing import Optional, Dict, Any


class AgentError(Exception):
    """Base error with code, message and diagnostic details."""

    code = "agent_error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigError(AgentError):
    """Missing credential or invalid setting."""
    code = "config"


class ModelError(AgentError):
    """
    The model collaborator failed or returned no usable text.

    Attributes:
        transient: True when retrying the same request may succeed
            (transport errors, HTTP 429/5xx, empty responses).
    """
    code = "model"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        transient: bool = False,
    ):
        super().__init__(message, details)
        self.transient = transient


class ParseError(AgentError):
    """Model response is not a well-formed step."""
    code = "parse"


class UnknownToolError(AgentError):
    """ACTION step names a tool that is not registered."""
    code = "unknown_tool"


class ToolExecutionError(AgentError):
    """A tool could not run to completion."""
    code = "tool_execution"


class StepLimitExceeded(AgentError):
    """The run hit max_steps without an OUTPUT step."""
    code = "step_limit"


class Cancelled(AgentError):
    """The run's CancellationToken was set."""
    code = "cancelled"
