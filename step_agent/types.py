"""
Step Protocol Types.

The model answers every turn with exactly one JSON object:

    {"step": "THINK",   "content": "..."}
    {"step": "ACTION",  "tool": "getWeatherInfo", "input": "Patiala"}
    {"step": "OBSERVE", "content": "..."}      (injected by the loop)
    {"step": "OUTPUT",  "content": "..."}
"""

from __future__ import annotations
import json
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from .errors import ParseError, Cancelled


class StepKind(str, Enum):
    THINK = "THINK"
    ACTION = "ACTION"
    OBSERVE = "OBSERVE"
    OUTPUT = "OUTPUT"


class Role(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"


@dataclass(frozen=True)
class Message:
    """A single role-tagged entry of the conversation."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class Step:
    """
    One decoded model step.

    Attributes:
        kind: THINK, ACTION, OBSERVE or OUTPUT
        content: Free text for THINK / OUTPUT, tool result for OBSERVE
        tool: Tool name (ACTION only)
        input: Tool input (ACTION only)

    Example:
        step = Step.parse('{"step": "THINK", "content": "Need the weather"}')
        step.kind       # StepKind.THINK
        step.content    # "Need the weather"

        Step.observe("32 Degree celsius").to_json()
        # '{"step": "OBSERVE", "content": "32 Degree celsius"}'
    """
    kind: StepKind
    content: Optional[str] = None
    tool: Optional[str] = None
    input: Optional[str] = None

    @classmethod
    def parse(cls, text: Optional[str]) -> Step:
        """
        Strictly decode a model response into a Step.

        The whole text must be a single JSON object with a recognized
        `step` field. No markdown stripping or brace hunting is done.

        Raises:
            ParseError: with the offending text in `details["raw"]`
        """
        if text is None or not text.strip():
            raise ParseError("Empty step payload", {"raw": text})

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}", {"raw": text}) from e

        if not isinstance(data, dict):
            raise ParseError(
                f"Expected a JSON object, got {type(data).__name__}",
                {"raw": text},
            )
        return cls.from_dict(data, raw=text)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], raw: Optional[str] = None) -> Step:
        """Build a Step from an already decoded object, validating its shape."""
        details = {"raw": raw if raw is not None else data}

        if "step" not in data:
            raise ParseError("Missing 'step' field", details)
        value = data["step"]
        try:
            kind = StepKind(value)
        except ValueError:
            raise ParseError(f"Unknown step kind: {value!r}", details) from None

        if kind == StepKind.ACTION:
            tool = data.get("tool")
            tool_input = data.get("input")
            if not isinstance(tool, str) or not tool:
                raise ParseError("ACTION requires a non-empty 'tool'", details)
            if not isinstance(tool_input, str) or not tool_input:
                raise ParseError("ACTION requires a non-empty 'input'", details)
            content = data.get("content")
            return cls(
                kind=kind,
                tool=tool,
                input=tool_input,
                content=content if isinstance(content, str) else None,
            )

        content = data.get("content")
        if not isinstance(content, str):
            raise ParseError(f"{kind.value} requires a string 'content'", details)
        return cls(kind=kind, content=content)

    @classmethod
    def think(cls, content: str) -> Step:
        return cls(kind=StepKind.THINK, content=content)

    @classmethod
    def action(cls, tool: str, input: str) -> Step:
        return cls(kind=StepKind.ACTION, tool=tool, input=input)

    @classmethod
    def observe(cls, content: str) -> Step:
        return cls(kind=StepKind.OBSERVE, content=content)

    @classmethod
    def output(cls, content: str) -> Step:
        return cls(kind=StepKind.OUTPUT, content=content)

    @property
    def terminal(self) -> bool:
        """True for OUTPUT, the only step that ends a run successfully."""
        return self.kind == StepKind.OUTPUT

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {"step": self.kind.value}
        if self.tool is not None:
            d["tool"] = self.tool
        if self.input is not None:
            d["input"] = self.input
        if self.content is not None:
            d["content"] = self.content
        return d

    def to_json(self) -> str:
        """Convert to JSON string (the wire format)."""
        return json.dumps(self.to_dict())

    def describe(self) -> str:
        """One-line console rendering: 'THINK: ...', 'ACTION: tool(input)'."""
        if self.kind == StepKind.ACTION:
            return f"ACTION: {self.tool}({self.input})"
        return f"{self.kind.value}: {self.content}"


def parse_step(text: Optional[str]) -> Step:
    """Decode one model response. See `Step.parse`."""
    return Step.parse(text)


class CancellationToken:
    """
    Cooperative cancellation flag shared by the loop, the model client
    and the shell runner.

    Example:
        token = CancellationToken()
        loop = AgentLoop(llm, tools, cancel=token)
        # from another thread or a signal handler:
        token.cancel("user pressed Ctrl-C")
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(self.reason or "cancelled")
