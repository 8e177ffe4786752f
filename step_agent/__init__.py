"""
step_agent - a THINK / ACTION / OBSERVE / OUTPUT agent loop.

The model answers each turn with exactly one JSON step. THINK steps are
reasoning, ACTION steps call a registered tool, the tool's result is fed
back as an OBSERVE step, and an OUTPUT step ends the run.

Quick Start:
    ```python
    from step_agent import AgentLoop, LLM, default_registry

    loop = AgentLoop(LLM(provider="gemini"), default_registry())
    result = loop.run("What is the weather of Patiala?")
    print(result.output)
    ```

Custom tools:
    ```python
    from step_agent import AgentLoop, LLM, ToolRegistry

    tools = ToolRegistry()
    tools.register_function(
        "lookupOrder",
        lambda order_id: f"Order {order_id} shipped",
        description="Shipping status of an order",
        signature="lookupOrder(orderId: string): string",
    )
    tools.freeze()

    result = AgentLoop(LLM(), tools).run("Where is order 42?")
    ```

Shell commands (explicit opt-in, time-bounded, optionally allow-listed):
    ```python
    from step_agent import default_registry

    tools = default_registry(allow_commands=True, allowlist=["ls", "mkdir"])
    ```
"""

__version__ = "1.0.0"

from .types import Step, StepKind, Message, Role, CancellationToken, parse_step
from .errors import (
    AgentError,
    ConfigError,
    ModelError,
    ParseError,
    UnknownToolError,
    ToolExecutionError,
    StepLimitExceeded,
    Cancelled,
)
from .conversation import ConversationLog
from .tools import Tool, ToolRegistry, default_registry, get_weather_info, make_execute_command
from .shell import ShellResult, run_command
from .prompts import build_system_prompt
from .llm import LLM, LLMResponse
from .agent import AgentLoop, AgentSession, AgentResult, LoopState, RetryPolicy
from .config import Settings, load_settings
from .log import log, log_error, log_step, set_logging

__all__ = [
    # Protocol
    "Step",
    "StepKind",
    "Message",
    "Role",
    "parse_step",
    "CancellationToken",
    # Errors
    "AgentError",
    "ConfigError",
    "ModelError",
    "ParseError",
    "UnknownToolError",
    "ToolExecutionError",
    "StepLimitExceeded",
    "Cancelled",
    # Loop
    "AgentLoop",
    "AgentSession",
    "AgentResult",
    "LoopState",
    "RetryPolicy",
    "ConversationLog",
    "build_system_prompt",
    # Tools
    "Tool",
    "ToolRegistry",
    "default_registry",
    "get_weather_info",
    "make_execute_command",
    "ShellResult",
    "run_command",
    # LLM
    "LLM",
    "LLMResponse",
    # Config
    "Settings",
    "load_settings",
    # Logging
    "log",
    "log_error",
    "log_step",
    "set_logging",
]
