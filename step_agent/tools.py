"""
Tool registry and the built-in tools.

Example:
    ```python
    from step_agent import ToolRegistry

    tools = ToolRegistry()
    tools.register_function(
        "getWeatherInfo",
        lambda city: f"The weather of {city} is 32 Degree celsius.",
        description="Current weather for a city",
        signature="getWeatherInfo(city: string): string",
    )
    tools.freeze()

    tool = tools.lookup("getWeatherInfo")
    if tool is not None:
        print(tool.invoke("Patiala"))
    ```
"""

from dataclasses import dataclass
from typing import Optional, List, Dict, Callable, Sequence

from .errors import AgentError, ToolExecutionError
from .shell import DEFAULT_TIMEOUT, MAX_OUTPUT_CHARS, check_allowed, run_command
from .types import CancellationToken


@dataclass(frozen=True)
class Tool:
    """
    A named capability the model may call with one string input.

    Attributes:
        name: Unique name used in ACTION steps
        func: Callable taking the input string (and `cancel=` if cancellable)
        description: Shown to the model in the system prompt
        signature: Call signature shown to the model
        cancellable: Pass the loop's CancellationToken as `cancel=`
    """
    name: str
    func: Callable[..., str]
    description: str = ""
    signature: Optional[str] = None
    cancellable: bool = False

    def invoke(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        """
        Call the tool.

        Raises:
            ToolExecutionError: wrapping any failure that is not already an AgentError
        """
        try:
            if self.cancellable:
                result = self.func(input, cancel=cancel)
            else:
                result = self.func(input)
        except AgentError:
            raise
        except Exception as e:
            raise ToolExecutionError(
                f"Tool '{self.name}' failed: {e}",
                {"tool": self.name, "input": input},
            ) from e
        return result if isinstance(result, str) else str(result)

    def describe(self) -> str:
        line = f"- {self.signature or self.name + '(input: string): string'}"
        if self.description:
            line += f"  {self.description}"
        return line


class ToolRegistry:
    """Maps tool names to tools. Immutable once frozen."""

    def __init__(self, tools: Optional[Sequence[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        self._frozen = False
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool by its name."""
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def register_function(
        self,
        name: str,
        handler: Callable[..., str],
        description: str = "",
        signature: Optional[str] = None,
        cancellable: bool = False,
    ) -> Tool:
        tool = Tool(
            name=name,
            func=handler,
            description=description,
            signature=signature,
            cancellable=cancellable,
        )
        self.register(tool)
        return tool

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: Optional[str]) -> Optional[Tool]:
        """Return the tool, or None if no tool has that name."""
        if not name:
            return None
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def describe(self) -> str:
        """The 'Available Tools' block for the system prompt."""
        return "\n".join(t.describe() for t in self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools.values())


# =============================================================================
# Built-in tools
# =============================================================================

def get_weather_info(city: str) -> str:
    """Deterministic weather stub."""
    return f"The weather of {city} is 32 Degree celsius."


WEATHER_TOOL = Tool(
    name="getWeatherInfo",
    func=get_weather_info,
    signature="getWeatherInfo(city: string): string",
)


def make_execute_command(
    timeout: float = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    allowlist: Optional[Sequence[str]] = None,
    max_output: int = MAX_OUTPUT_CHARS,
) -> Tool:
    """
    Build the executeCommand tool.

    The command runs in the host shell, bounded by `timeout`. With an
    allow-list, only the listed programs may run.

    Raises (from invoke):
        ToolExecutionError: rejected command, launch failure or timeout
        Cancelled: the loop was cancelled while the command ran
    """
    allowed = list(allowlist or [])

    def execute_command(command: str, cancel: Optional[CancellationToken] = None) -> str:
        check_allowed(command, allowed)
        result = run_command(
            command,
            timeout=timeout,
            cwd=cwd,
            cancel=cancel,
            max_output=max_output,
        )
        if result.timed_out:
            raise ToolExecutionError(
                f"Command timed out after {timeout}s",
                {
                    "tool": "executeCommand",
                    "input": command,
                    "stdout": result.stdout,
                    "stderr": result.stderr,
                },
            )
        return result.to_observation()

    description = "Executes a given shell command on the user's device and returns the stdout and stderr."
    if allowed:
        description += f" Allowed programs: {', '.join(allowed)}."

    return Tool(
        name="executeCommand",
        func=execute_command,
        description=description,
        signature="executeCommand(command: string): string",
        cancellable=True,
    )


def default_registry(
    allow_commands: bool = False,
    command_timeout: float = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    allowlist: Optional[Sequence[str]] = None,
) -> ToolRegistry:
    """getWeatherInfo, plus executeCommand when explicitly allowed. Frozen."""
    registry = ToolRegistry([WEATHER_TOOL])
    if allow_commands:
        registry.register(make_execute_command(
            timeout=command_timeout,
            cwd=cwd,
            allowlist=allowlist,
        ))
    return registry.freeze()
