"""
Command-line runner.

    step-agent "What is the weather of Patiala?"
    step-agent --allow-commands --allow mkdir --allow ls "create a folder notes"

THINK / ACTION / OUTPUT lines go to stdout; diagnostics go to stderr.

Example:
    ```python
    from step_agent.runner import run

    result = run("What is the weather of Patiala?")
    print(result.output)
    ```
"""

import argparse
import os
import signal
import sys
from typing import Optional, List, Callable

from .agent import AgentLoop, AgentResult
from .config import Settings, load_settings
from .errors import Cancelled, ConfigError
from .llm import LLM, PROVIDERS, set_llm_logging
from .log import log, log_error, log_step, set_logging
from .prompts import DEMO_QUERY
from .tools import default_registry
from .types import CancellationToken, Step, StepKind


__all__ = [
    "build_agent",
    "run",
    "main",
    "print_step",
    "print_output_only",
    "log",
    "log_error",
    "log_step",
    "set_logging",
]


def print_step(step: Step) -> None:
    """Show progress the way the console prints it: 'THINK: ...'."""
    if step.kind == StepKind.OBSERVE:
        log(step.describe()[:500])
        return
    print(step.describe(), flush=True)


def print_output_only(step: Step) -> None:
    if step.terminal:
        print(step.content, flush=True)


def build_agent(
    settings: Settings,
    cancel: Optional[CancellationToken] = None,
    on_step: Optional[Callable[[Step], None]] = None,
    llm: Optional[LLM] = None,
) -> AgentLoop:
    """Wire settings into an LLM client, a tool registry and a loop."""
    if llm is None:
        llm = LLM(
            provider=settings.provider,
            default_model=settings.model,
            api_key=settings.api_key,
            api_url=settings.api_url,
            timeout=settings.llm_timeout,
        )
    tools = default_registry(
        allow_commands=settings.allow_commands,
        command_timeout=settings.command_timeout,
        cwd=settings.cwd,
        allowlist=settings.command_allowlist,
    )
    return AgentLoop(
        llm,
        tools,
        max_steps=settings.max_steps,
        retry=settings.retry_policy(),
        on_step=on_step,
        cancel=cancel,
    )


def run(
    query: str,
    settings: Optional[Settings] = None,
    cancel: Optional[CancellationToken] = None,
    on_step: Optional[Callable[[Step], None]] = None,
) -> AgentResult:
    """
    Run one query to completion.

    Raises:
        ConfigError: if settings are not given and the environment is incomplete
    """
    settings = settings or load_settings()
    agent = build_agent(settings, cancel=cancel, on_step=on_step)
    log(f"Provider: {settings.provider}, model: {agent.llm.default_model}")
    log(f"Tools: {', '.join(agent.tools.names())}")
    try:
        return agent.run(query)
    finally:
        stats = agent.llm.get_stats()
        log(f"Requests: {stats['request_count']}, tokens: {stats['total_tokens']}, cost: ${stats['total_cost']:.4f}")
        agent.llm.close()


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="step-agent",
        description="Answer a query with a THINK / ACTION / OBSERVE / OUTPUT model loop.",
    )
    parser.add_argument("query", nargs="?", default=None, help="User query (default: demo todo-app task)")
    parser.add_argument("--provider", choices=sorted(PROVIDERS), help="Model provider")
    parser.add_argument("--model", help="Model id")
    parser.add_argument("--max-steps", type=int, help="Maximum model steps")
    parser.add_argument("--allow-commands", action="store_true", default=None,
                        help="Register the executeCommand tool (runs shell commands)")
    parser.add_argument("--allow", action="append", metavar="PROGRAM",
                        help="Allow-list a program for executeCommand (repeatable)")
    parser.add_argument("--command-timeout", type=float, help="Seconds per command")
    parser.add_argument("--cwd", help="Working directory for commands")
    parser.add_argument("--quiet", action="store_true", help="Only print errors and the final output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)

    if args.quiet:
        set_logging(False)
        set_llm_logging(False)

    env = dict(os.environ)
    if args.provider:
        env["LLM_PROVIDER"] = args.provider
    try:
        settings = load_settings(env)
    except ConfigError as e:
        log_error(e.message)
        return 2

    if args.max_steps is not None and args.max_steps < 1:
        log_error("--max-steps must be >= 1")
        return 2
    if args.cwd and not os.path.isdir(args.cwd):
        log_error(f"--cwd is not a directory: {args.cwd}")
        return 2

    settings = settings.with_overrides(
        model=args.model,
        max_steps=args.max_steps,
        allow_commands=args.allow_commands or (True if args.allow else None),
        command_allowlist=args.allow,
        command_timeout=args.command_timeout,
        cwd=args.cwd,
    )

    cancel = CancellationToken()

    def shutdown_handler(signum: int, frame) -> None:
        if cancel.cancelled:
            raise KeyboardInterrupt()
        log("Interrupted, stopping after the current call (Ctrl-C again to abort)")
        cancel.cancel("interrupted")

    previous = signal.signal(signal.SIGINT, shutdown_handler)
    query = args.query or DEMO_QUERY
    on_step = print_output_only if args.quiet else print_step

    try:
        result = run(query, settings, cancel=cancel, on_step=on_step)
    except KeyboardInterrupt:
        log_error("Aborted")
        return 130
    except ConfigError as e:
        log_error(e.message)
        return 2
    finally:
        signal.signal(signal.SIGINT, previous)

    if isinstance(result.error, Cancelled):
        log_error("Cancelled")
        return 130
    if result.error is not None:
        log_error(str(result.error))
        if result.error.details:
            log_error(f"Details: {result.error.to_json()}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
