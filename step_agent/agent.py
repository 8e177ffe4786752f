"""
The agent loop.

Each turn sends the whole conversation to the model, decodes exactly one
step from the reply and acts on it:

    WAIT_MODEL -> PARSE -> THINK   -> WAIT_MODEL
                        -> ACTION  -> (tool) -> OBSERVE appended -> WAIT_MODEL
                        -> OUTPUT  (done)
                        -> ERROR

Example:
    ```python
    from step_agent import AgentLoop, LLM, default_registry

    loop = AgentLoop(LLM(), default_registry())
    result = loop.run("What is the weather of Patiala?")
    if result.ok:
        print(result.output)
    ```

State for a run lives in an AgentSession, never on the loop itself, so one
AgentLoop can drive several independent sessions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Callable, Any
import time

from .conversation import ConversationLog
from .errors import (
    AgentError,
    ModelError,
    ParseError,
    StepLimitExceeded,
    ToolExecutionError,
    UnknownToolError,
)
from .log import log, log_step
from .prompts import build_system_prompt
from .tools import ToolRegistry
from .types import CancellationToken, Step, StepKind


DEFAULT_MAX_STEPS = 50


class LoopState(str, Enum):
    WAIT_MODEL = "WAIT_MODEL"
    PARSE = "PARSE"
    THINK = "THINK"
    ACTION = "ACTION"
    OUTPUT = "OUTPUT"
    ERROR = "ERROR"


@dataclass
class RetryPolicy:
    """
    How many times a failed turn is retried before the run fails.

    Attributes:
        parse_retries: Extra model requests after a malformed step
        model_retries: Extra attempts after a transient ModelError
        backoff_base: First delay in seconds, doubled on every attempt
        backoff_max: Upper bound for a single delay

    RetryPolicy.none() fails on the first malformed or missing response.
    """
    parse_retries: int = 2
    model_retries: int = 2
    backoff_base: float = 1.0
    backoff_max: float = 30.0

    @classmethod
    def none(cls) -> "RetryPolicy":
        return cls(parse_retries=0, model_retries=0, backoff_base=0.0)

    def delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        if self.backoff_base <= 0:
            return 0.0
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)


@dataclass
class AgentSession:
    """Everything one run owns: its conversation, emitted steps and state."""
    log: ConversationLog
    steps: List[Step] = field(default_factory=list)
    state: LoopState = LoopState.WAIT_MODEL
    turns: int = 0
    output: Optional[str] = None
    error: Optional[AgentError] = None

    @property
    def finished(self) -> bool:
        return self.state in (LoopState.OUTPUT, LoopState.ERROR)


@dataclass
class AgentResult:
    """
    Outcome of AgentLoop.run().

    Attributes:
        output: Content of the OUTPUT step (None on failure)
        steps: Every step seen, including injected OBSERVE steps
        error: The terminal error, if any
        turns: Number of model requests that produced a step
        log: The session's conversation
    """
    output: Optional[str]
    steps: List[Step]
    error: Optional[AgentError]
    turns: int
    log: ConversationLog

    @property
    def ok(self) -> bool:
        return self.error is None and self.output is not None

    def raise_for_error(self) -> "AgentResult":
        if self.error is not None:
            raise self.error
        return self


class AgentLoop:
    """
    Drives the THINK / ACTION / OBSERVE / OUTPUT protocol.

    Args:
        llm: Model collaborator; anything with
            `chat(messages, cancel=...) -> object with .text`
        tools: Registered tools
        system_prompt: Defaults to the protocol prompt rendered for `tools`
        max_steps: Upper bound on model steps per run
        retry: RetryPolicy for malformed steps and transient model errors
        recover_tool_errors: Inject tool failures as OBSERVE content instead
            of ending the run
        on_step: Called with every step as it happens
        cancel: Shared CancellationToken
    """

    def __init__(
        self,
        llm: Any,
        tools: ToolRegistry,
        system_prompt: Optional[str] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        retry: Optional[RetryPolicy] = None,
        recover_tool_errors: bool = True,
        on_step: Optional[Callable[[Step], None]] = None,
        cancel: Optional[CancellationToken] = None,
    ):
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt or build_system_prompt(tools)
        self.max_steps = max_steps
        self.retry = retry or RetryPolicy()
        self.recover_tool_errors = recover_tool_errors
        self.on_step = on_step
        self.cancel = cancel or CancellationToken()

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def new_session(
        self,
        query: Optional[str] = None,
        log: Optional[ConversationLog] = None,
    ) -> AgentSession:
        """
        Start a session, optionally continuing from an existing log.

        A given log is forked, never mutated, so the same prefix can be
        replayed into several sessions.
        """
        conversation = log.fork() if log is not None else ConversationLog(self.system_prompt)
        if query is not None:
            conversation.add_user(query)
        return AgentSession(log=conversation)

    def run(
        self,
        query: Optional[str] = None,
        log: Optional[ConversationLog] = None,
    ) -> AgentResult:
        """
        Run until an OUTPUT step or a terminal error.

        Errors are returned in the result, not raised; use
        `result.raise_for_error()` to propagate them.
        """
        session = self.new_session(query, log)
        while not session.finished:
            try:
                self.step(session)
            except AgentError:
                break

        return AgentResult(
            output=session.output,
            steps=list(session.steps),
            error=session.error,
            turns=session.turns,
            log=session.log,
        )

    # -------------------------------------------------------------------------
    # One iteration
    # -------------------------------------------------------------------------

    def step(self, session: AgentSession) -> Step:
        """
        Perform one WAIT_MODEL -> PARSE -> dispatch cycle.

        Returns:
            The step decoded from the model

        Raises:
            AgentError: on any terminal failure; session.state is ERROR
        """
        if session.finished:
            raise RuntimeError(f"Session already finished ({session.state.value})")

        try:
            self.cancel.raise_if_cancelled()
            if session.turns >= self.max_steps:
                raise StepLimitExceeded(
                    f"Max steps ({self.max_steps}) exceeded",
                    {"max_steps": self.max_steps},
                )

            raw, step = self._next_step(session)
            session.turns += 1
            session.log.add_assistant(raw)
            self._emit(session, step)
            self._dispatch(session, step)
        except AgentError as e:
            session.state = LoopState.ERROR
            session.error = e
            raise
        return step

    def _next_step(self, session: AgentSession):
        """Request and decode a step, retrying malformed responses."""
        attempt = 0
        while True:
            session.state = LoopState.WAIT_MODEL
            raw = self._request(session)

            session.state = LoopState.PARSE
            try:
                return raw, Step.parse(raw)
            except ParseError as e:
                attempt += 1
                if attempt > self.retry.parse_retries:
                    raise
                log(f"Malformed step ({e.message}), retrying {attempt}/{self.retry.parse_retries}")

    def _request(self, session: AgentSession) -> str:
        """Ask the model for the next step, retrying transient failures."""
        attempt = 0
        while True:
            self.cancel.raise_if_cancelled()
            try:
                response = self.llm.chat(session.log.to_list(), cancel=self.cancel)
                text = getattr(response, "text", None)
                if not text or not text.strip():
                    raise ModelError(
                        "No response text received from model",
                        {"turn": session.turns + 1},
                        transient=True,
                    )
                return text
            except ModelError as e:
                attempt += 1
                if not e.transient or attempt > self.retry.model_retries:
                    raise
                delay = self.retry.delay(attempt)
                log(f"Model error ({e.message}), retry {attempt}/{self.retry.model_retries} in {delay:.1f}s")
                if delay and self.cancel.wait(delay):
                    self.cancel.raise_if_cancelled()

    def _dispatch(self, session: AgentSession, step: Step) -> None:
        if step.kind == StepKind.OUTPUT:
            session.output = step.content
            session.state = LoopState.OUTPUT
            return

        if step.kind == StepKind.ACTION:
            session.state = LoopState.ACTION
            observation = self._invoke(step)
            observe = Step.observe(observation)
            session.log.add_step(observe)
            self._emit(session, observe)
            return

        # THINK, or an OBSERVE the model wrote itself: nothing to execute
        session.state = LoopState.THINK

    def _invoke(self, step: Step) -> str:
        tool = self.tools.lookup(step.tool)
        if tool is None:
            raise UnknownToolError(
                f"Unknown tool: {step.tool}",
                {"tool": step.tool, "input": step.input, "available": self.tools.names()},
            )

        started = time.time()
        try:
            result = tool.invoke(step.input, cancel=self.cancel)
        except ToolExecutionError as e:
            if not self.recover_tool_errors:
                raise
            log(f"Tool {tool.name} failed, reporting to model: {e.message}")
            return f"ERROR: {e.message}"

        log(f"Tool {tool.name} finished in {int((time.time() - started) * 1000)}ms")
        return result

    def _emit(self, session: AgentSession, step: Step) -> None:
        session.steps.append(step)
        log_step(len(session.steps), step.describe()[:200])
        if self.on_step is not None:
            self.on_step(step)
