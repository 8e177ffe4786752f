"""
Bounded host command execution.

Every command runs with a timeout and observes a CancellationToken, so a
hanging process can never stall the agent indefinitely.

Example:
    ```python
    from step_agent.shell import run_command

    result = run_command("ls -la", timeout=10)
    if result.ok:
        print(result.stdout)
    ```
"""

from dataclasses import dataclass
from typing import IO, List, Optional, Sequence
import codecs
import os
import shlex
import signal
import subprocess
import threading
import time

from .errors import Cancelled, ToolExecutionError
from .types import CancellationToken


DEFAULT_TIMEOUT = 60
MAX_OUTPUT_CHARS = 20_000

# How often a running command checks for cancellation
POLL_INTERVAL = 0.1

# Pipe read size, and how long to wait for readers once the shell has exited
READ_CHUNK = 8192
READER_GRACE = 2.0

# Characters that chain or substitute commands; rejected when an allow-list is active
SHELL_META = (";", "&", "|", "`", "$(", ">", "<", "\n")


@dataclass
class ShellResult:
    """Result of a shell command execution."""
    command: str
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_observation(self) -> str:
        """Render as OBSERVE content: 'stdout:...\\nstderr:...\\nexit_code:N'."""
        return f"stdout:{self.stdout}\nstderr:{self.stderr}\nexit_code:{self.exit_code}"


class OutputBuffer:
    """
    Keeps the first `limit` characters of a stream and counts the rest.

    Bytes are decoded incrementally as UTF-8; invalid sequences become
    U+FFFD instead of failing the command.
    """

    def __init__(self, limit: int = MAX_OUTPUT_CHARS):
        self.limit = limit
        self.dropped = 0
        self._parts: List[str] = []
        self._size = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes, final: bool = False) -> None:
        text = self._decoder.decode(data, final)
        room = self.limit - self._size
        kept = text[:room] if room > 0 else ""
        if kept:
            self._parts.append(kept)
            self._size += len(kept)
        self.dropped += len(text) - len(kept)

    def getvalue(self) -> str:
        """Captured text, with a marker telling how much was dropped."""
        text = "".join(self._parts)
        if self.dropped:
            text += f"\n... [{self.dropped} chars truncated]"
        return text


def _drain(stream: IO[bytes], buffer: OutputBuffer) -> None:
    """Read a pipe until EOF so the child never blocks on a full pipe."""
    try:
        for chunk in iter(lambda: stream.read1(READ_CHUNK), b""):
            buffer.feed(chunk)
        buffer.feed(b"", final=True)
    finally:
        stream.close()


def check_allowed(command: str, allowlist: Optional[Sequence[str]]) -> None:
    """
    Reject a command whose program is not in the allow-list.

    An empty or None allow-list permits everything. With an allow-list,
    chaining and substitution characters are rejected too, otherwise
    `ls; rm -rf ~` would pass as `ls`.

    Raises:
        ToolExecutionError: if the command is not allowed
    """
    if not allowlist:
        return

    details = {"command": command, "allowlist": list(allowlist)}
    for meta in SHELL_META:
        if meta in command:
            raise ToolExecutionError(
                f"Command contains disallowed shell syntax {meta!r}", details
            )
    try:
        words = shlex.split(command)
    except ValueError as e:
        raise ToolExecutionError(f"Cannot parse command: {e}", details) from e
    if not words:
        raise ToolExecutionError("Empty command", details)

    program = os.path.basename(words[0])
    if program not in allowlist:
        raise ToolExecutionError(f"Command '{program}' is not allowed", details)


def _join(readers: List[threading.Thread]) -> None:
    # a background child that inherited the pipe can keep it open after the shell exits
    for reader in readers:
        reader.join(READER_GRACE)


def _kill(proc: subprocess.Popen) -> None:
    """Kill the shell and everything it spawned."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return
    proc.kill()


def run_command(
    cmd: str,
    timeout: float = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    cancel: Optional[CancellationToken] = None,
    max_output: int = MAX_OUTPUT_CHARS,
) -> ShellResult:
    """
    Execute a command in the host shell and wait for it.

    Args:
        cmd: Command to execute
        timeout: Timeout in seconds; the process is killed when exceeded
        cwd: Working directory (default: current directory)
        cancel: Token checked while the command runs
        max_output: Cap for each of stdout / stderr

    Returns:
        ShellResult with stdout, stderr, exit_code, timed_out

    Raises:
        ToolExecutionError: if the process cannot be launched
        Cancelled: if the token is cancelled before or during the run
    """
    if cancel is not None:
        cancel.raise_if_cancelled()

    start = time.time()
    try:
        proc = subprocess.Popen(
            cmd,
            shell=True,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        raise ToolExecutionError(
            f"Failed to launch command: {e}",
            {"command": cmd, "cwd": cwd},
        ) from e

    stdout = OutputBuffer(max_output)
    stderr = OutputBuffer(max_output)
    readers = [
        threading.Thread(target=_drain, args=(proc.stdout, stdout), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, stderr), daemon=True),
    ]
    for reader in readers:
        reader.start()

    timed_out = False
    deadline = start + timeout
    while True:
        try:
            proc.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                _kill(proc)
                proc.wait()
                _join(readers)
                raise Cancelled(
                    cancel.reason or "cancelled",
                    {"command": cmd},
                )
            if time.time() >= deadline:
                _kill(proc)
                proc.wait()
                timed_out = True
                break

    _join(readers)
    duration_ms = int((time.time() - start) * 1000)
    err = stderr.getvalue()
    if timed_out:
        err += f"\nCommand timed out after {timeout}s"

    return ShellResult(
        command=cmd,
        stdout=stdout.getvalue(),
        stderr=err,
        exit_code=-1 if timed_out else proc.returncode,
        timed_out=timed_out,
        duration_ms=duration_ms,
    )
