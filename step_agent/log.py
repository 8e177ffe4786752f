"""
Logging helpers. Everything goes to stderr; stdout is reserved for the
user-visible THINK / ACTION / OUTPUT lines.
"""

import sys
import time


_log_enabled = True


def set_logging(enabled: bool) -> None:
    """Enable or disable agent logging (errors are always printed)."""
    global _log_enabled
    _log_enabled = enabled


def log(msg: str) -> None:
    """Log a message to stderr with timestamp."""
    if _log_enabled:
        timestamp = time.strftime("%H:%M:%S")
        print(f"[{timestamp}] [agent] {msg}", file=sys.stderr, flush=True)


def log_error(msg: str) -> None:
    """Log an error message to stderr with timestamp."""
    timestamp = time.strftime("%H:%M:%S")
    print(f"[{timestamp}] [agent] ERROR: {msg}", file=sys.stderr, flush=True)


def log_step(step: int, msg: str) -> None:
    """Log a step-related message."""
    if _log_enabled:
        timestamp = time.strftime("%H:%M:%S")
        print(f"[{timestamp}] [step {step}] {msg}", file=sys.stderr, flush=True)
