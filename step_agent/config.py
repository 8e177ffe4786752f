"""
Environment-driven settings.

    LLM_PROVIDER                  gemini | openrouter | openai   (default gemini)
    LLM_MODEL                     model id (provider default)
    LLM_API_KEY                   credential; falls back to the provider's
                                  own variable, e.g. GEMINI_API_KEY
    LLM_API_URL                   endpoint override
    LLM_TIMEOUT                   HTTP timeout in seconds (120)
    STEP_AGENT_MAX_STEPS          loop bound (50)
    STEP_AGENT_PARSE_RETRIES      retries after a malformed step (2)
    STEP_AGENT_MODEL_RETRIES      retries after a transient model error (2)
    STEP_AGENT_ALLOW_COMMANDS     1/true/yes to register executeCommand
    STEP_AGENT_COMMAND_ALLOWLIST  comma separated program names
    STEP_AGENT_COMMAND_TIMEOUT    seconds per command (60)
    STEP_AGENT_CWD                working directory for commands
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional, List, Mapping

from .agent import DEFAULT_MAX_STEPS, RetryPolicy
from .errors import ConfigError
from .llm import DEFAULT_PROVIDER, PROVIDERS, resolve_api_key
from .shell import DEFAULT_TIMEOUT


TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_key: str
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    api_url: Optional[str] = None
    llm_timeout: float = 120
    max_steps: int = DEFAULT_MAX_STEPS
    parse_retries: int = 2
    model_retries: int = 2
    allow_commands: bool = False
    command_allowlist: List[str] = field(default_factory=list)
    command_timeout: float = DEFAULT_TIMEOUT
    cwd: Optional[str] = None

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            parse_retries=self.parse_retries,
            model_retries=self.model_retries,
        )

    def with_overrides(self, **changes) -> "Settings":
        """Copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}", {name: raw}) from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}", {name: raw})
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}", {name: raw}) from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}", {name: raw})
    return value


def _list(env: Mapping[str, str], name: str) -> List[str]:
    raw = env.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings once at startup.

    Raises:
        ConfigError: unknown provider, missing credential or malformed value
    """
    env = os.environ if env is None else env

    provider = env.get("LLM_PROVIDER") or DEFAULT_PROVIDER
    api_key = resolve_api_key(provider, env)
    if not api_key:
        raise ConfigError(
            f"No API key: set LLM_API_KEY or {PROVIDERS[provider]['env_key']}",
            {"provider": provider},
        )

    return Settings(
        api_key=api_key,
        provider=provider,
        model=env.get("LLM_MODEL") or None,
        api_url=env.get("LLM_API_URL") or None,
        llm_timeout=_float(env, "LLM_TIMEOUT", 120),
        max_steps=_int(env, "STEP_AGENT_MAX_STEPS", DEFAULT_MAX_STEPS, minimum=1),
        parse_retries=_int(env, "STEP_AGENT_PARSE_RETRIES", 2),
        model_retries=_int(env, "STEP_AGENT_MODEL_RETRIES", 2),
        allow_commands=env.get("STEP_AGENT_ALLOW_COMMANDS", "").strip().lower() in TRUTHY,
        command_allowlist=_list(env, "STEP_AGENT_COMMAND_ALLOWLIST"),
        command_timeout=_float(env, "STEP_AGENT_COMMAND_TIMEOUT", DEFAULT_TIMEOUT),
        cwd=env.get("STEP_AGENT_CWD") or None,
    )
