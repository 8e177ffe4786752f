"""
LLM client for the step loop.

Talks to OpenAI-compatible chat-completions endpoints (Gemini, OpenRouter,
OpenAI) and asks for a JSON object response.

Example:
    ```python
    from step_agent import LLM

    llm = LLM(provider="gemini")   # reads GEMINI_API_KEY or LLM_API_KEY

    result = llm.chat([
        {"role": "assistant", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "What is the weather of Patiala?"},
    ])
    print(result.text)   # '{"step": "THINK", "content": "..."}'
    ```
"""

import os
import sys
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Mapping
import httpx

from .errors import ConfigError, ModelError
from .types import CancellationToken


@dataclass
class LLMResponse:
    """Response from LLM."""
    text: str
    model: str
    tokens: int = 0
    cost: float = 0.0
    latency_ms: int = 0
    raw: Optional[Dict[str, Any]] = None


_log_enabled = True


def set_llm_logging(enabled: bool) -> None:
    global _log_enabled
    _log_enabled = enabled


def _log(msg: str):
    if _log_enabled:
        print(f"[llm] {msg}", file=sys.stderr)


# Provider configurations
PROVIDERS = {
    "gemini": {
        "url": "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions",
        "env_key": "GEMINI_API_KEY",
        "default_model": "gemini-2.0-flash",
    },
    "openrouter": {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "env_key": "OPENROUTER_API_KEY",
        "default_model": "google/gemini-2.0-flash-001",
    },
    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "env_key": "OPENAI_API_KEY",
        "default_model": "gpt-4o-mini",
    },
}

DEFAULT_PROVIDER = "gemini"

# Model pricing per 1M tokens (input, output)
PRICING = {
    "gemini-2.0-flash": (0.1, 0.4),
    "gemini-1.5-flash": (0.075, 0.3),
    "gemini-1.5-pro": (1.25, 5.0),
    "gpt-4o-mini": (0.15, 0.6),
    "gpt-4o": (5.0, 15.0),
    "claude-3.5-sonnet": (3.0, 15.0),
    "claude-3-haiku": (0.25, 1.25),
}

# HTTP statuses worth retrying
TRANSIENT_STATUS = {408, 409, 429, 500, 502, 503, 504}


def resolve_api_key(provider: str, env: Optional[Mapping[str, str]] = None) -> str:
    """LLM_API_KEY, else the provider's own variable, else empty."""
    env = os.environ if env is None else env
    if provider not in PROVIDERS:
        raise ConfigError(
            f"Unknown provider: {provider}. Use one of: {', '.join(PROVIDERS)}",
            {"provider": provider},
        )
    return env.get("LLM_API_KEY") or env.get(PROVIDERS[provider]["env_key"], "")


class LLM:
    """
    Chat-completions client constrained to JSON responses.

    Args:
        provider: "gemini" (default), "openrouter" or "openai"
        default_model: Model id; provider default if omitted
        api_key: Credential; read from the environment if omitted
        api_url: Endpoint override (or LLM_API_URL)
        temperature: Sampling temperature
        max_tokens: Maximum response tokens
        timeout: Request timeout in seconds
        json_mode: Send response_format={"type": "json_object"}
        client: Preconfigured httpx.Client (tests inject a MockTransport here)

    Raises:
        ConfigError: unknown provider or no credential
    """

    def __init__(
        self,
        provider: str = DEFAULT_PROVIDER,
        default_model: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        timeout: float = 120,
        json_mode: bool = True,
        client: Optional[httpx.Client] = None,
    ):
        if provider not in PROVIDERS:
            raise ConfigError(
                f"Unknown provider: {provider}. Use one of: {', '.join(PROVIDERS)}",
                {"provider": provider},
            )
        api_key = api_key or resolve_api_key(provider)
        if not api_key:
            raise ConfigError(
                f"No API key: set LLM_API_KEY or {PROVIDERS[provider]['env_key']}",
                {"provider": provider},
            )

        config = PROVIDERS[provider]
        self.provider = provider
        self.default_model = default_model or config["default_model"]
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.json_mode = json_mode

        self._api_url = api_url or os.environ.get("LLM_API_URL", config["url"])
        self._api_key = api_key

        # Stats
        self.stats: Dict[str, Dict[str, Any]] = {}
        self.total_tokens = 0
        self.total_cost = 0.0
        self.request_count = 0

        self._client = client or httpx.Client(timeout=timeout)

    def _get_model(self, model: Optional[str]) -> str:
        return model or self.default_model

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """
        Request one completion over the full message history.

        Raises:
            ModelError: transport failure, HTTP error, malformed payload or
                empty text. `transient` tells whether a retry may help.
            Cancelled: if the token was cancelled before the request
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        model = self._get_model(model)
        temp = temperature if temperature is not None else self.temperature
        tokens = max_tokens if max_tokens is not None else self.max_tokens

        start = time.time()

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temp,
            "max_tokens": tokens,
            "stream": False,
        }
        if self.json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._client.post(self._api_url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ModelError(
                f"Request to {self.provider} failed: {e}",
                {"provider": self.provider, "model": model},
                transient=True,
            ) from e

        if response.status_code >= 400:
            raise ModelError(
                f"{self.provider} returned HTTP {response.status_code}",
                {
                    "provider": self.provider,
                    "model": model,
                    "status": response.status_code,
                    "body": response.text[:1000],
                },
                transient=response.status_code in TRANSIENT_STATUS,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ModelError(
                "Response body is not JSON",
                {"provider": self.provider, "body": response.text[:1000]},
            ) from e

        result = self._parse_response(data, model, start)
        if not result.text.strip():
            raise ModelError(
                "No response text received from model",
                {"provider": self.provider, "model": model, "raw": data},
                transient=True,
            )
        return result

    def _bad_payload(self, reason: str, data: Any) -> ModelError:
        return ModelError(
            f"Unexpected response shape: {reason}",
            {"provider": self.provider, "raw": data},
        )

    def _parse_response(self, data: Any, model: str, start: float) -> LLMResponse:
        if not isinstance(data, dict):
            raise self._bad_payload("body is not an object", data)

        choices = data.get("choices") or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise self._bad_payload("choices is not a list of objects", data)
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise self._bad_payload("message is not an object", data)
        text = message.get("content") or ""
        if not isinstance(text, str):
            raise self._bad_payload("content is not a string", data)

        usage = data.get("usage") or {}
        if not isinstance(usage, dict):
            usage = {}
        prompt_tokens = usage.get("prompt_tokens") or 0
        completion_tokens = usage.get("completion_tokens") or 0
        total_tokens = prompt_tokens + completion_tokens

        cost = self._calculate_cost(model, prompt_tokens, completion_tokens)
        latency_ms = int((time.time() - start) * 1000)

        self.total_tokens += total_tokens
        self.total_cost += cost
        self.request_count += 1
        self._update_model_stats(model, total_tokens, cost)

        _log(f"{model}: {total_tokens} tokens, ${cost:.4f}, {latency_ms}ms")

        return LLMResponse(
            text=text,
            model=model,
            tokens=total_tokens,
            cost=cost,
            latency_ms=latency_ms,
            raw=data,
        )

    def _update_model_stats(self, model: str, tokens: int, cost: float):
        if model not in self.stats:
            self.stats[model] = {"tokens": 0, "cost": 0.0, "requests": 0}
        self.stats[model]["tokens"] += tokens
        self.stats[model]["cost"] += cost
        self.stats[model]["requests"] += 1

    def _calculate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        input_price, output_price = 0.5, 1.5
        for key, prices in PRICING.items():
            if key in model.lower():
                input_price, output_price = prices
                break
        return (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000

    def get_stats(self, model: Optional[str] = None) -> Dict[str, Any]:
        """Get usage stats."""
        if model:
            return self.stats.get(model, {"tokens": 0, "cost": 0.0, "requests": 0})
        return {
            "total_tokens": self.total_tokens,
            "total_cost": self.total_cost,
            "request_count": self.request_count,
            "per_model": self.stats,
        }

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
