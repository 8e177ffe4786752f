"""Shared fixtures: a scripted model stand-in and a weather-only registry."""

import pytest

from step_agent import ToolRegistry, set_logging
from step_agent.llm import LLMResponse, set_llm_logging
from step_agent.tools import WEATHER_TOOL


class ScriptedLLM:
    """
    Deterministic model stub.

    Replies are returned in order; an Exception instance in the script is
    raised instead. Every request's message list is recorded in `calls`.
    """

    default_model = "scripted"

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []
        self.closed = False

    def chat(self, messages, cancel=None, **kwargs):
        self.calls.append([dict(m) for m in messages])
        if not self.replies:
            raise AssertionError("ScriptedLLM ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(text=reply, model=self.default_model)

    def get_stats(self):
        return {"total_tokens": 0, "total_cost": 0.0, "request_count": len(self.calls), "per_model": {}}

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def quiet_logs():
    set_logging(False)
    set_llm_logging(False)
    yield
    set_logging(True)
    set_llm_logging(True)


@pytest.fixture
def scripted():
    return ScriptedLLM


@pytest.fixture
def weather_tools():
    return ToolRegistry([WEATHER_TOOL]).freeze()
