"""Tests for the conversation log and system prompt."""

from step_agent import ConversationLog, Message, Role, Step, ToolRegistry
from step_agent.prompts import build_system_prompt
from step_agent.tools import WEATHER_TOOL


class TestConversationLog:
    def test_system_prompt_first(self):
        log = ConversationLog("sys")
        assert len(log) == 1
        assert log[0] == Message(Role.ASSISTANT, "sys")
        assert log.system_prompt == "sys"

    def test_append_order(self):
        log = ConversationLog("sys")
        log.add_user("q")
        log.add_assistant('{"step": "THINK", "content": "t"}')
        log.add_step(Step.observe("o"))
        assert log.to_list() == [
            {"role": "assistant", "content": "sys"},
            {"role": "user", "content": "q"},
            {"role": "assistant", "content": '{"step": "THINK", "content": "t"}'},
            {"role": "assistant", "content": '{"step": "OBSERVE", "content": "o"}'},
        ]

    def test_messages_is_a_copy(self):
        log = ConversationLog("sys")
        log.messages.append(Message(Role.USER, "sneaky"))
        assert len(log) == 1

    def test_fork_is_independent(self):
        log = ConversationLog("sys", [Message(Role.USER, "q")])
        copy = log.fork()
        copy.add_assistant("more")
        assert len(log) == 2
        assert len(copy) == 3
        assert copy.system_prompt == "sys"


class TestSystemPrompt:
    def test_lists_tools(self):
        prompt = build_system_prompt(ToolRegistry([WEATHER_TOOL]))
        assert "- getWeatherInfo(city: string): string" in prompt
        assert "{tools}" not in prompt
        assert "Every response must be strictly in JSON format." in prompt

    def test_no_tools(self):
        assert "- (no tools available)" in build_system_prompt(ToolRegistry())
