"""Tests for step protocol types."""

import json
import pytest

from step_agent import Step, StepKind, Message, Role, ParseError, CancellationToken, Cancelled, parse_step


class TestStepParse:
    @pytest.mark.parametrize("kind", ["THINK", "OUTPUT"])
    def test_content_round_trips(self, kind):
        content = 'Patiala is hot: 32 "Degree" celsius\nnext line ünïcode'
        step = Step.parse(json.dumps({"step": kind, "content": content}))
        assert step.kind == StepKind(kind)
        assert step.content == content

    def test_action(self):
        step = Step.parse('{"step":"ACTION","tool":"getWeatherInfo","input":"Patiala"}')
        assert step.kind == StepKind.ACTION
        assert step.tool == "getWeatherInfo"
        assert step.input == "Patiala"

    def test_observe(self):
        step = Step.parse('{"step": "OBSERVE", "content": "32 Degree celsius"}')
        assert step.kind == StepKind.OBSERVE
        assert step.content == "32 Degree celsius"

    def test_empty_content_is_allowed(self):
        assert Step.parse('{"step": "THINK", "content": ""}').content == ""

    def test_surrounding_whitespace(self):
        assert Step.parse('  {"step": "OUTPUT", "content": "ok"}\n').content == "ok"

    def test_parse_step_function(self):
        assert parse_step('{"step": "THINK", "content": "x"}') == Step.think("x")

    @pytest.mark.parametrize("text", [
        '{"step": "THINK", "content": "a",}',            # trailing comma
        '{"content": "no step field"}',                  # missing step
        '{"step": "think", "content": "lowercase"}',     # unknown kind
        '{"step": "PLAN", "content": "x"}',
        '{"step": "THINK"}',                             # missing content
        '{"step": "OUTPUT", "content": 42}',
        '{"step": "ACTION", "tool": "getWeatherInfo"}',  # missing input
        '{"step": "ACTION", "input": "Patiala"}',        # missing tool
        '{"step": "ACTION", "tool": "", "input": "x"}',
        '{"step": "ACTION", "tool": "getWeatherInfo", "input": ""}',
        '[{"step": "THINK", "content": "list"}]',
        '"THINK"',
        '{"step": "THINK", "content": "a"} {"step": "THINK", "content": "b"}',
        '```json\n{"step": "THINK", "content": "fenced"}\n```',
        "",
        "   ",
    ])
    def test_malformed(self, text):
        with pytest.raises(ParseError) as exc:
            Step.parse(text)
        assert exc.value.details["raw"] == text
        assert exc.value.code == "parse"

    def test_none(self):
        with pytest.raises(ParseError):
            Step.parse(None)


class TestStepSerialize:
    def test_observe_wire_format(self):
        assert json.loads(Step.observe("result").to_json()) == {"step": "OBSERVE", "content": "result"}

    def test_action_wire_format(self):
        d = Step.action("getWeatherInfo", "Patiala").to_dict()
        assert d == {"step": "ACTION", "tool": "getWeatherInfo", "input": "Patiala"}

    def test_describe(self):
        assert Step.think("hmm").describe() == "THINK: hmm"
        assert Step.action("getWeatherInfo", "Patiala").describe() == "ACTION: getWeatherInfo(Patiala)"
        assert Step.output("done").describe() == "OUTPUT: done"

    def test_terminal(self):
        assert Step.output("x").terminal is True
        assert Step.think("x").terminal is False


class TestMessage:
    def test_to_dict(self):
        assert Message(Role.USER, "hi").to_dict() == {"role": "user", "content": "hi"}


class TestCancellationToken:
    def test_cancel(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

        token.cancel("stop")
        assert token.cancelled is True
        with pytest.raises(Cancelled) as exc:
            token.raise_if_cancelled()
        assert exc.value.message == "stop"

    def test_wait_returns_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert token.wait(5) is True
