"""Tests for environment settings."""

import pytest

from step_agent import ConfigError, RetryPolicy
from step_agent.config import Settings, load_settings


BASE = {"GEMINI_API_KEY": "g-key"}


def env(**extra):
    d = dict(BASE)
    d.update(extra)
    return d


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(BASE)
        assert settings.api_key == "g-key"
        assert settings.provider == "gemini"
        assert settings.model is None
        assert settings.max_steps == 50
        assert settings.allow_commands is False
        assert settings.command_allowlist == []
        assert settings.command_timeout == 60

    def test_missing_key(self):
        with pytest.raises(ConfigError) as exc:
            load_settings({})
        assert "GEMINI_API_KEY" in exc.value.message

    def test_generic_key_wins(self):
        assert load_settings(env(LLM_API_KEY="generic")).api_key == "generic"

    def test_provider_key(self):
        settings = load_settings({"LLM_PROVIDER": "openai", "OPENAI_API_KEY": "o-key"})
        assert settings.provider == "openai"
        assert settings.api_key == "o-key"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError):
            load_settings(env(LLM_PROVIDER="nope"))

    @pytest.mark.parametrize("name,value", [
        ("STEP_AGENT_MAX_STEPS", "ten"),
        ("STEP_AGENT_MAX_STEPS", "0"),
        ("STEP_AGENT_PARSE_RETRIES", "-1"),
        ("STEP_AGENT_COMMAND_TIMEOUT", "0"),
        ("LLM_TIMEOUT", "soon"),
    ])
    def test_bad_values(self, name, value):
        with pytest.raises(ConfigError) as exc:
            load_settings(env(**{name: value}))
        assert exc.value.details == {name: value}

    def test_numbers(self):
        settings = load_settings(env(STEP_AGENT_MAX_STEPS="7", STEP_AGENT_COMMAND_TIMEOUT="2.5"))
        assert settings.max_steps == 7
        assert settings.command_timeout == 2.5

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("YES", True), (" on ", True),
        ("0", False), ("no", False), ("", False),
    ])
    def test_allow_commands_flag(self, value, expected):
        assert load_settings(env(STEP_AGENT_ALLOW_COMMANDS=value)).allow_commands is expected

    def test_allowlist(self):
        settings = load_settings(env(STEP_AGENT_COMMAND_ALLOWLIST="ls, mkdir,,touch "))
        assert settings.command_allowlist == ["ls", "mkdir", "touch"]


class TestSettings:
    def test_with_overrides_skips_none(self):
        settings = Settings(api_key="k", model="m")
        updated = settings.with_overrides(model=None, max_steps=3)
        assert updated.model == "m"
        assert updated.max_steps == 3
        assert settings.max_steps == 50

    def test_retry_policy(self):
        policy = Settings(api_key="k", parse_retries=0, model_retries=4).retry_policy()
        assert isinstance(policy, RetryPolicy)
        assert policy.parse_retries == 0
        assert policy.model_retries == 4
