"""Tests for the CLI runner."""

import pytest

from step_agent import Step, runner


ACTION = '{"step": "ACTION", "tool": "getWeatherInfo", "input": "Patiala"}'
OUTPUT = '{"step": "OUTPUT", "content": "It is 32 Degree celsius in Patiala."}'


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("LLM_API_KEY", "LLM_PROVIDER", "LLM_MODEL", "LLM_API_URL", "GEMINI_API_KEY",
                 "STEP_AGENT_ALLOW_COMMANDS", "STEP_AGENT_MAX_STEPS", "STEP_AGENT_COMMAND_ALLOWLIST"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def fake_llm(clean_env, scripted):
    """Replace the HTTP client with a scripted model; returns the created instances."""
    clean_env.setenv("GEMINI_API_KEY", "g-key")
    created = []

    def install(replies):
        def factory(**kwargs):
            llm = scripted(replies)
            llm.kwargs = kwargs
            created.append(llm)
            return llm

        clean_env.setattr(runner, "LLM", factory)
        return created

    return install


class TestPrintStep:
    def test_progress_lines(self, capsys):
        runner.print_step(Step.think("hmm"))
        runner.print_step(Step.action("getWeatherInfo", "Patiala"))
        runner.print_step(Step.observe("hidden from stdout"))
        runner.print_step(Step.output("done"))
        assert capsys.readouterr().out == "THINK: hmm\nACTION: getWeatherInfo(Patiala)\nOUTPUT: done\n"

    def test_output_only(self, capsys):
        runner.print_output_only(Step.think("hmm"))
        runner.print_output_only(Step.output("done"))
        assert capsys.readouterr().out == "done\n"


class TestMain:
    def test_missing_key(self, clean_env, capsys):
        assert runner.main(["hello"]) == 2
        assert "No API key" in capsys.readouterr().err

    def test_success(self, fake_llm, capsys):
        created = fake_llm([ACTION, OUTPUT])
        assert runner.main(["What is the weather of Patiala?"]) == 0

        out = capsys.readouterr().out
        assert "ACTION: getWeatherInfo(Patiala)" in out
        assert "OUTPUT: It is 32 Degree celsius in Patiala." in out
        assert created[0].closed
        assert created[0].kwargs["provider"] == "gemini"
        assert created[0].kwargs["api_key"] == "g-key"

    def test_quiet(self, fake_llm, capsys):
        fake_llm([ACTION, OUTPUT])
        assert runner.main(["--quiet", "weather?"]) == 0
        assert capsys.readouterr().out == "It is 32 Degree celsius in Patiala.\n"

    def test_default_query(self, fake_llm):
        created = fake_llm([OUTPUT])
        runner.main([])
        assert "todo app" in created[0].calls[0][1]["content"]

    def test_agent_error(self, fake_llm, capsys):
        fake_llm(['{"step": "ACTION", "tool": "deleteEverything", "input": "/"}'])
        assert runner.main(["go"]) == 1
        assert "Unknown tool: deleteEverything" in capsys.readouterr().err

    def test_model_override(self, fake_llm):
        created = fake_llm([OUTPUT])
        runner.main(["--model", "gemini-1.5-pro", "go"])
        assert created[0].kwargs["default_model"] == "gemini-1.5-pro"

    def test_allow_registers_execute_command(self, fake_llm):
        created = fake_llm([OUTPUT])
        runner.main(["--allow", "ls", "go"])
        system_prompt = created[0].calls[0][0]["content"]
        assert "executeCommand" in system_prompt
        assert "Allowed programs: ls" in system_prompt

    def test_commands_off_by_default(self, fake_llm):
        created = fake_llm([OUTPUT])
        runner.main(["go"])
        assert "executeCommand" not in created[0].calls[0][0]["content"]

    def test_bad_max_steps(self, fake_llm):
        fake_llm([OUTPUT])
        assert runner.main(["--max-steps", "0", "go"]) == 2

    def test_bad_cwd(self, fake_llm, tmp_path):
        fake_llm([OUTPUT])
        assert runner.main(["--cwd", str(tmp_path / "missing"), "go"]) == 2
