"""
Tests for the command line interface (cli.py).

Tests cover:
- build_parser() subcommands and defaults
- build_registry() with the demo declarations and a declaration file
- list_functions() output
- read_prompt() and read_system_prompt()
- interactive_chat() commands, answers, statistics and abort on transport errors
- finish reason, citations and safety ratings printed after an answer
- main() dispatch and exit codes
"""

from __future__ import annotations

import io

import pytest

from llmclient import cli
from llmclient import config as config_module
from llmclient.exceptions import TransportError, UnknownFunction
from llmclient.orchestrator import Orchestrator, OrchestratorConfig
from llmclient.providers.gemini_provider import GeminiProvider
from llmclient.providers.openai_provider import OpenAIProvider


def gpt_text(text, prompt=10, completion=5):
    return {
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": prompt, "completion_tokens": completion, "total_tokens": prompt + completion},
    }


@pytest.fixture
def provider(make_config, fake_transport) -> OpenAIProvider:
    return OpenAIProvider(make_config("gpt"), transport=fake_transport)


class TestBuildParser:
    """Tests for build_parser() argument parsing."""

    def test_list_functions_command(self) -> None:
        args = cli.build_parser().parse_args(["list-functions"])

        assert args.command == "list-functions"
        assert args.func == "list"
        assert args.functions is None

    def test_ask_requires_prompt(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["ask"])

    def test_ask_defaults(self) -> None:
        args = cli.build_parser().parse_args(["ask", "--prompt", "hi"])

        assert args.func == "ask"
        assert args.prompt == "hi"
        assert args.provider == "gemini"
        assert args.model is None
        assert args.temperature == 0.2
        assert args.max_tokens == 4096
        assert args.timeout == 120.0
        assert args.system == "system.txt"
        assert args.no_functions is False
        assert args.verbose is False

    def test_chat_custom_values(self) -> None:
        args = cli.build_parser().parse_args(
            ["chat", "--provider", "2", "--model", "claude-x", "--temperature", "0.7", "--no-functions"]
        )

        assert args.func == "chat"
        assert args.provider == "2"
        assert args.model == "claude-x"
        assert args.temperature == 0.7
        assert args.no_functions is True

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestRegistry:
    """Tests for build_registry() and list_functions()."""

    def test_demo_registry(self) -> None:
        registry = cli.build_registry()

        assert registry.names() == ["add", "apple"]
        assert registry.invoke("add", ["2", "3"]) == "5"
        assert registry.invoke("add", ["1.5", "2"]) == "3.5"
        assert registry.invoke("apple", ["red", "sweet"]) == "You have found an apple(red, sweet)"

    def test_declaration_file(self, tmp_path) -> None:
        path = tmp_path / "functions.txt"
        path.write_text("// Sum\n// a: first\n// b: second\nfn add(a, b)\n")

        registry = cli.build_registry(str(path))

        assert registry.names() == ["add"]
        assert registry.get("add").description == "Sum"

    def test_declaration_without_implementation(self, tmp_path) -> None:
        path = tmp_path / "functions.txt"
        path.write_text("// Multiply\n// a: x\n// b: y\nfn multiply(a, b)\n")

        with pytest.raises(UnknownFunction):
            cli.build_registry(str(path))

    def test_list_functions(self, capsys: pytest.CaptureFixture[str]) -> None:
        cli.list_functions(cli.build_registry())

        out = capsys.readouterr().out
        assert "- add(a, b): Add two whole numbers together" in out
        assert "    a: The first number" in out
        assert "- apple(color, taste)" in out


class TestPrompts:
    """Tests for read_prompt() and read_system_prompt()."""

    def test_reads_until_end_of_input(self) -> None:
        assert cli.read_prompt(io.StringIO("line one\nline two\n")) == "line one\nline two"

    def test_lone_command(self) -> None:
        stream = io.StringIO("show\nmore text\n")

        assert cli.read_prompt(stream) == "show"
        assert cli.read_prompt(stream) == "more text"

    def test_command_word_inside_prompt(self) -> None:
        assert cli.read_prompt(io.StringIO("tell me\nquit\n")) == "tell me\nquit"

    def test_empty_input(self) -> None:
        assert cli.read_prompt(io.StringIO("")) == ""

    def test_system_prompt_text_wins(self, tmp_path) -> None:
        path = tmp_path / "system.txt"
        path.write_text("From file")
        args = cli.build_parser().parse_args(
            ["ask", "--prompt", "x", "--system", str(path), "--system-prompt", "Inline"]
        )

        assert cli.read_system_prompt(args) == "Inline"

    def test_system_prompt_from_file(self, tmp_path) -> None:
        path = tmp_path / "system.txt"
        path.write_text("  Be brief.\n")
        args = cli.build_parser().parse_args(["ask", "--prompt", "x", "--system", str(path)])

        assert cli.read_system_prompt(args) == "Be brief."

    def test_missing_system_file(self, tmp_path) -> None:
        args = cli.build_parser().parse_args(
            ["ask", "--prompt", "x", "--system", str(tmp_path / "absent.txt")]
        )

        assert cli.read_system_prompt(args) == ""


class TestInteractiveChat:
    """Tests for interactive_chat()."""

    def test_answer_and_statistics(self, provider, fake_transport, capsys) -> None:
        fake_transport.queue(gpt_text("Hi there", prompt=10, completion=5))
        bot = Orchestrator(provider, registry=cli.build_registry())

        cli.interactive_chat(bot, io.StringIO("hello\n"))

        out = capsys.readouterr().out
        assert "Running gpt: gpt-test-model" in out
        assert "> Hi there" in out
        assert "[tokens 10 + 5 = 15, 1 call(s)" in out
        assert "Tokens in: 10 out: 5 all: 15" in out

    def test_commands(self, provider, fake_transport, capsys) -> None:
        fake_transport.queue(gpt_text("ok"))
        bot = Orchestrator(provider, config=OrchestratorConfig(system_prompt="Be brief."))

        cli.interactive_chat(bot, io.StringIO("system\nclear\nshow\nhello\n"))

        out = capsys.readouterr().out
        assert "Be brief." in out
        assert "> ok" in out
        assert len(fake_transport.requests) == 1

    def test_no_system_prompt(self, provider, capsys) -> None:
        cli.interactive_chat(Orchestrator(provider), io.StringIO("system\nquit\n"))

        out = capsys.readouterr().out
        assert "(no system prompt)" in out
        assert "Tokens in: 0 out: 0 all: 0" in out

    def test_prints_annotations(self, make_config, fake_transport, capsys) -> None:
        provider = GeminiProvider(make_config("gemini"), transport=fake_transport)
        fake_transport.queue(
            {
                "candidates": [
                    {
                        "content": {"role": "model", "parts": [{"text": "A quote."}]},
                        "finishReason": "STOP",
                        "citationMetadata": {
                            "citations": [{"uri": "https://example.com/book", "startIndex": 0, "endIndex": 8}]
                        },
                        "safetyRatings": [
                            {"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"}
                        ],
                    }
                ],
            }
        )

        cli.interactive_chat(Orchestrator(provider), io.StringIO("quote something\n"))

        out = capsys.readouterr().out
        assert "> A quote." in out
        assert "Citations:\nCitation:\n    Uri: https://example.com/book\n    Index range: 0 - 8" in out
        assert "Safety Ratings: HARM_CATEGORY_HARASSMENT: NEGLIGIBLE" in out
        assert "Finish Reason:" not in out

    def test_prints_unusual_finish_reason(self, provider, fake_transport, capsys) -> None:
        body = gpt_text("partial")
        body["choices"][0]["finish_reason"] = "length"
        fake_transport.queue(body)

        cli.interactive_chat(Orchestrator(provider), io.StringIO("long essay\n"))

        assert "Finish Reason: length" in capsys.readouterr().out

    def test_aborts_on_transport_error(self, provider, fake_transport, capsys) -> None:
        fake_transport.replies.append(TransportError("connection refused"))

        cli.interactive_chat(Orchestrator(provider), io.StringIO("hello\n"))

        out = capsys.readouterr().out
        assert "Error (aborting): Transport Error: [gpt] connection refused" in out
        assert "Statistics:" in out


class TestMain:
    """Tests for main() dispatch."""

    def test_list_functions(self, capsys) -> None:
        assert cli.main(["list-functions"]) == 0
        assert "add(a, b)" in capsys.readouterr().out

    def test_ask(self, monkeypatch, tmp_path, provider, fake_transport, capsys) -> None:
        monkeypatch.chdir(tmp_path)
        captured = {}

        def fake_build_provider(vendor, **kwargs):
            captured["vendor"] = vendor
            captured.update(kwargs)
            return provider

        monkeypatch.setattr(cli, "build_provider", fake_build_provider)
        fake_transport.queue(gpt_text("The sum is 5."))

        code = cli.main(["ask", "--provider", "gpt", "--prompt", "2+3?", "--max-tokens", "64"])

        assert code == 0
        assert captured["vendor"] == "gpt"
        assert captured["max_tokens"] == 64
        assert "The sum is 5." in capsys.readouterr().out
        assert fake_transport.last_body["messages"] == [{"role": "user", "content": "2+3?"}]

    def test_ask_failure_exit_code(self, monkeypatch, tmp_path, provider, fake_transport) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, "build_provider", lambda vendor, **kwargs: provider)
        fake_transport.queue({"error": {"message": "Invalid API key"}}, status=401)

        assert cli.main(["ask", "--prompt", "hi"]) == 1

    def test_missing_api_key(self, monkeypatch, tmp_path, capsys) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(config_module, "load_default_env", lambda: None)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert cli.main(["ask", "--provider", "gpt", "--prompt", "hi"]) == 2
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_missing_functions_file(self, tmp_path, capsys) -> None:
        assert cli.main(["list-functions", "--functions", str(tmp_path / "none.txt")]) == 2
        assert "not found" in capsys.readouterr().err
