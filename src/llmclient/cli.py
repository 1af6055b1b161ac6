"""
CLI entrypoint for the llmclient library.

Examples:
    python -m llmclient list-functions
    python -m llmclient ask --provider claude --prompt "What is 2 + 3?"
    python -m llmclient chat --provider 0 --model gemini-2.0-flash
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from .config import VENDOR_ALIASES
from .dialogue import Dialogue
from .exceptions import (
    FunctionDeclarationError,
    MalformedResponse,
    ProviderConfigurationError,
    TransportError,
    UnknownFunction,
)
from .functions import FunctionImpl, FunctionRegistry
from .loader import load_declarations
from .orchestrator import ExchangeResult, Orchestrator, OrchestratorConfig
from .providers import build_provider
from .types import FinishReason
from .usage import UsageStats

DEMO_DECLARATIONS = """\
// Add two whole numbers together
// a: The first number
// b: The second number
fn add(a, b)

// Report finding an apple of some colour and taste
// color: The colour of the apple
// taste: How the apple tastes
fn apple(color, taste)
"""

COMMANDS = {"quit", "exit", "new", "clear", "show", "history", "system"}


def add(a: str, b: str) -> str:
    try:
        return str(int(a) + int(b))
    except ValueError:
        return str(float(a) + float(b))


def apple(color: str, taste: str) -> str:
    return f"You have found an apple({color}, {taste})"


DEMO_FUNCTIONS: Dict[str, FunctionImpl] = {"add": add, "apple": apple}


def build_registry(functions_file: Optional[str] = None) -> FunctionRegistry:
    """Demo registry, or the declarations in ``functions_file`` bound to the demo callables."""
    if functions_file is None:
        return FunctionRegistry.from_declarations(DEMO_DECLARATIONS, DEMO_FUNCTIONS)
    registry = FunctionRegistry()
    for spec in load_declarations(functions_file):
        implementation = DEMO_FUNCTIONS.get(spec.name)
        if implementation is None:
            raise UnknownFunction(spec.name, available=list(DEMO_FUNCTIONS))
        registry.register(spec, implementation)
    return registry


def read_system_prompt(args: argparse.Namespace) -> str:
    if args.system_prompt:
        return args.system_prompt
    path = Path(args.system)
    if path.is_file():
        return path.read_text().strip()
    return ""


def build_orchestrator(args: argparse.Namespace) -> Orchestrator:
    provider = build_provider(
        args.provider,
        model=args.model,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        timeout=args.timeout,
    )
    config = OrchestratorConfig(
        system_prompt=read_system_prompt(args) or None,
        offer_functions=not args.no_functions,
        verbose=args.verbose,
    )
    return Orchestrator(provider, registry=build_registry(args.functions), config=config)


def list_functions(registry: FunctionRegistry) -> None:
    for spec in registry.specs():
        print(f"- {spec.signature()}: {spec.description}")
        for arg in spec.arguments:
            print(f"    {arg}: {spec.argument_descriptions.get(arg, '')}")


def format_usage(result: ExchangeResult) -> str:
    return f"[tokens {result.usage}, {result.calls} call(s), {result.elapsed:.2f}s]"


def print_annotations(result: ExchangeResult) -> None:
    """Finish reason when the answer did not end normally, then citations and safety ratings."""
    if result.finish_reason not in (FinishReason.STOP, FinishReason.FUNCTION_CALL):
        print(f"Finish Reason: {result.finish_reason.value}")
    if result.citations:
        print("Citations:")
        for citation in result.citations:
            print(citation)
    if result.safety_ratings:
        print("Safety Ratings: " + ", ".join(str(rating) for rating in result.safety_ratings))


def read_prompt(stream: TextIO) -> str:
    """
    Read one prompt: lines up to end of input, or a lone command on the first line.
    """
    lines: List[str] = []
    for line in iter(stream.readline, ""):
        line = line.rstrip("\n")
        if not lines and line.strip().lower() in COMMANDS:
            return line.strip()
        lines.append(line)
    return "\n".join(lines).strip()


def run_once(args: argparse.Namespace) -> int:
    orchestrator = build_orchestrator(args)
    result = orchestrator.send_message(orchestrator.new_dialogue(), args.prompt)
    print(result.text)
    print_annotations(result)
    print(format_usage(result))
    return 0 if result.ok else 1


def interactive_chat(orchestrator: Orchestrator, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdin
    dialogue: Dialogue = orchestrator.new_dialogue()
    session = UsageStats()
    system_prompt = orchestrator.config.system_prompt or ""

    print(f"Running {orchestrator.provider.name}: {getattr(orchestrator.provider, 'model', '')}")
    print("Type multiple lines and then end with ^D [or ^Z on Windows] for answer.")
    print("'quit' or 'exit' work too. To clear history 'new' or 'clear'")
    print("To show dialogue history 'show' or 'history'")
    print("To show optional system content 'system'")

    while True:
        print("\nYour question: ")
        prompt = read_prompt(stream)
        if not prompt:
            break

        command = prompt.lower()
        if command in {"quit", "exit"}:
            break
        if command in {"new", "clear"}:
            orchestrator.reset(dialogue)
            continue
        if command in {"show", "history"}:
            for turn in orchestrator.history(dialogue):
                print(f"{turn.role.value}: {turn.content}")
            continue
        if command == "system":
            print(system_prompt or "(no system prompt)")
            continue

        result = orchestrator.send_message(dialogue, prompt)
        session = session + result.usage
        if isinstance(result.error, (TransportError, MalformedResponse)):
            print(f"Error (aborting): {result.text}")
            break
        print(f"> {result.text}")
        print_annotations(result)
        print(format_usage(result))

    print(
        f"Statistics: Elapsed time: {session.elapsed_seconds:.2f} secs, "
        f"Tokens in: {session.prompt_tokens} out: {session.completion_tokens} "
        f"all: {session.total_tokens}"
    )


def build_parser() -> argparse.ArgumentParser:
    vendors = "|".join(["gemini", "gpt", "claude", "mistral", "deepseek", "groq"])
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--provider",
        default="gemini",
        help=f"Vendor name or number ({vendors}; aliases {', '.join(sorted(VENDOR_ALIASES))})",
    )
    common.add_argument("--model", help="Model name; defaults to <VENDOR>_MODEL or the built-in default")
    common.add_argument("--temperature", type=float, default=0.2, help="Sampling temperature")
    common.add_argument("--max-tokens", type=int, default=4096, help="Max tokens to generate")
    common.add_argument("--timeout", type=float, default=120.0, help="Request timeout in seconds")
    common.add_argument("--system", default="system.txt", help="File holding the system prompt")
    common.add_argument("--system-prompt", help="System prompt text (overrides --system)")
    common.add_argument("--functions", help="Function declaration file")
    common.add_argument(
        "--no-functions", action="store_true", help="Do not offer functions to the vendor"
    )
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(description="Multi-vendor LLM client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list-functions", help="List available functions")
    list_parser.add_argument("--functions", help="Function declaration file")
    list_parser.set_defaults(func="list")

    ask_parser = subparsers.add_parser("ask", parents=[common], help="Send one prompt and exit")
    ask_parser.add_argument("--prompt", required=True, help="User prompt")
    ask_parser.set_defaults(func="ask")

    chat_parser = subparsers.add_parser("chat", parents=[common], help="Interactive chat with history")
    chat_parser.set_defaults(func="chat")

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.func == "list":
            list_functions(build_registry(args.functions))
            return 0
        if args.func == "ask":
            return run_once(args)
        if args.func == "chat":
            interactive_chat(build_orchestrator(args))
            return 0
    except (ProviderConfigurationError, FunctionDeclarationError, UnknownFunction) as exc:
        print(exc, file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
