#!/usr/bin/env python3
"""
gcli: command-line client for Google Gemini

Features
- Streams responses straight to the terminal as they arrive
- Official API (API key) or the key-free web endpoint (default)
- Interactive chat with slash commands, attachments and named sessions
- Non-interactive use: prompt from arguments or piped stdin, answer on stdout

Requirements
    pip install requests rich prompt_toolkit
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from chat.attachments import AttachmentError, STDIN_NAME, get_mime_type, is_path_safe
from chat.session import ChatSession
from providers.gemini import GeminiAPIError, list_models
from stream.decoders import LOCATE_MAP, LOCATE_PLACE
from stream.sink import TerminalSink
from streaming_client import StreamingClient
from util.command_helpers import handle_special_commands
from util.config import Settings, apply_environment, cap_thinking_budget, load_settings
from util.input_helpers import EXIT_SIGNAL, get_masked_input, should_exit_from_input
from util.simple_pt_input import USER_PROMPT, create_prompt_session, get_user_input


logger = logging.getLogger(__name__)

AI_HEADER = "\033[1;36m◆  AI\033[0m\n└  "
LOCATE_PROMPT = "echo 'hello'"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcli",
        description="A command-line client for the Google Gemini API.",
        epilog="For in-session commands (like /save, /attach), start interactive mode and type /help.",
    )
    parser.add_argument("-c", "--config", help="Load configuration from a specific file path")
    parser.add_argument("-m", "--model", help="Model name (e.g., gemini-2.5-pro)")
    parser.add_argument("-S", "--system", help="System prompt for the entire session")
    parser.add_argument("-t", "--temp", type=float, help="Generation temperature")
    parser.add_argument("-s", "--seed", type=int, help="Random seed for reproducible outputs")
    parser.add_argument("-o", "--max-tokens", type=int, help="Maximum number of tokens in the response")
    parser.add_argument("-b", "--budget", type=int, help="Max thinking token budget")
    parser.add_argument("-p", "--proxy", help="Proxy URL (e.g., http://localhost:8080)")
    parser.add_argument("--topk", type=int, help="Top-K sampling parameter")
    parser.add_argument("--topp", type=float, help="Top-P (nucleus) sampling parameter")
    parser.add_argument("-e", "--execute", action="store_true", help="Run a single prompt non-interactively and exit")
    parser.add_argument("-q", "--quiet", action="store_true", help="Print only the response to stdout")
    parser.add_argument("-f", "--free", action="store_true", help="Use the key-free endpoint (default)")
    parser.add_argument("--api", action="store_true", help="Use the official API (requires an API key)")
    parser.add_argument("--loc", action="store_true", help="Print location information (key-free mode)")
    parser.add_argument("--map", action="store_true", help="Print a map URL for the location (key-free mode)")
    parser.add_argument("-ng", "--no-grounding", action="store_true", help="Disable Google Search grounding")
    parser.add_argument("-nu", "--no-url-context", action="store_true", help="Disable URL context fetching")
    parser.add_argument("-l", "--list", action="store_true", help="List available models and exit")
    parser.add_argument("--list-sessions", action="store_true", help="List saved sessions and exit")
    parser.add_argument("--load-session", metavar="NAME", help="Load a saved session by name")
    parser.add_argument("--save-session", metavar="FILE", help="Save the conversation to FILE on exit")
    parser.add_argument("--debug", action="store_true", help="Verbose diagnostic logging")
    parser.add_argument("inputs", nargs="*", help="Prompt text, files to attach, or .json histories to load")
    return parser


def setup_logging(debug: bool = False, quiet: bool = False) -> None:
    if quiet:
        level = logging.CRITICAL
    elif debug:
        level = logging.DEBUG
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def apply_arguments(settings: Settings, args: argparse.Namespace) -> None:
    """Overlay command-line options on settings loaded from the config file."""
    if args.model:
        settings.model = args.model
    if args.system:
        settings.system_prompt = args.system
    if args.temp is not None:
        settings.temperature = args.temp
    if args.seed is not None:
        settings.seed = args.seed
    if args.max_tokens is not None:
        settings.max_output_tokens = args.max_tokens
    if args.budget is not None:
        settings.thinking_budget = args.budget
    if args.proxy:
        settings.proxy = args.proxy
    if args.topk is not None:
        settings.top_k = args.topk
    if args.topp is not None:
        settings.top_p = args.topp
    if args.no_grounding:
        settings.google_grounding = False
    if args.no_url_context:
        settings.url_context = False
    if args.free:
        settings.free_mode = True
    if args.api:
        settings.free_mode = False
    if args.loc:
        settings.locate |= LOCATE_PLACE
    if args.map:
        settings.locate |= LOCATE_MAP


def collect_inputs(session: ChatSession, inputs: List[str], console: Console) -> str:
    """Load .json histories, attach regular files, and join the rest into a prompt."""
    words: List[str] = []
    for item in inputs:
        if len(item) > 5 and item.endswith(".json"):
            try:
                session.load(item)
            except (OSError, ValueError) as e:
                console.print(f"[red]Error loading history from {escape(item)}: {escape(str(e))}[/red]")
                continue
            console.print(f"Conversation history loaded from {escape(item)}")
        elif os.path.isfile(item):
            try:
                with open(item, "rb") as f:
                    part = session.pending.attach(f, item, get_mime_type(item), session.free_mode)
            except (AttachmentError, OSError) as e:
                console.print(f"[yellow]Warning: {escape(str(e))}[/yellow]")
                continue
            console.print(f"Attached {escape(item)} (Size: {part.size} bytes)")
        else:
            words.append(item)
    return " ".join(words)


def read_piped_prompt(stdin) -> str:
    text = stdin.read()
    if text.endswith("\n"):
        text = text[:-1]
    return text


def print_banner(session: ChatSession, console: Console, key_from_env: bool, origin_from_env: bool) -> None:
    settings = session.settings
    if settings.free_mode:
        console.print("--- Running in key-free mode. API key features are disabled. ---")
    else:
        console.print(
            f"Using model: {escape(settings.model)}, Temperature: {settings.temperature:.2f}, Seed: {settings.seed}"
        )
        if settings.max_output_tokens > 0:
            console.print(f"Max Output Tokens: {settings.max_output_tokens}")
        if settings.thinking_budget > 0:
            console.print(f"Thinking Budget: {settings.thinking_budget} tokens")
        else:
            console.print("Thinking Budget: automatic")
        console.print(f"Google grounding: {'ON' if settings.google_grounding else 'OFF'}")
        console.print(f"URL Context: {'ON' if settings.url_context else 'OFF'}")
        if key_from_env:
            console.print("API Key loaded from environment variable.")
        elif settings.api_key:
            console.print("API Key loaded from configuration file.")
        if origin_from_env:
            console.print(f"Origin loaded from environment variable: {escape(settings.origin)}")
    console.print(f"--- Session: {escape(session.session_name)}\n")


def repl(session: ChatSession, console: Console, prompt_session=None) -> int:
    """Interactive chat loop.

    Returns: Exit code (0 for success)
    """
    prompt_session = prompt_session or create_prompt_session()
    while True:
        line = get_user_input(prompt_session)
        if line == EXIT_SIGNAL:
            session.sink.write("\n")
            return 0
        text = line.lstrip()
        if not text and not len(session.pending):
            continue
        if should_exit_from_input(text):
            return 0
        if handle_special_commands(text, session, console):
            continue

        session.sink.write(AI_HEADER)
        session.send_turn(text)
        session.sink.write("\n\n")


def run_initial_prompt(session: ChatSession, prompt: str, interactive: bool, console: Console) -> bool:
    if interactive:
        console.print("Initial prompt provided. Sending request...")
        session.sink.write(f"{USER_PROMPT}{prompt}\n{AI_HEADER}")
    result = session.send_turn(prompt)
    if interactive:
        session.sink.write("\n\n")
    return result is None or result.ok


def main(argv: Optional[List[str]] = None, stdin=None, stdout=None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    setup_logging(args.debug, args.quiet)

    console = Console(stderr=True, quiet=args.quiet, soft_wrap=True)
    interactive = stdin.isatty() and stdout.isatty() and not args.execute

    settings = Settings()
    if args.config:
        load_settings(settings, args.config)
        console.print(f"Loaded configuration from: {escape(args.config)}")
    else:
        load_settings(settings)
    apply_arguments(settings, args)

    session = ChatSession(settings, StreamingClient(console=console), console=console, sink=TerminalSink(stdout))

    if args.list:
        apply_environment(settings)
        console.print("Fetching available models...")
        try:
            models = list_models(session.client, settings)
        except GeminiAPIError as e:
            console.print(f"\n[red]{escape(str(e))}[/red]")
            return 1
        for name, display in models:
            stdout.write(f"- {name} ({display})\n")
        console.print(f"\nFound {len(models)} models.")
        return 0
    if args.list_sessions:
        console.print("Saved Sessions:")
        names = session.recorder.list_sessions()
        for name in names:
            console.print(f"  - {escape(name)}")
        if not names:
            console.print("  (No sessions found)")
        return 0
    if args.load_session:
        try:
            session.load(session.recorder.session_path(args.load_session))
            session.session_name = args.load_session
        except (OSError, ValueError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")

    prompt = collect_inputs(session, args.inputs, console)

    if settings.locate:
        settings.free_mode = True
        if prompt:
            console.print("Note: --loc/--map used; ignoring initial prompt text.")
        prompt = LOCATE_PROMPT

    cap_thinking_budget(settings)

    if not interactive and not stdin.isatty():
        if not prompt:
            prompt = read_piped_prompt(stdin)
        else:
            try:
                part = session.pending.attach(stdin, STDIN_NAME, "text/plain", settings.free_mode)
                console.print(f"Attached stdin (Size: {part.size} bytes)")
            except AttachmentError as e:
                console.print(f"[yellow]Warning: {escape(str(e))}[/yellow]")

    key_from_env = origin_from_env = False
    if not settings.free_mode:
        key_from_env, origin_from_env = apply_environment(settings)
        if not settings.api_key:
            if interactive:
                settings.api_key = get_masked_input("Enter your Gemini API key: ")
            if not settings.api_key:
                logger.warning("No API key available; falling back to key-free mode")
                settings.free_mode = True

    if interactive:
        print_banner(session, console, key_from_env, origin_from_env)

    exit_code = 0
    if prompt:
        if not run_initial_prompt(session, prompt, interactive, console) and not interactive:
            exit_code = 1

    if interactive:
        repl(session, console)

    if args.save_session:
        if not is_path_safe(args.save_session):
            console.print(
                f"[red]Error: Unsafe file path specified for saving session: {escape(args.save_session)}[/red]"
            )
        else:
            try:
                session.save(args.save_session)
                console.print(f"Conversation history saved to {escape(args.save_session)}")
            except OSError as e:
                console.print(f"[red]Failed to save session: {escape(str(e))}[/red]")

    if interactive:
        console.print("\nExiting session.")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
