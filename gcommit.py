#!/usr/bin/env python3
"""
gcommit: generate a conventional commit message for the staged changes

The staged diff is piped into `gcli -q -e` together with a commit-message
prompt, and the model's answer is printed as it streams.
"""
from __future__ import annotations

import argparse
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

DEFAULT_MODEL = "gemini-1.5-pro-latest"
DEFAULT_TEMP = "0.7"
MAX_PROMPT_SIZE = 4096

DEFAULT_PROMPT = (
    "You are an expert at following the Conventional Commit specification. "
    "Given the git diff listed below, please generate a commit message for me: "
    "1. First line: conventional commit format (type: concise description) "
    "(remember to use semantic types like feat, fix, docs, style, refactor, perf, test, chore, etc.) "
    "2. Optional bullet points if more context helps: "
    "- Keep the second line blank "
    "- Keep them short and direct "
    "- Focus on what changed "
    "- Always be terse "
    "- Don't overly explain "
    "- Drop any fluffy or formal language "
    "Return ONLY the commit message - no introduction, no explanation, no quotes around it. "
    "Examples: "
    "feat: add user auth system\n\n"
    "- Add JWT tokens for API auth\n"
    "- Handle token refresh for long sessions\n\n"
    "fix: resolve memory leak in worker pool\n\n"
    "- Clean up idle connections\n"
    "- Add timeout for stale work\n\n"
    "Simple change example: "
    "fix: typo in README.md "
    "Very important: Do not respond with any of the examples. "
    "Your message must be based off the diff that is about to be provided, "
    "with a little bit of styling informed by the recent commits you're about to see. "
    "Based on this format, generate appropriate commit messages. "
    "Respond with message only. "
    "DO NOT format the message in Markdown code blocks, DO NOT use backticks"
)

console = Console()
err_console = Console(stderr=True)


class PromptFileError(ValueError):
    """A custom prompt file is missing, unreadable or too large."""


def read_prompt_file(path: str, limit: int) -> str:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise PromptFileError(f"Failed to read prompt file '{path}'") from e
    if len(data) > limit:
        raise PromptFileError(f"Prompt file too large (max {limit} bytes)")
    return data.decode("utf-8", errors="replace")


def gcli_command(gcli_path: str, model: str, temp: str, prompt: str) -> List[str]:
    """Build the non-interactive, quiet gcli invocation."""
    return shlex.split(gcli_path) + ["-q", "-e", "-m", model, "-t", temp, prompt]


def is_git_repo() -> bool:
    result = subprocess.run(
        ["git", "rev-parse", "--git-dir"],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    return result.returncode == 0


def has_staged_changes() -> bool:
    # `git diff --quiet` exits non-zero when there are differences
    result = subprocess.run(["git", "diff", "--staged", "--quiet"])
    return result.returncode != 0


def get_staged_diff() -> Optional[str]:
    result = subprocess.run(["git", "diff", "--staged"], capture_output=True, text=True)
    if result.returncode != 0 or not result.stdout:
        return None
    return result.stdout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcommit",
        description="Generate conventional commit messages using AI based on staged git changes.",
        epilog="Requires a git repository with staged changes and a configured gcli.",
    )
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL, help=f"AI model (default: {DEFAULT_MODEL})")
    parser.add_argument("-t", "--temp", default=DEFAULT_TEMP, help=f"Temperature (default: {DEFAULT_TEMP})")
    parser.add_argument("-p", "--prompt", metavar="FILE", help="Use a custom prompt file")
    parser.add_argument("-g", "--gcli", default="gcli", metavar="PATH", help="Path to gcli (default: gcli)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show the diff being sent to AI")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not is_git_repo():
        err_console.print("Error: Not in a git repository")
        return 1
    if not has_staged_changes():
        err_console.print("No staged changes found. Stage some changes first with 'git add'.")
        return 1
    diff = get_staged_diff()
    if diff is None:
        err_console.print("Error: Failed to get staged changes")
        return 1

    if args.verbose:
        console.print("=== Staged Changes ===")
        console.print(diff, markup=False, highlight=False, end="")
        console.print("======================\n")

    if args.prompt:
        try:
            prompt = read_prompt_file(args.prompt, MAX_PROMPT_SIZE)
        except PromptFileError as e:
            err_console.print(f"Error: {escape(str(e))}")
            return 1
    else:
        prompt = DEFAULT_PROMPT

    command = gcli_command(args.gcli, args.model, args.temp, prompt)
    if args.verbose:
        console.print(f"Executing: {escape(shlex.join(command[:-1]))} <prompt>\n")

    try:
        result = subprocess.run(command, input=diff, text=True)
    except OSError as e:
        err_console.print(f"Error: Failed to run gcli: {escape(str(e))}")
        return 1
    if result.returncode != 0:
        err_console.print("Error: Failed to generate commit message")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
