#!/usr/bin/env python3
"""
gcmd: turn a natural-language request into a shell command

The model is asked for `COMMAND|||DESCRIPTION`. By default the command is
copied to the clipboard; `-e` runs it, `-q` prints only the command and
`--dry-run` shows it without acting.
"""
from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from gcommit import PromptFileError, gcli_command, read_prompt_file

DEFAULT_MODEL = "gemini-1.5-pro-latest"
DEFAULT_TEMP = "0.3"
MAX_PROMPT_SIZE = 2048
SEPARATOR = "|||"
DEFAULT_DESCRIPTION = "Generated shell command"

DEFAULT_PROMPT = (
    "You are an expert system administrator and shell command generator. "
    "Convert the following natural language request into a precise shell command with description. "
    "Rules: "
    "1. Return EXACTLY in this format: COMMAND|||DESCRIPTION "
    "2. COMMAND: The shell command only, no explanation or formatting "
    "3. DESCRIPTION: A clear explanation of what the command does "
    "4. Use standard POSIX commands when possible "
    "5. Prefer safe, commonly available commands "
    "6. For complex tasks, provide a single command or pipeline "
    "7. Do not include dangerous commands like 'rm -rf /' or 'dd' without explicit safety "
    "8. If the request is unclear, provide the most reasonable interpretation "
    "9. Do not use markdown formatting, backticks, or code blocks "
    "Examples: "
    "'list all files' -> 'ls -la|||Lists all files and directories with detailed information including hidden files' "
    "'find large files' -> 'find . -type f -size +100M -ls|||Searches for all files larger than 100MB in the current directory and subdirectories' "
    "'check disk usage' -> 'df -h|||Displays disk space usage in human-readable format for all mounted filesystems' "
    "'show running processes' -> 'ps aux|||Shows all running processes with detailed information including user, CPU, and memory usage' "
    "Convert this request: "
)

DANGEROUS_PATTERNS = (
    "rm -rf /",
    "rm -rf /*",
    "dd if=",
    "mkfs",
    "fdisk",
    "parted",
    ":(){ :|:& };:",  # fork bomb
    "chmod 777 /",
    "chown root /",
    "> /dev/sda",
    "format c:",
    "del /s /q c:\\",
)

console = Console(highlight=False)
err_console = Console(stderr=True)


def build_prompt(custom: Optional[str], shell: Optional[str]) -> str:
    prompt = custom if custom is not None else DEFAULT_PROMPT
    if shell:
        prompt += f" Generate commands for {shell} shell syntax."
    return prompt


def parse_generated(output: str) -> Tuple[str, str]:
    """Split model output into (command, description)."""
    command, sep, description = output.partition(SEPARATOR)
    if not sep:
        return output.strip(), DEFAULT_DESCRIPTION
    return command.strip(), description.strip() or DEFAULT_DESCRIPTION


def is_dangerous_command(command: str) -> bool:
    return any(pattern in command for pattern in DANGEROUS_PATTERNS)


def confirm_dangerous_command(command: str) -> bool:
    console.print("WARNING: This command may be dangerous:")
    console.print(f"Command: {escape(command)}")
    try:
        answer = console.input("Do you want to continue? (y/N): ")
    except EOFError:
        return False
    return answer[:1] in ("y", "Y")


def clipboard_command() -> Optional[List[str]]:
    if sys.platform == "darwin":
        return ["pbcopy"]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("xsel"):
        return ["xsel", "--clipboard", "--input"]
    return None


def copy_to_clipboard(command: str) -> bool:
    tool = clipboard_command()
    if tool is None:
        console.print("Error: No clipboard utility found (install xclip or xsel)")
        return False
    try:
        result = subprocess.run(tool, input=command, text=True)
    except OSError:
        result = None
    if result is None or result.returncode != 0:
        console.print("Failed to copy to clipboard")
        return False
    return True


def show_tree(description: str, heading: str, command: str) -> None:
    console.print("[bold cyan]◇  Command for:[/bold cyan]")
    console.print("│")
    console.print(f"│  {escape(description)}")
    console.print("│")
    console.print(f"[bold cyan]◆  {heading}:[/bold cyan]")
    console.print("│")
    console.print(f"└  {escape(command)}")


def generate_command(request: str, gcli_path: str, model: str, temp: str, prompt: str,
                     verbose: bool = False) -> Optional[str]:
    """Ask gcli for a command; returns the raw model output or None on failure."""
    if verbose:
        console.print("=== Prompt being sent to AI ===")
        console.print(prompt, markup=False)
        console.print("=== Natural language input ===")
        console.print(request, markup=False)
        console.print("===============================\n")

    try:
        result = subprocess.run(
            gcli_command(gcli_path, model, temp, prompt),
            input=request,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        err_console.print(f"Error: Failed to execute gcli command: {escape(str(e))}")
        return None
    if result.returncode != 0:
        err_console.print("Error: Failed to generate command")
        return None
    output = result.stdout.rstrip()
    if not output:
        err_console.print("Error: No command generated")
        return None
    return output


def run_command(command: str) -> int:
    if is_dangerous_command(command) and not confirm_dangerous_command(command):
        console.print("Operation cancelled.")
        return 1
    return subprocess.run(command, shell=True).returncode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcmd",
        description="Generate shell commands from natural language using AI.",
        epilog="Dangerous commands require confirmation. Review generated commands before using -e.",
    )
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL, help=f"AI model (default: {DEFAULT_MODEL})")
    parser.add_argument("-t", "--temp", default=DEFAULT_TEMP, help=f"Temperature (default: {DEFAULT_TEMP})")
    parser.add_argument("-p", "--prompt", metavar="FILE", help="Use a custom prompt file")
    parser.add_argument("-g", "--gcli", default="gcli", metavar="PATH", help="Path to gcli (default: gcli)")
    parser.add_argument("-s", "--shell", help="Target shell (bash, zsh, fish, etc.)")
    parser.add_argument("-e", "--execute", action="store_true", help="Execute the command immediately")
    parser.add_argument("-c", "--copy", action="store_true", help="Copy the command to the clipboard (default)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only output the command")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show the prompt being sent to AI")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be executed without running")
    parser.add_argument("request", nargs="*", help="Natural language description of the command")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.request:
        err_console.print("Error: No natural language command provided")
        err_console.print("Use -h or --help for usage information.")
        return 1
    request = " ".join(args.request)
    if not request.strip():
        err_console.print("Error: Empty natural language command")
        return 1
    if args.execute and args.copy:
        err_console.print("Error: Cannot use both --execute and --copy flags")
        return 1

    custom = None
    if args.prompt:
        try:
            custom = read_prompt_file(args.prompt, MAX_PROMPT_SIZE)
        except PromptFileError as e:
            err_console.print(f"Error: {escape(str(e))}")
            return 1

    if not args.quiet and args.shell:
        console.print(f"Target shell: {escape(args.shell)}\n")

    output = generate_command(request, args.gcli, args.model, args.temp,
                              build_prompt(custom, args.shell), args.verbose)
    if output is None:
        return 1
    command, description = parse_generated(output)

    if args.quiet:
        if args.execute:
            return run_command(command)
        print(command)
        return 0

    if args.dry_run:
        show_tree(description, "Dry run - command not executed", command)
        return 0

    if args.execute:
        show_tree(description, "Executing command", command)
        console.print()
        code = run_command(command)
        if code != 0:
            console.print(f"Command failed with exit code {code}")
        return code

    copied = copy_to_clipboard(command)
    show_tree(description, "Command copied to clipboard", command)
    if not copied:
        console.print("\n[bold cyan]◆  Failed to copy to clipboard:[/bold cyan]")
        console.print("│")
        console.print("└  Command is shown above")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
