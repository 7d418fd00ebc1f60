"""Input handling utilities."""

from typing import Optional

from prompt_toolkit import prompt

EXIT_SIGNAL = "__EXIT__"
EXIT_COMMANDS = ("/exit", "/quit")


def should_exit_from_input(user_input: Optional[str]) -> bool:
    """Check if user input indicates they want to exit."""
    if user_input == EXIT_SIGNAL:
        return True
    if user_input and user_input.strip().lower() in EXIT_COMMANDS:
        return True
    return False


def get_masked_input(message: str) -> str:
    """Read a secret without echoing it; Ctrl-C or Ctrl-D yields an empty string."""
    try:
        return prompt(message, is_password=True).strip()
    except (KeyboardInterrupt, EOFError):
        return ""
