"""
Line input for the interactive chat loop using prompt-toolkit.

Non-blank lines are kept in an in-memory history for up/down navigation.
Ctrl-C and Ctrl-D end the session.
"""
from __future__ import annotations

from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.history import InMemoryHistory

from util.input_helpers import EXIT_SIGNAL

USER_PROMPT = "\033[1;36m◇  User:\033[0m "


class _NonBlankHistory(InMemoryHistory):
    def append_string(self, string: str) -> None:
        if string.strip():
            super().append_string(string)


def create_prompt_session() -> PromptSession:
    return PromptSession(history=_NonBlankHistory())


def get_user_input(prompt_session: Optional[PromptSession] = None) -> str:
    """Read one line with the user prompt.

    Returns:
        The line as typed, or the exit signal on EOF or Ctrl-C
    """
    session = prompt_session or create_prompt_session()
    try:
        return session.prompt(ANSI(USER_PROMPT))
    except (KeyboardInterrupt, EOFError):
        return EXIT_SIGNAL
