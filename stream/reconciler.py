from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class AppendSuffix:
    text: str


@dataclass(frozen=True)
class RedrawLine:
    """Replace the displayed text (of width `previous_width`) with `text`."""
    text: str
    previous_width: int = 0


RenderAction = Union[AppendSuffix, RedrawLine]


def reconcile(previous: str, current: str) -> Optional[RenderAction]:
    """Decide how to move the display from `previous` to `current`.

    Returns None when nothing should be printed: equal text, or text that is
    longer but does not extend what is on screen.
    """
    if len(current) > len(previous) and current.startswith(previous):
        return AppendSuffix(current[len(previous):])
    if previous and len(current) < len(previous):
        return RedrawLine(current, len(previous))
    return None


IDLE = "idle"
STREAMING = "streaming"
FINALIZED = "finalized"


class ReconcilerState:
    """Last full text seen for the message currently being streamed."""

    def __init__(self) -> None:
        self.last_text: str = ""
        self.phase: str = IDLE

    def observe(self, current: str) -> Optional[RenderAction]:
        if self.phase == FINALIZED:
            self.reset()
        action = reconcile(self.last_text, current)
        self.last_text = current
        self.phase = STREAMING
        return action

    def finalize(self) -> str:
        """Close the message and return its permanent text."""
        self.phase = FINALIZED
        return self.last_text

    def reset(self) -> None:
        self.last_text = ""
        self.phase = IDLE
