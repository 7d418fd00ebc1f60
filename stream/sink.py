from __future__ import annotations

import sys
from typing import Optional, TextIO

from stream.decoders import CODE_BLOCK, LOCATION, ControlSignal
from stream.reconciler import AppendSuffix, RedrawLine, RenderAction


class TerminalSink:
    """Writes streamed model text straight to a terminal stream.

    Every write is flushed so the text appears as it arrives.
    """

    def __init__(self, out: Optional[TextIO] = None):
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def on_delta(self, action: RenderAction) -> None:
        if isinstance(action, AppendSuffix):
            self._write(action.text)
        elif isinstance(action, RedrawLine):
            self._write("\r" + " " * action.previous_width + "\r" + action.text)

    def on_signal(self, signal: ControlSignal) -> None:
        if signal.kind == CODE_BLOCK and signal.value:
            self._write(f"\n\n{signal.value}\n")
        elif signal.kind == LOCATION and signal.value:
            self._write(f"{signal.value}\n")

    def write(self, text: str) -> None:
        self._write(text)

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()
