from __future__ import annotations

import logging
from typing import List, Optional

from stream.buffer import StreamBuffer
from stream.decoders import ERROR, TextDelta
from stream.reconciler import ReconcilerState
from stream.sink import TerminalSink


logger = logging.getLogger(__name__)


class StreamAssembler:
    """Turns a response byte stream into terminal output and a final text.

    One assembler serves one request attempt: bytes go through the buffer, each
    complete line through the decoder, text through the reconciler, and the
    resulting actions to the sink.
    """

    def __init__(self, decoder, sink: Optional[TerminalSink] = None, buffer: Optional[StreamBuffer] = None):
        self.decoder = decoder
        self.sink = sink or TerminalSink()
        self.buffer = buffer if buffer is not None else StreamBuffer()
        self.state = ReconcilerState()
        self.final_text: str = ""
        self.errors: List[str] = []
        self.resource_error = False

    @property
    def location_gathered(self) -> bool:
        return bool(getattr(self.decoder, "location_gathered", False))

    def feed(self, chunk: bytes) -> int:
        """Consume one transport chunk.

        Returns the number of bytes consumed; anything short of len(chunk) asks the
        transport to stop the transfer.
        """
        try:
            lines = self.buffer.feed(chunk)
        except MemoryError:
            logger.error("Out of memory while buffering %d byte chunk", len(chunk))
            self.resource_error = True
            return 0

        for raw in lines:
            self.handle_line(raw.decode("utf-8", errors="replace"))
            if self.decoder.satisfied:
                logger.debug("Decoder satisfied, stopping transfer early")
                return 0
        return len(chunk)

    def handle_line(self, line: str) -> None:
        fragment = self.decoder.decode(line)
        if fragment is None:
            return

        if isinstance(fragment, TextDelta):
            current = fragment.text if fragment.snapshot else self.state.last_text + fragment.text
            action = self.state.observe(current)
            self.final_text = current
            if action is not None:
                self.sink.on_delta(action)
            return

        if fragment.kind == ERROR and fragment.value:
            self.errors.append(fragment.value)
        self.sink.on_signal(fragment)

    def finish(self) -> str:
        """Finalize the message and return its text."""
        return self.state.finalize()
