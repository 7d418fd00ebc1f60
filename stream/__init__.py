from __future__ import annotations

from stream.assembler import StreamAssembler
from stream.buffer import PrefixedStreamBuffer, StreamBuffer
from stream.decoders import BardDecoder, ControlSignal, SseDecoder, TextDelta
from stream.reconciler import AppendSuffix, RedrawLine, ReconcilerState, reconcile
from stream.sink import TerminalSink


__all__ = [
    "StreamAssembler",
    "StreamBuffer",
    "PrefixedStreamBuffer",
    "SseDecoder",
    "BardDecoder",
    "TextDelta",
    "ControlSignal",
    "AppendSuffix",
    "RedrawLine",
    "ReconcilerState",
    "reconcile",
    "TerminalSink",
]
