"""Line decoders for the two streaming wire formats.

Each decoder turns one complete line into at most one fragment:

- SseDecoder reads the official API's Server-Sent Events (`data: {json}`).
- BardDecoder reads the web endpoint's nested-array format, where the useful
  payload is a JSON string embedded in an outer JSON array.

Malformed lines never raise; they are logged and skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union


logger = logging.getLogger(__name__)

CODE_BLOCK = "code_block"
LOCATION = "location"
ERROR = "error"


@dataclass(frozen=True)
class TextDelta:
    """Text observed for the in-progress message.

    When `snapshot` is True the text is the full message so far, otherwise it is
    an increment to append to what has already been seen.
    """
    text: str
    snapshot: bool = True


@dataclass(frozen=True)
class ControlSignal:
    kind: str
    value: Optional[str] = None


Fragment = Union[TextDelta, ControlSignal]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def dig(node: Any, *steps: Union[int, str]) -> Any:
    """Follow index/key steps into decoded JSON.

    Integer steps index lists, string steps index dicts. Returns MISSING as soon
    as a step does not apply, so a JSON null stays distinguishable from an
    absent element.
    """
    for step in steps:
        if isinstance(step, int):
            if not isinstance(node, list) or not 0 <= step < len(node):
                return MISSING
        elif not isinstance(node, dict) or step not in node:
            return MISSING
        node = node[step]
    return node


class SseDecoder:
    """Decoder for `data: ` prefixed SSE lines from generateContent streams."""

    PREFIX = "data: "
    TEXT_PATH = ("candidates", 0, "content", "parts", 0, "text")

    def __init__(self, cumulative: bool = False):
        # The Gemini API streams increments; cumulative=True treats each text as the full message
        self.cumulative = cumulative

    @property
    def satisfied(self) -> bool:
        return False

    def decode(self, line: str) -> Optional[Fragment]:
        if not line.startswith(self.PREFIX):
            return None
        try:
            payload = json.loads(line[len(self.PREFIX):])
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed SSE line: %s", e)
            return None

        message = dig(payload, "error", "message")
        if isinstance(message, str):
            return ControlSignal(ERROR, message)

        text = dig(payload, *self.TEXT_PATH)
        if not isinstance(text, str):
            return None
        return TextDelta(text, snapshot=self.cumulative)


# Location request bits
LOCATE_PLACE = 1
LOCATE_MAP = 2
_LOCATE_DONE = 4


class BardDecoder:
    """Decoder for the key-free web endpoint's nested-array stream."""

    IMMERSIVE_CHIP = "\\\\nhttp://googleusercontent.com/immersive_entry_chip/0\\\\n"
    TEXT_PATH = (4, 0, 1, 0)
    CODE_PATH = (4, 0, 30, 0, 4)
    PLACE_PATH = (5, 0)
    MAP_PATH = (5, 4)

    def __init__(self, locate: int = 0):
        self.locate = locate
        self.pending_code: Optional[str] = None
        self.location_gathered = False

    @property
    def satisfied(self) -> bool:
        """True once every requested location item has been emitted."""
        return bool(self.locate) and not self.locate & (LOCATE_PLACE | LOCATE_MAP)

    def decode(self, line: str) -> Optional[Fragment]:
        stripped = line.lstrip()
        if not stripped.startswith("["):
            return None

        cleaned = stripped.replace(self.IMMERSIVE_CHIP, "")
        try:
            root = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("Error in received data, line skipped: %s", e)
            return None

        envelope = dig(root, 0)
        if not isinstance(envelope, list):
            return None

        payload = dig(envelope, 2)
        if payload is MISSING:
            # Short envelopes close the message; release any held code block
            code, self.pending_code = self.pending_code, None
            if code is None:
                return None
            return ControlSignal(CODE_BLOCK, code)
        if not isinstance(payload, str):
            return None

        try:
            inner = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed inner payload: %s", e)
            return None

        if self.locate:
            return self._decode_location(inner)

        code = dig(inner, *self.CODE_PATH)
        if isinstance(code, str):
            self.pending_code = code

        text = dig(inner, *self.TEXT_PATH)
        if isinstance(text, str):
            return TextDelta(text, snapshot=True)
        return None

    def _decode_location(self, inner: Any) -> Optional[Fragment]:
        if dig(inner, 5) is MISSING:
            return None
        self.location_gathered = True

        if self.locate & LOCATE_PLACE:
            value = dig(inner, *self.PLACE_PATH)
            if isinstance(value, str):
                self.locate = (self.locate & ~LOCATE_PLACE) | _LOCATE_DONE
                return ControlSignal(LOCATION, value)
        elif self.locate & LOCATE_MAP:
            value = dig(inner, *self.MAP_PATH)
            if isinstance(value, str):
                self.locate = (self.locate & ~LOCATE_MAP) | _LOCATE_DONE
                return ControlSignal(LOCATION, f"https:{value}")
        return None
