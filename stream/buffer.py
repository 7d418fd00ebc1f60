from __future__ import annotations

from typing import List, Optional


XSSI_PREFIX = b")]}'"


class StreamBuffer:
    """Accumulates raw response bytes and yields complete lines.

    Lines are returned without their terminating newline. Bytes after the last
    newline are retained until a later feed completes them; the retained size is
    not capped.
    """

    def __init__(self) -> None:
        self.pending = bytearray()
        self.received: int = 0

    def feed(self, data: bytes) -> List[bytes]:
        """Feed a chunk, returning the lines it completed."""
        out: List[bytes] = []
        if not data:
            return out
        self.received += len(data)
        self.pending += data
        return self._split_lines()

    def _split_lines(self) -> List[bytes]:
        out: List[bytes] = []
        start = 0
        while True:
            idx = self.pending.find(b"\n", start)
            if idx == -1:
                break
            out.append(bytes(self.pending[start:idx]))
            start = idx + 1
        if start:
            del self.pending[:start]
        return out

    def flush_remaining(self) -> Optional[bytes]:
        if not self.pending:
            return None
        rest = bytes(self.pending)
        self.pending.clear()
        return rest


class PrefixedStreamBuffer(StreamBuffer):
    """StreamBuffer that drops an anti-hijacking preamble at the start of the stream.

    The preamble is only recognised before the first line is released, so a
    preamble split across the first few chunks is still removed and the same
    bytes appearing later in the body are left untouched.
    """

    def __init__(self, prefix: bytes = XSSI_PREFIX) -> None:
        super().__init__()
        self.prefix = prefix
        self._checked = False

    def feed(self, data: bytes) -> List[bytes]:
        if not data:
            return []
        if self._checked:
            return super().feed(data)

        self.received += len(data)
        self.pending += data
        head = bytes(self.pending[: len(self.prefix)])
        if len(head) < len(self.prefix) and self.prefix.startswith(head):
            # Not enough bytes yet to tell whether the preamble is there
            return []
        self._checked = True
        if head == self.prefix:
            del self.pending[: len(self.prefix)]
        return self._split_lines()

    def flush_remaining(self) -> Optional[bytes]:
        self._checked = True
        return super().flush_remaining()
