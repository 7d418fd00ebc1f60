"""File and stdin attachments for the next user turn."""

from __future__ import annotations

import base64
import logging
from typing import BinaryIO, List, Optional

from chat.conversation import Part


logger = logging.getLogger(__name__)

ATTACHMENT_LIMIT = 1024
STDIN_NAME = "stdin"

_TEXT_EXTENSIONS = {
    ".txt", ".c", ".h", ".cpp", ".hpp", ".py", ".js", ".ts", ".java", ".cs",
    ".go", ".rs", ".sh", ".rb", ".php", ".css", ".md",
}
_MIME_TYPES = {
    ".html": "text/html",
    ".json": "application/json",
    ".xml": "application/xml",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}


class AttachmentError(ValueError):
    """An attachment could not be read or accepted."""


def get_mime_type(filename: str) -> str:
    """Guess a MIME type from the file extension; unknown types are text/plain."""
    dot = filename.rfind(".")
    if dot <= 0:
        return "text/plain"
    ext = filename[dot:].lower()
    if ext in _TEXT_EXTENSIONS:
        return "text/plain"
    return _MIME_TYPES.get(ext, "text/plain")


def is_path_safe(path: Optional[str]) -> bool:
    """Reject empty, traversing (`..`) and absolute paths, including drive letters."""
    if not path:
        return False
    if ".." in path:
        return False
    if path.startswith("/") or path.startswith("\\"):
        return False
    if len(path) > 1 and path[0].isalpha() and path[1] == ":":
        return False
    return True


def format_free_text(name: str, text: str) -> str:
    if name == STDIN_NAME:
        return f"\n--- Pasted Text ---\n{text}\n--- End of Pasted Text ---\n"
    return f"\n--- Attached File: {name} ---\n{text}\n--- End of File ---\n"


def read_attachment(source, name: str, mime_type: str, free_mode: bool) -> Part:
    """Read an attachment into a Part.

    Args:
        source: A binary stream, or None to open `name` as a relative path
        name: File name, or "stdin" for pasted/piped data
        mime_type: MIME type recorded for official-mode attachments
        free_mode: Produce bannered plain text instead of base64 inline data

    Returns:
        The Part to send with the next user turn

    Raises:
        AttachmentError: If the path is unsafe or no data was read
        OSError: If the file cannot be opened or read
    """
    if source is None:
        if not is_path_safe(name):
            raise AttachmentError(f"Unsafe or absolute file path specified: {name}")
        with open(name, "rb") as f:
            data = f.read()
    else:
        data = _read_stream(source)

    if not data:
        raise AttachmentError(f"No data received from '{name}'. Attachment skipped.")

    if free_mode:
        text = data.decode("utf-8", errors="replace")
        return Part(text=format_free_text(name, text), size=len(data))
    encoded = base64.b64encode(data).decode("ascii")
    return Part(filename=name, mime_type=mime_type, data=encoded, size=len(data))


def _read_stream(stream: BinaryIO) -> bytes:
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        stream = buffer
    data = stream.read()
    if isinstance(data, str):
        data = data.encode("utf-8")
    return data


class PendingAttachments:
    """Attachments waiting to be sent with the next prompt."""

    def __init__(self, limit: int = ATTACHMENT_LIMIT):
        self.limit = limit
        self.parts: List[Part] = []

    def __len__(self) -> int:
        return len(self.parts)

    def __iter__(self):
        return iter(self.parts)

    def add(self, part: Part) -> None:
        if len(self.parts) >= self.limit:
            raise AttachmentError(f"Attachment limit of {self.limit} reached.")
        self.parts.append(part)

    def attach(self, source, name: str, mime_type: str, free_mode: bool) -> Part:
        """Read and queue an attachment; the limit is checked before reading."""
        if len(self.parts) >= self.limit:
            raise AttachmentError(f"Attachment limit of {self.limit} reached.")
        part = read_attachment(source, name, mime_type, free_mode)
        self.parts.append(part)
        logger.debug("Queued attachment %s (%s)", name, mime_type)
        return part

    def remove(self, index: int) -> Part:
        if not 0 <= index < len(self.parts):
            raise IndexError(f"Invalid attachment index {index}.")
        return self.parts.pop(index)

    def take(self) -> List[Part]:
        """Return all pending parts and empty the queue."""
        parts, self.parts = self.parts, []
        return parts

    def clear(self) -> None:
        self.parts = []


def describe(part: Part) -> str:
    """One-line label for listings."""
    if part.is_file:
        return f"{part.filename or 'Pasted Data'} ({part.mime_type or 'unknown'})"
    text = (part.text or "").strip().splitlines()
    return f"text: {text[0][:60] if text else ''}"
