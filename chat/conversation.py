"""Conversation history management."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple


@dataclass
class Part:
    """One piece of a turn: plain text, or an inline file (base64 data)."""
    text: Optional[str] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    data: Optional[str] = None
    size: int = 0

    @property
    def is_file(self) -> bool:
        return self.data is not None

    def to_dict(self) -> dict:
        if self.is_file:
            return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}
        if self.text is not None:
            return {"text": self.text}
        return {}

    @classmethod
    def from_dict(cls, obj) -> "Part":
        if not isinstance(obj, dict):
            return cls()
        text = obj.get("text")
        if isinstance(text, str):
            return cls(text=text)
        inline = obj.get("inlineData")
        if isinstance(inline, dict):
            mime_type = inline.get("mimeType")
            data = inline.get("data")
            if isinstance(mime_type, str) and isinstance(data, str):
                return cls(mime_type=mime_type, data=data)
        return cls()


@dataclass
class Content:
    role: str
    parts: List[Part] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"role": self.role, "parts": [p.to_dict() for p in self.parts]}


class ConversationManager:
    """Manages conversation history in the API's contents/parts shape."""

    def __init__(self):
        self.history: List[Content] = []

    def add_user_parts(self, parts: List[Part]) -> None:
        """Add a user turn made of the given parts."""
        self.history.append(Content("user", list(parts)))

    def add_model_text(self, text: Optional[str]) -> None:
        """Add a model turn to conversation history."""
        if text and text.strip():  # Only add non-empty responses
            self.history.append(Content("model", [Part(text=text)]))

    def pop_last(self) -> Optional[Content]:
        """Drop the most recent turn, e.g. a user turn whose request failed."""
        if not self.history:
            return None
        return self.history.pop()

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.history = []

    def to_contents(self) -> List[dict]:
        return [c.to_dict() for c in self.history]

    def from_contents(self, contents) -> None:
        """Replace history with turns decoded from wire-form contents.

        Entries without a string role or a parts list are skipped.
        """
        self.history = []
        for item in contents or []:
            if not isinstance(item, dict):
                continue
            role = item.get("role")
            parts = item.get("parts")
            if not isinstance(role, str) or not isinstance(parts, list):
                continue
            self.history.append(Content(role, [Part.from_dict(p) for p in parts]))

    def transcript_length(self) -> int:
        """Characters of first-part text across history, as sent in free mode."""
        total = 0
        for content in self.history:
            if content.parts and content.parts[0].text:
                total += len(content.parts[0].text)
        return total

    def history_attachments(self) -> Iterator[Tuple[int, int, str, Part]]:
        """Yield (message index, part index, role, part) for every file part."""
        for i, content in enumerate(self.history):
            for j, part in enumerate(content.parts):
                if part.is_file:
                    yield i, j, content.role, part

    def remove_history_attachment(self, msg_idx: int, part_idx: int) -> Part:
        """Remove a file part from a past turn.

        Raises:
            IndexError: If either index is out of range
            ValueError: If the part is not a file attachment
        """
        if not 0 <= msg_idx < len(self.history):
            raise IndexError(f"Invalid message index {msg_idx}.")
        content = self.history[msg_idx]
        if not 0 <= part_idx < len(content.parts):
            raise IndexError(f"Invalid part index {part_idx} for message {msg_idx}.")
        if not content.parts[part_idx].is_file:
            raise ValueError(f"Part [{msg_idx}:{part_idx}] is not a file attachment.")
        return content.parts.pop(part_idx)
