from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from chat.conversation import Content, ConversationManager
from providers import gemini
from util.config import get_sessions_path


logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".json"


class SessionNameError(ValueError):
    """Session names may not contain path separators or dots."""


def is_session_name_safe(name: Optional[str]) -> bool:
    if not name:
        return False
    return not any(ch in name for ch in ("/", "\\", "."))


class SessionRecorder:
    """Saves and restores conversations as request JSON, and exports Markdown."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else None

    @property
    def base_dir(self) -> Path:
        if self._base_dir is None:
            self._base_dir = get_sessions_path()
        return self._base_dir

    # ---- persistence ----
    def save_json(self, history: List[Content], system_prompt: Optional[str], settings,
                  path: str | Path) -> str:
        """Write the complete request body (history, system prompt, tools, config)."""
        effective = dataclasses.replace(settings, system_prompt=system_prompt)
        contents = [c.to_dict() for c in history]
        obj = gemini.build_payload(contents, effective)
        out_path = Path(path)
        if out_path.parent != Path(""):
            out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
        logger.debug("Saved %d turns to %s", len(history), out_path)
        return str(out_path)

    def load_json(self, path: str | Path) -> Tuple[List[Content], Optional[str]]:
        """Read a saved request body back into history and system prompt.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not a JSON object
        """
        with Path(path).open("r", encoding="utf-8") as f:
            root = json.load(f)
        if not isinstance(root, dict):
            raise ValueError("JSON file is not a valid history object.")

        conversation = ConversationManager()
        conversation.from_contents(root.get("contents"))

        system_prompt = None
        instruction = root.get("systemInstruction")
        if isinstance(instruction, dict):
            parts = instruction.get("parts")
            if isinstance(parts, list) and parts and isinstance(parts[0], dict):
                text = parts[0].get("text")
                if isinstance(text, str):
                    system_prompt = text
        return conversation.history, system_prompt

    # ---- named sessions ----
    def session_path(self, name: str) -> Path:
        if not is_session_name_safe(name):
            raise SessionNameError("Session name cannot contain '/', '\\', or '.' characters.")
        return self.base_dir / f"{name}{SESSION_SUFFIX}"

    def list_sessions(self) -> List[str]:
        if not self.base_dir.is_dir():
            return []
        return sorted(p.stem for p in self.base_dir.glob(f"*{SESSION_SUFFIX}") if p.is_file())

    def delete_session(self, name: str) -> Path:
        """Remove a named session file; raises FileNotFoundError if it does not exist."""
        path = self.session_path(name)
        path.unlink()
        return path

    # ---- export ----
    def export_markdown(self, path: str | Path, history: List[Content],
                        system_prompt: Optional[str] = None) -> str:
        out_path = Path(path)
        with out_path.open("w", encoding="utf-8") as f:
            f.write(self._render_markdown(history, system_prompt))
        return str(out_path)

    def _render_markdown(self, history: List[Content], system_prompt: Optional[str]) -> str:
        out: List[str] = []
        if system_prompt:
            out.append(f"## System Prompt\n\n```\n{system_prompt}\n```\n\n---\n\n")
        for i, content in enumerate(history):
            role = content.role
            out.append(f"### {role[:1].upper()}{role[1:]}\n\n")
            has_text = False
            for part in content.parts:
                if part.is_file:
                    filename = part.filename or "Pasted Data"
                    mime_type = part.mime_type or "unknown"
                    out.append(f"\n`[Attached File: {filename} ({mime_type})]`\n")
                elif part.text is not None:
                    out.append(f"{part.text}\n")
                    has_text = True
            if has_text:
                out.append("\n")
            # Rule between turns only
            if i < len(history) - 1:
                out.append("---\n\n")
        return "".join(out)
