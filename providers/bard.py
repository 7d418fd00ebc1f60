"""Key-free web endpoint: the nested-array request payload and its stream decoder."""

from __future__ import annotations

import json
import locale
import re
from typing import Dict, List, Optional

from stream.buffer import PrefixedStreamBuffer
from stream.decoders import BardDecoder


FREE_API_URL = (
    "https://gemini.google.com/_/BardChatUi/data/assistant.lamda.BardFrontendService/"
    "StreamGenerate?bl=&f.sid=&hl=en&_reqid=&rt=c"
)
MAX_FREE_MODE_CONTEXT_SIZE = 102400
DEFAULT_LANGUAGE = "en-US"


def system_language() -> str:
    """Return the user's locale as "ll-CC", falling back to en-US."""
    try:
        name = locale.getlocale()[0]
    except ValueError:
        name = None
    if not name or name == "C" or name.startswith("C.") or name == "POSIX":
        return DEFAULT_LANGUAGE
    name = re.split(r"[.@]", name, maxsplit=1)[0]
    return name.replace("_", "-", 1) or DEFAULT_LANGUAGE


def build_transcript(contents: List[dict], prompt: str) -> str:
    """Flatten history into "Role: text" paragraphs and append the new prompt.

    Only the first part of each turn is used, and only when it is text.
    """
    pieces: List[str] = []
    for content in contents:
        parts = content.get("parts") or []
        text = parts[0].get("text") if parts and isinstance(parts[0], dict) else None
        if not isinstance(text, str):
            continue
        role = content.get("role") or ""
        pieces.append(f"{role[:1].upper()}{role[1:]}: {text}\n\n")
    pieces.append(f"User: {prompt}")
    return "".join(pieces)


def build_payload(contents: List[dict], prompt: str, *, is_pro: bool, language: Optional[str] = None) -> str:
    """Build the `f.req` value: [null, "<inner array as JSON>"]."""
    transcript = build_transcript(contents, prompt)
    inner = [
        [transcript, 0, None, None, None, None, None],
        [language or system_language()],
        ["", "", "", None, None, None, None, None, None, ""],
        "",
        "",
        None,
        [1 if is_pro else 0],
        1,
        None,
        None,
        1,
        1,
    ]
    inner += [None] * 5
    inner += [[[0]], 1]
    inner += [None] * 8
    inner += [1, None, None, [4]]
    inner += [None] * 10
    inner += [[1 if is_pro else 2]]
    inner += [None] * 61
    inner += [[]]

    inner_json = json.dumps(inner, ensure_ascii=False, separators=(",", ":"))
    return json.dumps([None, inner_json], ensure_ascii=False, separators=(",", ":"))


def is_pro_model(model: str) -> bool:
    return "pro" in model


def build_form(payload: str) -> Dict[str, str]:
    return {"f.req": payload}


def build_headers() -> Dict[str, str]:
    return {
        "Content-Type": "application/x-www-form-urlencoded;charset=UTF-8",
        "Origin": "https://gemini.google.com",
        "Referer": "https://gemini.google.com/",
    }


def make_decoder(locate: int = 0) -> BardDecoder:
    return BardDecoder(locate=locate)


def make_buffer() -> PrefixedStreamBuffer:
    return PrefixedStreamBuffer()
