"""Chat session orchestration and API interactions."""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console

from chat.attachments import PendingAttachments
from chat.conversation import Content, ConversationManager, Part
from chat.recorder import SessionRecorder
from providers import bard, gemini
from stream.sink import TerminalSink
from streaming_client import StreamingClient, StreamResult, parse_error_message
from util.config import DEFAULT_SESSION_NAME, Settings


logger = logging.getLogger(__name__)


class ChatSession:
    """Orchestrates one conversation: pending attachments, history and requests.

    The official API receives the whole history as structured contents. The
    key-free endpoint receives a flattened transcript, so a free-mode turn is
    stored as a single text part made of its attachments and the prompt.
    """

    def __init__(self, settings: Settings, client: Optional[StreamingClient] = None,
                 conversation: Optional[ConversationManager] = None,
                 console: Optional[Console] = None, sink: Optional[TerminalSink] = None,
                 recorder: Optional[SessionRecorder] = None):
        self.settings = settings
        self.console = console or Console(stderr=True, soft_wrap=True)
        self.client = client or StreamingClient(console=self.console)
        self.conversation = conversation or ConversationManager()
        self.sink = sink or TerminalSink()
        self.recorder = recorder or SessionRecorder()
        self.pending = PendingAttachments()
        self.last_response: Optional[str] = None
        self.session_name = DEFAULT_SESSION_NAME

    @property
    def free_mode(self) -> bool:
        return self.settings.free_mode

    def send_turn(self, prompt: str) -> Optional[StreamResult]:
        """Send the prompt plus any pending attachments and stream the reply.

        Returns:
            The StreamResult, or None when there was nothing to send
        """
        if self.free_mode:
            return self._send_free(prompt)
        return self._send_official(prompt)

    def _send_free(self, prompt: str) -> Optional[StreamResult]:
        current = "".join(p.text for p in self.pending if p.text) + prompt
        if not current and not len(self.pending):
            return None

        total = self.conversation.transcript_length() + len(current) + 1
        if total > bard.MAX_FREE_MODE_CONTEXT_SIZE:
            self.pending.clear()
            message = (
                f"Context is too large for free mode (approx. {total // 1024} KB). "
                "Please use '/clear' or restart the session."
            )
            self.console.print(f"\nError: {message}", markup=False)
            return StreamResult(text="", ok=False, error=message)
        self.pending.clear()

        payload = bard.build_payload(
            self.conversation.to_contents(),
            current,
            is_pro=bard.is_pro_model(self.settings.model),
        )
        locate = self.settings.locate
        result = self.client.stream(
            bard.FREE_API_URL,
            data=bard.build_form(payload),
            headers=bard.build_headers(),
            decoder_factory=lambda: bard.make_decoder(locate),
            sink=self.sink,
            buffer_factory=bard.make_buffer,
            proxy=self.settings.proxy,
        )
        if result.ok:
            self.conversation.add_user_parts([Part(text=current)])
            self.conversation.add_model_text(result.text)
            self.last_response = result.text
        else:
            self._report_failure(result, "Free API call failed after retries")
        return result

    def _send_official(self, prompt: str) -> Optional[StreamResult]:
        parts: List[Part] = self.pending.take()
        if prompt:
            parts.append(Part(text=prompt))
        if not parts:
            return None

        self.conversation.add_user_parts(parts)
        body = gemini.encode_body(gemini.build_payload(self.conversation.to_contents(), self.settings))
        result = self.client.stream(
            gemini.stream_url(self.settings),
            data=body,
            headers=gemini.build_headers(self.settings),
            decoder_factory=gemini.make_decoder,
            sink=self.sink,
            proxy=self.settings.proxy,
        )
        if result.ok:
            self.last_response = result.text
            self.conversation.add_model_text(result.text)
        else:
            self.conversation.pop_last()
            self._report_failure(result, "API call failed after retries")
        return result

    def _report_failure(self, result: StreamResult, heading: str) -> None:
        if result.status_code is not None and result.status_code != 200:
            self.console.print(f"\n{heading} (Last HTTP code: {result.status_code})", markup=False)
            detail = parse_error_message(result.error_body)
            if detail:
                self.console.print(f"API Error Message: {detail}", markup=False)
        elif result.error:
            self.console.print(f"\nError: {result.error}", markup=False)
        logger.debug("Turn failed: %r", result)

    def count_tokens(self) -> Optional[int]:
        """Token count of history plus pending attachments (official API only)."""
        history = self.conversation.history
        pending = list(self.pending)
        if not history and not pending:
            return None
        contents = [c.to_dict() for c in history]
        if pending:
            contents.append(Content("user", pending).to_dict())
        return gemini.count_tokens(self.client, contents, self.settings)

    def clear(self) -> None:
        """Start a new unsaved session."""
        self.conversation.clear_history()
        self.last_response = None
        self.settings.system_prompt = None
        self.pending.clear()
        self.session_name = DEFAULT_SESSION_NAME

    # ---- persistence ----
    def save(self, path) -> str:
        return self.recorder.save_json(
            self.conversation.history, self.settings.system_prompt, self.settings, path
        )

    def load(self, path) -> None:
        history, system_prompt = self.recorder.load_json(path)
        self.conversation.history = history
        if system_prompt is not None:
            self.settings.system_prompt = system_prompt

    def export(self, path) -> str:
        return self.recorder.export_markdown(path, self.conversation.history, self.settings.system_prompt)
