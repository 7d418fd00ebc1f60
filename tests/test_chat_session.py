import gzip
import io
import json
from unittest.mock import Mock

from rich.console import Console

from chat.conversation import Part
from chat.recorder import SessionRecorder
from chat.session import ChatSession
from providers import bard
from stream.sink import TerminalSink
from streaming_client import StreamResult
from util.config import DEFAULT_SESSION_NAME, Settings


def _session(tmp_path, free_mode=False, result=None, **settings):
    client = Mock()
    client.stream.return_value = result or StreamResult(text="Hi there", ok=True, status_code=200)
    out = io.StringIO()
    session = ChatSession(
        Settings(free_mode=free_mode, api_key="k", **settings),
        client=client,
        console=Console(file=out, width=200),
        sink=TerminalSink(io.StringIO()),
        recorder=SessionRecorder(base_dir=tmp_path),
    )
    return session, client, out


class TestOfficialMode:
    def test_successful_turn(self, tmp_path):
        session, client, _ = _session(tmp_path)
        result = session.send_turn("Hello")

        assert result.ok
        assert session.last_response == "Hi there"
        assert session.conversation.to_contents() == [
            {"role": "user", "parts": [{"text": "Hello"}]},
            {"role": "model", "parts": [{"text": "Hi there"}]},
        ]

        kwargs = client.stream.call_args.kwargs
        url = client.stream.call_args.args[0]
        assert url.endswith("/models/gemini-2.5-pro:streamGenerateContent?alt=sse")
        body = json.loads(gzip.decompress(kwargs["data"]))
        assert body["contents"] == [{"role": "user", "parts": [{"text": "Hello"}]}]
        assert kwargs["headers"]["x-goog-api-key"] == "k"

    def test_pending_attachments_are_sent_first(self, tmp_path):
        session, client, _ = _session(tmp_path)
        session.pending.add(Part(filename="a.png", mime_type="image/png", data="AAAA"))
        session.send_turn("What is this?")

        body = json.loads(gzip.decompress(client.stream.call_args.kwargs["data"]))
        assert body["contents"][0]["parts"] == [
            {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
            {"text": "What is this?"},
        ]
        assert len(session.pending) == 0

    def test_failed_turn_is_removed_from_history(self, tmp_path):
        failed = StreamResult(text="", ok=False, status_code=400,
                              error="HTTP 400", error_body='{"error": {"message": "API key not valid"}}')
        session, _, out = _session(tmp_path, result=failed)
        session.conversation.add_user_parts([Part(text="earlier")])

        result = session.send_turn("Hello")
        assert not result.ok
        assert [c.parts[0].text for c in session.conversation.history] == ["earlier"]
        assert session.last_response is None
        printed = out.getvalue()
        assert "(Last HTTP code: 400)" in printed
        assert "API Error Message: API key not valid" in printed

    def test_empty_response_not_recorded(self, tmp_path):
        session, _, _ = _session(tmp_path, result=StreamResult(text="", ok=True, status_code=200))
        session.send_turn("Hello")
        assert [c.role for c in session.conversation.history] == ["user"]

    def test_nothing_to_send(self, tmp_path):
        session, client, _ = _session(tmp_path)
        assert session.send_turn("") is None
        client.stream.assert_not_called()


class TestFreeMode:
    def test_successful_turn_records_combined_text(self, tmp_path):
        session, client, _ = _session(tmp_path, free_mode=True)
        session.pending.add(Part(text="\n--- Pasted Text ---\ndata\n--- End of Pasted Text ---\n"))
        session.send_turn("Summarise")

        url = client.stream.call_args.args[0]
        kwargs = client.stream.call_args.kwargs
        assert url == bard.FREE_API_URL
        inner = json.loads(json.loads(kwargs["data"]["f.req"])[1])
        expected = "\n--- Pasted Text ---\ndata\n--- End of Pasted Text ---\nSummarise"
        assert inner[0][0] == f"User: {expected}"
        assert kwargs["buffer_factory"] is bard.make_buffer
        assert kwargs["decoder_factory"]().locate == 0

        assert session.conversation.to_contents() == [
            {"role": "user", "parts": [{"text": expected}]},
            {"role": "model", "parts": [{"text": "Hi there"}]},
        ]
        assert session.last_response == "Hi there"
        assert len(session.pending) == 0

    def test_history_is_flattened_into_transcript(self, tmp_path):
        session, client, _ = _session(tmp_path, free_mode=True)
        session.send_turn("First")
        session.send_turn("Second")
        inner = json.loads(json.loads(client.stream.call_args.kwargs["data"]["f.req"])[1])
        assert inner[0][0] == "User: First\n\nModel: Hi there\n\nUser: Second"

    def test_failed_turn_leaves_history_untouched(self, tmp_path):
        session, _, out = _session(tmp_path, free_mode=True,
                                   result=StreamResult(text="", ok=False, error="Network error: down"))
        session.send_turn("Hello")
        assert session.conversation.history == []
        assert "Error: Network error: down" in out.getvalue()

    def test_context_limit(self, tmp_path):
        session, client, out = _session(tmp_path, free_mode=True)
        session.conversation.add_user_parts([Part(text="x" * bard.MAX_FREE_MODE_CONTEXT_SIZE)])
        session.pending.add(Part(text="extra"))

        result = session.send_turn("more")
        assert not result.ok
        client.stream.assert_not_called()
        assert len(session.pending) == 0
        assert "Context is too large for free mode" in out.getvalue()

    def test_locate_is_passed_to_decoder(self, tmp_path):
        session, client, _ = _session(tmp_path, free_mode=True, locate=3)
        session.send_turn("echo 'hello'")
        assert client.stream.call_args.kwargs["decoder_factory"]().locate == 3


def test_count_tokens_includes_pending(tmp_path, monkeypatch):
    session, _, _ = _session(tmp_path)
    assert session.count_tokens() is None

    captured = {}

    def fake_count(client, contents, settings):
        captured["contents"] = contents
        return 12

    monkeypatch.setattr("chat.session.gemini.count_tokens", fake_count)
    session.conversation.add_user_parts([Part(text="hi")])
    session.pending.add(Part(filename="f.txt", mime_type="text/plain", data="eA=="))
    assert session.count_tokens() == 12
    assert captured["contents"][-1] == {
        "role": "user",
        "parts": [{"inlineData": {"mimeType": "text/plain", "data": "eA=="}}],
    }
    assert len(session.conversation.history) == 1


def test_clear_resets_session(tmp_path):
    session, _, _ = _session(tmp_path, system_prompt="sys")
    session.send_turn("Hello")
    session.pending.add(Part(text="x"))
    session.session_name = "work"

    session.clear()
    assert session.conversation.history == []
    assert session.last_response is None
    assert session.settings.system_prompt is None
    assert len(session.pending) == 0
    assert session.session_name == DEFAULT_SESSION_NAME


def test_save_load_and_export(tmp_path):
    session, _, _ = _session(tmp_path, system_prompt="sys")
    session.send_turn("Hello")
    path = tmp_path / "chat.json"
    session.save(path)

    other, _, _ = _session(tmp_path)
    other.load(path)
    assert other.settings.system_prompt == "sys"
    assert other.conversation.to_contents() == session.conversation.to_contents()

    md = tmp_path / "chat.md"
    other.export(md)
    assert "### Model\n\nHi there\n" in md.read_text()
