import base64
import io

import pytest

from chat.attachments import (
    AttachmentError,
    PendingAttachments,
    describe,
    format_free_text,
    get_mime_type,
    is_path_safe,
    read_attachment,
)
from chat.conversation import Part


def test_get_mime_type():
    assert get_mime_type("main.py") == "text/plain"
    assert get_mime_type("photo.JPG") == "image/jpeg"
    assert get_mime_type("doc.pdf") == "application/pdf"
    assert get_mime_type("data.json") == "application/json"
    assert get_mime_type("archive.tar.zst") == "text/plain"
    assert get_mime_type("Makefile") == "text/plain"
    assert get_mime_type(".bashrc") == "text/plain"


def test_is_path_safe():
    assert is_path_safe("notes.txt")
    assert is_path_safe("sub/dir/notes.txt")
    assert not is_path_safe("")
    assert not is_path_safe(None)
    assert not is_path_safe("../secret")
    assert not is_path_safe("a/../../b")
    assert not is_path_safe("/etc/passwd")
    assert not is_path_safe("\\\\server\\share")
    assert not is_path_safe("C:\\Windows")


def test_free_text_banners():
    assert format_free_text("stdin", "hi") == "\n--- Pasted Text ---\nhi\n--- End of Pasted Text ---\n"
    assert format_free_text("a.txt", "hi") == "\n--- Attached File: a.txt ---\nhi\n--- End of File ---\n"


def test_read_attachment_from_stream_official():
    part = read_attachment(io.BytesIO(b"\x89PNG"), "img.png", "image/png", free_mode=False)
    assert part.is_file
    assert part.filename == "img.png"
    assert part.mime_type == "image/png"
    assert base64.b64decode(part.data) == b"\x89PNG"
    assert part.size == 4


def test_read_attachment_free_mode_is_text():
    part = read_attachment(io.BytesIO(b"pasted"), "stdin", "text/plain", free_mode=True)
    assert not part.is_file
    assert part.text == format_free_text("stdin", "pasted")
    assert part.size == 6


def test_read_attachment_text_stream_with_buffer():
    stream = io.TextIOWrapper(io.BytesIO(b"piped data"), encoding="utf-8")
    part = read_attachment(stream, "stdin", "text/plain", free_mode=True)
    assert "piped data" in part.text


def test_read_attachment_from_relative_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "notes.md").write_text("# Notes")
    part = read_attachment(None, "notes.md", "text/plain", free_mode=False)
    assert base64.b64decode(part.data) == b"# Notes"


def test_read_attachment_rejects_unsafe_path():
    with pytest.raises(AttachmentError):
        read_attachment(None, "/etc/hosts", "text/plain", free_mode=False)


def test_read_attachment_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(OSError):
        read_attachment(None, "nope.txt", "text/plain", free_mode=False)


def test_empty_input_is_rejected():
    with pytest.raises(AttachmentError):
        read_attachment(io.BytesIO(b""), "stdin", "text/plain", free_mode=False)


def test_pending_queue():
    pending = PendingAttachments()
    pending.attach(io.BytesIO(b"one"), "a.txt", "text/plain", False)
    pending.add(Part(text="two"))
    assert len(pending) == 2

    removed = pending.remove(0)
    assert removed.filename == "a.txt"
    with pytest.raises(IndexError):
        pending.remove(5)

    taken = pending.take()
    assert taken == [Part(text="two")]
    assert len(pending) == 0


def test_pending_limit():
    pending = PendingAttachments(limit=1)
    pending.add(Part(text="x"))
    with pytest.raises(AttachmentError):
        pending.add(Part(text="y"))
    with pytest.raises(AttachmentError):
        pending.attach(io.BytesIO(b"z"), "z.txt", "text/plain", False)
    pending.clear()
    pending.add(Part(text="y"))


def test_describe():
    assert describe(Part(filename="a.png", mime_type="image/png", data="x")) == "a.png (image/png)"
    assert describe(Part(mime_type="image/png", data="x")) == "Pasted Data (image/png)"
    assert describe(Part(text="\n--- Pasted Text ---\nhello\n")) == "text: --- Pasted Text ---"
