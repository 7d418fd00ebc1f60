import pytest

from chat.conversation import Content, ConversationManager, Part


def _file_part(name="a.png"):
    return Part(filename=name, mime_type="image/png", data="AAAA", size=3)


def test_part_wire_forms():
    assert Part(text="hi").to_dict() == {"text": "hi"}
    assert _file_part().to_dict() == {"inlineData": {"mimeType": "image/png", "data": "AAAA"}}
    assert Part().to_dict() == {}


def test_part_from_dict():
    assert Part.from_dict({"text": "hi"}) == Part(text="hi")
    loaded = Part.from_dict({"inlineData": {"mimeType": "image/png", "data": "AAAA"}})
    assert loaded.is_file and loaded.filename is None
    assert Part.from_dict({"inlineData": {"mimeType": 1}}) == Part()
    assert Part.from_dict("junk") == Part()


def test_add_turns():
    cm = ConversationManager()
    cm.add_user_parts([Part(text="Hello")])
    cm.add_model_text("Hi!")
    assert cm.to_contents() == [
        {"role": "user", "parts": [{"text": "Hello"}]},
        {"role": "model", "parts": [{"text": "Hi!"}]},
    ]


def test_empty_model_text_is_not_recorded():
    cm = ConversationManager()
    cm.add_model_text("")
    cm.add_model_text("   \n")
    cm.add_model_text(None)
    assert cm.history == []


def test_pop_last_and_clear():
    cm = ConversationManager()
    assert cm.pop_last() is None
    cm.add_user_parts([Part(text="q")])
    assert cm.pop_last().role == "user"
    cm.add_user_parts([Part(text="q")])
    cm.clear_history()
    assert cm.history == []


def test_from_contents_skips_invalid_entries():
    cm = ConversationManager()
    cm.from_contents([
        {"role": "user", "parts": [{"text": "a"}]},
        {"role": 5, "parts": []},
        {"role": "model"},
        "junk",
        {"role": "model", "parts": [{"text": "b"}]},
    ])
    assert [c.role for c in cm.history] == ["user", "model"]
    cm.from_contents(None)
    assert cm.history == []


def test_transcript_length_counts_first_text_parts():
    cm = ConversationManager()
    cm.add_user_parts([Part(text="abcd"), Part(text="ignored")])
    cm.history.append(Content("user", [_file_part(), Part(text="also ignored")]))
    cm.add_model_text("xyz")
    assert cm.transcript_length() == 7


def test_history_attachments_and_removal():
    cm = ConversationManager()
    cm.add_user_parts([Part(text="look"), _file_part("one.png")])
    cm.add_model_text("nice")
    cm.add_user_parts([_file_part("two.png")])

    found = [(i, j, role, p.filename) for i, j, role, p in cm.history_attachments()]
    assert found == [(0, 1, "user", "one.png"), (2, 0, "user", "two.png")]

    removed = cm.remove_history_attachment(0, 1)
    assert removed.filename == "one.png"
    assert cm.history[0].parts == [Part(text="look")]


def test_remove_history_attachment_errors():
    cm = ConversationManager()
    cm.add_user_parts([Part(text="look")])
    with pytest.raises(IndexError):
        cm.remove_history_attachment(3, 0)
    with pytest.raises(IndexError):
        cm.remove_history_attachment(0, 4)
    with pytest.raises(ValueError):
        cm.remove_history_attachment(0, 0)
