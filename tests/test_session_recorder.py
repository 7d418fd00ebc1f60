import json
from pathlib import Path

import pytest

from chat.conversation import Content, Part
from chat.recorder import SessionNameError, SessionRecorder, is_session_name_safe
from util.config import Settings


def _history():
    return [
        Content("user", [Part(text="Describe this"), Part(filename="cat.png", mime_type="image/png", data="AAAA")]),
        Content("model", [Part(text="A cat.")]),
    ]


def test_save_and_load_json(tmp_path):
    rec = SessionRecorder(base_dir=tmp_path)
    path = tmp_path / "chat.json"
    rec.save_json(_history(), "Be brief", Settings(), path)

    obj = json.loads(path.read_text(encoding="utf-8"))
    assert obj["systemInstruction"] == {"parts": [{"text": "Be brief"}]}
    assert obj["contents"][0]["parts"][1] == {"inlineData": {"mimeType": "image/png", "data": "AAAA"}}
    assert obj["generationConfig"]["seed"] == 42

    history, system_prompt = rec.load_json(path)
    assert system_prompt == "Be brief"
    assert [c.role for c in history] == ["user", "model"]
    assert history[0].parts[0].text == "Describe this"
    assert history[0].parts[1].is_file
    assert history[1].parts[0].text == "A cat."


def test_save_does_not_change_settings(tmp_path):
    settings = Settings(system_prompt="original")
    SessionRecorder(base_dir=tmp_path).save_json([], None, settings, tmp_path / "x.json")
    assert settings.system_prompt == "original"
    obj = json.loads((tmp_path / "x.json").read_text())
    assert "systemInstruction" not in obj


def test_load_without_system_prompt(tmp_path):
    path = tmp_path / "h.json"
    path.write_text(json.dumps({"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}))
    history, system_prompt = SessionRecorder(base_dir=tmp_path).load_json(path)
    assert system_prompt is None
    assert len(history) == 1


def test_load_rejects_non_object(tmp_path):
    path = tmp_path / "h.json"
    path.write_text("[]")
    with pytest.raises(ValueError):
        SessionRecorder(base_dir=tmp_path).load_json(path)


def test_named_sessions(tmp_path):
    rec = SessionRecorder(base_dir=tmp_path)
    assert rec.list_sessions() == []

    rec.save_json(_history(), None, Settings(), rec.session_path("work"))
    rec.save_json([], None, Settings(), rec.session_path("alpha"))
    (tmp_path / "notes.txt").write_text("not a session")
    assert rec.list_sessions() == ["alpha", "work"]

    rec.delete_session("alpha")
    assert rec.list_sessions() == ["work"]
    with pytest.raises(FileNotFoundError):
        rec.delete_session("alpha")


def test_session_name_validation(tmp_path):
    assert is_session_name_safe("project-x")
    for bad in ("", "a/b", "a\\b", "v1.2", ".."):
        assert not is_session_name_safe(bad)
    with pytest.raises(SessionNameError):
        SessionRecorder(base_dir=tmp_path).session_path("../escape")


def test_default_base_dir_uses_config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    rec = SessionRecorder()
    assert rec.base_dir == tmp_path / ".config" / "gcli" / "sessions"


def test_export_markdown(tmp_path):
    rec = SessionRecorder(base_dir=tmp_path)
    md_path = rec.export_markdown(tmp_path / "chat.md", _history(), "Be brief")
    md = Path(md_path).read_text(encoding="utf-8")
    assert md == (
        "## System Prompt\n\n```\nBe brief\n```\n\n---\n\n"
        "### User\n\n"
        "Describe this\n"
        "\n`[Attached File: cat.png (image/png)]`\n"
        "\n"
        "---\n\n"
        "### Model\n\n"
        "A cat.\n"
        "\n"
    )


def test_export_markdown_without_system_prompt(tmp_path):
    rec = SessionRecorder(base_dir=tmp_path)
    history = [Content("user", [Part(mime_type="application/pdf", data="AA")])]
    md = Path(rec.export_markdown(tmp_path / "x.md", history)).read_text()
    assert md == "### User\n\n\n`[Attached File: Pasted Data (application/pdf)]`\n"
