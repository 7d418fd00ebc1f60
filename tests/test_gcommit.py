import subprocess

import pytest

import gcommit


def _completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


@pytest.fixture
def git(monkeypatch):
    """Fake subprocess.run answering the git queries gcommit makes."""
    state = {"repo": True, "staged": True, "diff": "diff --git a/x b/x\n+hello\n", "gcli": 0, "calls": []}

    def fake_run(cmd, **kwargs):
        state["calls"].append((cmd, kwargs))
        if cmd[:2] == ["git", "rev-parse"]:
            return _completed(0 if state["repo"] else 128)
        if cmd == ["git", "diff", "--staged", "--quiet"]:
            return _completed(1 if state["staged"] else 0)
        if cmd == ["git", "diff", "--staged"]:
            return _completed(0, state["diff"])
        return _completed(state["gcli"])

    monkeypatch.setattr(gcommit.subprocess, "run", fake_run)
    return state


def test_gcli_command():
    assert gcommit.gcli_command("gcli", "m", "0.7", "P") == ["gcli", "-q", "-e", "-m", "m", "-t", "0.7", "P"]
    assert gcommit.gcli_command("python -m gcli", "m", "0.7", "P")[:3] == ["python", "-m", "gcli"]


def test_read_prompt_file(tmp_path):
    path = tmp_path / "p.txt"
    path.write_text("Write a haiku.")
    assert gcommit.read_prompt_file(str(path), 100) == "Write a haiku."
    with pytest.raises(gcommit.PromptFileError):
        gcommit.read_prompt_file(str(path), 5)
    with pytest.raises(gcommit.PromptFileError):
        gcommit.read_prompt_file(str(tmp_path / "missing.txt"), 100)


def test_pipes_staged_diff_to_gcli(git):
    assert gcommit.main([]) == 0
    cmd, kwargs = git["calls"][-1]
    assert cmd == ["gcli", "-q", "-e", "-m", gcommit.DEFAULT_MODEL, "-t", gcommit.DEFAULT_TEMP, gcommit.DEFAULT_PROMPT]
    assert kwargs["input"] == git["diff"]


def test_custom_model_and_prompt(git, tmp_path):
    prompt = tmp_path / "prompt.txt"
    prompt.write_text("One line only.")
    assert gcommit.main(["-m", "gemini-2.5-flash", "-t", "0.2", "-p", str(prompt), "-g", "/opt/gcli"]) == 0
    cmd, _ = git["calls"][-1]
    assert cmd == ["/opt/gcli", "-q", "-e", "-m", "gemini-2.5-flash", "-t", "0.2", "One line only."]


def test_not_a_repository(git):
    git["repo"] = False
    assert gcommit.main([]) == 1
    assert len(git["calls"]) == 1


def test_nothing_staged(git):
    git["staged"] = False
    assert gcommit.main([]) == 1


def test_empty_diff(git):
    git["diff"] = ""
    assert gcommit.main([]) == 1


def test_gcli_failure(git):
    git["gcli"] = 2
    assert gcommit.main([]) == 1
