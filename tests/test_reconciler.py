from stream.reconciler import (
    FINALIZED,
    IDLE,
    STREAMING,
    AppendSuffix,
    ReconcilerState,
    RedrawLine,
    reconcile,
)


def test_extension_appends_only_the_suffix():
    assert reconcile("", "Hel") == AppendSuffix("Hel")
    assert reconcile("Hel", "Hello") == AppendSuffix("lo")


def test_identical_text_prints_nothing():
    assert reconcile("", "") is None
    assert reconcile("Hello", "Hello") is None


def test_shorter_text_redraws_the_line():
    assert reconcile("Hello world", "Hi") == RedrawLine("Hi", 11)
    assert reconcile("abc", "") == RedrawLine("", 3)


def test_longer_divergent_text_prints_nothing():
    # Longer text that does not extend the displayed prefix is dropped
    assert reconcile("Hello", "Jello world") is None


def test_same_length_divergent_text_prints_nothing():
    assert reconcile("abc", "xyz") is None


def test_state_tracks_last_text():
    state = ReconcilerState()
    assert state.phase == IDLE
    assert state.observe("Hel") == AppendSuffix("Hel")
    assert state.phase == STREAMING
    assert state.observe("Hello") == AppendSuffix("lo")
    assert state.observe("Hello") is None
    assert state.last_text == "Hello"


def test_appended_suffixes_rebuild_the_final_text():
    state = ReconcilerState()
    shown = ""
    for snapshot in ["H", "He", "Hel", "Hell", "Hello", "Hello,", "Hello, world"]:
        action = state.observe(snapshot)
        if action is not None:
            shown += action.text
    assert shown == "Hello, world"
    assert state.finalize() == "Hello, world"


def test_finalize_then_new_message_starts_fresh():
    state = ReconcilerState()
    state.observe("First answer")
    assert state.finalize() == "First answer"
    assert state.phase == FINALIZED

    assert state.observe("Second") == AppendSuffix("Second")
    assert state.last_text == "Second"


def test_reset():
    state = ReconcilerState()
    state.observe("abc")
    state.reset()
    assert state.last_text == ""
    assert state.phase == IDLE
