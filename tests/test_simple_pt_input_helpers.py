from unittest.mock import Mock

from util.input_helpers import EXIT_SIGNAL
from util.simple_pt_input import _NonBlankHistory, get_user_input


def test_returns_typed_line():
    session = Mock()
    session.prompt.return_value = "hello there"
    assert get_user_input(session) == "hello there"
    session.prompt.assert_called_once()


def test_eof_and_interrupt_end_the_session():
    session = Mock()
    session.prompt.side_effect = EOFError
    assert get_user_input(session) == EXIT_SIGNAL

    session.prompt.side_effect = KeyboardInterrupt
    assert get_user_input(session) == EXIT_SIGNAL


def test_blank_lines_are_not_kept_in_history():
    history = _NonBlankHistory()
    history.append_string("first")
    history.append_string("   ")
    history.append_string("")
    history.append_string("second")
    assert list(history.get_strings()) == ["first", "second"]
