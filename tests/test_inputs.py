"""
Tests for input aggregation.
Run with: pytest tests/test_inputs.py
"""

import io

import pytest

from pipechat.errors import ConflictingSourceError, NoContentError, SourceUnreadableError
from pipechat.inputs import aggregate_conversation, interleave_flag_messages, read_body
from pipechat.models import Message


class TerminalStdin(io.StringIO):
    def isatty(self) -> bool:
        return True

    def read(self, *args):
        raise AssertionError("a terminal must not be read")


class UntouchableStdin(io.StringIO):
    def read(self, *args):
        raise AssertionError("stdin must not be read when a file is given")


# ---------------------------------------------------------------------------
# interleave_flag_messages
# ---------------------------------------------------------------------------

def test_interleave_keeps_command_line_order():
    order = ["user", "assistant", "user", "assistant"]
    messages = interleave_flag_messages(order, user=["1+1", "22+20"], assistant=["2", "42"])
    assert messages == [
        Message.user("1+1"),
        Message.assistant("2"),
        Message.user("22+20"),
        Message.assistant("42"),
    ]


def test_interleave_does_not_group_by_role():
    order = ["assistant", "assistant", "user", "system"]
    messages = interleave_flag_messages(order, user=["U"], assistant=["A1", "A2"])
    assert messages == [Message.assistant("A1"), Message.assistant("A2"), Message.user("U")]


def test_interleave_rejects_inconsistent_order():
    with pytest.raises(ValueError):
        interleave_flag_messages(["user"], user=["a", "b"])
    with pytest.raises(ValueError):
        interleave_flag_messages(["user", "user"], user=["a"])


# ---------------------------------------------------------------------------
# read_body
# ---------------------------------------------------------------------------

def test_read_body_from_file_wins_over_stdin(tmp_path):
    infile = tmp_path / "input.txt"
    infile.write_text("alpha")
    assert read_body(str(infile), UntouchableStdin("beta")) == "alpha"


def test_read_body_dash_means_stdin():
    assert read_body("-", io.StringIO("from stdin")) == "from stdin"


def test_read_body_skips_terminal():
    assert read_body(None, TerminalStdin()) == ""


def test_read_body_missing_file(tmp_path):
    with pytest.raises(SourceUnreadableError, match="failed to open"):
        read_body(str(tmp_path / "file_does_not_exist"))


# ---------------------------------------------------------------------------
# aggregate_conversation
# ---------------------------------------------------------------------------

def test_aggregate_full_scenario():
    """System first, flags in order, stdin body last."""
    turns = interleave_flag_messages(
        ["user", "assistant", "user", "assistant"],
        user=["1+1", "22+20"],
        assistant=["2", "42"],
    )
    conv = aggregate_conversation(
        system="Solve the problem", turns=turns, stdin=io.StringIO("50+50")
    )
    assert list(conv) == [
        Message.system("Solve the problem"),
        Message.user("1+1"),
        Message.assistant("2"),
        Message.user("22+20"),
        Message.assistant("42"),
        Message.user("50+50"),
    ]


def test_aggregate_file_precedence(tmp_path):
    infile = tmp_path / "input.txt"
    infile.write_text("alpha")
    conv = aggregate_conversation(file_path=str(infile), stdin=io.StringIO("beta"))
    assert list(conv) == [Message.user("alpha")]


def test_aggregate_nothing_at_all():
    with pytest.raises(NoContentError, match="no messages provided"):
        aggregate_conversation(stdin=io.StringIO(""))


def test_aggregate_blank_body_without_flags():
    with pytest.raises(NoContentError):
        aggregate_conversation(stdin=io.StringIO("  \n\t"))


def test_aggregate_blank_body_with_flags_is_dropped():
    conv = aggregate_conversation(turns=[Message.user("hello")], stdin=io.StringIO("\n"))
    assert list(conv) == [Message.user("hello")]


def test_aggregate_flags_only():
    conv = aggregate_conversation(system="S", turns=[Message.user("U")])
    assert list(conv) == [Message.system("S"), Message.user("U")]


def test_aggregate_empty_few_shot_message_allowed_before_body():
    conv = aggregate_conversation(
        turns=[Message.user("q"), Message.assistant("")], stdin=io.StringIO("next")
    )
    assert conv.messages[-1] == Message.user("next")
    assert conv.messages[1] == Message.assistant("")


def test_aggregate_rejects_empty_final_message():
    with pytest.raises(NoContentError, match="final assistant message is empty"):
        aggregate_conversation(turns=[Message.user("q"), Message.assistant("")])


def test_aggregate_only_empty_flags():
    with pytest.raises(NoContentError):
        aggregate_conversation(turns=[Message.user("")], stdin=io.StringIO(""))


def test_aggregate_body_and_file_conflict(tmp_path):
    with pytest.raises(ConflictingSourceError):
        aggregate_conversation(file_path=str(tmp_path / "x.txt"), body="inline")


def test_aggregate_direct_body():
    conv = aggregate_conversation(body="inline", stdin=UntouchableStdin("ignored"))
    assert list(conv) == [Message.user("inline")]


def test_aggregate_rejects_system_in_turns():
    with pytest.raises(ValueError):
        aggregate_conversation(turns=[Message.system("S")], body="x")
