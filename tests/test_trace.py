import io

import pytest

from archsim.trace import BILLION, InstructionWindow, parse_int, read_trace


def test_window_inactive_before_first_instruction():
    window = InstructionWindow()
    assert window.active() is False
    window.tick()
    assert window.active() is True


def test_window_waits_for_fast_forward():
    window = InstructionWindow(fast_forward=5, length=10)
    for _ in range(4):
        window.tick()
        assert window.active() is False
    window.tick()
    assert window.active() is True


def test_window_finishes_after_length():
    window = InstructionWindow(fast_forward=2, length=3)
    ticks = 0
    while not window.finished():
        window.tick()
        ticks += 1
    assert ticks == 2 + 3
    assert window.executed() == 3


def test_executed_never_negative():
    window = InstructionWindow(fast_forward=100, length=10)
    window.tick()
    assert window.executed() == 0


def test_default_window_is_one_billion():
    window = InstructionWindow()
    assert window.length == BILLION
    assert window.finished() is False


def test_negative_fast_forward_rejected():
    with pytest.raises(ValueError):
        InstructionWindow(fast_forward=-1)


@pytest.mark.parametrize(
    "text, expected",
    [("0x10", 0x10), ("42", 42), ("-5", -5), ("  7 ", 7), ("010", 10), ("0b101", 0b101)],
)
def test_parse_int(text, expected):
    assert parse_int(text) == expected


@pytest.mark.parametrize("text", ["", "bogus", "0xzz", "1.5"])
def test_parse_int_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_int(text)


def test_read_trace_skips_blank_and_comments():
    stream = io.StringIO("a b\n\n# comment only\nc d # tail\n   \n")
    assert list(read_trace(stream)) == [("a", "b"), ("c", "d")]


def test_read_trace_empty():
    assert list(read_trace(io.StringIO(""))) == []