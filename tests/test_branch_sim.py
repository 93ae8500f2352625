import io
import math

import pytest

from archsim.branch_sim import BTB_NAMES, DIRECTION_NAMES, BranchSimulator, main, run_trace


def test_forward_not_taken_branch_is_predicted_by_everyone():
    sim = BranchSimulator()
    sim.conditional_branch(0x100, False, 0x180)
    assert sim.forward_branches == 1
    assert sim.backward_branches == 0
    fractions = sim.misprediction_fractions()
    assert [row[0] for row in fractions] == list(DIRECTION_NAMES)
    for _, forward, backward, overall in fractions:
        assert forward == 0.0
        assert math.isnan(backward)
        assert overall == 0.0


def test_fnbt_direction_rule():
    sim = BranchSimulator()
    sim.conditional_branch(0x40, True, 0x80)
    sim.conditional_branch(0x80, True, 0x40)
    assert sim.forward_wrong[0] == 1
    assert sim.backward_wrong[0] == 0


def test_overall_fraction_combines_both_directions():
    sim = BranchSimulator()
    pattern = [(0x10, True, 0x8), (0x20, False, 0x30), (0x10, True, 0x8), (0x24, True, 0x40)]
    for _ in range(10):
        for pc, taken, target in pattern:
            sim.conditional_branch(pc, taken, target)
    assert sim.total_branches == sim.forward_branches + sim.backward_branches
    for slot, (_, forward, backward, overall) in enumerate(sim.misprediction_fractions()):
        assert 0.0 <= forward <= 1.0
        assert 0.0 <= backward <= 1.0
        wrong = sim.forward_wrong[slot] + sim.backward_wrong[slot]
        assert overall == pytest.approx(wrong / sim.total_branches)


def test_bimodal_learns_a_loop_branch():
    sim = BranchSimulator()
    for _ in range(50):
        sim.conditional_branch(0x200, True, 0x100)
    assert sim.backward_wrong[1] < 5


def test_history_registers_track_outcomes():
    sim = BranchSimulator()
    for taken in (True, False, True):
        sim.conditional_branch(0x10, taken, 0x20)
    assert sim.ghr_a.binary() == "101"
    assert sim.ghr_b.binary() == "101"


def test_btb_rates():
    sim = BranchSimulator()
    sim.indirect_branch(0x100, 0x500, 0x104)
    sim.indirect_branch(0x100, 0x500, 0x104)
    assert sim.indirect_total == 2
    assert sim.btb_rates() == [(name, 0.5, 0.5) for name in BTB_NAMES]


def test_report_lists_every_predictor():
    sim = BranchSimulator()
    sim.conditional_branch(0x10, True, 0x4)
    sim.indirect_branch(0x30, 0x90, 0x34)
    text = sim.report()
    assert "Part A" in text and "Part B" in text
    for name in DIRECTION_NAMES + BTB_NAMES:
        assert name in text
    assert "1.0000000000" in text


def test_run_trace_dispatches_records():
    trace = io.StringIO("X\nC 0x100 1 0x80  # loop\n\nI 0x200 0x300 0x204\n")
    sim, window = run_trace(trace, 0)
    assert sim.total_branches == 1
    assert sim.backward_branches == 1
    assert sim.indirect_total == 1
    assert window.count == 3


def test_run_trace_fast_forward_skips_early_instructions():
    trace = io.StringIO("C 0x10 0 0x20\n" * 3)
    sim, window = run_trace(trace, 2)
    assert sim.total_branches == 2
    assert window.executed() == 1


@pytest.mark.parametrize("line", ["Z 1 2 3", "C 0x10 1", "I 1 2 3 4", "C 0x10 yes 0x20"])
def test_run_trace_rejects_bad_records(line):
    with pytest.raises(ValueError):
        run_trace(io.StringIO(line + "\n"), 0)


def test_main_writes_report(tmp_path):
    trace = tmp_path / "trace.txt"
    trace.write_text("C 0x10 1 0x4\nI 0x30 0x90 0x34\nX\n")
    output = tmp_path / "out.txt"
    assert main([str(trace), "-o", str(output)]) == 0
    text = output.read_text()
    assert text.startswith("Fast Forward Amount:  0\n")
    assert "HW2 analysis results" in text
    assert BTB_NAMES[0] in text


def test_main_fast_forward_in_billions(tmp_path):
    trace = tmp_path / "trace.txt"
    trace.write_text("X\n")
    output = tmp_path / "out.txt"
    assert main([str(trace), "-o", str(output), "-f", "1"]) == 0
    assert "Fast Forward Amount:  1000000000" in output.read_text()


def test_main_reports_bad_trace(tmp_path, capsys):
    trace = tmp_path / "trace.txt"
    trace.write_text("Q 1\n")
    output = tmp_path / "out.txt"
    assert main([str(trace), "-o", str(output)]) == 1
    assert "unknown trace record kind" in capsys.readouterr().err